# contractbench/report_emitter.py
# ReportEmitter -- result file plus human-readable console summary.
#
# The summary is printed whether or not the result file could be written; a
# write failure is reported in the summary and escalates the exit code to
# the IoError code.

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from contractbench.data_models.comparison import Severity
from contractbench.data_models.report import CaseOutcome, Report, ReportEntry
from contractbench.exceptions import BenchIoError, exit_code_for
from contractbench.storage.report_writer import ReportWriter


_WIDTH:      int = 88
_CASE_WIDTH: int = 40

_RESULT_LABELS = {0: "PASS", 1: "FAIL", 2: "ERROR"}


@dataclass(frozen=True)
class EmitResult:
    """
    Fields:
      path      -- result file written, or None.
      error     -- the write failure, or None.
      exit_code -- report exit code, raised to the IoError code on failure.
    """
    path:      Optional[Path]
    error:     Optional[BenchIoError]
    exit_code: int


def _separator(char: str = "=") -> str:
    return char * _WIDTH


def format_delta(delta: Optional[float]) -> str:
    if delta is None:
        return "-"
    if delta == float("inf"):
        return "+inf"
    return "{:+.2f}%".format(delta * 100.0)


def _row(entry: ReportEntry) -> tuple:
    """(delta, severity label, note) for one entry."""
    if entry.outcome is CaseOutcome.SKIPPED:
        return "-", "SKIPPED", entry.detail
    if entry.outcome is CaseOutcome.TIMED_OUT:
        return "-", "TIMED_OUT", entry.detail
    if entry.outcome is CaseOutcome.ERRORED:
        return "-", "ERROR", entry.failure_type
    c = entry.comparison
    if c is None:
        note = entry.failure_type or "no baseline"
        return "-", entry.severity.value, note
    note = c.reason
    if c.environment_changed:
        note += "; environment changed"
    return format_delta(c.delta), c.severity.value, note


def _baseline_state(md) -> str:
    if md.baseline_provenance is None:
        return md.baseline_status
    return md.baseline_status + "; " + md.baseline_provenance


def render_summary(report: Report, result: EmitResult) -> str:
    md = report.metadata
    lines = [
        _separator(),
        "CONTRACT BENCH RESULT: " + _RESULT_LABELS.get(result.exit_code, "ERROR"),
        "Run ID:        " + md.run_id,
        "Bench version: " + md.bench_version,
        "Profile:       " + md.profile + "  (seed " + str(md.seed) + ")",
        "Environment:   " + md.environment.fingerprint_id
        + "  (" + md.environment.python_implementation + " " + md.environment.python_version
        + ", numpy " + md.environment.numpy_version + ", " + md.environment.build_mode + ")",
        "Baseline:      " + md.baseline_name + " (" + _baseline_state(md) + ")",
        "Duration:      {:.3f}s".format(md.total_duration_ns / 1e9),
        _separator("-"),
        "{:<{w}} {:>9}  {:<12} {}".format("CASE", "DELTA", "SEVERITY", "NOTE", w=_CASE_WIDTH),
    ]
    for entry in report.entries:
        delta, severity, note = _row(entry)
        lines.append("{:<{w}} {:>9}  {:<12} {}".format(entry.case_id, delta, severity, note, w=_CASE_WIDTH))
    lines.append(_separator("-"))

    for warning in report.warnings:
        lines.append("WARNING: " + warning)
    if any(e.severity is Severity.UNBASELINED for e in report.entries):
        lines.append(
            "No usable baseline for some cases. Save one with: "
            "python -m contractbench.run_bench suite --save-baseline " + md.baseline_name
        )
    if result.path is not None:
        lines.append("Result file:   " + str(result.path))
    else:
        lines.append("Result file:   NOT WRITTEN (" + (result.error.message if result.error else "unknown") + ")")
    lines.append("Exit code:     " + str(result.exit_code))
    lines.append(_separator())
    return "\n".join(lines)


class ReportEmitter:
    """
    Args:
        writer: ReportWriter for the run's output root.
        stream: summary destination; sys.stdout at call time when omitted.
    """

    def __init__(self, writer: ReportWriter, stream: Optional[TextIO] = None) -> None:
        self._writer = writer
        self._stream = stream

    def emit(self, report: Report, events: Optional[List[Dict[str, Any]]] = None) -> EmitResult:
        try:
            path = self._writer.write(report, events)
            result = EmitResult(path=path, error=None, exit_code=report.exit_code)
        except BenchIoError as exc:
            result = EmitResult(
                path=None,
                error=exc,
                exit_code=max(report.exit_code, exit_code_for(exc.failure_type)),
            )
        stream = self._stream if self._stream is not None else sys.stdout
        print(render_summary(report, result), file=stream)
        stream.flush()
        return result
