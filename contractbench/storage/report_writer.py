# contractbench/storage/report_writer.py
# ReportWriter -- one JSON result file per run.
#
# File name: <root>/results/<run_id>_<YYYYMMDDTHHMMSSZ>.json
# Floats are float.hex strings, as in baselines. The run journal is embedded
# under "events".

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from contractbench.bench_version import REPORT_SCHEMA_VERSION
from contractbench.constants import RESULTS_SUBDIR
from contractbench.data_models.comparison import ComparisonResult
from contractbench.data_models.report import Report, ReportEntry
from contractbench.storage.atomic_write import atomic_write_json
from contractbench.storage.measurement_codec import serialize_float, serialize_measurement


def compact_timestamp(iso: str) -> str:
    """'2026-10-18T09:30:05.123+00:00' -> '20261018T093005Z'."""
    return datetime.fromisoformat(iso).strftime("%Y%m%dT%H%M%SZ")


def _serialize_comparison(c: ComparisonResult) -> Dict[str, Any]:
    return {
        "delta":               serialize_float(c.delta) if c.delta is not None else None,
        "severity":            c.severity.value,
        "fingerprint_match":   c.fingerprint_match,
        "reason":              c.reason,
        "environment_changed": c.environment_changed,
        "baseline":            serialize_measurement(c.baseline) if c.baseline is not None else None,
    }


def _serialize_entry(e: ReportEntry) -> Dict[str, Any]:
    return {
        "case_id":      e.case_id,
        "outcome":      e.outcome.value,
        "severity":     e.severity.value if e.severity is not None else None,
        "failure_type": e.failure_type,
        "detail":       e.detail,
        "exit_code":    e.exit_code,
        "measurement":  serialize_measurement(e.measurement) if e.measurement is not None else None,
        "comparison":   _serialize_comparison(e.comparison) if e.comparison is not None else None,
    }


def serialize_report(report: Report, events: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    md = report.metadata
    return {
        "report_schema_version": REPORT_SCHEMA_VERSION,
        "bench_version":         md.bench_version,
        "run_id":                md.run_id,
        "profile":               md.profile,
        "seed":                  md.seed,
        "started_at_iso":        md.started_at_iso,
        "finished_at_iso":       md.finished_at_iso,
        "total_duration_ns":     md.total_duration_ns,
        "environment":           md.environment.to_dict(),
        "environment_id":        md.environment.fingerprint_id,
        "git_revision":          md.git_revision,
        "label":                 md.label,
        "baseline": {
            "name":       md.baseline_name,
            "status":     md.baseline_status,
            "provenance": md.baseline_provenance,
        },
        "exit_code":             report.exit_code,
        "run_failures":          list(report.run_failures),
        "warnings":              list(report.warnings),
        "entries":               [_serialize_entry(e) for e in report.entries],
        "events":                list(events or []),
    }


class ReportWriter:
    """Writes result files under root / "results"."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.directory = self.root / RESULTS_SUBDIR

    def path_for(self, report: Report) -> Path:
        md = report.metadata
        return self.directory / (md.run_id + "_" + compact_timestamp(md.started_at_iso) + ".json")

    def write(self, report: Report, events: Optional[List[Dict[str, Any]]] = None) -> Path:
        """Raises BenchIoError when the file cannot be written."""
        return atomic_write_json(self.path_for(report), serialize_report(report, events))
