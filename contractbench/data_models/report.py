# contractbench/data_models/report.py
# ReportEntry, RunMetadata and Report data classes, plus exit code reduction.

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from contractbench.data_models.comparison import ComparisonResult, Severity
from contractbench.data_models.environment import EnvironmentFingerprint
from contractbench.data_models.measurement import Measurement
from contractbench.exceptions import exit_code_for


class CaseOutcome(str, Enum):
    """
    What happened to a case.

    MEASURED  -- timed and aggregated; severity comes from the comparison.
    SKIPPED   -- not run (capability absent, or no external input).
    TIMED_OUT -- case or run budget exhausted.
    ERRORED   -- aborted by a taxonomy or operation error.
    """
    MEASURED  = "MEASURED"
    SKIPPED   = "SKIPPED"
    TIMED_OUT = "TIMED_OUT"
    ERRORED   = "ERRORED"


@dataclass(frozen=True)
class ReportEntry:
    """
    One row of a Report.

    Fields:
      case_id      -- case identity ("<category>.<name>").
      outcome      -- CaseOutcome.
      severity     -- severity band for MEASURED entries, else None.
      measurement  -- present for MEASURED entries.
      comparison   -- present when a usable baseline entry existed.
      failure_type -- FAILURE_TYPES key, or "" when none applies.
      detail       -- human-readable note (skip reason, error message).
    """
    case_id:      str
    outcome:      CaseOutcome
    severity:     Optional[Severity] = None
    measurement:  Optional[Measurement] = None
    comparison:   Optional[ComparisonResult] = None
    failure_type: str = ""
    detail:       str = ""

    @property
    def exit_code(self) -> int:
        if self.outcome is CaseOutcome.SKIPPED:
            return 0
        if self.outcome is CaseOutcome.TIMED_OUT:
            return exit_code_for("TimedOut")
        if self.failure_type:
            return exit_code_for(self.failure_type)
        if self.severity is Severity.FAIL:
            return 1
        return 0


@dataclass(frozen=True)
class RunMetadata:
    """
    Run-level metadata written at the top of every result file.

    Fields:
      run_id            -- unique run identifier.
      bench_version     -- BENCH_VERSION.
      profile           -- Profile value ("quick" / "full").
      seed              -- global workload seed.
      started_at_iso    -- UTC ISO-8601 run start.
      finished_at_iso   -- UTC ISO-8601 run end.
      total_duration_ns -- monotonic run duration.
      environment       -- host description.
      git_revision      -- from GIT_SHA / GITHUB_SHA, or None.
      label             -- operator label, or None.
      baseline_name     -- baseline compared against.
      baseline_status   -- "loaded", "missing", "rejected", "unreadable" or
                           "invalid".
      baseline_provenance -- Provenance.describe() of the loaded baseline, or
                             None when none was loaded.
    """
    run_id:            str
    bench_version:     str
    profile:           str
    seed:              int
    started_at_iso:    str
    finished_at_iso:   str
    total_duration_ns: int
    environment:       EnvironmentFingerprint
    git_revision:      Optional[str]
    label:             Optional[str]
    baseline_name:     str
    baseline_status:   str
    baseline_provenance: Optional[str] = None


@dataclass(frozen=True)
class Report:
    """
    Ordered report entries for one run.

    Fields:
      metadata      -- RunMetadata.
      entries       -- tuple of ReportEntry in execution order.
      run_failures  -- tuple of FAILURE_TYPES keys for run-level failures
                       (baseline or report storage), in occurrence order.
      warnings      -- tuple of str shown under the summary table.
      exit_code     -- worst outcome; see compute_exit_code().
    """
    metadata:     RunMetadata
    entries:      tuple
    run_failures: tuple
    warnings:     tuple
    exit_code:    int


def compute_exit_code(entries: Iterable[ReportEntry], run_failures: Iterable[str] = ()) -> int:
    """
    Reduce entry and run-level failures to one process exit code.

      0 -- every case PASS / WARN / UNBASELINED / SKIPPED
      1 -- any FAIL, OutputMismatch, NonDeterministicOutput or TimedOut
      2 -- any internal error

    Worst wins: 2 > 1 > 0.
    """
    code = 0
    for entry in entries:
        code = max(code, entry.exit_code)
    for failure_type in run_failures:
        code = max(code, exit_code_for(failure_type))
    return code
