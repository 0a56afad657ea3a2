# =============================================================================
# contractbench/suite_runner.py
# =============================================================================
#
# SCOPE
# -----
# Runs a CaseRegistry end to end and produces the run's Report and exit code.
#
# PIPELINE (per run)
# ------------------
#   BaselineStore.load  (once)
#   for each case, sequentially:
#     cancellation check -> capability check -> TimedExecutor
#     -> MeasurementAggregator -> Comparator
#   BaselineStore.save  (only with an explicit save request)
#   ReportEmitter       (result file + console summary)
#
# FAILURE ISOLATION
# -----------------
# Every failure is caught at case granularity and recorded as a report
# entry; the next case still runs. Storage failures are recorded as
# warnings and run-level failures; in-memory results are kept. The exit code
# is the worst outcome over entries and run-level failures.
# =============================================================================

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from contractbench.aggregator import MeasurementAggregator
from contractbench.bench_version import BENCH_VERSION
from contractbench.bindings import Binding
from contractbench.comparator import Comparator
from contractbench.constants import (
    DEFAULT_BASELINE_NAME,
    DEFAULT_CASE_TIMEOUT_S,
    DEFAULT_OUTPUT_ROOT,
    DEFAULT_RUN_TIMEOUT_S,
    DEFAULT_SEED,
    Profile,
)
from contractbench.data_models.baseline import BaselineSet, Provenance
from contractbench.data_models.benchmark_case import BenchmarkCase
from contractbench.data_models.comparison import REASON_OUTPUT_MISMATCH, Severity
from contractbench.data_models.environment import EnvironmentFingerprint, capture_environment
from contractbench.data_models.measurement import Measurement
from contractbench.data_models.report import (
    CaseOutcome,
    Report,
    ReportEntry,
    RunMetadata,
    compute_exit_code,
)
from contractbench.exceptions import (
    BenchError,
    BenchIoError,
    CaseTimedOutError,
    UnsupportedBaselineVersionError,
)
from contractbench.registry import CaseRegistry
from contractbench.report_emitter import ReportEmitter
from contractbench.run_journal import RunJournal
from contractbench.storage.baseline_store import BaselineStore
from contractbench.storage.report_writer import ReportWriter
from contractbench.timed_executor import CancellationToken, Clock, TimedExecutor
from contractbench.workload_generator import WorkloadGenerator


# =============================================================================
# SECTION 1 -- CONFIGURATION
# =============================================================================

def resolve_git_revision(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """First 12 characters of GIT_SHA, else GITHUB_SHA, else None."""
    env = os.environ if environ is None else environ
    for key in ("GIT_SHA", "GITHUB_SHA"):
        value = env.get(key, "").strip()
        if value:
            return value[:12]
    return None


@dataclass(frozen=True)
class RunConfig:
    """
    Everything a run needs besides the cases themselves.

    Fields:
      profile        -- iteration budget.
      seed           -- global workload seed.
      output_root    -- parent of results/ and baselines/.
      baseline_name  -- snapshot to compare against.
      save_baseline  -- snapshot to (re)write from this run, or None.
      input_dir      -- external corpus for io cases, or None.
      dataset        -- EMBR_DST file for vsa_dataset cases, or None.
      categories     -- categories to run; None runs all.
      run_timeout_s  -- run budget; None disables it.
      case_timeout_s -- per-case budget.
      git_revision   -- provenance; see resolve_git_revision().
      label          -- provenance label.
      iterations     -- override of the profile's timed iteration count.
      warm_up        -- override of the profile's warm-up count.
      run_id         -- fixed run id; generated when None.
    """
    profile:        Profile = Profile.QUICK
    seed:           int = DEFAULT_SEED
    output_root:    Path = Path(DEFAULT_OUTPUT_ROOT)
    baseline_name:  str = DEFAULT_BASELINE_NAME
    save_baseline:  Optional[str] = None
    input_dir:      Optional[str] = None
    dataset:        Optional[str] = None
    categories:     Optional[tuple] = None    # tuple of Category
    run_timeout_s:  Optional[float] = DEFAULT_RUN_TIMEOUT_S
    case_timeout_s: float = DEFAULT_CASE_TIMEOUT_S
    git_revision:   Optional[str] = None
    label:          Optional[str] = None
    iterations:     Optional[int] = None
    warm_up:        Optional[int] = None
    run_id:         Optional[str] = None


def new_run_id(now: datetime) -> str:
    return "RUN-" + now.strftime("%Y%m%d") + "-" + uuid.uuid4().hex[:8].upper()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SECTION 2 -- RUN OUTCOME
# =============================================================================

@dataclass(frozen=True)
class RunOutcome:
    """
    Fields:
      report        -- the run's Report (exit_code excludes report write
                       failures).
      exit_code     -- final process exit code.
      report_path   -- result file, or None when it could not be written.
      baseline_path -- saved snapshot, or None.
      journal       -- the run's event journal.
    """
    report:        Report
    exit_code:     int
    report_path:   Optional[Path]
    baseline_path: Optional[Path]
    journal:       RunJournal


# =============================================================================
# SECTION 3 -- SUITE RUNNER
# =============================================================================

class SuiteRunner:
    """
    Args:
        binding:     library binding under test.
        environment: host description; captured when omitted.
        clock:       monotonic nanosecond clock for durations and deadlines.
        wall_clock:  UTC datetime source for timestamps.
        emitter:     report emitter; built for config.output_root when omitted.
    """

    def __init__(
        self,
        binding:     Binding,
        environment: Optional[EnvironmentFingerprint] = None,
        clock:       Clock = time.perf_counter_ns,
        wall_clock:  Callable[[], datetime] = _utc_now,
        emitter:     Optional[ReportEmitter] = None,
    ) -> None:
        self._binding     = binding
        self._environment = environment if environment is not None else capture_environment()
        self._clock       = clock
        self._wall_clock  = wall_clock
        self._emitter     = emitter
        self._last_now: Optional[datetime] = None

    def _now(self) -> datetime:
        # Journal timestamps must not go backwards even if the wall clock does.
        now = self._wall_clock()
        if self._last_now is not None and now < self._last_now:
            now = self._last_now
        self._last_now = now
        return now

    # -------------------------------------------------------------------------
    # baseline
    # -------------------------------------------------------------------------

    def _load_baseline(self, store: BaselineStore, name: str, journal: RunJournal, warnings: List[str], run_failures: List[str]):
        """Returns (baseline_set, status, rejection)."""
        try:
            baseline_set = store.load(name)
        except UnsupportedBaselineVersionError as exc:
            journal.log_event(
                "BASELINE_REJECTED",
                {"name": name, "failure_type": exc.failure_type, "found": repr(exc.found)},
                self._now(),
            )
            return None, "rejected", exc
        except BenchIoError as exc:
            journal.log_event("IO_ERROR", {"stage": "baseline_load", "detail": exc.message}, self._now())
            warnings.append(exc.message)
            run_failures.append(exc.failure_type)
            return None, "unreadable", None
        except BenchError as exc:
            journal.log_event(
                "BASELINE_REJECTED", {"name": name, "failure_type": exc.failure_type, "detail": exc.message}, self._now()
            )
            warnings.append(exc.message)
            run_failures.append(exc.failure_type)
            return None, "invalid", None
        if baseline_set is None:
            journal.log_event("BASELINE_MISSING", {"name": name}, self._now())
            return None, "missing", None
        journal.log_event(
            "BASELINE_LOADED",
            {"name": name, "entries": len(baseline_set.entries), "bench_version": baseline_set.bench_version},
            self._now(),
        )
        return baseline_set, "loaded", None

    # -------------------------------------------------------------------------
    # cases
    # -------------------------------------------------------------------------

    def _run_case(
        self,
        case:          BenchmarkCase,
        executor:      TimedExecutor,
        aggregator:    MeasurementAggregator,
        comparator:    Comparator,
        token:         CancellationToken,
        baseline_set:  Optional[BaselineSet],
        rejection:     Optional[UnsupportedBaselineVersionError],
        source:        str,
        journal:       RunJournal,
    ) -> ReportEntry:
        case_id = case.case_id
        if token.cancelled:
            detail = "run time budget exhausted before the case started"
            journal.log_event("CASE_TIMED_OUT", {"case_id": case_id, "detail": detail}, self._now())
            return ReportEntry(case_id=case_id, outcome=CaseOutcome.TIMED_OUT, failure_type="TimedOut", detail=detail)

        reason = self._binding.unsupported_reason(case)
        if reason is not None:
            journal.log_event("CASE_SKIPPED", {"case_id": case_id, "reason": reason}, self._now())
            return ReportEntry(case_id=case_id, outcome=CaseOutcome.SKIPPED, detail=reason)

        journal.log_event(
            "CASE_STARTED",
            {"case_id": case_id, "iterations": case.iterations, "warm_up": case.warm_up, "seed": case.seed},
            self._now(),
        )
        try:
            result = executor.execute(case, token)
            measurement = aggregator.aggregate(case, result)
        except CaseTimedOutError as exc:
            journal.log_event("CASE_TIMED_OUT", {"case_id": case_id, "detail": exc.message}, self._now())
            return ReportEntry(case_id=case_id, outcome=CaseOutcome.TIMED_OUT, failure_type=exc.failure_type, detail=exc.message)
        except BenchError as exc:
            journal.log_event(
                "CASE_ERRORED", {"case_id": case_id, "failure_type": exc.failure_type, "detail": exc.message}, self._now()
            )
            return ReportEntry(case_id=case_id, outcome=CaseOutcome.ERRORED, failure_type=exc.failure_type, detail=exc.message)
        except Exception as exc:
            detail = "OperationError: case '" + case_id + "' raised " + type(exc).__name__ + ": " + str(exc)
            journal.log_event(
                "CASE_ERRORED", {"case_id": case_id, "failure_type": "OperationError", "detail": detail}, self._now()
            )
            return ReportEntry(case_id=case_id, outcome=CaseOutcome.ERRORED, failure_type="OperationError", detail=detail)

        entry = self._compare(measurement, comparator, baseline_set, rejection, source)
        journal.log_event(
            "CASE_COMPLETED",
            {
                "case_id":         case_id,
                "severity":        entry.severity.value,
                "trimmed_mean_ns": measurement.stats.trimmed_mean_ns,
                "fingerprint":     measurement.output_fingerprint,
                "failure_type":    entry.failure_type,
            },
            self._now(),
        )
        return entry

    def _compare(
        self,
        measurement:  Measurement,
        comparator:   Comparator,
        baseline_set: Optional[BaselineSet],
        rejection:    Optional[UnsupportedBaselineVersionError],
        source:       str,
    ) -> ReportEntry:
        case_id = measurement.case_id
        if rejection is not None:
            return ReportEntry(
                case_id=case_id,
                outcome=CaseOutcome.MEASURED,
                severity=Severity.UNBASELINED,
                measurement=measurement,
                failure_type=rejection.failure_type,
                detail=rejection.message,
            )
        stored = baseline_set.get(case_id) if baseline_set is not None else None
        try:
            comparison = comparator.compare(measurement, stored, source)
        except UnsupportedBaselineVersionError as exc:
            return ReportEntry(
                case_id=case_id,
                outcome=CaseOutcome.MEASURED,
                severity=Severity.UNBASELINED,
                measurement=measurement,
                failure_type=exc.failure_type,
                detail=exc.message,
            )
        if comparison.severity is Severity.UNBASELINED:
            return ReportEntry(
                case_id=case_id,
                outcome=CaseOutcome.MEASURED,
                severity=Severity.UNBASELINED,
                measurement=measurement,
                detail="no baseline entry",
            )
        return ReportEntry(
            case_id=case_id,
            outcome=CaseOutcome.MEASURED,
            severity=comparison.severity,
            measurement=measurement,
            comparison=comparison,
            failure_type=REASON_OUTPUT_MISMATCH if comparison.reason == REASON_OUTPUT_MISMATCH else "",
            detail=comparison.reason,
        )

    # -------------------------------------------------------------------------
    # run
    # -------------------------------------------------------------------------

    def run(self, registry: CaseRegistry, config: RunConfig) -> RunOutcome:
        registry = registry.select(config.categories)
        self._last_now = None
        journal = RunJournal()
        started_at = self._now()
        start_ns = self._clock()
        run_id = config.run_id or new_run_id(started_at)
        root = Path(config.output_root)
        store = BaselineStore(root)
        emitter = self._emitter if self._emitter is not None else ReportEmitter(ReportWriter(root))

        journal.log_event(
            "RUN_STARTED",
            {
                "run_id":  run_id,
                "profile": config.profile.value,
                "seed":    config.seed,
                "cases":   len(registry.cases),
                "rejected": len(registry.rejected),
            },
            started_at,
        )

        warnings: List[str] = []
        run_failures: List[str] = []
        token = CancellationToken.with_timeout(config.run_timeout_s, self._clock)

        baseline_set, baseline_status, rejection = self._load_baseline(
            store, config.baseline_name, journal, warnings, run_failures
        )
        try:
            source = str(store.path_for(config.baseline_name))
        except BenchError:
            source = config.baseline_name

        entries: List[ReportEntry] = []
        for rejected in registry.rejected:
            journal.log_event(
                "CASE_ERRORED",
                {"case_id": rejected.case_id, "failure_type": rejected.error.failure_type, "detail": rejected.error.message},
                self._now(),
            )
            entries.append(ReportEntry(
                case_id=rejected.case_id,
                outcome=CaseOutcome.ERRORED,
                failure_type=rejected.error.failure_type,
                detail=rejected.error.message,
            ))

        executor = TimedExecutor(self._binding, WorkloadGenerator(), self._clock)
        aggregator = MeasurementAggregator(self._environment, self._now)
        comparator = Comparator()
        for case in registry.cases:
            entries.append(self._run_case(
                case, executor, aggregator, comparator, token,
                baseline_set, rejection, source, journal,
            ))

        baseline_path = None
        if config.save_baseline is not None:
            measured = [e.measurement for e in entries if e.measurement is not None]
            try:
                baseline_path = store.save(
                    config.save_baseline,
                    measured,
                    Provenance(git_revision=config.git_revision, label=config.label),
                    self._now(),
                )
                journal.log_event(
                    "BASELINE_SAVED",
                    {"name": config.save_baseline, "entries": len(measured), "path": str(baseline_path)},
                    self._now(),
                )
            except BenchError as exc:
                journal.log_event(
                    "BASELINE_SAVE_FAILED",
                    {"name": config.save_baseline, "failure_type": exc.failure_type, "detail": exc.message},
                    self._now(),
                )
                warnings.append(exc.message)
                run_failures.append(exc.failure_type)

        finished_at = self._now()
        total_ns = self._clock() - start_ns
        exit_code = compute_exit_code(entries, run_failures)
        journal.log_event(
            "RUN_FINISHED",
            {"run_id": run_id, "exit_code": exit_code, "total_duration_ns": total_ns},
            finished_at,
        )

        report = Report(
            metadata=RunMetadata(
                run_id=run_id,
                bench_version=BENCH_VERSION,
                profile=config.profile.value,
                seed=config.seed,
                started_at_iso=started_at.isoformat(),
                finished_at_iso=finished_at.isoformat(),
                total_duration_ns=total_ns,
                environment=self._environment,
                git_revision=config.git_revision,
                label=config.label,
                baseline_name=config.baseline_name,
                baseline_status=baseline_status,
                baseline_provenance=baseline_set.provenance.describe() if baseline_set is not None else None,
            ),
            entries=tuple(entries),
            run_failures=tuple(run_failures),
            warnings=tuple(warnings),
            exit_code=exit_code,
        )

        emitted = emitter.emit(report, journal.to_dicts())
        if emitted.error is not None:
            journal.log_event("IO_ERROR", {"stage": "report_write", "detail": emitted.error.message}, self._now())

        return RunOutcome(
            report=report,
            exit_code=emitted.exit_code,
            report_path=emitted.path,
            baseline_path=baseline_path,
            journal=journal,
        )


def run_suite(
    registry:    CaseRegistry,
    config:      RunConfig,
    binding:     Binding,
    environment: Optional[EnvironmentFingerprint] = None,
) -> RunOutcome:
    """Convenience wrapper: SuiteRunner(binding, environment).run(registry, config)."""
    return SuiteRunner(binding, environment).run(registry, config)
