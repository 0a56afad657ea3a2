# contractbench/__init__.py
# Deterministic performance-contract benchmark engine for VSA libraries.
#
# ENTRY POINT:
#   python -m contractbench.run_bench suite [--baseline NAME] [--save-baseline NAME]
#
# CI GATE:
#   python -m contractbench.ci_gate

from .bench_version import (
    BENCH_VERSION,
    BASELINE_FORMAT_VERSION,
    REPORT_SCHEMA_VERSION,
    GENERATOR_ALGORITHM,
)
from .aggregator import MeasurementAggregator, trimmed_mean
from .bindings import Binding, get_binding
from .comparator import Comparator, classify_delta, compute_delta
from .registry import CaseDefinition, CaseRegistry, build_default_cases, register_cases
from .run_journal import RunJournal
from .storage import BaselineStore, ReportWriter
from .suite_runner import RunConfig, RunOutcome, SuiteRunner, run_suite
from .timed_executor import CancellationToken, TimedExecutor
from .workload_generator import SparseTernaryVec, WorkloadGenerator

__version__ = BENCH_VERSION

__all__ = [
    # Version constants
    "BENCH_VERSION",
    "BASELINE_FORMAT_VERSION",
    "REPORT_SCHEMA_VERSION",
    "GENERATOR_ALGORITHM",
    # Pipeline components
    "WorkloadGenerator",
    "SparseTernaryVec",
    "TimedExecutor",
    "CancellationToken",
    "MeasurementAggregator",
    "trimmed_mean",
    "Comparator",
    "classify_delta",
    "compute_delta",
    "BaselineStore",
    "ReportWriter",
    "RunJournal",
    # Registration and bindings
    "CaseDefinition",
    "CaseRegistry",
    "build_default_cases",
    "register_cases",
    "Binding",
    "get_binding",
    # Runner
    "RunConfig",
    "RunOutcome",
    "SuiteRunner",
    "run_suite",
]
