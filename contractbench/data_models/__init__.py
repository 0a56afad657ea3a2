"""
contractbench.data_models
Frozen data classes shared by every stage of the benchmark pipeline.
"""

from contractbench.data_models.benchmark_case import (
    BenchmarkCase,
    Category,
    DatasetParams,
    IoOperation,
    IoParams,
    RetrievalParams,
    VsaOperation,
    VsaParams,
    VsaVariant,
)
from contractbench.data_models.environment import EnvironmentFingerprint, capture_environment
from contractbench.data_models.measurement import DurationStats, Measurement, Sample
from contractbench.data_models.baseline import Baseline, BaselineSet, Provenance
from contractbench.data_models.comparison import ComparisonResult, Severity
from contractbench.data_models.report import (
    CaseOutcome,
    Report,
    ReportEntry,
    RunMetadata,
    compute_exit_code,
)

__all__ = [
    "BenchmarkCase",
    "Category",
    "DatasetParams",
    "IoOperation",
    "IoParams",
    "RetrievalParams",
    "VsaOperation",
    "VsaParams",
    "VsaVariant",
    "EnvironmentFingerprint",
    "capture_environment",
    "DurationStats",
    "Measurement",
    "Sample",
    "Baseline",
    "BaselineSet",
    "Provenance",
    "ComparisonResult",
    "Severity",
    "CaseOutcome",
    "Report",
    "ReportEntry",
    "RunMetadata",
    "compute_exit_code",
]
