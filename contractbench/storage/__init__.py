# contractbench/storage/__init__.py
# Persistence for baselines and run reports. Replace-whole-file semantics.

from .atomic_write import atomic_write_json
from .baseline_store import BaselineStore, validate_baseline_name
from .report_writer import ReportWriter, serialize_report

__all__ = [
    "atomic_write_json",
    "BaselineStore",
    "validate_baseline_name",
    "ReportWriter",
    "serialize_report",
]
