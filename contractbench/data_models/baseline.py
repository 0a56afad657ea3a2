# contractbench/data_models/baseline.py
# Baseline and BaselineSet data classes.

from dataclasses import dataclass
from typing import Optional

from contractbench.data_models.measurement import Measurement


@dataclass(frozen=True)
class Provenance:
    """
    Where a baseline came from. Either field may be None, not both.

    Fields:
      git_revision -- abbreviated commit the baseline was measured at.
      label        -- free-form operator label (e.g. "nightly-2026-10-01").
    """
    git_revision: Optional[str]
    label:        Optional[str]

    def describe(self) -> str:
        parts = []
        if self.git_revision:
            parts.append("git " + self.git_revision)
        if self.label:
            parts.append("label " + repr(self.label))
        return ", ".join(parts) if parts else "unknown provenance"


@dataclass(frozen=True)
class Baseline:
    """
    Stored reference for one case.

    measurement is None when the entry declares a format version this build
    cannot interpret; the comparator rejects such entries.
    """
    case_id:        str
    format_version: object
    measurement:    Optional[Measurement]
    provenance:     Provenance


@dataclass(frozen=True)
class BaselineSet:
    """
    One named baseline snapshot as loaded from disk.

    Fields:
      name           -- snapshot name; also the file stem.
      format_version -- file-level format version.
      bench_version  -- BENCH_VERSION of the build that saved it.
      saved_at_iso   -- UTC ISO-8601 save time.
      provenance     -- shared by every entry.
      entries        -- tuple of Baseline, sorted by case_id.
    """
    name:           str
    format_version: int
    bench_version:  str
    saved_at_iso:   str
    provenance:     Provenance
    entries:        tuple

    def get(self, case_id: str) -> Optional[Baseline]:
        for entry in self.entries:
            if entry.case_id == case_id:
                return entry
        return None

    def case_ids(self) -> tuple:
        return tuple(e.case_id for e in self.entries)
