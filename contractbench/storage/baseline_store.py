# contractbench/storage/baseline_store.py
# BaselineStore -- named baseline snapshots under <root>/baselines/<name>.json.
#
# File layout (format_version 1):
#   {
#     "format_version": 1,
#     "bench_version":  "0.3.0",
#     "name":           "<name>",
#     "saved_at_iso":   "<UTC ISO-8601>",
#     "provenance":     {"git_revision": str|null, "label": str|null},
#     "case_count":     <int>,
#     "entries": {
#       "<case_id>": {"format_version": 1, "measurement": {...}}, ...
#     }
#   }
#
# load() of an unknown name returns None. A file-level format_version outside
# SUPPORTED_BASELINE_VERSIONS is rejected whole. An entry-level version
# outside the set is kept with measurement=None, so the comparator can reject
# that case alone.
# save() replaces the named snapshot atomically; other snapshots are never
# touched.

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from contractbench.bench_version import (
    BASELINE_FORMAT_VERSION,
    BENCH_VERSION,
    SUPPORTED_BASELINE_VERSIONS,
    is_supported_baseline_version,
)
from contractbench.constants import BASELINES_SUBDIR
from contractbench.data_models.baseline import Baseline, BaselineSet, Provenance
from contractbench.data_models.measurement import Measurement
from contractbench.exceptions import (
    BenchIoError,
    InvalidParameterError,
    UnsupportedBaselineVersionError,
)
from contractbench.storage.atomic_write import atomic_write_json
from contractbench.storage.measurement_codec import load_measurement, serialize_measurement


_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


def validate_baseline_name(name: str) -> str:
    if not isinstance(name, str) or not _NAME_PATTERN.match(name) or name in (".", ".."):
        raise InvalidParameterError("baseline_name", name, "must match [A-Za-z0-9._-]+")
    return name


class BaselineStore:
    """
    Reads and writes baseline snapshots.

    Args:
        root: output root; snapshots live in root / "baselines".
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.directory = self.root / BASELINES_SUBDIR

    def path_for(self, name: str) -> Path:
        return self.directory / (validate_baseline_name(name) + ".json")

    def list_names(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    # -----------------------------------------------------------------------
    # load
    # -----------------------------------------------------------------------

    def load(self, name: str) -> Optional[BaselineSet]:
        """
        Load the named snapshot, or None if it does not exist.

        Raises:
            UnsupportedBaselineVersionError: file-level format_version unknown.
            BenchIoError:                    unreadable or malformed file.
        """
        path = self.path_for(name)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as exc:
            raise BenchIoError(str(path), "cannot read baseline: " + str(exc)) from exc

        if not isinstance(payload, dict):
            raise BenchIoError(str(path), "baseline root must be a JSON object")
        version = payload.get("format_version")
        if not is_supported_baseline_version(version):
            raise UnsupportedBaselineVersionError(version, SUPPORTED_BASELINE_VERSIONS, str(path))

        try:
            raw_entries = payload["entries"]
            if payload["case_count"] != len(raw_entries):
                raise BenchIoError(
                    str(path),
                    "case_count=" + repr(payload["case_count"])
                    + " does not match entry count=" + str(len(raw_entries)),
                )
            prov = payload.get("provenance") or {}
            provenance = Provenance(
                git_revision=prov.get("git_revision"),
                label=prov.get("label"),
            )
            entries = []
            for case_id in sorted(raw_entries):
                raw = raw_entries[case_id]
                entry_version = raw.get("format_version")
                measurement = None
                if is_supported_baseline_version(entry_version):
                    measurement = load_measurement(raw["measurement"])
                    if measurement.case_id != case_id:
                        raise BenchIoError(
                            str(path),
                            "entry key " + repr(case_id) + " holds measurement for " + repr(measurement.case_id),
                        )
                entries.append(Baseline(
                    case_id=case_id,
                    format_version=entry_version,
                    measurement=measurement,
                    provenance=provenance,
                ))
            return BaselineSet(
                name=str(payload["name"]),
                format_version=version,
                bench_version=str(payload["bench_version"]),
                saved_at_iso=str(payload["saved_at_iso"]),
                provenance=provenance,
                entries=tuple(entries),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise BenchIoError(str(path), "malformed baseline: " + type(exc).__name__ + ": " + str(exc)) from exc

    # -----------------------------------------------------------------------
    # save
    # -----------------------------------------------------------------------

    def save(
        self,
        name:         str,
        measurements: Iterable[Measurement],
        provenance:   Provenance,
        saved_at:     datetime,
    ) -> Path:
        """
        Replace the named snapshot with the given measurements.

        Raises:
            InvalidParameterError: bad name, or duplicate case ids.
            BenchIoError:          the file cannot be written.
        """
        path = self.path_for(name)
        entries = {}
        for m in measurements:
            if m.case_id in entries:
                raise InvalidParameterError("case_id", m.case_id, "must be unique within a baseline")
            entries[m.case_id] = {
                "format_version": BASELINE_FORMAT_VERSION,
                "measurement":    serialize_measurement(m),
            }
        payload = {
            "format_version": BASELINE_FORMAT_VERSION,
            "bench_version":  BENCH_VERSION,
            "name":           name,
            "saved_at_iso":   saved_at.isoformat(),
            "provenance": {
                "git_revision": provenance.git_revision,
                "label":        provenance.label,
            },
            "case_count":     len(entries),
            "entries":        {k: entries[k] for k in sorted(entries)},
        }
        return atomic_write_json(path, payload)
