# contractbench/data_models/environment.py
# EnvironmentFingerprint -- descriptive metadata about the measuring host.
#
# Display and audit only. Durations are never normalised by any field here;
# the comparator merely notes when a baseline came from another environment.

import hashlib
import os
import platform
import sys
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np


@dataclass(frozen=True)
class EnvironmentFingerprint:
    """
    Host description attached to every Measurement.

    Fields:
      cpu_model             -- processor string, falling back to the machine
                               architecture when the platform reports none.
      cpu_count             -- logical CPUs, 0 when unknown.
      os_name               -- platform.system().
      os_release            -- platform.release().
      python_implementation -- e.g. "CPython".
      python_version        -- e.g. "3.11.6".
      numpy_version         -- numpy.__version__.
      build_mode            -- "optimized" under python -O, else "debug".
    """
    cpu_model:             str
    cpu_count:             int
    os_name:               str
    os_release:            str
    python_implementation: str
    python_version:        str
    numpy_version:         str
    build_mode:            str

    @property
    def fingerprint_id(self) -> str:
        """First 16 hex characters of SHA-256 over the sorted field values."""
        preimage = "|".join(k + "=" + str(v) for k, v in sorted(self.to_dict().items()))
        return hashlib.sha256(preimage.encode("utf-8")).hexdigest()[:16]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpu_model":             self.cpu_model,
            "cpu_count":             self.cpu_count,
            "os_name":               self.os_name,
            "os_release":            self.os_release,
            "python_implementation": self.python_implementation,
            "python_version":        self.python_version,
            "numpy_version":         self.numpy_version,
            "build_mode":            self.build_mode,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EnvironmentFingerprint":
        return cls(
            cpu_model=str(d["cpu_model"]),
            cpu_count=int(d["cpu_count"]),
            os_name=str(d["os_name"]),
            os_release=str(d["os_release"]),
            python_implementation=str(d["python_implementation"]),
            python_version=str(d["python_version"]),
            numpy_version=str(d["numpy_version"]),
            build_mode=str(d["build_mode"]),
        )


def capture_environment() -> EnvironmentFingerprint:
    """Describe the current process and host."""
    return EnvironmentFingerprint(
        cpu_model=platform.processor() or platform.machine() or "unknown",
        cpu_count=os.cpu_count() or 0,
        os_name=platform.system() or "unknown",
        os_release=platform.release() or "unknown",
        python_implementation=platform.python_implementation(),
        python_version=".".join(str(p) for p in sys.version_info[:3]),
        numpy_version=np.__version__,
        build_mode="debug" if __debug__ else "optimized",
    )
