# contractbench/data_models/measurement.py
# Sample, DurationStats and Measurement data classes.

from dataclasses import dataclass
from typing import Any, Dict, Optional

from contractbench.data_models.environment import EnvironmentFingerprint


@dataclass(frozen=True)
class Sample:
    """
    One timed iteration. Ephemeral: never persisted.

    Fields:
      duration_ns -- monotonic clock delta around the operation call.
      fingerprint -- SHA-256 hex digest of the operation's output.
    """
    duration_ns: int
    fingerprint: str


@dataclass(frozen=True)
class DurationStats:
    """
    Duration statistics in nanoseconds.

    Fields:
      trimmed_mean_ns -- mean after dropping floor(n * TRIM_FRACTION) samples
                         from each tail. The value compared against baselines.
      median_ns       -- median of all samples.
      min_ns          -- smallest sample.
      max_ns          -- largest sample.
      stddev_ns       -- sample standard deviation (ddof=1) of all samples.
      trimmed_count   -- samples remaining after trimming.
    """
    trimmed_mean_ns: float
    median_ns:       float
    min_ns:          float
    max_ns:          float
    stddev_ns:       float
    trimmed_count:   int


@dataclass(frozen=True)
class Measurement:
    """
    Summary of one executed case. Immutable.

    Fields:
      case_id            -- BenchmarkCase.case_id.
      timestamp_iso      -- UTC ISO-8601 time the measurement was aggregated.
      environment        -- host description at measurement time.
      stats              -- duration statistics.
      output_fingerprint -- fingerprint shared by every sample.
      sample_count       -- equals the case's iteration count.
      bytes_processed    -- bytes handled by one iteration, when declared.
      throughput_bps     -- bytes_processed / trimmed mean, when declared.
      extras             -- sorted (key, value) pairs of case-specific facts
                            such as dimension or recall@k.
    """
    case_id:            str
    timestamp_iso:      str
    environment:        EnvironmentFingerprint
    stats:              DurationStats
    output_fingerprint: str
    sample_count:       int
    bytes_processed:    Optional[int] = None
    throughput_bps:     Optional[float] = None
    extras:             tuple = ()    # tuple of (str, scalar), sorted by key

    def extras_dict(self) -> Dict[str, Any]:
        return dict(self.extras)
