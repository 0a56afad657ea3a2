# contractbench/data_models/comparison.py
# Severity and ComparisonResult. Never persisted outside a Report.

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from contractbench.data_models.measurement import Measurement


class Severity(str, Enum):
    PASS        = "PASS"
    WARN        = "WARN"
    FAIL        = "FAIL"
    UNBASELINED = "UNBASELINED"


# ComparisonResult.reason values.
REASON_WITHIN_TOLERANCE:  str = "WithinTolerance"
REASON_IMPROVED:          str = "Improved"
REASON_TIMING_DRIFT:      str = "TimingDrift"
REASON_TIMING_REGRESSION: str = "TimingRegression"
REASON_OUTPUT_MISMATCH:   str = "OutputMismatch"
REASON_NO_BASELINE:       str = "NoBaseline"


@dataclass(frozen=True)
class ComparisonResult:
    """
    Outcome of comparing one fresh Measurement with its baseline.

    Fields:
      case_id             -- case compared.
      fresh               -- measurement from this run.
      baseline            -- stored measurement, None when unbaselined.
      delta               -- (fresh - baseline) / baseline on trimmed mean;
                             None when unbaselined.
      severity            -- severity band.
      fingerprint_match   -- None when unbaselined.
      reason              -- one of the REASON_* constants.
      environment_changed -- baseline was measured on a different host
                             description. Informational only.
    """
    case_id:             str
    fresh:               Measurement
    baseline:            Optional[Measurement]
    delta:               Optional[float]
    severity:            Severity
    fingerprint_match:   Optional[bool]
    reason:              str
    environment_changed: bool = False
