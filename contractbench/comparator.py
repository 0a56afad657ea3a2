# contractbench/comparator.py
# Comparator -- fresh Measurement vs stored Baseline.
#
# Severity bands on delta = (fresh - baseline) / baseline, trimmed means:
#   fresh < baseline                          -> PASS (any improvement)
#   delta <  WARN_THRESHOLD                   -> PASS
#   WARN_THRESHOLD <= delta < FAIL_THRESHOLD  -> WARN
#   delta >= FAIL_THRESHOLD                   -> FAIL
#
# An output fingerprint difference forces FAIL / OutputMismatch whatever the
# delta. Fingerprints are compared as exact strings; timing never masks a
# mismatch.

from typing import Optional

from contractbench.bench_version import SUPPORTED_BASELINE_VERSIONS, is_supported_baseline_version
from contractbench.constants import FAIL_THRESHOLD, WARN_THRESHOLD
from contractbench.data_models.baseline import Baseline
from contractbench.data_models.comparison import (
    REASON_IMPROVED,
    REASON_NO_BASELINE,
    REASON_OUTPUT_MISMATCH,
    REASON_TIMING_DRIFT,
    REASON_TIMING_REGRESSION,
    REASON_WITHIN_TOLERANCE,
    ComparisonResult,
    Severity,
)
from contractbench.data_models.measurement import Measurement
from contractbench.exceptions import UnsupportedBaselineVersionError


def compute_delta(fresh: float, baseline: float) -> float:
    """
    Relative change of fresh over baseline.

    A non-positive baseline cannot be divided by: 0.0 when fresh is no
    slower, +inf otherwise.
    """
    if baseline <= 0.0:
        return 0.0 if fresh <= baseline else float("inf")
    return (fresh - baseline) / baseline


def classify_delta(delta: float) -> Severity:
    if delta < WARN_THRESHOLD:
        return Severity.PASS
    if delta < FAIL_THRESHOLD:
        return Severity.WARN
    return Severity.FAIL


class Comparator:
    """Stateless. compare() depends only on its arguments."""

    def compare(self, fresh: Measurement, baseline: Optional[Baseline], source: str = "") -> ComparisonResult:
        """
        Compare one fresh measurement with its baseline entry.

        baseline None -> UNBASELINED (not an error).

        Raises:
            UnsupportedBaselineVersionError: the entry's format_version is not
                in SUPPORTED_BASELINE_VERSIONS.
        """
        if baseline is None:
            return ComparisonResult(
                case_id=fresh.case_id,
                fresh=fresh,
                baseline=None,
                delta=None,
                severity=Severity.UNBASELINED,
                fingerprint_match=None,
                reason=REASON_NO_BASELINE,
            )

        if not is_supported_baseline_version(baseline.format_version) or baseline.measurement is None:
            raise UnsupportedBaselineVersionError(
                baseline.format_version, SUPPORTED_BASELINE_VERSIONS, source or baseline.case_id, fresh.case_id
            )

        stored = baseline.measurement
        delta = compute_delta(fresh.stats.trimmed_mean_ns, stored.stats.trimmed_mean_ns)
        fingerprint_match = fresh.output_fingerprint == stored.output_fingerprint
        environment_changed = fresh.environment.fingerprint_id != stored.environment.fingerprint_id

        if not fingerprint_match:
            severity = Severity.FAIL
            reason = REASON_OUTPUT_MISMATCH
        elif fresh.stats.trimmed_mean_ns < stored.stats.trimmed_mean_ns:
            severity = Severity.PASS
            reason = REASON_IMPROVED
        else:
            severity = classify_delta(delta)
            reason = {
                Severity.PASS: REASON_WITHIN_TOLERANCE,
                Severity.WARN: REASON_TIMING_DRIFT,
                Severity.FAIL: REASON_TIMING_REGRESSION,
            }[severity]

        return ComparisonResult(
            case_id=fresh.case_id,
            fresh=fresh,
            baseline=stored,
            delta=delta,
            severity=severity,
            fingerprint_match=fingerprint_match,
            reason=reason,
            environment_changed=environment_changed,
        )
