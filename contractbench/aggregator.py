# contractbench/aggregator.py
# MeasurementAggregator -- reduces raw samples to a Measurement.
#
# Statistics are computed with numpy over float64 copies of the integer
# durations. The trim fraction is the global TRIM_FRACTION; no case can
# override it.

import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from contractbench.constants import MIN_ITERATIONS, TRIM_FRACTION
from contractbench.data_models.benchmark_case import BenchmarkCase
from contractbench.data_models.environment import EnvironmentFingerprint, capture_environment
from contractbench.data_models.measurement import DurationStats, Measurement
from contractbench.exceptions import BenchError, InsufficientSamplesError, NonDeterministicOutputError
from contractbench.timed_executor import ExecutionResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def trim_count(n: int, trim_fraction: float = TRIM_FRACTION) -> int:
    """Samples dropped from EACH tail: floor(n * trim_fraction)."""
    return int(math.floor(n * trim_fraction))


def trimmed_mean(values: Sequence[float], trim_fraction: float = TRIM_FRACTION) -> float:
    """
    Mean after dropping trim_count(n) smallest and largest values.

    >>> trimmed_mean([1] + list(range(10, 28)) + [10000])
    18.5
    """
    arr = np.sort(np.asarray(values, dtype=np.float64))
    k = trim_count(arr.size, trim_fraction)
    return float(arr[k:arr.size - k].mean())


def quantile(sorted_values: Sequence[float], q: float) -> float:
    """
    Nearest-rank quantile of already sorted values: index round((n - 1) * q),
    halves rounded away from zero. 0.0 for an empty sequence.

    >>> quantile([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], 0.5)
    4.0
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = int(math.floor((n - 1) * q + 0.5))
    return float(sorted_values[min(idx, n - 1)])


_EXTRA_TYPES = (bool, int, float, str)


def normalize_extras(extras: Dict[str, Any], case_id: str = "") -> Dict[str, Any]:
    """
    Plain-Python copy of binding extras. numpy scalars become their Python
    equivalents via .item().

    Raises:
        BenchError (OperationError): a key is not a str, or a value is not a
                                     scalar (None, bool, int, float, str).
    """
    result = {}
    for key, value in extras.items():
        if not isinstance(key, str):
            raise BenchError(
                "OperationError: case '" + case_id + "' reported extra key " + repr(key) + "; keys must be str.",
                case_id=case_id,
            )
        if isinstance(value, np.generic):
            value = value.item()
        if value is not None and not isinstance(value, _EXTRA_TYPES):
            raise BenchError(
                "OperationError: case '" + case_id + "' reported extra '" + key + "' of type "
                + type(value).__name__ + "; extras must be scalars.",
                case_id=case_id,
            )
        result[key] = value
    return result


def summarize_durations(durations: Sequence[int], case_id: str = "") -> DurationStats:
    if len(durations) < MIN_ITERATIONS:
        raise InsufficientSamplesError(len(durations), MIN_ITERATIONS, case_id)
    arr = np.sort(np.asarray(durations, dtype=np.float64))
    k = trim_count(arr.size)
    return DurationStats(
        trimmed_mean_ns=float(arr[k:arr.size - k].mean()),
        median_ns=float(np.median(arr)),
        min_ns=float(arr[0]),
        max_ns=float(arr[-1]),
        stddev_ns=float(np.std(arr, ddof=1)),
        trimmed_count=int(arr.size - 2 * k),
    )


class MeasurementAggregator:
    """
    Builds Measurements from ExecutionResults.

    Args:
        environment: host description attached to every Measurement;
                     captured once at construction when omitted.
        wall_clock:  UTC time source for Measurement.timestamp_iso.
    """

    def __init__(
        self,
        environment: Optional[EnvironmentFingerprint] = None,
        wall_clock:  Callable[[], datetime] = _utc_now,
    ) -> None:
        self.environment = environment if environment is not None else capture_environment()
        self._wall_clock = wall_clock

    def aggregate(self, case: BenchmarkCase, result: ExecutionResult) -> Measurement:
        """
        Raises:
            InsufficientSamplesError:    fewer than MIN_ITERATIONS samples.
            NonDeterministicOutputError: sample fingerprints differ.
            BenchError:                  sample count differs from
                                         case.iterations, or the binding
                                         reported a non-scalar extra.
        """
        samples = result.samples
        if len(samples) < MIN_ITERATIONS:
            raise InsufficientSamplesError(len(samples), MIN_ITERATIONS, case.case_id)
        if len(samples) != case.iterations:
            raise BenchError(
                "OperationError: case '" + case.case_id + "' produced " + str(len(samples))
                + " samples for " + str(case.iterations) + " iterations.",
                case_id=case.case_id,
            )

        expected = samples[0].fingerprint
        for i, sample in enumerate(samples):
            if sample.fingerprint != expected:
                raise NonDeterministicOutputError(expected, sample.fingerprint, i, case.case_id)

        stats = summarize_durations([s.duration_ns for s in samples], case.case_id)

        extras = normalize_extras(result.extras_dict(), case.case_id)
        bytes_processed = extras.pop("bytes_processed", None)
        if bytes_processed is not None and (not isinstance(bytes_processed, int) or isinstance(bytes_processed, bool)):
            raise BenchError(
                "OperationError: case '" + case.case_id + "' reported bytes_processed="
                + repr(bytes_processed) + "; must be an int.",
                case_id=case.case_id,
            )
        throughput = None
        if bytes_processed is not None and stats.trimmed_mean_ns > 0:
            throughput = bytes_processed / (stats.trimmed_mean_ns / 1e9)
        # Dataset cases declare how many operations one iteration performs.
        ops = extras.get("ops")
        if isinstance(ops, int) and not isinstance(ops, bool) and stats.trimmed_mean_ns > 0:
            extras["ops_per_s"] = ops / (stats.trimmed_mean_ns / 1e9)

        return Measurement(
            case_id=case.case_id,
            timestamp_iso=self._wall_clock().isoformat(),
            environment=self.environment,
            stats=stats,
            output_fingerprint=expected,
            sample_count=len(samples),
            bytes_processed=bytes_processed,
            throughput_bps=throughput,
            extras=tuple(sorted(extras.items())),
        )
