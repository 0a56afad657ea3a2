# contractbench/storage/measurement_codec.py
# Measurement <-> JSON dict conversion shared by the baseline store and the
# report writer.
#
# All float values are serialized with float.hex() so a saved baseline loads
# back bit-identical. +0.0, -0.0, +inf, -inf and NaN serialize to distinct
# strings.

import math
from typing import Any, Dict, Optional

from contractbench.data_models.environment import EnvironmentFingerprint
from contractbench.data_models.measurement import DurationStats, Measurement


def serialize_float(value: float) -> str:
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return float(value).hex()


def deserialize_float(value: str) -> float:
    if value == "nan":
        return float("nan")
    if value == "inf":
        return float("inf")
    if value == "-inf":
        return float("-inf")
    return float.fromhex(value)


def _serialize_optional_float(value: Optional[float]) -> Optional[str]:
    return serialize_float(value) if value is not None else None


def _serialize_extra(value: Any) -> Any:
    # Float extras are tagged so they round-trip through float.hex as well.
    if isinstance(value, float):
        return {"float": serialize_float(value)}
    return value


def _deserialize_extra(value: Any) -> Any:
    if isinstance(value, dict) and set(value) == {"float"}:
        return deserialize_float(value["float"])
    return value


def serialize_stats(stats: DurationStats) -> Dict[str, Any]:
    return {
        "trimmed_mean_ns": serialize_float(stats.trimmed_mean_ns),
        "median_ns":       serialize_float(stats.median_ns),
        "min_ns":          serialize_float(stats.min_ns),
        "max_ns":          serialize_float(stats.max_ns),
        "stddev_ns":       serialize_float(stats.stddev_ns),
        "trimmed_count":   stats.trimmed_count,
    }


def serialize_measurement(m: Measurement) -> Dict[str, Any]:
    return {
        "case_id":            m.case_id,
        "timestamp_iso":      m.timestamp_iso,
        "environment":        m.environment.to_dict(),
        "stats":              serialize_stats(m.stats),
        "output_fingerprint": m.output_fingerprint,
        "sample_count":       m.sample_count,
        "bytes_processed":    m.bytes_processed,
        "throughput_bps":     _serialize_optional_float(m.throughput_bps),
        "extras":             {k: _serialize_extra(v) for k, v in m.extras},
    }


def load_measurement(d: Dict[str, Any]) -> Measurement:
    """
    Rebuild a Measurement from serialize_measurement() output.

    Raises KeyError, TypeError or ValueError on malformed input; callers
    translate these into BenchIoError with the file path attached.
    """
    s = d["stats"]
    stats = DurationStats(
        trimmed_mean_ns=deserialize_float(s["trimmed_mean_ns"]),
        median_ns=deserialize_float(s["median_ns"]),
        min_ns=deserialize_float(s["min_ns"]),
        max_ns=deserialize_float(s["max_ns"]),
        stddev_ns=deserialize_float(s["stddev_ns"]),
        trimmed_count=int(s["trimmed_count"]),
    )
    throughput = d.get("throughput_bps")
    bytes_processed = d.get("bytes_processed")
    return Measurement(
        case_id=str(d["case_id"]),
        timestamp_iso=str(d["timestamp_iso"]),
        environment=EnvironmentFingerprint.from_dict(d["environment"]),
        stats=stats,
        output_fingerprint=str(d["output_fingerprint"]),
        sample_count=int(d["sample_count"]),
        bytes_processed=int(bytes_processed) if bytes_processed is not None else None,
        throughput_bps=deserialize_float(throughput) if throughput is not None else None,
        extras=tuple(sorted((str(k), _deserialize_extra(v)) for k, v in d.get("extras", {}).items())),
    )
