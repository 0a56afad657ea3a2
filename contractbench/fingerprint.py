# contractbench/fingerprint.py
# Output fingerprint -- SHA-256 over a canonical byte encoding of a result.
#
# The encoding is type-tagged so that values of different types never share
# a byte sequence (e.g. the int 1, the float 1.0 and the string "1").
# Floats are encoded by their big-endian IEEE 754 bit pattern, so +0.0 and
# -0.0 fingerprint differently and no tolerance is ever applied.
# Dict entries are encoded in sorted key order.

import hashlib
import struct
from typing import Any

import numpy as np


def _encode(value: Any, out: list) -> None:
    if value is None:
        out.append(b"N")
    elif isinstance(value, (bool, np.bool_)):
        out.append(b"T" if value else b"F")
    elif isinstance(value, (int, np.integer)):
        text = str(int(value)).encode("ascii")
        out.append(b"i" + struct.pack(">I", len(text)) + text)
    elif isinstance(value, (float, np.floating)):
        out.append(b"f" + struct.pack(">d", float(value)))
    elif isinstance(value, str):
        raw = value.encode("utf-8")
        out.append(b"s" + struct.pack(">I", len(raw)) + raw)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        out.append(b"b" + struct.pack(">I", len(raw)) + raw)
    elif isinstance(value, np.ndarray):
        if value.dtype.hasobject:
            raise TypeError("fingerprint: object arrays have no canonical encoding")
        # Little-endian on every host.
        arr = np.ascontiguousarray(value, dtype=value.dtype.newbyteorder("<"))
        dtype = arr.dtype.str.encode("ascii")
        out.append(b"a" + struct.pack(">I", len(dtype)) + dtype)
        out.append(struct.pack(">I", arr.ndim) + b"".join(struct.pack(">Q", d) for d in arr.shape))
        raw = arr.tobytes()
        out.append(struct.pack(">Q", len(raw)) + raw)
    elif isinstance(value, (tuple, list)):
        out.append(b"l" + struct.pack(">I", len(value)))
        for item in value:
            _encode(item, out)
    elif isinstance(value, dict):
        keys = sorted(value)
        out.append(b"d" + struct.pack(">I", len(keys)))
        for key in keys:
            _encode(key, out)
            _encode(value[key], out)
    elif hasattr(value, "canonical_bytes"):
        raw = value.canonical_bytes()
        out.append(b"o" + struct.pack(">Q", len(raw)) + raw)
    else:
        raise TypeError(
            "fingerprint: unsupported output type " + type(value).__name__
        )


def canonical_bytes(value: Any) -> bytes:
    """Canonical, platform-independent byte encoding of an operation output."""
    out: list = []
    _encode(value, out)
    return b"".join(out)


def fingerprint(value: Any) -> str:
    """64-character lowercase SHA-256 hex digest of canonical_bytes(value)."""
    return hashlib.sha256(canonical_bytes(value)).hexdigest()
