# contractbench/storage/atomic_write.py
# Whole-file replacement: write a sibling temp file, fsync it, os.replace().
# Readers see either the old file or the new one, never a partial write.

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from contractbench.exceptions import BenchIoError


def atomic_write_json(path: Path, payload: Any) -> Path:
    """
    Serialize payload as indented JSON and atomically replace path with it.

    Raises:
        BenchIoError: the payload is not JSON-serializable, the directory
                      cannot be created, or the temp file cannot be written,
                      synced or renamed. The temp file is removed on failure.
    """
    path = Path(path)
    try:
        text = json.dumps(payload, indent=4, sort_keys=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise BenchIoError(str(path), "cannot serialize payload: " + str(exc)) from exc
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix="." + path.name + ".", suffix=".tmp", dir=str(path.parent))
    except OSError as exc:
        raise BenchIoError(str(path), "cannot create temp file: " + str(exc)) from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise BenchIoError(str(path), "atomic write failed: " + str(exc)) from exc
    return path
