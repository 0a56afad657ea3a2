# contractbench/dataset.py
# EMBR_DST -- deterministic sparse ternary dataset files.
#
# Binary layout (all integers little-endian):
#
#   Header, HEADER_SIZE = 68 bytes:
#     magic      8 bytes   b"EMBR_DST"
#     version    u32       DATASET_FORMAT_VERSION
#     count      u64       number of vectors
#     dimension  u64       vector dimension
#     seed       u64       master seed used for generation
#     reserved   32 bytes  zeros
#
#   Body, `count` records:
#     pos_len u32, pos u32[pos_len], neg_len u32, neg u32[neg_len]
#
# Vector i of a generated dataset is generate_sparse_vector(
# per_vector_seed(seed, i), dimension, sparsity), so any single vector can be
# regenerated without reading the file.
#
# All filesystem failures surface as BenchIoError.

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from contractbench.constants import DEFAULT_DIMENSION, DEFAULT_SPARSITY
from contractbench.exceptions import BenchIoError, InvalidParameterError
from contractbench.workload_generator import (
    SparseTernaryVec,
    generate_sparse_vector,
    per_vector_seed,
)


MAGIC:                  bytes = b"EMBR_DST"
DATASET_FORMAT_VERSION: int   = 1

_HEADER_STRUCT = struct.Struct("<8sIQQQ32s")
HEADER_SIZE:    int = _HEADER_STRUCT.size    # 68

_U32 = struct.Struct("<I")
_WRITE_BUFFER_BYTES: int = 64 * 1024


@dataclass(frozen=True)
class DatasetMeta:
    count:     int
    dimension: int
    seed:      int


@dataclass(frozen=True)
class GenerateConfig:
    """
    Dataset generation parameters.

    Fields:
      count     -- number of vectors.
      dimension -- vector dimension.
      seed      -- master seed.
      sparsity  -- +1 entries and -1 entries per vector (~1% of dimension each).
    """
    count:     int = 10_000
    dimension: int = DEFAULT_DIMENSION
    seed:      int = 42
    sparsity:  int = DEFAULT_SPARSITY

    def __post_init__(self) -> None:
        if not isinstance(self.count, int) or self.count < 0:
            raise InvalidParameterError("count", self.count, "must be an int >= 0")
        if not isinstance(self.dimension, int) or not (1 <= self.dimension <= 2 ** 32 - 1):
            raise InvalidParameterError("dimension", self.dimension, "must be in [1, 4294967295]")
        if not isinstance(self.seed, int) or not (0 <= self.seed < 2 ** 64):
            raise InvalidParameterError("seed", self.seed, "must be in [0, 2**64)")
        if not isinstance(self.sparsity, int) or self.sparsity < 0 or 2 * self.sparsity > self.dimension:
            raise InvalidParameterError(
                "sparsity", self.sparsity, "must be >= 0 and 2 * sparsity <= dimension"
            )


# -----------------------------------------------------------------------------
# GENERATION
# -----------------------------------------------------------------------------

def generate_vector(config: GenerateConfig, index: int) -> SparseTernaryVec:
    return generate_sparse_vector(per_vector_seed(config.seed, index), config.dimension, config.sparsity)


def generate_dataset(config: GenerateConfig) -> List[SparseTernaryVec]:
    """Materialise every vector of the dataset in index order."""
    return [generate_vector(config, i) for i in range(config.count)]


# -----------------------------------------------------------------------------
# WRITING
# -----------------------------------------------------------------------------

def _write_header(f: BinaryIO, count: int, dimension: int, seed: int) -> None:
    f.write(_HEADER_STRUCT.pack(MAGIC, DATASET_FORMAT_VERSION, count, dimension, seed, bytes(32)))


def _write_vector(f: BinaryIO, vec: SparseTernaryVec) -> None:
    f.write(_U32.pack(vec.pos.size))
    f.write(vec.pos.astype("<u4").tobytes())
    f.write(_U32.pack(vec.neg.size))
    f.write(vec.neg.astype("<u4").tobytes())


def write_dataset(path: Path, vectors: Iterable[SparseTernaryVec], config: GenerateConfig) -> int:
    """
    Write already-generated vectors. The header count is the number of
    vectors written, not config.count. Returns that count.
    """
    vectors = list(vectors)
    path = Path(path)
    try:
        with open(path, "wb", buffering=_WRITE_BUFFER_BYTES) as f:
            _write_header(f, len(vectors), config.dimension, config.seed)
            for vec in vectors:
                _write_vector(f, vec)
    except OSError as exc:
        raise BenchIoError(str(path), "cannot write dataset: " + str(exc)) from exc
    return len(vectors)


def write_dataset_streaming(path: Path, config: GenerateConfig, batch_size: int = 1024) -> int:
    """
    Generate and write the dataset in batches of at most batch_size vectors,
    so peak memory does not grow with config.count. Byte-identical to
    write_dataset(path, generate_dataset(config), config).
    """
    batch_size = max(1, int(batch_size))
    path = Path(path)
    try:
        with open(path, "wb", buffering=_WRITE_BUFFER_BYTES) as f:
            _write_header(f, config.count, config.dimension, config.seed)
            for start in range(0, config.count, batch_size):
                end = min(start + batch_size, config.count)
                for vec in [generate_vector(config, i) for i in range(start, end)]:
                    _write_vector(f, vec)
    except OSError as exc:
        raise BenchIoError(str(path), "cannot write dataset: " + str(exc)) from exc
    return config.count


# -----------------------------------------------------------------------------
# READING
# -----------------------------------------------------------------------------

def _read_exact(f: BinaryIO, size: int, path: Path) -> bytes:
    data = f.read(size)
    if len(data) != size:
        raise BenchIoError(
            str(path), "truncated dataset: wanted " + str(size) + " bytes, got " + str(len(data))
        )
    return data


def _read_header(f: BinaryIO, path: Path) -> DatasetMeta:
    magic, version, count, dimension, seed, _reserved = _HEADER_STRUCT.unpack(
        _read_exact(f, HEADER_SIZE, path)
    )
    if magic != MAGIC:
        raise BenchIoError(str(path), "invalid magic bytes: expected " + repr(MAGIC) + ", got " + repr(magic))
    if version != DATASET_FORMAT_VERSION:
        raise BenchIoError(str(path), "unsupported dataset format version: " + str(version))
    return DatasetMeta(count=count, dimension=dimension, seed=seed)


def _read_indices(f: BinaryIO, path: Path) -> np.ndarray:
    (length,) = _U32.unpack(_read_exact(f, 4, path))
    return np.frombuffer(_read_exact(f, 4 * length, path), dtype="<u4")


def _read_vector(f: BinaryIO, meta: DatasetMeta, path: Path) -> SparseTernaryVec:
    pos = _read_indices(f, path)
    neg = _read_indices(f, path)
    return SparseTernaryVec(dimension=meta.dimension, pos=pos, neg=neg)


def read_dataset_meta(path: Path) -> DatasetMeta:
    path = Path(path)
    try:
        with open(path, "rb") as f:
            return _read_header(f, path)
    except OSError as exc:
        raise BenchIoError(str(path), "cannot read dataset: " + str(exc)) from exc


def load_dataset(path: Path) -> Tuple[DatasetMeta, List[SparseTernaryVec]]:
    path = Path(path)
    try:
        with open(path, "rb") as f:
            meta = _read_header(f, path)
            vectors = [_read_vector(f, meta, path) for _ in range(meta.count)]
    except OSError as exc:
        raise BenchIoError(str(path), "cannot read dataset: " + str(exc)) from exc
    return meta, vectors


def expected_file_size(count: int, sparsity: int) -> int:
    """Size in bytes of a dataset whose vectors all carry `sparsity` indices per sign."""
    per_vector = 4 + 4 * sparsity + 4 + 4 * sparsity
    return HEADER_SIZE + count * per_vector


class DatasetReader:
    """
    Streaming reader over an EMBR_DST file.

    Holds one open file handle; use as a context manager or call close().
    Iteration yields SparseTernaryVec in file order and stops after
    meta.count vectors.
    """

    def __init__(self, path: Path) -> None:
        self._path: Path = Path(path)
        try:
            self._file: BinaryIO = open(self._path, "rb")
        except OSError as exc:
            raise BenchIoError(str(self._path), "cannot open dataset: " + str(exc)) from exc
        try:
            self.meta: DatasetMeta = _read_header(self._file, self._path)
        except BenchIoError:
            self._file.close()
            raise
        self._index: int = 0

    @property
    def position(self) -> int:
        """Index of the next vector to be read."""
        return self._index

    def next_vector(self) -> Optional[SparseTernaryVec]:
        if self._index >= self.meta.count:
            return None
        vec = _read_vector(self._file, self.meta, self._path)
        self._index += 1
        return vec

    def read_batch(self, batch_size: int) -> List[SparseTernaryVec]:
        """Up to batch_size vectors; fewer only at the end of the file."""
        to_read = min(max(0, batch_size), self.meta.count - self._index)
        return [self.next_vector() for _ in range(to_read)]

    def reset(self) -> None:
        self._file.seek(HEADER_SIZE)
        self._index = 0

    def close(self) -> None:
        self._file.close()

    def __iter__(self) -> Iterator[SparseTernaryVec]:
        while True:
            vec = self.next_vector()
            if vec is None:
                return
            yield vec

    def __enter__(self) -> "DatasetReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# -----------------------------------------------------------------------------
# OPERAND GROUPS
# -----------------------------------------------------------------------------

def available_groups(count: int, width: int) -> int:
    """Complete groups of `width` consecutive vectors: (count - (width - 1)) // width, never negative."""
    return max(count - (width - 1), 0) // width


def read_operand_groups(path: Path, width: int, max_ops: int = 0) -> Tuple[DatasetMeta, Tuple[tuple, ...]]:
    """
    Read consecutive vectors of a dataset as operand groups of `width`.

    max_ops caps the number of groups; 0 reads every available group.

    Raises:
        InvalidParameterError: the dataset holds no complete group.
        BenchIoError:          unreadable or truncated file.
    """
    with DatasetReader(path) as reader:
        available = available_groups(reader.meta.count, width)
        if available == 0:
            raise InvalidParameterError(
                "path", str(path),
                "dataset holds " + str(reader.meta.count) + " vectors; at least "
                + str(2 * width - 1) + " are needed for one group of " + str(width),
            )
        ops = available if max_ops == 0 else min(available, max_ops)
        groups = []
        for _ in range(ops):
            groups.append(tuple(reader.read_batch(width)))
    return reader.meta, tuple(groups)
