# =============================================================================
# contractbench/workload_generator.py
# =============================================================================
#
# SCOPE
# -----
# Deterministic synthetic inputs for every benchmark category. Given a case's
# parameters and seed, generate() returns the same values on every call, in
# every process, on every machine.
# vsa_dataset cases read their operands from an EMBR_DST file instead
# (contractbench.dataset); the file fixes the values.
#
# ALGORITHM  (GENERATOR_ALGORITHM = "pcg64-fisher-yates/1")
# ---------
#   1. seed_i = per_vector_seed(case.seed, i)   for the i-th vector
#   2. stream = numpy PCG64(seed_i).random_raw(2 * sparsity)
#   3. partial Fisher-Yates over range(dimension): step t swaps position t
#      with t + stream[t] % (dimension - t); positions are tracked in a dict
#      so no dimension-sized array is allocated
#   4. pos = sorted(first sparsity selected), neg = sorted(next sparsity)
#
# The ambient random source (random, np.random.default_rng without a seed,
# os.urandom) is never used. PCG64 seeding goes through numpy's SeedSequence,
# whose output is fixed by numpy's stream compatibility policy for PCG64.
# The modulo in step 3 has a bias below dimension / 2**64 and is accepted.
# =============================================================================

from __future__ import annotations

import hashlib
import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Union

import numpy as np

from contractbench.bench_version import GENERATOR_ALGORITHM
from contractbench.data_models.benchmark_case import (
    BenchmarkCase,
    DatasetParams,
    IoOperation,
    IoParams,
    RetrievalParams,
    VsaParams,
)
from contractbench.exceptions import InvalidParameterError


# -----------------------------------------------------------------------------
# SEED DERIVATION
# -----------------------------------------------------------------------------

_SEED_MULTIPLIER: int = 0x517CC1B727220A95
_U64_MASK:        int = (1 << 64) - 1


def per_vector_seed(seed: int, index: int) -> int:
    """Seed of the index-th vector: (seed + index) * 0x517cc1b727220a95 mod 2**64."""
    return ((seed + index) * _SEED_MULTIPLIER) & _U64_MASK


# -----------------------------------------------------------------------------
# SPARSE TERNARY VECTOR
# -----------------------------------------------------------------------------

def _frozen_indices(values: Any) -> np.ndarray:
    arr = np.array(values, dtype=np.uint32)
    arr.setflags(write=False)
    return arr


class SparseTernaryVec:
    """
    Sparse ternary vector: +1 at every index in pos, -1 at every index in
    neg, 0 elsewhere. pos and neg are sorted, disjoint, read-only uint32
    arrays.
    """

    __slots__ = ("dimension", "pos", "neg")

    def __init__(self, dimension: int, pos: Any, neg: Any) -> None:
        self.dimension: int = int(dimension)
        self.pos: np.ndarray = _frozen_indices(pos)
        self.neg: np.ndarray = _frozen_indices(neg)

    def nnz(self) -> int:
        return int(self.pos.size + self.neg.size)

    def to_dense(self) -> np.ndarray:
        """Dense int8 form of length `dimension`."""
        dense = np.zeros(self.dimension, dtype=np.int8)
        dense[self.pos] = 1
        dense[self.neg] = -1
        return dense

    @classmethod
    def from_dense(cls, dense: np.ndarray) -> "SparseTernaryVec":
        return cls(
            dimension=dense.shape[0],
            pos=np.flatnonzero(dense > 0),
            neg=np.flatnonzero(dense < 0),
        )

    def canonical_bytes(self) -> bytes:
        return (
            struct.pack("<QII", self.dimension, self.pos.size, self.neg.size)
            + self.pos.astype("<u4").tobytes()
            + self.neg.astype("<u4").tobytes()
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SparseTernaryVec):
            return NotImplemented
        return (
            self.dimension == other.dimension
            and np.array_equal(self.pos, other.pos)
            and np.array_equal(self.neg, other.neg)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            "SparseTernaryVec(dimension=" + str(self.dimension)
            + ", pos=" + str(self.pos.size)
            + ", neg=" + str(self.neg.size) + ")"
        )


def _select_indices(seed: int, dimension: int, count: int) -> List[int]:
    """Partial Fisher-Yates: the first `count` entries of a seeded shuffle of range(dimension)."""
    raw = np.random.PCG64(seed).random_raw(count)
    swapped: Dict[int, int] = {}
    selected: List[int] = []
    for t in range(count):
        j = t + int(raw[t]) % (dimension - t)
        at_t = swapped.get(t, t)
        at_j = swapped.get(j, j)
        swapped[j] = at_t
        selected.append(at_j)
    return selected


def generate_sparse_vector(seed: int, dimension: int, sparsity: int) -> SparseTernaryVec:
    """One sparse ternary vector with exactly `sparsity` +1 and `sparsity` -1 entries."""
    if dimension < 1:
        raise InvalidParameterError("dimension", dimension, "must be >= 1")
    if sparsity < 0 or 2 * sparsity > dimension:
        raise InvalidParameterError(
            "sparsity", sparsity, "must be >= 0 and 2 * sparsity <= dimension (" + str(dimension) + ")"
        )
    selected = _select_indices(seed, dimension, 2 * sparsity)
    return SparseTernaryVec(
        dimension=dimension,
        pos=sorted(selected[:sparsity]),
        neg=sorted(selected[sparsity:]),
    )


# -----------------------------------------------------------------------------
# WORKLOADS
# -----------------------------------------------------------------------------

def _digest(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


@dataclass(frozen=True, eq=False)
class VsaWorkload:
    """Operands for one VSA operation, in argument order."""
    operands: tuple    # tuple of SparseTernaryVec

    def to_bytes(self) -> bytes:
        return GENERATOR_ALGORITHM.encode("ascii") + b"".join(v.canonical_bytes() for v in self.operands)

    def digest(self) -> str:
        return _digest(self.to_bytes())


@dataclass(frozen=True, eq=False)
class DatasetWorkload:
    """
    Operand groups read from a dataset file, in file order. Independent of
    the case seed: the file fixes the values.
    """
    groups:    tuple    # tuple of tuples of SparseTernaryVec
    dimension: int
    vectors:   int      # vector count declared by the file header

    def to_bytes(self) -> bytes:
        width = len(self.groups[0]) if self.groups else 0
        head = struct.pack("<QIQQ", len(self.groups), width, self.dimension, self.vectors)
        return head + b"".join(v.canonical_bytes() for group in self.groups for v in group)

    def digest(self) -> str:
        return _digest(self.to_bytes())


@dataclass(frozen=True, eq=False)
class RetrievalWorkload:
    """
    Corpus and queries for a top-k retrieval case. Vector i of the corpus has
    id i; the queries are the first `queries` corpus ids.
    """
    corpus:    tuple    # tuple of SparseTernaryVec
    query_ids: tuple    # tuple of int
    k:         int
    candidate_factor: int

    def to_bytes(self) -> bytes:
        head = struct.pack("<III", len(self.corpus), self.k, self.candidate_factor)
        ids = np.array(self.query_ids, dtype="<u4").tobytes()
        return (
            GENERATOR_ALGORITHM.encode("ascii") + head + ids
            + b"".join(v.canonical_bytes() for v in self.corpus)
        )

    def digest(self) -> str:
        return _digest(self.to_bytes())


@dataclass(frozen=True, eq=False)
class IoWorkload:
    """
    Snapshot of an input directory: relative POSIX paths in sorted order with
    their sizes in bytes.
    """
    root:       Path
    files:      tuple    # tuple of (relative_path: str, size: int)
    chunk_size: int
    verify:     bool

    @property
    def total_bytes(self) -> int:
        return sum(size for _, size in self.files)

    def to_bytes(self) -> bytes:
        parts = [struct.pack("<IQ?", len(self.files), self.chunk_size, self.verify)]
        for rel, size in self.files:
            raw = rel.encode("utf-8")
            parts.append(struct.pack("<IQ", len(raw), size) + raw)
        return b"".join(parts)

    def digest(self) -> str:
        return _digest(self.to_bytes())


Workload = Union[VsaWorkload, DatasetWorkload, RetrievalWorkload, IoWorkload]


def scan_input_dir(root: Path) -> tuple:
    """Sorted (relative_path, size) pairs for every regular file under root."""
    entries = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                entries.append((path.relative_to(root).as_posix(), path.stat().st_size))
    entries.sort()
    return tuple(entries)


# -----------------------------------------------------------------------------
# GENERATOR
# -----------------------------------------------------------------------------

class WorkloadGenerator:
    """
    Produces the input workload of a BenchmarkCase.

    Stateless: generate() depends only on the case, so calling it once per
    iteration yields fresh objects holding identical values.
    """

    algorithm: str = GENERATOR_ALGORITHM

    def generate(self, case: BenchmarkCase) -> Workload:
        params = case.params
        if isinstance(params, VsaParams):
            return self._vsa(case, params)
        if isinstance(params, DatasetParams):
            return self._dataset(params)
        if isinstance(params, RetrievalParams):
            return self._retrieval(case, params)
        if isinstance(params, IoParams):
            return self._io(case, params)
        raise InvalidParameterError("params", type(params).__name__, "unknown parameter structure", case.case_id)

    def _vsa(self, case: BenchmarkCase, params: VsaParams) -> VsaWorkload:
        operands = tuple(
            generate_sparse_vector(per_vector_seed(case.seed, i), params.dimension, params.sparsity)
            for i in range(params.bundle_width)
        )
        return VsaWorkload(operands=operands)

    def _dataset(self, params: DatasetParams) -> DatasetWorkload:
        # dataset.py builds on this module's vector types.
        from contractbench.dataset import read_operand_groups

        meta, groups = read_operand_groups(Path(params.path), params.bundle_width, params.max_ops)
        return DatasetWorkload(groups=groups, dimension=meta.dimension, vectors=meta.count)

    def _retrieval(self, case: BenchmarkCase, params: RetrievalParams) -> RetrievalWorkload:
        corpus = tuple(
            generate_sparse_vector(per_vector_seed(case.seed, i), params.dimension, params.sparsity)
            for i in range(params.corpus_size)
        )
        return RetrievalWorkload(
            corpus=corpus,
            query_ids=tuple(range(params.queries)),
            k=params.k,
            candidate_factor=params.candidate_factor,
        )

    def _io(self, case: BenchmarkCase, params: IoParams) -> IoWorkload:
        if params.input_dir is None:
            raise InvalidParameterError("input_dir", None, "required for io cases", case.case_id)
        root = Path(params.input_dir)
        if not root.is_dir():
            raise InvalidParameterError("input_dir", params.input_dir, "must be an existing directory", case.case_id)
        return IoWorkload(
            root=root,
            files=scan_input_dir(root),
            chunk_size=params.chunk_size,
            verify=params.operation is IoOperation.INGEST_VERIFY,
        )
