# contractbench/bindings/reference.py
# ReferenceBinding -- numpy implementation of the benchmarked operations.
#
# Substrates:
#   sparse  -- SparseTernaryVec index-set algebra (bundle, bind, cosine)
#   packed  -- dense int8 trit arrays (bundle, bind, dot)
#   hybrid  -- n-way bundle through an int16 accumulator (carry_save_bundle)
# Retrieval: integer overlap scores, candidate preselection, cosine rerank.
# Datasets: the same operations over every operand group read from a file,
#           conversions to the dense substrate inside the timed call.
# I/O: sorted directory ingest, fixed-size chunking, per-chunk SHA-256,
#      optional re-read verification.
#
# bitsliced and block_sparse are not provided; cases requiring them are
# skipped by capability negotiation.
#
# Every ordering uses an explicit id tie-break, so equal scores never make
# the output depend on sort stability.

import hashlib
import math
import time
from pathlib import Path
from typing import Any, Callable, Dict

import numpy as np

from contractbench.aggregator import quantile
from contractbench.bindings import Binding
from contractbench.data_models.benchmark_case import (
    BenchmarkCase,
    DatasetParams,
    IoParams,
    RetrievalParams,
    VsaOperation,
    VsaParams,
    VsaVariant,
)
from contractbench.exceptions import BenchError, BenchIoError, InvalidParameterError
from contractbench.fingerprint import canonical_bytes
from contractbench.workload_generator import (
    DatasetWorkload,
    IoWorkload,
    RetrievalWorkload,
    SparseTernaryVec,
    VsaWorkload,
)


# Lower bound on the retrieval candidate pool before reranking.
_MIN_CANDIDATES: int = 50


# =============================================================================
# SECTION 1 -- SPARSE SUBSTRATE
# =============================================================================

def sparse_bundle(a: SparseTernaryVec, b: SparseTernaryVec) -> SparseTernaryVec:
    """Elementwise sign(a + b): agreeing entries survive, conflicts cancel."""
    pos = np.setdiff1d(np.union1d(a.pos, b.pos), np.union1d(a.neg, b.neg))
    neg = np.setdiff1d(np.union1d(a.neg, b.neg), np.union1d(a.pos, b.pos))
    return SparseTernaryVec(a.dimension, pos, neg)


def sparse_bind(a: SparseTernaryVec, b: SparseTernaryVec) -> SparseTernaryVec:
    """Elementwise product a * b."""
    pos = np.union1d(np.intersect1d(a.pos, b.pos), np.intersect1d(a.neg, b.neg))
    neg = np.union1d(np.intersect1d(a.pos, b.neg), np.intersect1d(a.neg, b.pos))
    return SparseTernaryVec(a.dimension, pos, neg)


def sparse_dot(a: SparseTernaryVec, b: SparseTernaryVec) -> int:
    agree = np.intersect1d(a.pos, b.pos).size + np.intersect1d(a.neg, b.neg).size
    disagree = np.intersect1d(a.pos, b.neg).size + np.intersect1d(a.neg, b.pos).size
    return int(agree - disagree)


def sparse_cosine(a: SparseTernaryVec, b: SparseTernaryVec) -> float:
    norm = math.sqrt(a.nnz()) * math.sqrt(b.nnz())
    if norm == 0.0:
        return 0.0
    return sparse_dot(a, b) / norm


# =============================================================================
# SECTION 2 -- PACKED AND HYBRID SUBSTRATES
# =============================================================================

def packed_bundle(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.sign(a.astype(np.int16) + b).astype(np.int8)


def packed_bind(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a * b


def packed_dot(a: np.ndarray, b: np.ndarray) -> int:
    return int(np.dot(a.astype(np.int32), b.astype(np.int32)))


def carry_save_bundle(operands: tuple) -> np.ndarray:
    """Majority bundle of n dense trit arrays: sign of the running sum."""
    acc = np.zeros(operands[0].shape[0], dtype=np.int16)
    for operand in operands:
        acc += operand
    return np.sign(acc).astype(np.int8)


# =============================================================================
# SECTION 3 -- RETRIEVAL
# =============================================================================

class _CorpusIndex:
    """Dense int8 corpus matrix plus per-vector norms. Built once per case."""

    def __init__(self, corpus: tuple) -> None:
        self.matrix: np.ndarray = np.stack([v.to_dense() for v in corpus])
        self.norms:  np.ndarray = np.sqrt(np.array([v.nnz() for v in corpus], dtype=np.float64))
        self.ids:    np.ndarray = np.arange(len(corpus), dtype=np.int64)

    def overlap_scores(self, query: SparseTernaryVec) -> np.ndarray:
        pos = self.matrix[:, query.pos].sum(axis=1, dtype=np.int32)
        neg = self.matrix[:, query.neg].sum(axis=1, dtype=np.int32)
        return pos - neg

    def cosine_scores(self, query: SparseTernaryVec, scores: np.ndarray, ids: np.ndarray) -> np.ndarray:
        denom = self.norms[ids] * math.sqrt(query.nnz())
        return np.divide(
            scores.astype(np.float64), denom,
            out=np.zeros(ids.size, dtype=np.float64), where=denom > 0,
        )


def _rank(ids: np.ndarray, scores: np.ndarray) -> np.ndarray:
    """ids ordered by descending score, ties broken by ascending id."""
    return ids[np.lexsort((ids, -scores))]


def top_k(index: _CorpusIndex, query: SparseTernaryVec, k: int, candidate_k: int) -> np.ndarray:
    scores = index.overlap_scores(query)
    candidates = _rank(index.ids, scores)[:candidate_k]
    cosines = index.cosine_scores(query, scores[candidates], candidates)
    return _rank(candidates, cosines)[:k]


def exact_top_k(index: _CorpusIndex, query: SparseTernaryVec, k: int) -> np.ndarray:
    """Brute-force cosine top-k over the whole corpus."""
    scores = index.overlap_scores(query)
    cosines = index.cosine_scores(query, scores, index.ids)
    return _rank(index.ids, cosines)[:k]


def candidate_pool_size(k: int, candidate_factor: int, corpus_size: int) -> int:
    return min(max(k * candidate_factor, _MIN_CANDIDATES), corpus_size)


# =============================================================================
# SECTION 4 -- I/O
# =============================================================================

def _read_file(path: Path, case_id: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise BenchIoError(str(path), "cannot read input file: " + str(exc), case_id) from exc


def ingest(workload: IoWorkload, case_id: str = "") -> tuple:
    """
    Ingest every file of the workload in sorted order.

    Returns a tuple of (relative_path, file_sha256, chunk_sha256s) triples.
    With verify set, each file is read a second time and its digest checked.
    """
    size = workload.chunk_size
    result = []
    for rel, _ in workload.files:
        path = workload.root / rel
        data = _read_file(path, case_id)
        file_digest = hashlib.sha256(data).hexdigest()
        chunks = tuple(
            hashlib.sha256(data[offset:offset + size]).hexdigest()
            for offset in range(0, len(data), size)
        )
        if workload.verify:
            reread = hashlib.sha256(_read_file(path, case_id)).hexdigest()
            if reread != file_digest:
                raise BenchError(
                    "OperationError: case '" + case_id + "' verification failed for '" + rel
                    + "': " + reread[:16] + " != " + file_digest[:16],
                    case_id=case_id,
                )
        result.append((rel, file_digest, chunks))
    return tuple(result)


# =============================================================================
# SECTION 5 -- BINDING
# =============================================================================

class ReferenceBinding(Binding):
    """
    Pure numpy binding. Used by default and by the test suite.

    Args:
        clock: monotonic nanosecond clock for the per-query latency pass
               recorded in retrieval extras.
    """

    name = "reference"
    capabilities = frozenset({
        "vsa." + VsaVariant.SPARSE.value,
        "vsa." + VsaVariant.PACKED.value,
        "vsa." + VsaVariant.HYBRID.value,
        "retrieval.top_k",
        "io.ingest",
        "io.ingest_verify",
    })

    def __init__(self, clock: Callable[[], int] = time.perf_counter_ns) -> None:
        self._clock = clock

    def bind(self, case: BenchmarkCase, workload: Any) -> Callable[[], Any]:
        params = case.params
        if isinstance(params, VsaParams):
            return self._bind_vsa(case, params, workload)
        if isinstance(params, DatasetParams):
            return self._bind_dataset(case, params, workload)
        if isinstance(params, RetrievalParams):
            return self._bind_retrieval(params, workload)
        if isinstance(params, IoParams):
            return lambda: ingest(workload, case.case_id)
        raise InvalidParameterError("params", type(params).__name__, "unknown parameter structure", case.case_id)

    def _bind_vsa(self, case: BenchmarkCase, params: VsaParams, workload: VsaWorkload) -> Callable[[], Any]:
        ops = workload.operands
        op = params.operation
        if params.variant is VsaVariant.SPARSE:
            a, b = ops[0], ops[1]
            if op is VsaOperation.BUNDLE:
                return lambda: sparse_bundle(a, b)
            if op is VsaOperation.BIND:
                return lambda: sparse_bind(a, b)
            return lambda: sparse_cosine(a, b)
        if params.variant is VsaVariant.PACKED:
            pa, pb = ops[0].to_dense(), ops[1].to_dense()
            if op is VsaOperation.BUNDLE:
                return lambda: packed_bundle(pa, pb)
            if op is VsaOperation.BIND:
                return lambda: packed_bind(pa, pb)
            return lambda: packed_dot(pa, pb)
        if params.variant is VsaVariant.HYBRID:
            dense = tuple(v.to_dense() for v in ops)
            return lambda: carry_save_bundle(dense)
        raise InvalidParameterError(
            "variant", params.variant.value, "not provided by binding '" + self.name + "'", case.case_id
        )

    def _group_op(self, case: BenchmarkCase, variant: VsaVariant, op: VsaOperation) -> Callable[[tuple], Any]:
        """Operation applied to one operand group read from a dataset, conversions included."""
        if variant is VsaVariant.SPARSE:
            fn = {VsaOperation.BUNDLE: sparse_bundle, VsaOperation.BIND: sparse_bind}.get(op, sparse_cosine)
            return lambda g: fn(g[0], g[1])
        if variant is VsaVariant.PACKED:
            fn = {VsaOperation.BUNDLE: packed_bundle, VsaOperation.BIND: packed_bind}.get(op, packed_dot)
            return lambda g: fn(g[0].to_dense(), g[1].to_dense())
        if variant is VsaVariant.HYBRID:
            return lambda g: carry_save_bundle(tuple(v.to_dense() for v in g))
        raise InvalidParameterError(
            "variant", variant.value, "not provided by binding '" + self.name + "'", case.case_id
        )

    def _bind_dataset(self, case: BenchmarkCase, params: DatasetParams, workload: DatasetWorkload) -> Callable[[], Any]:
        apply = self._group_op(case, params.variant, params.operation)
        groups = workload.groups

        def run_groups() -> str:
            # Results are folded into one digest so memory stays flat.
            h = hashlib.sha256()
            for group in groups:
                h.update(canonical_bytes(apply(group)))
            return h.hexdigest()

        return run_groups

    def _bind_retrieval(self, params: RetrievalParams, workload: RetrievalWorkload) -> Callable[[], Any]:
        index = _CorpusIndex(workload.corpus)
        queries = [workload.corpus[i] for i in workload.query_ids]
        k = workload.k
        candidate_k = candidate_pool_size(k, workload.candidate_factor, len(workload.corpus))

        def run_queries() -> np.ndarray:
            return np.stack([top_k(index, q, k, candidate_k) for q in queries])

        return run_queries

    def _query_latencies(self, index: _CorpusIndex, workload: RetrievalWorkload, candidate_k: int) -> Dict[str, float]:
        """
        One extra pass over the queries, timing each top_k call on its own.
        Latencies in milliseconds; qps is queries over the summed latency.
        """
        latencies_ms = []
        for qid in workload.query_ids:
            query = workload.corpus[qid]
            start = self._clock()
            top_k(index, query, workload.k, candidate_k)
            latencies_ms.append((self._clock() - start) / 1e6)
        latencies_ms.sort()
        total_s = sum(latencies_ms) / 1e3
        return {
            "latency_p50_ms":  quantile(latencies_ms, 0.50),
            "latency_p95_ms":  quantile(latencies_ms, 0.95),
            "latency_p99_ms":  quantile(latencies_ms, 0.99),
            "latency_mean_ms": sum(latencies_ms) / len(latencies_ms) if latencies_ms else 0.0,
            "qps":             len(latencies_ms) / total_s if total_s > 0 else 0.0,
        }

    def extras(self, case: BenchmarkCase, workload: Any, output: Any) -> Dict[str, Any]:
        params = case.params
        if isinstance(params, VsaParams):
            return {
                "dimension": params.dimension,
                "sparsity":  params.sparsity,
                "operands":  params.bundle_width,
            }
        if isinstance(params, DatasetParams):
            return {
                "dimension": workload.dimension,
                "vectors":   workload.vectors,
                "ops":       len(workload.groups),
                "operands":  params.bundle_width,
            }
        if isinstance(params, RetrievalParams):
            index = _CorpusIndex(workload.corpus)
            candidate_k = candidate_pool_size(params.k, params.candidate_factor, params.corpus_size)
            hits = 0
            for row, qid in zip(output, workload.query_ids):
                exact = exact_top_k(index, workload.corpus[qid], workload.k)
                hits += np.intersect1d(row, exact).size
            extras = {
                "corpus_size": params.corpus_size,
                "dimension":   params.dimension,
                "k":           params.k,
                "queries":     params.queries,
                "candidate_k": candidate_k,
                "recall_at_k": hits / float(params.queries * params.k),
            }
            extras.update(self._query_latencies(index, workload, candidate_k))
            return extras
        if isinstance(params, IoParams):
            passes = 2 if workload.verify else 1
            return {
                "files":           len(workload.files),
                "chunks":          sum(len(chunks) for _, _, chunks in output),
                "chunk_size":      params.chunk_size,
                "bytes_processed": workload.total_bytes * passes,
            }
        return {}
