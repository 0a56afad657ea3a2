# contractbench/data_models/benchmark_case.py
# BenchmarkCase and the closed, per-category parameter structures.
#
# Validation is eager: every structure is checked in __post_init__, so a bad
# case fails with InvalidParameterError (or InsufficientSamplesError) at
# registration time, before any workload is generated or timed.
# There is no silent coercion: no field is clipped, clamped or defaulted.

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from contractbench.constants import MIN_ITERATIONS
from contractbench.exceptions import InsufficientSamplesError, InvalidParameterError


# Dataset indices are stored as u32.
_MAX_DIMENSION: int = 2 ** 32 - 1
_MAX_SEED:      int = 2 ** 64 - 1
_MAX_BUNDLE_WIDTH: int = 64


# =============================================================================
# SECTION 1 -- ENUMERATIONS
# =============================================================================

class Category(str, Enum):
    """Benchmark category. vsa_dataset cases run under the vsa subcommand."""
    VSA         = "vsa"
    VSA_DATASET = "vsa_dataset"
    RETRIEVAL   = "retrieval"
    IO          = "io"


class VsaVariant(str, Enum):
    """
    VSA substrate a case exercises.

    SPARSE       -- high-level sparse ternary API (pos/neg index sets).
    PACKED       -- dense packed trit substrate.
    BITSLICED    -- bitsliced trit substrate.
    HYBRID       -- carry-save accumulator bundling.
    BLOCK_SPARSE -- block-sparse substrate for large dimensions.
    """
    SPARSE       = "sparse"
    PACKED       = "packed"
    BITSLICED    = "bitsliced"
    HYBRID       = "hybrid"
    BLOCK_SPARSE = "block_sparse"


class VsaOperation(str, Enum):
    BUNDLE            = "bundle"
    BIND              = "bind"
    COSINE            = "cosine"
    DOT               = "dot"
    CARRY_SAVE_BUNDLE = "carry_save_bundle"


class IoOperation(str, Enum):
    """
    INGEST        -- walk, read and chunk an input directory.
    INGEST_VERIFY -- ingest, then re-read every file and check its SHA-256.
    """
    INGEST        = "ingest"
    INGEST_VERIFY = "ingest_verify"


# Operations recognised for each substrate.
VARIANT_OPERATIONS: Dict[VsaVariant, frozenset] = {
    VsaVariant.SPARSE:       frozenset({VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.COSINE}),
    VsaVariant.PACKED:       frozenset({VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.DOT}),
    VsaVariant.BITSLICED:    frozenset({VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.COSINE}),
    VsaVariant.HYBRID:       frozenset({VsaOperation.CARRY_SAVE_BUNDLE}),
    VsaVariant.BLOCK_SPARSE: frozenset({VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.COSINE}),
}


# =============================================================================
# SECTION 2 -- INTERNAL VALIDATION HELPERS
# =============================================================================

def _check_int(field_name: str, value: Any) -> None:
    # bool is an int subclass; a flag is never a valid size.
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidParameterError(field_name, value, "must be an int")


def _check_range(field_name: str, value: int, low: int, high: int) -> None:
    _check_int(field_name, value)
    if not (low <= value <= high):
        raise InvalidParameterError(
            field_name, value, "must be in [" + str(low) + ", " + str(high) + "]"
        )


def _check_member(field_name: str, value: Any, enum_type: type) -> None:
    if not isinstance(value, enum_type):
        raise InvalidParameterError(
            field_name, value, "must be a " + enum_type.__name__ + " member"
        )


def _check_sparsity(dimension: int, sparsity: int) -> None:
    _check_range("dimension", dimension, 1, _MAX_DIMENSION)
    _check_int("sparsity", sparsity)
    if sparsity < 1 or 2 * sparsity > dimension:
        raise InvalidParameterError(
            "sparsity", sparsity, "must be >= 1 and 2 * sparsity <= dimension (" + str(dimension) + ")"
        )


# =============================================================================
# SECTION 3 -- PARAMETER STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class VsaParams:
    """
    Parameters for a VSA substrate microbenchmark.

    Fields:
      variant      -- substrate under test.
      operation    -- operation on that substrate; must be listed in
                      VARIANT_OPERATIONS[variant].
      dimension    -- vector dimension.
      sparsity     -- number of +1 and of -1 entries per operand.
      bundle_width -- number of operands; 2 except for carry-save bundling.
    """
    variant:      VsaVariant
    operation:    VsaOperation
    dimension:    int
    sparsity:     int
    bundle_width: int = 2

    def __post_init__(self) -> None:
        _check_member("variant", self.variant, VsaVariant)
        _check_member("operation", self.operation, VsaOperation)
        if self.operation not in VARIANT_OPERATIONS[self.variant]:
            raise InvalidParameterError(
                "operation",
                self.operation.value,
                "must be one of "
                + repr(sorted(op.value for op in VARIANT_OPERATIONS[self.variant]))
                + " for variant '" + self.variant.value + "'",
            )
        _check_sparsity(self.dimension, self.sparsity)
        _check_range("bundle_width", self.bundle_width, 2, _MAX_BUNDLE_WIDTH)
        if self.operation is not VsaOperation.CARRY_SAVE_BUNDLE and self.bundle_width != 2:
            raise InvalidParameterError(
                "bundle_width", self.bundle_width, "must be 2 for two-operand operations"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant":      self.variant.value,
            "operation":    self.operation.value,
            "dimension":    self.dimension,
            "sparsity":     self.sparsity,
            "bundle_width": self.bundle_width,
        }


@dataclass(frozen=True)
class DatasetParams:
    """
    Parameters for a VSA benchmark over vectors read from an EMBR_DST file.

    Consecutive vectors are grouped bundle_width at a time; one iteration
    applies the operation to every group.

    Fields:
      variant      -- substrate under test.
      operation    -- operation on that substrate.
      path         -- existing dataset file.
      max_ops      -- cap on groups per iteration; 0 uses every group.
      bundle_width -- vectors per group; 2 except for carry-save bundling.
    """
    variant:      VsaVariant
    operation:    VsaOperation
    path:         str
    max_ops:      int = 0
    bundle_width: int = 2

    def __post_init__(self) -> None:
        _check_member("variant", self.variant, VsaVariant)
        _check_member("operation", self.operation, VsaOperation)
        if self.operation not in VARIANT_OPERATIONS[self.variant]:
            raise InvalidParameterError(
                "operation",
                self.operation.value,
                "must be one of "
                + repr(sorted(op.value for op in VARIANT_OPERATIONS[self.variant]))
                + " for variant '" + self.variant.value + "'",
            )
        if not isinstance(self.path, str) or not Path(self.path).is_file():
            raise InvalidParameterError("path", self.path, "must be an existing dataset file")
        _check_range("max_ops", self.max_ops, 0, _MAX_DIMENSION)
        _check_range("bundle_width", self.bundle_width, 2, _MAX_BUNDLE_WIDTH)
        if self.operation is not VsaOperation.CARRY_SAVE_BUNDLE and self.bundle_width != 2:
            raise InvalidParameterError(
                "bundle_width", self.bundle_width, "must be 2 for two-operand operations"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant":      self.variant.value,
            "operation":    self.operation.value,
            "path":         self.path,
            "max_ops":      self.max_ops,
            "bundle_width": self.bundle_width,
        }


@dataclass(frozen=True)
class RetrievalParams:
    """
    Parameters for a top-k retrieval benchmark over a generated corpus.

    The first `queries` corpus vectors are used as queries, so recall is
    measured against vectors known to be present.
    """
    corpus_size:      int
    dimension:        int
    sparsity:         int
    k:                int
    queries:          int
    candidate_factor: int = 10

    def __post_init__(self) -> None:
        _check_range("corpus_size", self.corpus_size, 1, _MAX_DIMENSION)
        _check_sparsity(self.dimension, self.sparsity)
        _check_int("k", self.k)
        if not (1 <= self.k <= self.corpus_size):
            raise InvalidParameterError(
                "k", self.k, "must be in [1, corpus_size] (corpus_size=" + str(self.corpus_size) + ")"
            )
        _check_int("queries", self.queries)
        if not (1 <= self.queries <= self.corpus_size):
            raise InvalidParameterError(
                "queries", self.queries,
                "must be in [1, corpus_size] (corpus_size=" + str(self.corpus_size) + ")",
            )
        _check_range("candidate_factor", self.candidate_factor, 1, 1_000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "corpus_size":      self.corpus_size,
            "dimension":        self.dimension,
            "sparsity":         self.sparsity,
            "k":                self.k,
            "queries":          self.queries,
            "candidate_factor": self.candidate_factor,
        }


@dataclass(frozen=True)
class IoParams:
    """
    Parameters for a filesystem ingest benchmark.

    input_dir is None when no external corpus was supplied; such cases are
    registered but skipped by the runner.
    """
    operation:  IoOperation
    chunk_size: int
    input_dir:  Optional[str] = None

    def __post_init__(self) -> None:
        _check_member("operation", self.operation, IoOperation)
        _check_range("chunk_size", self.chunk_size, 1, 1 << 30)
        if self.input_dir is not None and not Path(self.input_dir).is_dir():
            raise InvalidParameterError("input_dir", self.input_dir, "must be an existing directory")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation":  self.operation.value,
            "chunk_size": self.chunk_size,
            "input_dir":  self.input_dir,
        }


CaseParams = Union[VsaParams, DatasetParams, RetrievalParams, IoParams]

_PARAMS_FOR_CATEGORY: Dict[Category, type] = {
    Category.VSA:         VsaParams,
    Category.VSA_DATASET: DatasetParams,
    Category.RETRIEVAL:   RetrievalParams,
    Category.IO:          IoParams,
}


# =============================================================================
# SECTION 4 -- BENCHMARK CASE
# =============================================================================

@dataclass(frozen=True)
class BenchmarkCase:
    """
    One immutable benchmark scenario.

    Fields:
      category     -- Category; must match the type of params.
      name         -- unique within the category; forms case_id with it.
      params       -- closed per-category parameter structure.
      iterations   -- timed iterations; at least MIN_ITERATIONS.
      warm_up      -- untimed iterations run first.
      seed         -- workload generator seed, 0 <= seed < 2**64.
      reuse_inputs -- True when one workload is generated and shared by all
                      iterations (e.g. a retrieval corpus and its index).
      timeout_s    -- wall-clock budget for warm-up plus timed iterations.
    """
    category:     Category
    name:         str
    params:       CaseParams
    iterations:   int
    warm_up:      int
    seed:         int
    reuse_inputs: bool = False
    timeout_s:    float = 120.0

    def __post_init__(self) -> None:
        case_id = self.case_id
        if not isinstance(self.name, str) or not self.name or any(c.isspace() for c in self.name):
            raise InvalidParameterError("name", self.name, "must be a non-empty string without whitespace", case_id)
        if not isinstance(self.category, Category):
            raise InvalidParameterError("category", self.category, "must be a Category member", case_id)
        expected = _PARAMS_FOR_CATEGORY[self.category]
        if not isinstance(self.params, expected):
            raise InvalidParameterError(
                "params", type(self.params).__name__,
                "must be " + expected.__name__ + " for category '" + self.category.value + "'",
                case_id,
            )
        if not isinstance(self.iterations, int) or isinstance(self.iterations, bool):
            raise InvalidParameterError("iterations", self.iterations, "must be an int", case_id)
        if self.iterations < MIN_ITERATIONS:
            raise InsufficientSamplesError(self.iterations, MIN_ITERATIONS, case_id)
        try:
            _check_range("warm_up", self.warm_up, 0, 1_000_000)
            _check_range("seed", self.seed, 0, _MAX_SEED)
        except InvalidParameterError as exc:
            raise InvalidParameterError(exc.field_name, exc.value, exc.constraint, case_id) from exc
        if not isinstance(self.timeout_s, (int, float)) or not math.isfinite(self.timeout_s) or self.timeout_s <= 0:
            raise InvalidParameterError("timeout_s", self.timeout_s, "must be a finite number > 0", case_id)

    @property
    def case_id(self) -> str:
        category = self.category.value if isinstance(self.category, Category) else str(self.category)
        return category + "." + str(self.name)

    @property
    def required_capability(self) -> str:
        """Capability a binding must declare to run this case."""
        if isinstance(self.params, (VsaParams, DatasetParams)):
            return "vsa." + self.params.variant.value
        if isinstance(self.params, RetrievalParams):
            return "retrieval.top_k"
        return "io." + self.params.operation.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id":      self.case_id,
            "category":     self.category.value,
            "name":         self.name,
            "params":       self.params.to_dict(),
            "iterations":   self.iterations,
            "warm_up":      self.warm_up,
            "seed":         self.seed,
            "reuse_inputs": self.reuse_inputs,
            "timeout_s":    self.timeout_s,
        }


def make_case(
    category:     Category,
    name:         str,
    params_kwargs: Dict[str, Any],
    iterations:   int,
    warm_up:      int,
    seed:         int,
    reuse_inputs: bool = False,
    timeout_s:    float = 120.0,
) -> BenchmarkCase:
    """
    Build a case from a plain parameter mapping.

    Unknown option names are rejected rather than ignored, and parameter
    errors are re-raised with the case id attached.
    """
    case_id = category.value + "." + name
    params_type = _PARAMS_FOR_CATEGORY[category]
    known = set(params_type.__dataclass_fields__)
    unknown = sorted(set(params_kwargs) - known)
    if unknown:
        raise InvalidParameterError("params", unknown, "unrecognised option(s); known: " + repr(sorted(known)), case_id)
    try:
        params = params_type(**params_kwargs)
    except TypeError as exc:
        raise InvalidParameterError("params", sorted(params_kwargs), "missing required option: " + str(exc), case_id) from exc
    except InvalidParameterError as exc:
        raise InvalidParameterError(exc.field_name, exc.value, exc.constraint, case_id) from exc
    return BenchmarkCase(
        category=category,
        name=name,
        params=params,
        iterations=iterations,
        warm_up=warm_up,
        seed=seed,
        reuse_inputs=reuse_inputs,
        timeout_s=timeout_s,
    )
