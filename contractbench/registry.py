# contractbench/registry.py
# Case registration.
#
# There is no module-level registry. build_default_cases() returns a fresh,
# immutable CaseRegistry that the caller passes explicitly through the
# runner. Definitions that fail validation are kept as RejectedCase entries
# so one bad definition never prevents the others from running.

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, Optional

from contractbench.constants import (
    DATASET_PROFILE_ITERATIONS,
    DATASET_PROFILE_MAX_OPS,
    DEFAULT_CASE_TIMEOUT_S,
    DEFAULT_DIMENSION,
    DEFAULT_SEED,
    DEFAULT_SPARSITY,
    IO_PROFILE_ITERATIONS,
    PROFILE_ITERATIONS,
    RETRIEVAL_PROFILE_ITERATIONS,
    Profile,
)
from contractbench.data_models.benchmark_case import (
    BenchmarkCase,
    Category,
    IoOperation,
    VsaOperation,
    VsaVariant,
    make_case,
)
from contractbench.exceptions import BenchError, InvalidParameterError


@dataclass(frozen=True)
class CaseDefinition:
    """Unvalidated case description. params is the keyword set of the category's params type."""
    category:     Category
    name:         str
    params:       Dict[str, Any] = field(default_factory=dict)
    reuse_inputs: bool = False

    @property
    def case_id(self) -> str:
        return self.category.value + "." + self.name


@dataclass(frozen=True)
class RejectedCase:
    case_id:  str
    category: Category
    error:    BenchError


@dataclass(frozen=True)
class CaseRegistry:
    """
    Validated cases in registration order, plus rejected definitions.

    Iterating a registry yields its valid cases.
    """
    cases:    tuple    # tuple of BenchmarkCase
    rejected: tuple    # tuple of RejectedCase

    def __iter__(self) -> Iterator[BenchmarkCase]:
        return iter(self.cases)

    def __len__(self) -> int:
        return len(self.cases)

    def case_ids(self) -> tuple:
        return tuple(c.case_id for c in self.cases)

    def select(self, categories: Optional[Iterable[Category]]) -> "CaseRegistry":
        """Restrict to the given categories; None keeps everything."""
        if categories is None:
            return self
        wanted = frozenset(categories)
        return CaseRegistry(
            cases=tuple(c for c in self.cases if c.category in wanted),
            rejected=tuple(r for r in self.rejected if r.category in wanted),
        )


_ITERATIONS_BY_CATEGORY = {
    Category.VSA:         PROFILE_ITERATIONS,
    Category.VSA_DATASET: DATASET_PROFILE_ITERATIONS,
    Category.RETRIEVAL:   RETRIEVAL_PROFILE_ITERATIONS,
    Category.IO:          IO_PROFILE_ITERATIONS,
}

# Two-operand cases per substrate, shared by the vsa and vsa_dataset sets.
_SUBSTRATE_OPERATIONS = (
    (VsaVariant.SPARSE,       (VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.COSINE)),
    (VsaVariant.PACKED,       (VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.DOT)),
    (VsaVariant.BITSLICED,    (VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.COSINE)),
    (VsaVariant.BLOCK_SPARSE, (VsaOperation.BUNDLE, VsaOperation.BIND, VsaOperation.COSINE)),
)

_RETRIEVAL_SHAPE = {
    # (corpus_size, queries)
    Profile.QUICK: (1_000, 100),
    Profile.FULL:  (4_000, 1_000),
}


def dataset_definitions(dataset: str, profile: Profile = Profile.QUICK) -> list:
    """vsa_dataset cases over the given EMBR_DST file, one per substrate operation."""
    max_ops = DATASET_PROFILE_MAX_OPS[profile]
    definitions = []
    for variant, operations in _SUBSTRATE_OPERATIONS:
        for op in operations:
            definitions.append(CaseDefinition(
                category=Category.VSA_DATASET,
                name=variant.value + "." + op.value,
                params={"variant": variant, "operation": op, "path": dataset, "max_ops": max_ops},
                reuse_inputs=True,
            ))
    definitions.append(CaseDefinition(
        category=Category.VSA_DATASET,
        name="hybrid.carry_save_bundle_3",
        params={
            "variant":      VsaVariant.HYBRID,
            "operation":    VsaOperation.CARRY_SAVE_BUNDLE,
            "path":         dataset,
            "max_ops":      max_ops,
            "bundle_width": 3,
        },
        reuse_inputs=True,
    ))
    return definitions


def default_definitions(
    profile:   Profile = Profile.QUICK,
    input_dir: Optional[str] = None,
    dataset:   Optional[str] = None,
) -> tuple:
    """The built-in case set, in execution order. vsa_dataset cases only when a dataset is given."""
    vsa = []
    for variant, operations in _SUBSTRATE_OPERATIONS:
        for op in operations:
            vsa.append(CaseDefinition(
                category=Category.VSA,
                name=variant.value + "." + op.value,
                params={
                    "variant":   variant,
                    "operation": op,
                    "dimension": DEFAULT_DIMENSION,
                    "sparsity":  DEFAULT_SPARSITY,
                },
            ))
    vsa.append(CaseDefinition(
        category=Category.VSA,
        name="hybrid.carry_save_bundle_3",
        params={
            "variant":      VsaVariant.HYBRID,
            "operation":    VsaOperation.CARRY_SAVE_BUNDLE,
            "dimension":    DEFAULT_DIMENSION,
            "sparsity":     DEFAULT_SPARSITY,
            "bundle_width": 3,
        },
    ))
    if dataset is not None:
        vsa.extend(dataset_definitions(dataset, profile))

    corpus_size, queries = _RETRIEVAL_SHAPE[profile]
    retrieval = [CaseDefinition(
        category=Category.RETRIEVAL,
        name="cosine_top_k",
        params={
            "corpus_size":      corpus_size,
            "dimension":        DEFAULT_DIMENSION,
            "sparsity":         DEFAULT_SPARSITY,
            "k":                10,
            "queries":          queries,
            "candidate_factor": 10,
        },
        reuse_inputs=True,
    )]

    io = [
        CaseDefinition(
            category=Category.IO,
            name=op.value,
            params={"operation": op, "chunk_size": 4_096, "input_dir": input_dir},
        )
        for op in (IoOperation.INGEST, IoOperation.INGEST_VERIFY)
    ]
    return tuple(vsa + retrieval + io)


def register_cases(
    definitions:    Iterable[CaseDefinition],
    profile:        Profile = Profile.QUICK,
    seed:           int = DEFAULT_SEED,
    case_timeout_s: float = DEFAULT_CASE_TIMEOUT_S,
    iterations:     Optional[int] = None,
    warm_up:        Optional[int] = None,
) -> CaseRegistry:
    """
    Validate definitions into BenchmarkCases.

    iterations / warm_up override the profile's per-category counts for
    every case. Duplicate case ids are rejected; the first definition wins.
    """
    cases = []
    rejected = []
    seen = set()
    for d in definitions:
        if d.case_id in seen:
            rejected.append(RejectedCase(
                case_id=d.case_id,
                category=d.category,
                error=InvalidParameterError("case_id", d.case_id, "must be unique within a run", d.case_id),
            ))
            continue
        seen.add(d.case_id)
        default_warm_up, default_iterations = _ITERATIONS_BY_CATEGORY[d.category][profile]
        try:
            cases.append(make_case(
                category=d.category,
                name=d.name,
                params_kwargs=d.params,
                iterations=default_iterations if iterations is None else iterations,
                warm_up=default_warm_up if warm_up is None else warm_up,
                seed=seed,
                reuse_inputs=d.reuse_inputs,
                timeout_s=case_timeout_s,
            ))
        except BenchError as exc:
            rejected.append(RejectedCase(case_id=d.case_id, category=d.category, error=exc))
    return CaseRegistry(cases=tuple(cases), rejected=tuple(rejected))


def build_default_cases(
    profile:        Profile = Profile.QUICK,
    seed:           int = DEFAULT_SEED,
    input_dir:      Optional[str] = None,
    case_timeout_s: float = DEFAULT_CASE_TIMEOUT_S,
    iterations:     Optional[int] = None,
    warm_up:        Optional[int] = None,
    dataset:        Optional[str] = None,
) -> CaseRegistry:
    return register_cases(
        default_definitions(profile, input_dir, dataset),
        profile=profile,
        seed=seed,
        case_timeout_s=case_timeout_s,
        iterations=iterations,
        warm_up=warm_up,
    )
