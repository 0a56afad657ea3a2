import numpy as np
import pytest

from contractbench.bindings import Binding, get_binding
from contractbench.bindings.reference import (
    ReferenceBinding,
    _CorpusIndex,
    _rank,
    candidate_pool_size,
    carry_save_bundle,
    exact_top_k,
    ingest,
    packed_bind,
    packed_bundle,
    packed_dot,
    sparse_bind,
    sparse_bundle,
    sparse_cosine,
    sparse_dot,
    top_k,
)
from contractbench.data_models.benchmark_case import (
    BenchmarkCase,
    Category,
    DatasetParams,
    IoOperation,
    IoParams,
    RetrievalParams,
    VsaOperation,
    VsaParams,
    VsaVariant,
)
from contractbench.exceptions import BenchIoError, InvalidParameterError
from contractbench.workload_generator import (
    SparseTernaryVec,
    WorkloadGenerator,
    generate_sparse_vector,
)


@pytest.fixture
def operands():
    return generate_sparse_vector(1, 2_000, 60), generate_sparse_vector(2, 2_000, 60)


class TestSparseSubstrate:

    def test_bundle_small_example(self):
        a = SparseTernaryVec(8, [1, 2], [3])
        b = SparseTernaryVec(8, [2], [1, 4])
        out = sparse_bundle(a, b)
        assert out.pos.tolist() == [2]
        assert out.neg.tolist() == [3, 4]

    def test_bundle_matches_dense_sign(self, operands):
        a, b = operands
        expected = np.sign(a.to_dense().astype(np.int16) + b.to_dense())
        assert np.array_equal(sparse_bundle(a, b).to_dense(), expected)

    def test_bind_matches_dense_product(self, operands):
        a, b = operands
        assert np.array_equal(sparse_bind(a, b).to_dense(), a.to_dense() * b.to_dense())

    def test_dot_matches_dense(self, operands):
        a, b = operands
        assert sparse_dot(a, b) == int(np.dot(a.to_dense().astype(np.int32), b.to_dense()))

    def test_cosine_self_is_one(self, operands):
        a, _ = operands
        assert sparse_cosine(a, a) == pytest.approx(1.0)

    def test_cosine_of_empty_vector_is_zero(self):
        assert sparse_cosine(SparseTernaryVec(8, [], []), SparseTernaryVec(8, [1], [])) == 0.0


class TestPackedAndHybrid:

    def test_packed_matches_sparse(self, operands):
        a, b = operands
        da, db = a.to_dense(), b.to_dense()
        assert np.array_equal(packed_bundle(da, db), sparse_bundle(a, b).to_dense())
        assert np.array_equal(packed_bind(da, db), sparse_bind(a, b).to_dense())
        assert packed_dot(da, db) == sparse_dot(a, b)

    def test_packed_bundle_dtype(self, operands):
        a, b = operands
        assert packed_bundle(a.to_dense(), b.to_dense()).dtype == np.int8

    def test_carry_save_bundle_is_majority(self):
        vs = [generate_sparse_vector(s, 500, 50).to_dense() for s in range(3)]
        expected = np.sign(vs[0].astype(np.int16) + vs[1] + vs[2]).astype(np.int8)
        assert np.array_equal(carry_save_bundle(tuple(vs)), expected)

    def test_carry_save_bundle_of_two_matches_packed(self, operands):
        a, b = operands
        pair = (a.to_dense(), b.to_dense())
        assert np.array_equal(carry_save_bundle(pair), packed_bundle(*pair))


class TestRetrieval:

    def test_rank_ties_broken_by_ascending_id(self):
        ids = np.array([0, 1, 2, 3])
        scores = np.array([5, 7, 7, 1])
        assert _rank(ids, scores).tolist() == [1, 2, 0, 3]

    @pytest.mark.parametrize("k,factor,corpus,expected", [
        (10, 10, 1_000, 100),
        (1, 1, 1_000, 50),
        (10, 10, 30, 30),
    ])
    def test_candidate_pool_size(self, k, factor, corpus, expected):
        assert candidate_pool_size(k, factor, corpus) == expected

    def test_query_finds_itself_first(self):
        corpus = tuple(generate_sparse_vector(s, 1_000, 20) for s in range(40))
        index = _CorpusIndex(corpus)
        assert top_k(index, corpus[17], 5, 40)[0] == 17
        assert exact_top_k(index, corpus[17], 5)[0] == 17

    def test_full_candidate_pool_equals_exact(self):
        corpus = tuple(generate_sparse_vector(s, 300, 10) for s in range(25))
        index = _CorpusIndex(corpus)
        for q in range(5):
            assert np.array_equal(top_k(index, corpus[q], 4, 25), exact_top_k(index, corpus[q], 4))


def _case(category, name, params, reuse_inputs=False) -> BenchmarkCase:
    return BenchmarkCase(
        category=category, name=name, params=params,
        iterations=3, warm_up=0, seed=3, reuse_inputs=reuse_inputs,
    )


class TestReferenceBinding:

    def test_registered_as_reference(self):
        assert isinstance(get_binding("reference"), ReferenceBinding)

    def test_unknown_binding_rejected(self):
        with pytest.raises(InvalidParameterError, match="binding"):
            get_binding("native")

    def test_capabilities(self):
        caps = ReferenceBinding.capabilities
        assert "vsa.sparse" in caps and "vsa.packed" in caps and "vsa.hybrid" in caps
        assert "vsa.bitsliced" not in caps
        assert "vsa.block_sparse" not in caps

    def test_unsupported_variant_reason(self):
        case = _case(Category.VSA, "bitsliced.bind", VsaParams(
            variant=VsaVariant.BITSLICED, operation=VsaOperation.BIND, dimension=64, sparsity=4,
        ))
        reason = ReferenceBinding().unsupported_reason(case)
        assert "vsa.bitsliced" in reason

    def test_io_without_input_dir_is_unsupported(self):
        case = _case(Category.IO, "ingest", IoParams(operation=IoOperation.INGEST, chunk_size=64))
        assert "--input-dir" in ReferenceBinding().unsupported_reason(case)

    def test_supported_case_has_no_reason(self, small_vsa_case):
        assert ReferenceBinding().unsupported_reason(small_vsa_case) is None

    def test_base_binding_bind_not_implemented(self, small_vsa_case):
        with pytest.raises(NotImplementedError):
            Binding().bind(small_vsa_case, None)

    @pytest.mark.parametrize("variant,operation", [
        (VsaVariant.SPARSE, VsaOperation.BUNDLE),
        (VsaVariant.SPARSE, VsaOperation.BIND),
        (VsaVariant.SPARSE, VsaOperation.COSINE),
        (VsaVariant.PACKED, VsaOperation.BUNDLE),
        (VsaVariant.PACKED, VsaOperation.BIND),
        (VsaVariant.PACKED, VsaOperation.DOT),
    ])
    def test_vsa_operations_are_deterministic(self, variant, operation):
        case = _case(Category.VSA, variant.value + "." + operation.value, VsaParams(
            variant=variant, operation=operation, dimension=256, sparsity=8,
        ))
        gen = WorkloadGenerator()
        binding = ReferenceBinding()
        first = binding.bind(case, gen.generate(case))()
        second = binding.bind(case, gen.generate(case))()
        if isinstance(first, np.ndarray):
            assert np.array_equal(first, second)
        else:
            assert first == second

    def test_retrieval_recall_with_full_pool(self):
        params = RetrievalParams(corpus_size=30, dimension=400, sparsity=8, k=3, queries=6)
        case = _case(Category.RETRIEVAL, "top", params, reuse_inputs=True)
        workload = WorkloadGenerator().generate(case)
        binding = ReferenceBinding()
        output = binding.bind(case, workload)()
        assert output.shape == (6, 3)
        assert output[:, 0].tolist() == [0, 1, 2, 3, 4, 5]
        extras = binding.extras(case, workload, output)
        assert extras["recall_at_k"] == 1.0
        assert extras["candidate_k"] == 30

    def test_retrieval_latency_extras(self, step_clock):
        step_clock.step = 1_000_000
        params = RetrievalParams(corpus_size=30, dimension=400, sparsity=8, k=3, queries=6)
        case = _case(Category.RETRIEVAL, "top", params, reuse_inputs=True)
        workload = WorkloadGenerator().generate(case)
        binding = ReferenceBinding(clock=step_clock)
        extras = binding.extras(case, workload, binding.bind(case, workload)())
        for key in ("latency_p50_ms", "latency_p95_ms", "latency_p99_ms", "latency_mean_ms"):
            assert extras[key] == 1.0
        assert extras["qps"] == pytest.approx(1_000.0)
        assert step_clock.reads == 12

    def test_retrieval_latency_quantiles_follow_ranks(self):
        params = RetrievalParams(corpus_size=30, dimension=400, sparsity=8, k=3, queries=6)
        case = _case(Category.RETRIEVAL, "top", params, reuse_inputs=True)
        workload = WorkloadGenerator().generate(case)
        # query i takes (i + 1) ms
        ticks = iter([t for i in range(6) for t in (0, (i + 1) * 1_000_000)])
        binding = ReferenceBinding(clock=lambda: next(ticks))
        extras = binding.extras(case, workload, binding.bind(case, workload)())
        assert extras["latency_p50_ms"] == 4.0
        assert extras["latency_p95_ms"] == 6.0
        assert extras["latency_p99_ms"] == 6.0
        assert extras["latency_mean_ms"] == pytest.approx(3.5)
        assert extras["qps"] == pytest.approx(6 / 0.021)

    def test_ingest_chunks_and_bytes(self, input_dir):
        params = IoParams(operation=IoOperation.INGEST_VERIFY, chunk_size=128, input_dir=str(input_dir))
        case = _case(Category.IO, "ingest_verify", params)
        workload = WorkloadGenerator().generate(case)
        binding = ReferenceBinding()
        output = binding.bind(case, workload)()
        assert [rel for rel, _, _ in output] == ["a.txt", "b.bin", "nested/c.txt"]
        assert [len(chunks) for _, _, chunks in output] == [5, 80, 0]
        extras = binding.extras(case, workload, output)
        assert extras["chunks"] == 85
        assert extras["bytes_processed"] == 2 * 10_840

    def test_ingest_of_deleted_file_raises_io_error(self, input_dir):
        params = IoParams(operation=IoOperation.INGEST, chunk_size=128, input_dir=str(input_dir))
        case = _case(Category.IO, "ingest", params)
        workload = WorkloadGenerator().generate(case)
        (input_dir / "a.txt").unlink()
        with pytest.raises(BenchIoError):
            ingest(workload, case.case_id)


def _dataset_case(path, variant, operation, **kwargs) -> BenchmarkCase:
    params = DatasetParams(variant=variant, operation=operation, path=str(path), **kwargs)
    return _case(Category.VSA_DATASET, variant.value + "." + operation.value, params, reuse_inputs=True)


class TestDatasetBinding:

    @pytest.mark.parametrize("variant,operation", [
        (VsaVariant.SPARSE, VsaOperation.BUNDLE),
        (VsaVariant.SPARSE, VsaOperation.COSINE),
        (VsaVariant.PACKED, VsaOperation.BIND),
        (VsaVariant.PACKED, VsaOperation.DOT),
    ])
    def test_output_is_stable_digest(self, dataset_file, variant, operation):
        case = _dataset_case(dataset_file, variant, operation)
        gen = WorkloadGenerator()
        binding = ReferenceBinding()
        first = binding.bind(case, gen.generate(case))()
        assert len(first) == 64
        assert binding.bind(case, gen.generate(case))() == first

    def test_packed_and_sparse_bundle_agree_per_group(self, dataset_file):
        workload = WorkloadGenerator().generate(_dataset_case(dataset_file, VsaVariant.SPARSE, VsaOperation.BUNDLE))
        for a, b in workload.groups:
            assert np.array_equal(packed_bundle(a.to_dense(), b.to_dense()), sparse_bundle(a, b).to_dense())

    def test_extras_count_groups(self, dataset_file):
        case = _dataset_case(dataset_file, VsaVariant.SPARSE, VsaOperation.BIND, max_ops=3)
        workload = WorkloadGenerator().generate(case)
        binding = ReferenceBinding()
        extras = binding.extras(case, workload, binding.bind(case, workload)())
        assert extras == {"dimension": 256, "vectors": 9, "ops": 3, "operands": 2}

    def test_carry_save_over_triples(self, dataset_file):
        case = _dataset_case(
            dataset_file, VsaVariant.HYBRID, VsaOperation.CARRY_SAVE_BUNDLE, bundle_width=3,
        )
        workload = WorkloadGenerator().generate(case)
        binding = ReferenceBinding()
        extras = binding.extras(case, workload, binding.bind(case, workload)())
        assert extras["ops"] == 2
        assert extras["operands"] == 3

    def test_bitsliced_dataset_case_is_unsupported(self, dataset_file):
        case = _dataset_case(dataset_file, VsaVariant.BITSLICED, VsaOperation.BIND)
        assert "vsa.bitsliced" in ReferenceBinding().unsupported_reason(case)
