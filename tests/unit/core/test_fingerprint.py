import numpy as np
import pytest

from contractbench.fingerprint import canonical_bytes, fingerprint
from contractbench.workload_generator import SparseTernaryVec


class TestFingerprintTypes:
    """Values of different types never share an encoding."""

    def test_int_float_str_distinct(self):
        assert len({fingerprint(1), fingerprint(1.0), fingerprint("1")}) == 3

    def test_bool_and_int_distinct(self):
        assert fingerprint(True) != fingerprint(1)

    def test_numpy_bool_matches_python_bool(self):
        assert fingerprint(np.bool_(True)) == fingerprint(True)

    def test_numpy_integer_matches_python_int(self):
        assert fingerprint(np.int64(42)) == fingerprint(42)

    def test_str_and_bytes_distinct(self):
        assert fingerprint("ab") != fingerprint(b"ab")

    def test_none(self):
        assert canonical_bytes(None) == b"N"

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError, match="unsupported"):
            fingerprint(object())

    def test_object_array_raises(self):
        with pytest.raises(TypeError):
            fingerprint(np.array([1, "a"], dtype=object))


class TestFingerprintExactness:
    """No tolerance: bit-level differences change the digest."""

    def test_signed_zero_distinct(self):
        assert fingerprint(0.0) != fingerprint(-0.0)

    def test_adjacent_floats_distinct(self):
        assert fingerprint(1.0) != fingerprint(np.nextafter(1.0, 2.0))

    def test_digest_is_64_lowercase_hex(self):
        digest = fingerprint([1, 2, 3])
        assert len(digest) == 64
        assert digest == digest.lower()

    def test_dict_key_order_irrelevant(self):
        assert fingerprint({"a": 1, "b": 2}) == fingerprint({"b": 2, "a": 1})

    def test_list_order_matters(self):
        assert fingerprint([1, 2]) != fingerprint([2, 1])

    def test_nesting_matters(self):
        assert fingerprint([[1], 2]) != fingerprint([1, [2]])


class TestFingerprintArrays:

    def test_dtype_matters(self):
        assert fingerprint(np.array([1, 2], dtype=np.int8)) != fingerprint(np.array([1, 2], dtype=np.int16))

    def test_shape_matters(self):
        a = np.arange(6, dtype=np.int32)
        assert fingerprint(a.reshape(2, 3)) != fingerprint(a.reshape(3, 2))

    def test_byte_order_normalised(self):
        little = np.array([1, 2, 3], dtype="<i4")
        big = np.array([1, 2, 3], dtype=">i4")
        assert fingerprint(little) == fingerprint(big)

    def test_non_contiguous_view_matches_copy(self):
        a = np.arange(10, dtype=np.int64)[::2]
        assert fingerprint(a) == fingerprint(np.ascontiguousarray(a))


class TestFingerprintObjects:

    def test_sparse_vector_uses_canonical_bytes(self):
        v = SparseTernaryVec(16, [1, 3], [5])
        assert canonical_bytes(v).startswith(b"o")
        assert fingerprint(v) == fingerprint(SparseTernaryVec(16, [1, 3], [5]))

    def test_sparse_vector_sign_matters(self):
        assert fingerprint(SparseTernaryVec(16, [1], [5])) != fingerprint(SparseTernaryVec(16, [5], [1]))
