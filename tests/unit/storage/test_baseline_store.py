import json
import math
import struct
from datetime import datetime, timezone

import numpy as np
import pytest

from contractbench.bench_version import BASELINE_FORMAT_VERSION, BENCH_VERSION
from contractbench.data_models.baseline import Provenance
from contractbench.exceptions import (
    BenchIoError,
    InvalidParameterError,
    UnsupportedBaselineVersionError,
)
from contractbench.storage import BaselineStore, atomic_write_json, validate_baseline_name
from contractbench.storage.measurement_codec import (
    deserialize_float,
    load_measurement,
    serialize_float,
    serialize_measurement,
)


_SAVED_AT = datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc)
_PROVENANCE = Provenance(git_revision="0123456789ab", label="nightly")


def _bits(x: float) -> bytes:
    return struct.pack(">d", x)


@pytest.fixture
def store(tmp_path) -> BaselineStore:
    return BaselineStore(tmp_path)


class TestFloatCodec:

    @pytest.mark.parametrize("value", [0.0, -0.0, 1.0, 1e-300, 123456.789, 5e-324, float("inf"), float("-inf")])
    def test_bit_exact(self, value):
        assert _bits(deserialize_float(serialize_float(value))) == _bits(value)

    def test_nan(self):
        assert serialize_float(float("nan")) == "nan"
        assert math.isnan(deserialize_float("nan"))

    def test_signed_zeros_distinct(self):
        assert serialize_float(0.0) != serialize_float(-0.0)

    def test_measurement_round_trip(self, make_measurement):
        m = make_measurement(extras=(("dimension", 10_000), ("recall_at_k", 0.1 + 0.2)))
        assert load_measurement(serialize_measurement(m)) == m

    def test_float_extras_tagged(self, make_measurement):
        d = serialize_measurement(make_measurement(extras=(("recall_at_k", 0.5),)))
        assert d["extras"]["recall_at_k"] == {"float": (0.5).hex()}


class TestBaselineName:

    @pytest.mark.parametrize("name", ["default", "nightly-2026.10.18", "release_1"])
    def test_valid(self, name):
        assert validate_baseline_name(name) == name

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "../x", "with space"])
    def test_invalid(self, name):
        with pytest.raises(InvalidParameterError, match="baseline_name"):
            validate_baseline_name(name)


class TestBaselineStore:

    def test_missing_baseline_is_none(self, store):
        assert store.load("default") is None

    def test_save_then_load_is_bit_exact(self, store, make_measurement):
        ms = [
            make_measurement(case_id="vsa.sparse.bundle", trimmed_mean_ns=1234.5678),
            make_measurement(case_id="vsa.packed.dot", trimmed_mean_ns=0.1 + 0.2),
        ]
        path = store.save("default", ms, _PROVENANCE, _SAVED_AT)
        assert path == store.directory / "default.json"
        loaded = store.load("default")
        assert loaded.case_ids() == ("vsa.packed.dot", "vsa.sparse.bundle")
        assert loaded.get("vsa.packed.dot").measurement == ms[1]
        assert _bits(loaded.get("vsa.packed.dot").measurement.stats.trimmed_mean_ns) == _bits(0.1 + 0.2)
        assert loaded.provenance == _PROVENANCE
        assert loaded.bench_version == BENCH_VERSION
        assert loaded.format_version == BASELINE_FORMAT_VERSION
        assert loaded.saved_at_iso == _SAVED_AT.isoformat()

    def test_get_unknown_case_is_none(self, store, make_measurement):
        store.save("default", [make_measurement()], _PROVENANCE, _SAVED_AT)
        assert store.load("default").get("vsa.nope") is None

    def test_file_layout(self, store, make_measurement):
        store.save("default", [make_measurement()], _PROVENANCE, _SAVED_AT)
        payload = json.loads(store.path_for("default").read_text())
        assert payload["format_version"] == 1
        assert payload["case_count"] == 1
        assert payload["provenance"] == {"git_revision": "0123456789ab", "label": "nightly"}
        assert payload["entries"]["vsa.sparse.bundle"]["format_version"] == 1

    def test_save_replaces_whole_snapshot(self, store, make_measurement):
        store.save("default", [make_measurement(case_id="vsa.a")], _PROVENANCE, _SAVED_AT)
        store.save("default", [make_measurement(case_id="vsa.b")], _PROVENANCE, _SAVED_AT)
        assert store.load("default").case_ids() == ("vsa.b",)

    def test_named_snapshots_independent(self, store, make_measurement):
        store.save("one", [make_measurement(case_id="vsa.a")], _PROVENANCE, _SAVED_AT)
        store.save("two", [make_measurement(case_id="vsa.b")], _PROVENANCE, _SAVED_AT)
        assert store.list_names() == ["one", "two"]
        assert store.load("one").case_ids() == ("vsa.a",)

    def test_no_temp_files_left(self, store, make_measurement):
        store.save("default", [make_measurement()], _PROVENANCE, _SAVED_AT)
        assert [p.name for p in store.directory.iterdir()] == ["default.json"]

    def test_duplicate_case_ids_rejected(self, store, make_measurement):
        with pytest.raises(InvalidParameterError, match="unique"):
            store.save("default", [make_measurement(), make_measurement()], _PROVENANCE, _SAVED_AT)

    def test_unsupported_file_version_rejected(self, store, make_measurement):
        store.save("default", [make_measurement()], _PROVENANCE, _SAVED_AT)
        path = store.path_for("default")
        payload = json.loads(path.read_text())
        payload["format_version"] = 99
        path.write_text(json.dumps(payload))
        with pytest.raises(UnsupportedBaselineVersionError) as info:
            store.load("default")
        assert info.value.found == 99

    def test_unsupported_entry_version_kept_without_measurement(self, store, make_measurement):
        store.save("default", [make_measurement(case_id="vsa.a"), make_measurement(case_id="vsa.b")],
                   _PROVENANCE, _SAVED_AT)
        path = store.path_for("default")
        payload = json.loads(path.read_text())
        payload["entries"]["vsa.a"] = {"format_version": 7, "measurement": {"shape": "unknown"}}
        path.write_text(json.dumps(payload))
        loaded = store.load("default")
        assert loaded.get("vsa.a").measurement is None
        assert loaded.get("vsa.a").format_version == 7
        assert loaded.get("vsa.b").measurement is not None

    @pytest.mark.parametrize("version", [True, 1.0, "1"])
    def test_file_version_must_be_an_int(self, store, make_measurement, version):
        store.save("default", [make_measurement()], _PROVENANCE, _SAVED_AT)
        path = store.path_for("default")
        payload = json.loads(path.read_text())
        payload["format_version"] = version
        path.write_text(json.dumps(payload))
        with pytest.raises(UnsupportedBaselineVersionError) as info:
            store.load("default")
        assert info.value.found == version

    @pytest.mark.parametrize("version", [True, 1.0])
    def test_entry_version_must_be_an_int(self, store, make_measurement, version):
        store.save("default", [make_measurement(case_id="vsa.a")], _PROVENANCE, _SAVED_AT)
        path = store.path_for("default")
        payload = json.loads(path.read_text())
        payload["entries"]["vsa.a"]["format_version"] = version
        path.write_text(json.dumps(payload))
        assert store.load("default").get("vsa.a").measurement is None

    def test_corrupt_json_is_io_error(self, store):
        store.directory.mkdir(parents=True)
        store.path_for("default").write_text("{not json")
        with pytest.raises(BenchIoError, match="cannot read"):
            store.load("default")

    def test_case_count_mismatch_is_io_error(self, store, make_measurement):
        store.save("default", [make_measurement()], _PROVENANCE, _SAVED_AT)
        path = store.path_for("default")
        payload = json.loads(path.read_text())
        payload["case_count"] = 5
        path.write_text(json.dumps(payload))
        with pytest.raises(BenchIoError, match="case_count"):
            store.load("default")

    def test_malformed_measurement_is_io_error(self, store, make_measurement):
        store.save("default", [make_measurement()], _PROVENANCE, _SAVED_AT)
        path = store.path_for("default")
        payload = json.loads(path.read_text())
        del payload["entries"]["vsa.sparse.bundle"]["measurement"]["stats"]
        path.write_text(json.dumps(payload))
        with pytest.raises(BenchIoError, match="malformed"):
            store.load("default")

    def test_entry_key_must_match_measurement(self, store, make_measurement):
        store.save("default", [make_measurement(case_id="vsa.a")], _PROVENANCE, _SAVED_AT)
        path = store.path_for("default")
        payload = json.loads(path.read_text())
        payload["entries"] = {"vsa.b": payload["entries"]["vsa.a"]}
        path.write_text(json.dumps(payload))
        with pytest.raises(BenchIoError, match="entry key"):
            store.load("default")

    def test_invalid_name_rejected_on_load(self, store):
        with pytest.raises(InvalidParameterError):
            store.load("../escape")


class TestAtomicWrite:

    def test_creates_parent_directories(self, tmp_path):
        path = atomic_write_json(tmp_path / "a" / "b" / "x.json", {"k": 1})
        assert json.loads(path.read_text()) == {"k": 1}

    def test_non_finite_float_rejected_before_writing(self, tmp_path):
        with pytest.raises(BenchIoError, match="cannot serialize"):
            atomic_write_json(tmp_path / "x.json", {"k": float("nan")})
        assert not (tmp_path / "x.json").exists()

    def test_unserializable_value_is_io_error(self, tmp_path):
        with pytest.raises(BenchIoError, match="cannot serialize"):
            atomic_write_json(tmp_path / "x.json", {"bytes_processed": np.int64(4_096)})
        assert list(tmp_path.iterdir()) == []

    def test_unwritable_target_is_io_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(BenchIoError):
            atomic_write_json(blocker / "x.json", {"k": 1})
