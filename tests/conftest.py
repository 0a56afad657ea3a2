from datetime import datetime, timezone

import pytest

from contractbench.data_models import (
    BenchmarkCase,
    Category,
    DurationStats,
    EnvironmentFingerprint,
    Measurement,
    VsaOperation,
    VsaParams,
    VsaVariant,
)
from contractbench.dataset import GenerateConfig, write_dataset_streaming


_FIXED_NOW = datetime(2026, 10, 18, 9, 30, 5, tzinfo=timezone.utc)


class StepClock:
    """Fake monotonic nanosecond clock. Every read advances by `step`."""

    def __init__(self, start: int = 0, step: int = 1_000) -> None:
        self.now = start
        self.step = step
        self.reads = 0

    def __call__(self) -> int:
        self.reads += 1
        self.now += self.step
        return self.now


@pytest.fixture
def fixed_environment() -> EnvironmentFingerprint:
    """Environment fingerprint independent of the test host."""
    return EnvironmentFingerprint(
        cpu_model="test-cpu",
        cpu_count=8,
        os_name="Linux",
        os_release="6.0.0",
        python_implementation="CPython",
        python_version="3.11.6",
        numpy_version="1.26.4",
        build_mode="debug",
    )


@pytest.fixture
def other_environment(fixed_environment) -> EnvironmentFingerprint:
    """Same as fixed_environment except for the CPU count."""
    d = fixed_environment.to_dict()
    d["cpu_count"] = 64
    return EnvironmentFingerprint.from_dict(d)


@pytest.fixture
def step_clock() -> StepClock:
    """Every clock read advances 1 microsecond, so every timed sample is 1000 ns."""
    return StepClock()


@pytest.fixture
def fixed_wall_clock():
    return lambda: _FIXED_NOW


@pytest.fixture
def make_measurement(fixed_environment):
    """Factory for Measurements with controllable trimmed mean and fingerprint."""

    def _make(
        case_id="vsa.sparse.bundle",
        trimmed_mean_ns=1_000.0,
        fingerprint="ab" * 32,
        environment=None,
        extras=(),
    ) -> Measurement:
        return Measurement(
            case_id=case_id,
            timestamp_iso=_FIXED_NOW.isoformat(),
            environment=environment if environment is not None else fixed_environment,
            stats=DurationStats(
                trimmed_mean_ns=trimmed_mean_ns,
                median_ns=trimmed_mean_ns,
                min_ns=trimmed_mean_ns * 0.9,
                max_ns=trimmed_mean_ns * 1.5,
                stddev_ns=12.5,
                trimmed_count=18,
            ),
            output_fingerprint=fingerprint,
            sample_count=20,
            extras=extras,
        )

    return _make


@pytest.fixture
def small_vsa_case() -> BenchmarkCase:
    """Sparse bundle over 512-dimensional operands; 3 timed iterations."""
    return BenchmarkCase(
        category=Category.VSA,
        name="sparse.bundle",
        params=VsaParams(
            variant=VsaVariant.SPARSE,
            operation=VsaOperation.BUNDLE,
            dimension=512,
            sparsity=8,
        ),
        iterations=3,
        warm_up=1,
        seed=7,
    )


@pytest.fixture
def input_dir(tmp_path):
    """Small corpus directory for io cases: three files, one nested."""
    root = tmp_path / "corpus"
    (root / "nested").mkdir(parents=True)
    (root / "a.txt").write_bytes(b"alpha\n" * 100)
    (root / "b.bin").write_bytes(bytes(range(256)) * 40)
    (root / "nested" / "c.txt").write_bytes(b"")
    return root


@pytest.fixture
def dataset_file(tmp_path):
    """Nine 256-dimensional vectors: four operand pairs, two operand triples."""
    path = tmp_path / "vectors.embr"
    write_dataset_streaming(path, GenerateConfig(count=9, dimension=256, seed=5, sparsity=4))
    return path
