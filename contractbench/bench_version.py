# contractbench/bench_version.py
# Version constants. Single authoritative definition.
# Referenced by the baseline store, the report writer, the workload generator
# and the CLI for version stamping.
# A change to any storage or generator constant requires a bench version
# increment and a fresh baseline.

BENCH_VERSION: str = "0.3.0"

# Baseline snapshot format written by BaselineStore.save().
BASELINE_FORMAT_VERSION: int = 1

# Formats BaselineStore.load() and Comparator.compare() will interpret.
# Anything outside this set is rejected, never read best-effort.
SUPPORTED_BASELINE_VERSIONS: frozenset = frozenset({1})

# Result file schema written by ReportWriter.
REPORT_SCHEMA_VERSION: int = 1

# Workload generation algorithm. Bumped whenever the byte stream produced for
# a given (parameters, seed) pair could change.
GENERATOR_ALGORITHM: str = "pcg64-fisher-yates/1"


def is_supported_baseline_version(version: object) -> bool:
    """
    True only for an int in SUPPORTED_BASELINE_VERSIONS. JSON true and 1.0
    compare equal to 1 and are rejected.
    """
    return type(version) is int and version in SUPPORTED_BASELINE_VERSIONS
