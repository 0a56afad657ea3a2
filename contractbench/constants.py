# contractbench/constants.py
# Version: 0.3.0
# Global benchmark constants. Fixed for reproducibility: a case cannot
# override the trim fraction or the severity thresholds.
#
# Standard import pattern:
#   from contractbench.constants import (
#       TRIM_FRACTION,
#       WARN_THRESHOLD,
#       FAIL_THRESHOLD,
#       MIN_ITERATIONS,
#       DEFAULT_CASE_TIMEOUT_S,
#   )

from enum import Enum


# ---------------------------------------------------------------------------
# AGGREGATION
# ---------------------------------------------------------------------------

TRIM_FRACTION:  float = 0.05    # dropped from EACH tail before averaging
MIN_ITERATIONS: int   = 3       # trimming needs a minimum population


# ---------------------------------------------------------------------------
# SEVERITY BANDS (delta on trimmed mean)
# ---------------------------------------------------------------------------
#   delta <  WARN_THRESHOLD                  -> PASS
#   WARN_THRESHOLD <= delta < FAIL_THRESHOLD -> WARN
#   delta >= FAIL_THRESHOLD                  -> FAIL
#   fresh < baseline                         -> PASS (any improvement)

WARN_THRESHOLD: float = 0.05
FAIL_THRESHOLD: float = 0.10


# ---------------------------------------------------------------------------
# TIMEOUTS
# ---------------------------------------------------------------------------

DEFAULT_CASE_TIMEOUT_S: float = 120.0
DEFAULT_RUN_TIMEOUT_S:  float = 1800.0


# ---------------------------------------------------------------------------
# PROFILES
# ---------------------------------------------------------------------------

class Profile(str, Enum):
    """
    Iteration budget for a run.

    QUICK -- local development and pull-request CI.
    FULL  -- nightly runs and baseline refreshes.
    """
    QUICK = "quick"
    FULL  = "full"


# (warm_up, iterations) per profile.
PROFILE_ITERATIONS: dict = {
    Profile.QUICK: (32, 300),
    Profile.FULL:  (200, 3_000),
}

# Retrieval cases time one query pass per iteration, so they use a smaller
# budget than the per-operation VSA microbenches.
RETRIEVAL_PROFILE_ITERATIONS: dict = {
    Profile.QUICK: (2, 10),
    Profile.FULL:  (10, 50),
}

# I/O cases touch the filesystem on every iteration.
IO_PROFILE_ITERATIONS: dict = {
    Profile.QUICK: (1, 5),
    Profile.FULL:  (3, 20),
}

# Dataset cases run every operand group of the file per iteration.
DATASET_PROFILE_ITERATIONS: dict = {
    Profile.QUICK: (1, 5),
    Profile.FULL:  (3, 20),
}

# Cap on operand groups per dataset iteration; 0 means every group.
DATASET_PROFILE_MAX_OPS: dict = {
    Profile.QUICK: 10_000,
    Profile.FULL:  0,
}


# ---------------------------------------------------------------------------
# WORKLOAD DEFAULTS
# ---------------------------------------------------------------------------

DEFAULT_SEED:      int = 0
DEFAULT_DIMENSION: int = 10_000
DEFAULT_SPARSITY:  int = DEFAULT_DIMENSION // 100   # ~1% density per sign


# ---------------------------------------------------------------------------
# STORAGE
# ---------------------------------------------------------------------------

DEFAULT_BASELINE_NAME: str = "default"
DEFAULT_OUTPUT_ROOT:   str = "bench_results"
RESULTS_SUBDIR:        str = "results"
BASELINES_SUBDIR:      str = "baselines"
