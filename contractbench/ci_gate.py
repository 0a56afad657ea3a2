#!/usr/bin/env python3
# =============================================================================
# contractbench/ci_gate.py
# =============================================================================
#
# PURPOSE
# -------
# CI enforcement script. Runs the contract benchmark suite against the
# checked-in baseline and maps its exit code to a merge verdict.
#
#   python -m contractbench.ci_gate [--baseline NAME] [--output-root DIR]
#                                   [--input-dir DIR]
#
# Exit codes:
#   0 -- bench exit 0 (PASS / WARN / UNBASELINED / SKIPPED): merge permitted.
#   1 -- any non-zero bench exit: merge blocked.
# =============================================================================

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from contractbench.constants import DEFAULT_BASELINE_NAME, DEFAULT_OUTPUT_ROOT
from contractbench.run_bench import run_bench


_VERDICTS = {
    1: "performance contract violated (FAIL / OutputMismatch / NonDeterministicOutput / TimedOut)",
    2: "internal error (configuration, storage or operation failure)",
}


def _bench_argv(args: argparse.Namespace) -> List[str]:
    argv = [
        "suite",
        "--profile", "quick",
        "--baseline", args.baseline,
        "--output-root", args.output_root,
    ]
    if args.input_dir:
        argv += ["--input-dir", args.input_dir]
    return argv


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the bench and return the gate exit code.

    Returns:
        0 if the bench exited 0.
        1 otherwise, including when the bench could not be started.
    """
    parser = argparse.ArgumentParser(prog="python -m contractbench.ci_gate")
    parser.add_argument("--baseline", default=DEFAULT_BASELINE_NAME)
    parser.add_argument("--output-root", default=DEFAULT_OUTPUT_ROOT)
    parser.add_argument("--input-dir", default=None)
    args = parser.parse_args(argv)

    try:
        result = run_bench(_bench_argv(args))
    except OSError as exc:
        print("CI-BENCH-GATE EXCEPTION: " + str(exc), file=sys.stderr)
        return 1

    if result == 0:
        print("CI-BENCH-GATE: bench result=PASS. Merge permitted.")
        return 0
    verdict = _VERDICTS.get(result, "unexpected exit code")
    print("CI-BENCH-GATE: bench result=" + str(result) + " (" + verdict + "). Merge BLOCKED.", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
