#!/usr/bin/env python3
# scripts/run_ci_checks.py
# Two-stage merge check for contractbench.
#
#   tests  pytest over tests/ with a coverage report   -> exit 1 on failure
#   bench  python -m contractbench.ci_gate (quick run) -> exit 2 on failure
#
# Stages run in order and stop at the first failure. --skip-bench runs the
# tests stage only.

from __future__ import annotations

import pathlib
import subprocess
import sys
from typing import NamedTuple

_ROOT = pathlib.Path(__file__).resolve().parent.parent
_RULE = 72


class Stage(NamedTuple):
    name:      str
    command:   list
    exit_code: int


STAGES = (
    Stage("tests", [sys.executable, "-m", "pytest", "--cov=contractbench", "--cov-report=term-missing"], 1),
    Stage("bench", [sys.executable, "-m", "contractbench.ci_gate"], 2),
)


def _banner(*lines: str, rule: str = "=") -> None:
    print(rule * _RULE)
    for line in lines:
        print(line)
    sys.stdout.flush()


def run_stage(stage: Stage) -> int:
    """Child output goes straight to this process's stdout/stderr."""
    _banner("stage " + stage.name + ": " + " ".join(stage.command))
    print("-" * _RULE)
    sys.stdout.flush()
    return subprocess.run(stage.command, cwd=str(_ROOT)).returncode


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    stages = STAGES[:1] if "--skip-bench" in argv else STAGES

    passed = []
    for stage in stages:
        rc = run_stage(stage)
        if rc != 0:
            _banner(
                "CI RESULT: FAIL  [stage=" + stage.name + "  exit_code=" + str(rc) + "]",
                "Merge BLOCKED.",
            )
            print("=" * _RULE)
            return stage.exit_code
        passed.append(stage.name)

    skipped = [s.name for s in STAGES if s not in stages]
    summary = "stages=" + ",".join(passed)
    if skipped:
        summary += "; skipped=" + ",".join(skipped)
    _banner("CI RESULT: PASS  [" + summary + "]", "Merge permitted.")
    print("=" * _RULE)
    return 0


if __name__ == "__main__":
    sys.exit(main())
