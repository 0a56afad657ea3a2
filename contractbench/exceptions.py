# =============================================================================
# contractbench/exceptions.py
# =============================================================================
#
# SCOPE
# -----
# Exception hierarchy for the contract benchmark engine, plus the failure
# type registry that maps every taxonomy entry to a process exit code.
# All exceptions are pure value objects: no side effects, no I/O.
#
# EXCEPTION HIERARCHY
# -------------------
#   BenchError(Exception)                          -- base; never raised directly
#     InvalidParameterError(BenchError)            -- bad case configuration
#     InsufficientSamplesError(BenchError)         -- fewer than MIN_ITERATIONS
#     NonDeterministicOutputError(BenchError)      -- fingerprints differ
#     CaseTimedOutError(BenchError)                -- case exceeded its timeout
#     UnsupportedBaselineVersionError(BenchError)  -- unknown baseline format
#     BenchIoError(BenchError)                     -- filesystem read/write failure
#
# MESSAGE CONTRACT
# ----------------
# Every message starts with the failure type name followed by ": ", names the
# case when one applies, and is derived only from constructor arguments.
# =============================================================================

from __future__ import annotations

from typing import Any, Dict


# =============================================================================
# FAILURE TYPE REGISTRY
# =============================================================================
# Exit code mapping:
#   Code 0 -- nothing in this table; PASS / WARN / UNBASELINED / SKIPPED
#   Code 1 -- contract regressions: timing FAIL, output mismatch,
#             non-deterministic output, timeout
#   Code 2 -- internal errors: configuration, storage, unexpected operation
#             failures

FAILURE_TYPES: Dict[str, int] = {
    # Exit Code 1
    "TimingRegression":           1,
    "OutputMismatch":             1,
    "NonDeterministicOutput":     1,
    "TimedOut":                   1,
    # Exit Code 2
    "InvalidParameter":           2,
    "InsufficientSamples":        2,
    "UnsupportedBaselineVersion": 2,
    "IoError":                    2,
    "OperationError":             2,
}


def exit_code_for(failure_type: str) -> int:
    """Exit code for a failure type. Unknown types are internal errors."""
    return FAILURE_TYPES.get(failure_type, 2)


# =============================================================================
# BASE EXCEPTION
# =============================================================================

class BenchError(Exception):
    """
    Base class for all contract benchmark exceptions.

    Raised directly only for operation errors (failure_type "OperationError");
    every other taxonomy entry has a concrete subclass.

    Attributes:
        failure_type: Key from FAILURE_TYPES identifying the taxonomy entry.
        case_id:      Benchmark case the failure belongs to, or empty string
                      for run-level failures.
        message:      Human-readable description. Always non-empty.
    """

    failure_type: str = "OperationError"

    def __init__(self, message: str, case_id: str = "") -> None:
        if not isinstance(message, str) or not message:
            raise ValueError("BenchError: message must be a non-empty string")
        super().__init__(message)
        self.case_id: str = case_id
        self.message: str = message

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.failure_type)

    def __repr__(self) -> str:
        return (
            self.__class__.__name__
            + "(case_id=" + repr(self.case_id)
            + ", message=" + repr(self.message)
            + ")"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BenchError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.case_id == other.case_id
            and self.message == other.message
        )

    __hash__ = Exception.__hash__


def _prefix(failure_type: str, case_id: str) -> str:
    if case_id:
        return failure_type + ": case '" + case_id + "' "
    return failure_type + ": "


# =============================================================================
# CONCRETE EXCEPTIONS
# =============================================================================

class InvalidParameterError(BenchError):
    """
    Raised when a case parameter, or a combination of parameters, cannot
    produce a well-formed workload.

    Message format:
        "InvalidParameter: case '<case_id>' field '<field_name>' violates
         constraint '<constraint>': got <value>."
    """

    failure_type = "InvalidParameter"

    def __init__(
        self,
        field_name: str,
        value:      Any,
        constraint: str,
        case_id:    str = "",
    ) -> None:
        if not field_name:
            raise ValueError("InvalidParameterError: field_name must be non-empty")
        if not constraint:
            raise ValueError("InvalidParameterError: constraint must be non-empty")
        message = (
            _prefix(self.failure_type, case_id)
            + "field '" + field_name
            + "' violates constraint '" + constraint
            + "': got " + repr(value) + "."
        )
        super().__init__(message, case_id=case_id)
        self.field_name: str = field_name
        self.value:      Any = value
        self.constraint: str = constraint


class InsufficientSamplesError(BenchError):
    """
    Raised when a case is configured, or an aggregation is attempted, with
    fewer samples than MIN_ITERATIONS.
    """

    failure_type = "InsufficientSamples"

    def __init__(self, sample_count: int, minimum: int, case_id: str = "") -> None:
        message = (
            _prefix(self.failure_type, case_id)
            + "has " + str(sample_count)
            + " sample(s); at least " + str(minimum)
            + " are required for trimmed statistics."
        )
        super().__init__(message, case_id=case_id)
        self.sample_count: int = sample_count
        self.minimum:      int = minimum


class NonDeterministicOutputError(BenchError):
    """
    Raised when output fingerprints differ across iterations of one case.

    Never retried: identical input must give identical output, so a
    mismatch is a defect in the operation under test.
    """

    failure_type = "NonDeterministicOutput"

    def __init__(
        self,
        expected_fingerprint: str,
        observed_fingerprint: str,
        iteration:            int,
        case_id:              str = "",
    ) -> None:
        message = (
            _prefix(self.failure_type, case_id)
            + "iteration " + str(iteration)
            + " produced fingerprint " + observed_fingerprint[:16]
            + " but iteration 0 produced " + expected_fingerprint[:16] + "."
        )
        super().__init__(message, case_id=case_id)
        self.expected_fingerprint: str = expected_fingerprint
        self.observed_fingerprint: str = observed_fingerprint
        self.iteration:            int = iteration


class CaseTimedOutError(BenchError):
    """Raised when a case, or the whole run, exceeds its time budget."""

    failure_type = "TimedOut"

    def __init__(
        self,
        timeout_s:            float,
        completed_iterations: int,
        case_id:              str = "",
    ) -> None:
        message = (
            _prefix(self.failure_type, case_id)
            + "exceeded its " + repr(timeout_s)
            + "s budget after " + str(completed_iterations)
            + " timed iteration(s)."
        )
        super().__init__(message, case_id=case_id)
        self.timeout_s:            float = timeout_s
        self.completed_iterations: int   = completed_iterations


class UnsupportedBaselineVersionError(BenchError):
    """Raised when a baseline declares a format version this build cannot read."""

    failure_type = "UnsupportedBaselineVersion"

    def __init__(
        self,
        found:     Any,
        supported: frozenset,
        source:    str,
        case_id:   str = "",
    ) -> None:
        message = (
            _prefix(self.failure_type, case_id)
            + "baseline '" + source
            + "' has format_version " + repr(found)
            + "; supported: " + repr(sorted(supported)) + "."
        )
        super().__init__(message, case_id=case_id)
        self.found:     Any       = found
        self.supported: frozenset = supported
        self.source:    str       = source


class BenchIoError(BenchError):
    """Raised when a baseline or result file cannot be read or written."""

    failure_type = "IoError"

    def __init__(self, path: str, detail: str, case_id: str = "") -> None:
        message = (
            _prefix(self.failure_type, case_id)
            + "'" + path + "': " + detail
        )
        super().__init__(message, case_id=case_id)
        self.path:   str = path
        self.detail: str = detail


__all__ = [
    "FAILURE_TYPES",
    "exit_code_for",
    "BenchError",
    "InvalidParameterError",
    "InsufficientSamplesError",
    "NonDeterministicOutputError",
    "CaseTimedOutError",
    "UnsupportedBaselineVersionError",
    "BenchIoError",
]
