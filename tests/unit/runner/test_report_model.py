import pytest

from contractbench.data_models.comparison import Severity
from contractbench.data_models.report import CaseOutcome, ReportEntry, compute_exit_code


def _entry(outcome=CaseOutcome.MEASURED, severity=None, failure_type="") -> ReportEntry:
    return ReportEntry(case_id="vsa.x", outcome=outcome, severity=severity, failure_type=failure_type)


class TestReportEntryExitCode:

    @pytest.mark.parametrize("severity", [Severity.PASS, Severity.WARN, Severity.UNBASELINED])
    def test_non_failing_severities(self, severity):
        assert _entry(severity=severity).exit_code == 0

    def test_fail(self):
        assert _entry(severity=Severity.FAIL).exit_code == 1

    def test_output_mismatch(self):
        assert _entry(severity=Severity.FAIL, failure_type="OutputMismatch").exit_code == 1

    def test_skipped(self):
        assert _entry(outcome=CaseOutcome.SKIPPED).exit_code == 0

    def test_timed_out(self):
        assert _entry(outcome=CaseOutcome.TIMED_OUT, failure_type="TimedOut").exit_code == 1

    def test_non_deterministic(self):
        assert _entry(outcome=CaseOutcome.ERRORED, failure_type="NonDeterministicOutput").exit_code == 1

    @pytest.mark.parametrize("failure_type", ["InvalidParameter", "InsufficientSamples", "IoError", "OperationError"])
    def test_internal_errors(self, failure_type):
        assert _entry(outcome=CaseOutcome.ERRORED, failure_type=failure_type).exit_code == 2

    def test_unbaselined_with_rejected_baseline(self):
        entry = _entry(severity=Severity.UNBASELINED, failure_type="UnsupportedBaselineVersion")
        assert entry.exit_code == 2


class TestComputeExitCode:

    def test_empty_run_passes(self):
        assert compute_exit_code([]) == 0

    def test_worst_wins(self):
        entries = [
            _entry(severity=Severity.PASS),
            _entry(severity=Severity.FAIL),
            _entry(outcome=CaseOutcome.ERRORED, failure_type="OperationError"),
        ]
        assert compute_exit_code(entries) == 2

    def test_fail_beats_warn(self):
        assert compute_exit_code([_entry(severity=Severity.WARN), _entry(severity=Severity.FAIL)]) == 1

    def test_warn_and_skip_pass(self):
        assert compute_exit_code([_entry(severity=Severity.WARN), _entry(outcome=CaseOutcome.SKIPPED)]) == 0

    def test_run_level_failure_counts(self):
        assert compute_exit_code([_entry(severity=Severity.PASS)], ["IoError"]) == 2
