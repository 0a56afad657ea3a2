import pytest

from contractbench import ci_gate


@pytest.fixture
def fake_bench(monkeypatch):
    """Replaces the bench subprocess; records argv and returns a preset exit code."""
    state = {"argv": None, "result": 0}

    def _run(argv):
        state["argv"] = argv
        if isinstance(state["result"], Exception):
            raise state["result"]
        return state["result"]

    monkeypatch.setattr(ci_gate, "run_bench", _run)
    return state


class TestCiGate:

    def test_pass_permits_merge(self, fake_bench, capsys):
        assert ci_gate.main([]) == 0
        assert "Merge permitted" in capsys.readouterr().out

    def test_runs_quick_suite_against_baseline(self, fake_bench):
        ci_gate.main(["--baseline", "main", "--output-root", "out"])
        argv = fake_bench["argv"]
        assert argv[0] == "suite"
        assert argv[argv.index("--profile") + 1] == "quick"
        assert argv[argv.index("--baseline") + 1] == "main"
        assert argv[argv.index("--output-root") + 1] == "out"
        assert "--input-dir" not in argv

    def test_input_dir_forwarded(self, fake_bench):
        ci_gate.main(["--input-dir", "corpus"])
        argv = fake_bench["argv"]
        assert argv[argv.index("--input-dir") + 1] == "corpus"

    @pytest.mark.parametrize("bench_exit,verdict", [
        (1, "performance contract violated"),
        (2, "internal error"),
        (-11, "unexpected exit code"),
    ])
    def test_failure_blocks_merge(self, fake_bench, capsys, bench_exit, verdict):
        fake_bench["result"] = bench_exit
        assert ci_gate.main([]) == 1
        err = capsys.readouterr().err
        assert "Merge BLOCKED" in err
        assert verdict in err

    def test_launch_failure_blocks_merge(self, fake_bench, capsys):
        fake_bench["result"] = OSError("no interpreter")
        assert ci_gate.main([]) == 1
        assert "no interpreter" in capsys.readouterr().err
