# contractbench/timed_executor.py
# TimedExecutor -- runs one case's warm-up and timed iterations.
#
# Single-threaded and sequential: iteration i+1 starts only after iteration
# i has returned. Only the call to the bound operation sits between the two
# clock reads; workload generation, binding and fingerprinting do not.
#
# Time budgets are cooperative. The case timeout and the run-level
# CancellationToken are checked between iterations; an operation that is
# already running is allowed to finish.

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from contractbench.bindings import Binding
from contractbench.data_models.benchmark_case import BenchmarkCase
from contractbench.data_models.measurement import Sample
from contractbench.exceptions import CaseTimedOutError
from contractbench.fingerprint import fingerprint
from contractbench.workload_generator import WorkloadGenerator


Clock = Callable[[], int]


class CancellationToken:
    """
    Run-level deadline shared by every case of a run.

    deadline_ns is on the same clock the token was built with; None means the
    run has no time budget. cancel() trips the token immediately.
    """

    def __init__(self, deadline_ns: Optional[int] = None, clock: Clock = time.perf_counter_ns) -> None:
        self._deadline_ns: Optional[int] = deadline_ns
        self._clock: Clock = clock
        self._cancelled: bool = False

    @classmethod
    def with_timeout(cls, timeout_s: Optional[float], clock: Clock = time.perf_counter_ns) -> "CancellationToken":
        if timeout_s is None:
            return cls(None, clock)
        return cls(clock() + int(timeout_s * 1e9), clock)

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        if self._deadline_ns is not None and self._clock() >= self._deadline_ns:
            self._cancelled = True
        return self._cancelled


@dataclass(frozen=True)
class ExecutionResult:
    """
    Raw output of TimedExecutor.execute().

    Fields:
      case_id  -- case executed.
      samples  -- one Sample per timed iteration, in order.
      extras   -- binding-reported facts about the last output.
    """
    case_id: str
    samples: tuple    # tuple of Sample
    extras:  tuple    # tuple of (str, value), sorted by key

    def extras_dict(self) -> Dict[str, Any]:
        return dict(self.extras)


class TimedExecutor:
    """
    Executes cases through a Binding.

    Args:
        binding:   library binding providing the operations.
        generator: workload source.
        clock:     monotonic nanosecond clock; injectable for tests.
    """

    def __init__(
        self,
        binding:   Binding,
        generator: Optional[WorkloadGenerator] = None,
        clock:     Clock = time.perf_counter_ns,
    ) -> None:
        self._binding   = binding
        self._generator = generator if generator is not None else WorkloadGenerator()
        self._clock     = clock

    def execute(self, case: BenchmarkCase, token: Optional[CancellationToken] = None) -> ExecutionResult:
        """
        Run case.warm_up untimed then case.iterations timed iterations.

        Raises:
            CaseTimedOutError:     case.timeout_s elapsed, or the run token
                                   was cancelled, between two iterations.
            InvalidParameterError: the workload could not be generated.
            Any exception raised by the operation itself, unchanged.
        """
        deadline = self._clock() + int(case.timeout_s * 1e9)
        shared_op = None
        workload = None
        if case.reuse_inputs:
            workload = self._generator.generate(case)
            shared_op = self._binding.bind(case, workload)

        def prepare():
            if shared_op is not None:
                return workload, shared_op
            fresh = self._generator.generate(case)
            return fresh, self._binding.bind(case, fresh)

        def check_budget(completed: int) -> None:
            if self._clock() >= deadline or (token is not None and token.cancelled):
                raise CaseTimedOutError(case.timeout_s, completed, case.case_id)

        for _ in range(case.warm_up):
            _, op = prepare()
            op()
            check_budget(0)

        samples = []
        output = None
        for i in range(case.iterations):
            workload, op = prepare()
            start = self._clock()
            output = op()
            end = self._clock()
            samples.append(Sample(duration_ns=end - start, fingerprint=fingerprint(output)))
            if i + 1 < case.iterations:
                check_budget(i + 1)

        extras = self._binding.extras(case, workload, output)
        return ExecutionResult(
            case_id=case.case_id,
            samples=tuple(samples),
            extras=tuple(sorted(extras.items())),
        )
