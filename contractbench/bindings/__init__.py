# contractbench/bindings/__init__.py
# Binding -- the boundary between the benchmark engine and the library under
# test.
#
# A binding declares the capabilities it provides and turns a
# (BenchmarkCase, workload) pair into a zero-argument operation. Only the
# call to that operation is timed; everything bind() does beforehand
# (format conversion, index construction) is setup.
#
# Capability names:
#   vsa.<variant>       one per VsaVariant value
#   retrieval.top_k     top-k similarity search over a corpus
#   io.<operation>      one per IoOperation value

from typing import Any, Callable, Dict, Optional

from contractbench.data_models.benchmark_case import BenchmarkCase, IoParams
from contractbench.exceptions import InvalidParameterError


class Binding:
    """
    Base class for library bindings.

    Subclasses set `name` and `capabilities` and implement bind(). extras()
    is optional.
    """

    name: str = "abstract"
    capabilities: frozenset = frozenset()

    def unsupported_reason(self, case: BenchmarkCase) -> Optional[str]:
        """
        Why this binding cannot run the case, or None when it can.

        A non-None result turns the case into a SKIPPED report entry.
        """
        capability = case.required_capability
        if capability not in self.capabilities:
            return "binding '" + self.name + "' does not provide capability '" + capability + "'"
        if isinstance(case.params, IoParams) and case.params.input_dir is None:
            return "no input directory supplied (--input-dir)"
        return None

    def bind(self, case: BenchmarkCase, workload: Any) -> Callable[[], Any]:
        raise NotImplementedError

    def extras(self, case: BenchmarkCase, workload: Any, output: Any) -> Dict[str, Any]:
        """
        Case-specific facts recorded with the Measurement. Called once, after
        the timed loop, with the last output. The key "bytes_processed" (int)
        is lifted into Measurement.bytes_processed.
        """
        return {}


def get_binding(name: str) -> Binding:
    """Binding registered under name. Only "reference" ships with the package."""
    if name == "reference":
        from contractbench.bindings.reference import ReferenceBinding
        return ReferenceBinding()
    raise InvalidParameterError("binding", name, "must be one of ['reference']")


__all__ = ["Binding", "get_binding"]
