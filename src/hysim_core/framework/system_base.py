# src/hysim_core/framework/system_base.py
"""
Defines `SystemBase`, the abstract contract shared by leaf systems and diagrams.

Every system provides the same four capabilities to the Simulator:

- `calc_time_derivatives(context)`: the time derivative of the continuous state.
- `calc_output(context, port)` / `calc_outputs(context)`: values of the output ports.
- `get_witness_functions(context)`: the witness functions active in this context.
- `handle_event(witness, context)`: the reaction to the event of a triggered witness.

Systems themselves are immutable descriptions after construction. All run data lives in
the Context returned by `allocate_context()`. A system may be placed in at most one
diagram; the owning diagram is recorded as its `parent` and determines its `fqn`.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Union, TYPE_CHECKING

import numpy as np

from ..errors import DiagnosableError
from .context import ContextBase
from .exceptions import ContextAccessError, SystemConfigurationError, SystemEvaluationError
from .ports import InputPort, OutputPort
from .witness import WitnessFunction

if TYPE_CHECKING:
    from .diagram import Diagram

logger = logging.getLogger(__name__)


class SystemBase(ABC):
    """The abstract base class for all systems, leaf or composite."""

    def __init__(self, name: Optional[str] = None):
        self._name: str = name if name is not None else type(self).__name__
        self._parent: Optional["Diagram"] = None
        self._input_ports: List[InputPort] = []
        self._output_ports: List[OutputPort] = []

    def __repr__(self):
        return f"{type(self).__name__}('{self.fqn}')"

    # --- Identity ---

    @property
    def name(self) -> str:
        return self._name

    def set_name(self, name: str) -> None:
        if self._parent is not None:
            raise SystemConfigurationError(
                fqn=self.fqn,
                details=f"Cannot rename to '{name}': the system already belongs to diagram '{self._parent.fqn}'.",
            )
        self._name = name

    @property
    def parent(self) -> Optional["Diagram"]:
        """The diagram that owns this system, or None for a root system."""
        return self._parent

    @property
    def fqn(self) -> str:
        """The fully qualified, dot-separated name from the root system down to this one."""
        if self._parent is None:
            return self._name
        return f"{self._parent.fqn}.{self._name}"

    # --- Ports ---

    @property
    def num_input_ports(self) -> int:
        return len(self._input_ports)

    @property
    def num_output_ports(self) -> int:
        return len(self._output_ports)

    def get_input_port(self, index_or_name: Union[int, str] = 0) -> InputPort:
        return self._find_port(self._input_ports, index_or_name, "input")

    def get_output_port(self, index_or_name: Union[int, str] = 0) -> OutputPort:
        return self._find_port(self._output_ports, index_or_name, "output")

    def _find_port(self, ports: list, index_or_name: Union[int, str], kind: str):
        if isinstance(index_or_name, str):
            for port in ports:
                if port.name == index_or_name:
                    return port
            available = [port.name for port in ports]
            raise KeyError(f"System '{self.fqn}' has no {kind} port named '{index_or_name}'. Available: {available}.")
        if not 0 <= index_or_name < len(ports):
            raise IndexError(f"System '{self.fqn}' has no {kind} port with index {index_or_name}.")
        return ports[index_or_name]

    def _check_port_name_unique(self, ports: list, name: str, kind: str) -> None:
        if any(port.name == name for port in ports):
            raise SystemConfigurationError(fqn=self.fqn, details=f"Duplicate {kind} port name '{name}'.")

    # --- Contexts ---

    @abstractmethod
    def allocate_context(self) -> ContextBase:
        """Allocates a new context holding this system's default time, state and parameters."""
        ...

    def create_default_context(self) -> ContextBase:
        return self.allocate_context()

    @property
    @abstractmethod
    def num_continuous_states(self) -> int:
        ...

    def validate_context(self, context: ContextBase) -> None:
        if context.system is not self:
            raise ContextAccessError(
                fqn=self.fqn,
                operation="validate_context",
                details=f"The context was allocated by '{context.system.fqn}', not by this system.",
                time=context.time,
            )

    def get_subsystem_context(self, subsystem: "SystemBase", context: ContextBase) -> ContextBase:
        """Returns the sub-context of `context` that belongs to `subsystem` (which may be this system)."""
        self.validate_context(context)
        if subsystem is self:
            return context
        raise SystemConfigurationError(
            fqn=self.fqn,
            details=f"System '{subsystem.fqn}' is not contained in '{self.fqn}'.",
        )

    # --- Capabilities ---

    def calc_time_derivatives(self, context: ContextBase) -> np.ndarray:
        """Computes d/dt of the continuous state. The result has exactly `num_continuous_states` entries."""
        self.validate_context(context)
        return self._do_calc_time_derivatives(context)

    @abstractmethod
    def _do_calc_time_derivatives(self, context: ContextBase) -> np.ndarray:
        ...

    def calc_output(self, context: ContextBase, port: Union[int, str] = 0) -> np.ndarray:
        return self.get_output_port(port).eval(context)

    def calc_outputs(self, context: ContextBase) -> List[np.ndarray]:
        return [port.eval(context) for port in self._output_ports]

    @abstractmethod
    def get_witness_functions(self, context: ContextBase) -> List[WitnessFunction]:
        ...

    @abstractmethod
    def handle_event(self, witness: WitnessFunction, context: ContextBase) -> None:
        """Dispatches the event of a triggered witness owned by this system (or one of its descendants)."""
        ...

    # --- Helpers for user callbacks ---

    def invoke_user_callback(self, callback: Callable[[ContextBase], Any], context: ContextBase, operation: str) -> Any:
        """
        Runs a user-supplied callback, converting unexpected exceptions into a
        `SystemEvaluationError` attributed to this system.
        """
        try:
            return callback(context)
        except DiagnosableError:
            raise
        except Exception as e:
            raise SystemEvaluationError(
                fqn=self.fqn,
                operation=operation,
                details=f"The callback raised {type(e).__name__}.",
                time=context.time,
                original_error=e,
            ) from e

    def coerce_vector(self, raw: Any, size: int, operation: str, context: ContextBase) -> np.ndarray:
        try:
            value = np.array(raw, dtype=float).reshape(-1)
        except (TypeError, ValueError) as e:
            raise SystemEvaluationError(
                fqn=self.fqn,
                operation=operation,
                details=f"Result {raw!r} is not a real vector.",
                time=context.time,
                original_error=e,
            ) from e
        if value.size != size:
            raise SystemEvaluationError(
                fqn=self.fqn,
                operation=operation,
                details=f"Expected {size} values, got {value.size}.",
                time=context.time,
            )
        return value
