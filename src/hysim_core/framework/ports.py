# src/hysim_core/framework/ports.py
import logging
from typing import Callable, Optional, Tuple, TYPE_CHECKING

import numpy as np

from .context import ConnectedInput, ContextBase, ExportedInput, FixedInput, READ_ONLY
from .exceptions import NonFiniteValueError, UnconnectedInputError

if TYPE_CHECKING:
    from .system_base import SystemBase

logger = logging.getLogger(__name__)

OutputCalc = Callable[[ContextBase], np.ndarray]


class InputPort:
    """A vector-valued input of a system. Its value comes from the context at evaluation time."""

    def __init__(self, system: "SystemBase", index: int, name: str, size: int, required: bool = True):
        self.system = system
        self.index = index
        self.name = name
        self.size = size
        self.required = required

    def __repr__(self):
        return f"InputPort('{self.system.name}.{self.name}', size={self.size}, required={self.required})"

    def eval(self, context: ContextBase) -> Optional[np.ndarray]:
        """
        Evaluates the port against the context of its own system.

        Returns None for an optional port that has no value source; raises
        `UnconnectedInputError` for a required one.
        """
        self.system.validate_context(context)
        source = context.get_input_source(self.index)

        if isinstance(source, FixedInput):
            return source.value

        if isinstance(source, ConnectedInput):
            parent = context.parent
            diagram = parent.system
            source_system = diagram.get_child(source.source_child_index)
            source_port = source_system.get_output_port(source.source_port_index)
            return source_port.eval(parent.get_subcontext(source.source_child_index))

        if isinstance(source, ExportedInput):
            parent = context.parent
            return parent.system.get_input_port(source.diagram_port_index).eval(parent)

        if self.required:
            raise UnconnectedInputError(fqn=self.system.fqn, port_name=self.name, time=context.time)
        return None


class OutputPort:
    """
    A vector-valued output of a system, computed on demand from the context.

    `feedthrough` lists the input port indices the output may depend on without delay.
    None means "all inputs", which is the conservative default used for loop detection.
    """

    def __init__(
        self,
        system: "SystemBase",
        index: int,
        name: str,
        size: int,
        calc: OutputCalc,
        feedthrough: Optional[Tuple[int, ...]] = None,
    ):
        self.system = system
        self.index = index
        self.name = name
        self.size = size
        self._calc = calc
        self.feedthrough = feedthrough

    def __repr__(self):
        return f"OutputPort('{self.system.name}.{self.name}', size={self.size})"

    def depends_on_input(self, input_index: int) -> bool:
        return self.feedthrough is None or input_index in self.feedthrough

    def eval(self, context: ContextBase) -> np.ndarray:
        self.system.validate_context(context)
        operation = f"output port '{self.name}'"
        with context.restricted(READ_ONLY):
            raw = self.system.invoke_user_callback(self._calc, context, operation)
        value = self.system.coerce_vector(raw, self.size, operation, context)
        if not np.all(np.isfinite(value)):
            raise NonFiniteValueError(
                fqn=self.system.fqn, operation=f"Output port '{self.name}'", value=value.tolist(), time=context.time
            )
        return value
