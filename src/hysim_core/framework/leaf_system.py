# src/hysim_core/framework/leaf_system.py
"""
Defines `LeafSystem`, the base class for user-defined systems with their own dynamics.

A leaf system is configured entirely in its constructor through the `declare_*`
methods: continuous state, discrete state groups, abstract state, numeric parameters,
input and output ports, and witness functions. Declared sizes are fixed for the
lifetime of the system and of every context it allocates.

Behaviour is supplied by overriding hooks:

- `do_calc_time_derivatives(context)`: required when continuous state is declared.
- `do_get_witness_functions(context)`: optional, to activate a subset of the
  declared witnesses depending on the context (default: all of them).
- `do_publish(context)`: optional, the default reaction of publish events that have
  no callback of their own. It calls the callback installed with
  `set_publish_callback`, if any.
"""
import copy
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..errors import FrameworkLogicError
from .context import ContextBase, LeafContext, READ_ONLY
from .exceptions import SystemConfigurationError
from .ports import InputPort, OutputCalc, OutputPort
from .state import State
from .system_base import SystemBase
from .witness import (
    DiscreteEvent,
    EventAction,
    EventCallback,
    WitnessCalc,
    WitnessFunction,
    WitnessTriggerType,
)

logger = logging.getLogger(__name__)


class LeafSystem(SystemBase):
    """Base class for systems that own state and dynamics directly."""

    def __init__(self, name: Optional[str] = None):
        super().__init__(name)
        self._continuous_declared = False
        self._default_continuous = np.zeros(0)
        self._default_discrete: List[np.ndarray] = []
        self._default_abstract: List[Any] = []
        self._parameter_defaults: List[np.ndarray] = []
        self._parameter_names: Dict[str, int] = {}
        self._witness_functions: List[WitnessFunction] = []
        self._publish_callback: Optional[EventCallback] = None

    # --- State declarations ---

    def declare_continuous_state(self, size: Optional[int] = None, default: Optional[Sequence[float]] = None) -> None:
        """
        Declares the continuous state vector. Either `size` (zero-initialized), `default`,
        or both (which must agree) must be given. May be called at most once.
        """
        if self._continuous_declared:
            raise SystemConfigurationError(fqn=self.fqn, details="Continuous state was already declared.")
        if default is not None:
            vector = np.array(default, dtype=float).reshape(-1)
            if size is not None and size != vector.size:
                raise SystemConfigurationError(
                    fqn=self.fqn,
                    details=f"Continuous state declared with size {size} but a default of {vector.size} values.",
                )
        elif size is not None:
            vector = np.zeros(int(size))
        else:
            raise SystemConfigurationError(fqn=self.fqn, details="declare_continuous_state() needs a size or a default.")
        if vector.size == 0:
            raise SystemConfigurationError(fqn=self.fqn, details="Continuous state must have at least one element.")
        self._default_continuous = vector
        self._continuous_declared = True
        logger.debug(f"'{self.fqn}' declared {vector.size} continuous state(s).")

    def set_default_continuous_state(self, values: Sequence[float]) -> None:
        vector = np.array(values, dtype=float).reshape(-1)
        if vector.size != self._default_continuous.size:
            raise SystemConfigurationError(
                fqn=self.fqn,
                details=f"Default continuous state has size {self._default_continuous.size}; got {vector.size} values.",
            )
        self._default_continuous = vector

    def declare_discrete_state(self, default: Sequence[float]) -> int:
        """Declares a discrete state group with the given default values and returns its index."""
        vector = np.array(default, dtype=float).reshape(-1)
        self._default_discrete.append(vector)
        return len(self._default_discrete) - 1

    def declare_abstract_state(self, default: Any) -> int:
        """Declares an abstract (arbitrary Python object) state slot and returns its index."""
        self._default_abstract.append(copy.deepcopy(default))
        return len(self._default_abstract) - 1

    # --- Parameters ---

    def declare_numeric_parameter(self, name: str, default: Any) -> int:
        if name in self._parameter_names:
            raise SystemConfigurationError(fqn=self.fqn, details=f"Duplicate parameter name '{name}'.")
        self._parameter_defaults.append(np.array(default, dtype=float).reshape(-1))
        index = len(self._parameter_defaults) - 1
        self._parameter_names[name] = index
        return index

    def get_parameter_index(self, name: str) -> int:
        try:
            return self._parameter_names[name]
        except KeyError:
            raise KeyError(
                f"System '{self.fqn}' has no parameter '{name}'. Declared: {sorted(self._parameter_names)}."
            ) from None

    # --- Ports ---

    def declare_input_port(self, name: str, size: int, required: bool = True) -> InputPort:
        self._check_port_name_unique(self._input_ports, name, "input")
        if size < 1:
            raise SystemConfigurationError(fqn=self.fqn, details=f"Input port '{name}' must have a positive size.")
        port = InputPort(self, len(self._input_ports), name, int(size), required)
        self._input_ports.append(port)
        return port

    def declare_output_port(
        self,
        name: str,
        size: int,
        calc: OutputCalc,
        feedthrough: Optional[Sequence[int]] = None,
    ) -> OutputPort:
        """
        Declares an output port computed by `calc(context)`.

        `feedthrough` names the input port indices `calc` reads. None (the default)
        conservatively assumes every input is read.
        """
        self._check_port_name_unique(self._output_ports, name, "output")
        if size < 1:
            raise SystemConfigurationError(fqn=self.fqn, details=f"Output port '{name}' must have a positive size.")
        if feedthrough is not None:
            feedthrough = tuple(int(i) for i in feedthrough)
            bad = [i for i in feedthrough if not 0 <= i < len(self._input_ports)]
            if bad:
                raise SystemConfigurationError(
                    fqn=self.fqn,
                    details=f"Output port '{name}' lists undeclared feedthrough input(s) {bad}.",
                )
        port = OutputPort(self, len(self._output_ports), name, int(size), calc, feedthrough)
        self._output_ports.append(port)
        return port

    def declare_state_output_port(self, name: str = "state") -> OutputPort:
        """Declares an output port that publishes the continuous state, with no input feedthrough."""
        if not self._continuous_declared:
            raise SystemConfigurationError(
                fqn=self.fqn, details="declare_state_output_port() requires continuous state to be declared first."
            )
        return self.declare_output_port(
            name,
            self._default_continuous.size,
            lambda context: context.get_continuous_state(),
            feedthrough=(),
        )

    # --- Witness functions and events ---

    def declare_witness_function(
        self,
        name: str,
        trigger_type: WitnessTriggerType,
        calc: WitnessCalc,
        action: EventAction = EventAction.PUBLISH,
        callback: Optional[EventCallback] = None,
    ) -> WitnessFunction:
        """
        Declares a witness function whose trigger dispatches an event of kind `action`.

        Update actions need a `callback(context)`. A publish witness without a callback
        uses `do_publish`.
        """
        if any(w.name == name for w in self._witness_functions):
            raise SystemConfigurationError(fqn=self.fqn, details=f"Duplicate witness function name '{name}'.")
        if action is not EventAction.PUBLISH and callback is None:
            raise SystemConfigurationError(
                fqn=self.fqn,
                details=f"Witness '{name}' declares a {action} event without a callback.",
            )
        witness = WitnessFunction(self, name, trigger_type, calc, DiscreteEvent(action, callback))
        self._witness_functions.append(witness)
        return witness

    def set_publish_callback(self, callback: Optional[EventCallback]) -> None:
        self._publish_callback = callback

    # --- Context ---

    def allocate_context(self) -> LeafContext:
        state = State(self._default_continuous, self._default_discrete, self._default_abstract)
        return LeafContext(self, state, self._parameter_defaults, len(self._input_ports))

    @property
    def num_continuous_states(self) -> int:
        return self._default_continuous.size

    # --- Capabilities ---

    def _do_calc_time_derivatives(self, context: ContextBase) -> np.ndarray:
        if self.num_continuous_states == 0:
            return np.zeros(0)
        operation = "time derivatives"
        with context.restricted(READ_ONLY):
            raw = self.invoke_user_callback(self.do_calc_time_derivatives, context, operation)
        return self.coerce_vector(raw, self.num_continuous_states, operation, context)

    def do_calc_time_derivatives(self, context: LeafContext) -> np.ndarray:
        raise SystemConfigurationError(
            fqn=self.fqn,
            details="The system declares continuous state but does not override do_calc_time_derivatives().",
            suggestion="Implement do_calc_time_derivatives(context) in the LeafSystem subclass.",
        )

    def get_witness_functions(self, context: ContextBase) -> List[WitnessFunction]:
        self.validate_context(context)
        return list(self.do_get_witness_functions(context))

    def do_get_witness_functions(self, context: LeafContext) -> List[WitnessFunction]:
        return list(self._witness_functions)

    def handle_event(self, witness: WitnessFunction, context: ContextBase) -> None:
        self.validate_context(context)
        if witness.system is not self:
            raise FrameworkLogicError(
                f"Witness '{witness.fqn}' was dispatched to '{self.fqn}', which does not own it."
            )
        event = witness.event
        operation = f"{event.action} handler of witness '{witness.name}'"
        with context.restricted(event.action.permissions):
            if event.callback is not None:
                self.invoke_user_callback(event.callback, context, operation)
            else:
                self.invoke_user_callback(self.do_publish, context, operation)

    def do_publish(self, context: LeafContext) -> None:
        if self._publish_callback is not None:
            self._publish_callback(context)
