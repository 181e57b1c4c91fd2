# src/hysim_core/library/primitives.py
"""
Small, generic building blocks for wiring diagrams: sources, pass-throughs, summing
junctions, gains and pure integrators.
"""
import logging
from typing import Optional, Sequence, Union

import numpy as np

from ..framework import LeafContext, LeafSystem, SystemConfigurationError

logger = logging.getLogger(__name__)


class ConstantSource(LeafSystem):
    """Outputs a constant vector, stored as the numeric parameter 'value'."""

    def __init__(self, value: Union[float, Sequence[float]], name: Optional[str] = None):
        super().__init__(name)
        value = np.array(value, dtype=float).reshape(-1)
        self._value_index = self.declare_numeric_parameter("value", value)
        self.declare_output_port("y", value.size, self._calc_output, feedthrough=())

    def _calc_output(self, context: LeafContext) -> np.ndarray:
        return context.get_numeric_parameter(self._value_index)


class PassThrough(LeafSystem):
    """Copies its input to its output without delay."""

    def __init__(self, size: int, name: Optional[str] = None):
        super().__init__(name)
        self.declare_input_port("u", size)
        self.declare_output_port("y", size, lambda context: self.get_input_port(0).eval(context), feedthrough=(0,))


class Adder(LeafSystem):
    """Sums `num_inputs` vector inputs of equal size."""

    def __init__(self, num_inputs: int, size: int, name: Optional[str] = None):
        super().__init__(name)
        if num_inputs < 1:
            raise SystemConfigurationError(fqn=self.fqn, details="An Adder needs at least one input.")
        for i in range(num_inputs):
            self.declare_input_port(f"u{i}", size)
        self.declare_output_port("sum", size, self._calc_sum, feedthrough=tuple(range(num_inputs)))

    def _calc_sum(self, context: LeafContext) -> np.ndarray:
        return np.sum([port.eval(context) for port in self._input_ports], axis=0)


class Gain(LeafSystem):
    """y = k * u, with k (scalar or element-wise) stored as the numeric parameter 'k'."""

    def __init__(self, k: Union[float, Sequence[float]], size: int, name: Optional[str] = None):
        super().__init__(name)
        k = np.array(k, dtype=float).reshape(-1)
        if k.size not in (1, size):
            raise SystemConfigurationError(
                fqn=self.fqn, details=f"Gain of size {k.size} cannot scale a signal of size {size}."
            )
        self._k_index = self.declare_numeric_parameter("k", k)
        self.declare_input_port("u", size)
        self.declare_output_port("y", size, self._calc_output, feedthrough=(0,))

    def _calc_output(self, context: LeafContext) -> np.ndarray:
        return context.get_numeric_parameter(self._k_index) * self.get_input_port(0).eval(context)


class ContinuousIntegrator(LeafSystem):
    """x' = u, y = x. The output has no direct feedthrough, so it can close feedback loops."""

    def __init__(self, size: int, initial_value: Optional[Sequence[float]] = None, name: Optional[str] = None):
        super().__init__(name)
        default = np.zeros(size) if initial_value is None else initial_value
        self.declare_continuous_state(size=size, default=default)
        self.declare_input_port("u", size)
        self.declare_state_output_port("y")

    def do_calc_time_derivatives(self, context: LeafContext) -> np.ndarray:
        return self.get_input_port(0).eval(context)
