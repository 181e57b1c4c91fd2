# src/hysim_core/library/ode_system.py
import logging
from typing import Callable, Optional, Sequence

import numpy as np

from ..framework import LeafContext, LeafSystem

logger = logging.getLogger(__name__)

RightHandSide = Callable[..., np.ndarray]


class OdeSystem(LeafSystem):
    """
    Wraps a plain right-hand side function as a leaf system.

    Without inputs the function is called as `rhs(t, x)`; with `num_inputs > 0` an input
    port 'u' of that size is declared and the call is `rhs(t, x, u)`. The continuous state
    is published on the output port 'x'. Witness functions can be added afterwards with
    `declare_witness_function`.
    """

    def __init__(
        self,
        rhs: RightHandSide,
        initial_state: Sequence[float],
        num_inputs: int = 0,
        name: Optional[str] = None,
    ):
        super().__init__(name)
        self._rhs = rhs
        self.declare_continuous_state(default=initial_state)
        if num_inputs > 0:
            self.declare_input_port("u", num_inputs)
        self.declare_state_output_port("x")

    def do_calc_time_derivatives(self, context: LeafContext) -> np.ndarray:
        x = context.get_continuous_state()
        if self.num_input_ports:
            return self._rhs(context.time, x, self.get_input_port(0).eval(context))
        return self._rhs(context.time, x)
