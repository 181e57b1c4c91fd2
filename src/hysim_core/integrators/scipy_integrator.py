# src/hysim_core/integrators/scipy_integrator.py
import logging
from typing import Tuple

import numpy as np
from scipy.integrate import solve_ivp

from ..constants import DEFAULT_ABSOLUTE_TOLERANCE, DEFAULT_RELATIVE_TOLERANCE
from ..framework import ContextBase, SystemBase
from .base import IntegratorBase
from .exceptions import IntegrationError
from .registry import register_integrator

logger = logging.getLogger(__name__)


@register_integrator("scipy")
class ScipyIntegrator(IntegratorBase):
    """
    Delegates each step to `scipy.integrate.solve_ivp`.

    A step integrates the whole requested interval with the chosen SciPy method, which
    controls its own internal sub-steps. Implicit methods (Radau, BDF, LSODA) make this
    the integrator of choice for stiff dynamics.
    """
    is_error_controlled = True

    SUPPORTED_METHODS = ('RK45', 'RK23', 'DOP853', 'Radau', 'BDF', 'LSODA')

    def __init__(
        self,
        method: str = 'RK45',
        rtol: float = DEFAULT_RELATIVE_TOLERANCE,
        atol: float = DEFAULT_ABSOLUTE_TOLERANCE,
        **kwargs,
    ):
        if method not in self.SUPPORTED_METHODS:
            raise ValueError(f"Unsupported SciPy method '{method}'. Choose from {self.SUPPORTED_METHODS}.")
        self.method = method
        self.rtol = float(rtol)
        self.atol = float(atol)
        super().__init__(**kwargs)

    def reset(self) -> None:
        super().reset()
        self.num_internal_steps = 0

    def get_statistics(self):
        stats = super().get_statistics()
        stats['internal_steps'] = self.num_internal_steps
        return stats

    def _do_step(self, system: SystemBase, context: ContextBase, t0: float, x0: np.ndarray, h: float) -> Tuple[float, np.ndarray]:
        def fun(t, x):
            return self.evaluate_derivatives(system, context, t, x)

        solution = solve_ivp(fun, (t0, t0 + h), x0, method=self.method, rtol=self.rtol, atol=self.atol)
        if not solution.success:
            raise IntegrationError(
                details=f"solve_ivp ({self.method}) failed: {solution.message}",
                time=float(solution.t[-1]) if solution.t.size else t0,
                integrator_name=self.registered_name,
                fqn=system.fqn,
            )
        self.num_internal_steps += solution.t.size - 1
        return h, np.array(solution.y[:, -1], dtype=float)
