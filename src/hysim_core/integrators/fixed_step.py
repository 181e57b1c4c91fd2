# src/hysim_core/integrators/fixed_step.py
import logging
from abc import abstractmethod
from typing import Tuple

import numpy as np

from ..constants import DEFAULT_FIXED_STEP_SIZE
from ..framework import ContextBase, SystemBase
from .base import IntegratorBase
from .registry import register_integrator

logger = logging.getLogger(__name__)


class FixedStepIntegrator(IntegratorBase):
    """
    Base for explicit fixed-step methods. Every step has length `step_size` except a
    shorter final one that lands exactly on the requested target, so results depend only
    on the sequence of targets and are fully deterministic.
    """

    def __init__(self, step_size: float = DEFAULT_FIXED_STEP_SIZE, **kwargs):
        if step_size <= 0:
            raise ValueError(f"step_size must be positive, got {step_size}.")
        self.step_size = float(step_size)
        super().__init__(**kwargs)

    def _do_step(self, system: SystemBase, context: ContextBase, t0: float, x0: np.ndarray, h: float) -> Tuple[float, np.ndarray]:
        h = min(h, self.step_size)
        return h, self._advance(system, context, t0, x0, h)

    @abstractmethod
    def _advance(self, system: SystemBase, context: ContextBase, t0: float, x0: np.ndarray, h: float) -> np.ndarray:
        ...


@register_integrator("euler")
class ExplicitEulerIntegrator(FixedStepIntegrator):
    """First-order explicit Euler: x1 = x0 + h f(t0, x0)."""

    def _advance(self, system, context, t0, x0, h):
        return x0 + h * self.evaluate_derivatives(system, context, t0, x0)


@register_integrator("rk4")
class RK4Integrator(FixedStepIntegrator):
    """Classic fourth-order Runge-Kutta."""

    def _advance(self, system, context, t0, x0, h):
        k1 = self.evaluate_derivatives(system, context, t0, x0)
        k2 = self.evaluate_derivatives(system, context, t0 + 0.5 * h, x0 + 0.5 * h * k1)
        k3 = self.evaluate_derivatives(system, context, t0 + 0.5 * h, x0 + 0.5 * h * k2)
        k4 = self.evaluate_derivatives(system, context, t0 + h, x0 + h * k3)
        return x0 + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
