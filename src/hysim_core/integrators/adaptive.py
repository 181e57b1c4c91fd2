# src/hysim_core/integrators/adaptive.py
import logging
from typing import Tuple

import numpy as np

from ..constants import DEFAULT_ABSOLUTE_TOLERANCE, DEFAULT_MIN_STEP_SIZE, DEFAULT_RELATIVE_TOLERANCE
from ..framework import ContextBase, SystemBase
from .base import IntegratorBase
from .exceptions import IntegrationError
from .registry import register_integrator

logger = logging.getLogger(__name__)

# Dormand-Prince 5(4) tableau.
_C = np.array([0.0, 1 / 5, 3 / 10, 4 / 5, 8 / 9, 1.0, 1.0])
_A = [
    np.array([]),
    np.array([1 / 5]),
    np.array([3 / 40, 9 / 40]),
    np.array([44 / 45, -56 / 15, 32 / 9]),
    np.array([19372 / 6561, -25360 / 2187, 64448 / 6561, -212 / 729]),
    np.array([9017 / 3168, -355 / 33, 46732 / 5247, 49 / 176, -5103 / 18656]),
    np.array([35 / 384, 0.0, 500 / 1113, 125 / 192, -2187 / 6784, 11 / 84]),
]
_B = np.array([35 / 384, 0.0, 500 / 1113, 125 / 192, -2187 / 6784, 11 / 84, 0.0])
_E = np.array([71 / 57600, 0.0, -71 / 16695, 71 / 1920, -17253 / 339200, 22 / 525, -1 / 40])

_SAFETY = 0.9
_MIN_FACTOR = 0.2
_MAX_FACTOR = 5.0
_MIN_REJECT_FACTOR = 0.1


@register_integrator("rk45")
class DormandPrince45Integrator(IntegratorBase):
    """
    Error-controlled explicit Runge-Kutta 5(4) (Dormand-Prince).

    Each attempt is accepted when the RMS of the embedded error estimate, scaled by
    `atol + rtol * |x|`, is at most one. Rejected attempts are retried internally with a
    smaller step; when error control shrinks a step below `min_step_size` the run fails
    with a numeric error. A request shorter than the floor (a bisection re-integration,
    or the tail of an interval) is still taken. The accepted step size seeds the next attempt,
    which is never longer than the caller's remaining interval.
    """
    is_error_controlled = True

    def __init__(
        self,
        rtol: float = DEFAULT_RELATIVE_TOLERANCE,
        atol: float = DEFAULT_ABSOLUTE_TOLERANCE,
        min_step_size: float = DEFAULT_MIN_STEP_SIZE,
        **kwargs,
    ):
        if rtol <= 0 or atol <= 0:
            raise ValueError(f"rtol and atol must be positive, got rtol={rtol}, atol={atol}.")
        self.rtol = float(rtol)
        self.atol = float(atol)
        self.min_step_size = float(min_step_size)
        super().__init__(**kwargs)

    def reset(self) -> None:
        super().reset()
        self._h_next = None

    def _do_step(self, system: SystemBase, context: ContextBase, t0: float, x0: np.ndarray, h: float) -> Tuple[float, np.ndarray]:
        requested = h
        if self._h_next is not None:
            h = min(h, self._h_next)
        k = np.empty((7, x0.size))
        k[0] = self.evaluate_derivatives(system, context, t0, x0)

        while True:
            # The floor applies only to steps shrunk by error control.
            if h < requested and h < self.min_step_size:
                raise IntegrationError(
                    details=f"Step size {h:.3e} s fell below the minimum of {self.min_step_size:.3e} s.",
                    time=t0,
                    integrator_name=self.registered_name,
                    fqn=system.fqn,
                )

            for i in range(1, 7):
                x_stage = x0 + h * (_A[i] @ k[:i])
                k[i] = self.evaluate_derivatives(system, context, t0 + _C[i] * h, x_stage)
            x_new = x0 + h * (_B @ k)

            scale = self.atol + self.rtol * np.maximum(np.abs(x0), np.abs(x_new))
            error_norm = float(np.sqrt(np.mean((h * (_E @ k) / scale) ** 2)))
            if not np.isfinite(error_norm):
                error_norm = np.inf

            if error_norm <= 1.0:
                if error_norm == 0.0:
                    factor = _MAX_FACTOR
                else:
                    factor = min(_MAX_FACTOR, max(_MIN_FACTOR, _SAFETY * error_norm ** -0.2))
                h_next = h * factor
                if h == requested and self._h_next is not None:
                    # Step was cut short by the caller; keep the step size error control settled on.
                    h_next = max(h_next, self._h_next)
                self._h_next = h_next
                return h, x_new

            self.num_rejected_steps += 1
            shrink = _MIN_REJECT_FACTOR if error_norm == np.inf else max(_MIN_REJECT_FACTOR, _SAFETY * error_norm ** -0.2)
            logger.debug(f"Rejected step of {h:.3e} s at t={t0:.9g} (error norm {error_norm:.3e}).")
            h *= shrink
