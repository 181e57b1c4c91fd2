# src/hysim_core/integrators/base.py
"""
Defines `IntegratorBase`, the pluggable contract for advancing continuous state.

An integrator advances a (root) context from its current time towards a target time
by evaluating `system.calc_time_derivatives` at whatever stage points its method
requires. The contract is:

- `step(system, context, target_time)` takes one step and returns the time actually
  reached. It never passes `target_time`; it may stop short when limited by
  `max_step_size` or by error control, in which case the caller re-invokes it.
- `integrate_to(system, context, target_time)` repeats `step` until the target is
  reached exactly, within a budget of `max_steps` steps.
- Any non-finite derivative or state is a numeric failure (`IntegrationError`).

Integrators write intermediate stage times and states into the context while
stepping. Callers that may need to rewind (the Simulator does) keep their own snapshot.
"""
import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Dict, Optional, Tuple

import numpy as np

from ..constants import DEFAULT_MAX_INTEGRATION_STEPS
from ..errors import FrameworkLogicError
from ..framework import ContextBase, SystemBase
from .exceptions import IntegrationError

logger = logging.getLogger(__name__)

# Relative slack under which a reached time is snapped onto the target time.
_TIME_SNAP_RTOL = 16 * np.finfo(float).eps


class IntegratorBase(ABC):
    """Abstract base class for all integrators."""

    #: Set by @register_integrator.
    registered_name: ClassVar[str] = "unregistered"
    #: Whether the method adapts its step size to a local error estimate.
    is_error_controlled: ClassVar[bool] = False

    def __init__(self, max_step_size: Optional[float] = None, max_steps: Optional[int] = DEFAULT_MAX_INTEGRATION_STEPS):
        if max_step_size is not None and max_step_size <= 0:
            raise ValueError(f"max_step_size must be positive, got {max_step_size}.")
        if max_steps is not None and max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}.")
        self.max_step_size = max_step_size
        self.max_steps = max_steps
        self.reset()

    def __repr__(self):
        return f"{type(self).__name__}(max_step_size={self.max_step_size}, max_steps={self.max_steps})"

    def reset(self) -> None:
        """Clears statistics and any step-size history carried between steps."""
        self.num_steps = 0
        self.num_derivative_evaluations = 0
        self.num_rejected_steps = 0

    def get_statistics(self) -> Dict[str, int]:
        return {
            'steps': self.num_steps,
            'derivative_evaluations': self.num_derivative_evaluations,
            'rejected_steps': self.num_rejected_steps,
        }

    # --- Shared machinery ---

    def evaluate_derivatives(self, system: SystemBase, context: ContextBase, t: float, x: np.ndarray) -> np.ndarray:
        """Loads (t, x) into the context and evaluates the system's time derivatives."""
        context.set_time(t)
        context.set_continuous_state_vector(x)
        xdot = system.calc_time_derivatives(context)
        self.num_derivative_evaluations += 1
        if not np.all(np.isfinite(xdot)):
            raise IntegrationError(
                details=f"Non-finite time derivative {xdot.tolist()} at state {np.asarray(x).tolist()}.",
                time=t,
                integrator_name=self.registered_name,
                fqn=system.fqn,
            )
        return xdot

    def step(self, system: SystemBase, context: ContextBase, target_time: float) -> float:
        t0 = context.time
        if target_time < t0:
            raise FrameworkLogicError(
                f"Integrator asked to step backwards from t={t0!r} to t={target_time!r}."
            )
        if target_time == t0:
            return t0

        remaining = target_time - t0
        h = remaining if self.max_step_size is None else min(remaining, self.max_step_size)

        if system.num_continuous_states == 0:
            h_taken, x_new = h, None
        else:
            x0 = np.array(context.get_continuous_state_vector())
            h_taken, x_new = self._do_step(system, context, t0, x0, h)
            if not np.all(np.isfinite(x_new)):
                raise IntegrationError(
                    details=f"State became non-finite after a step of {h_taken:.3e} s.",
                    time=t0 + h_taken,
                    integrator_name=self.registered_name,
                    fqn=system.fqn,
                )

        t_new = t0 + h_taken
        if target_time - t_new <= _TIME_SNAP_RTOL * max(1.0, abs(target_time)):
            t_new = target_time
        if t_new <= t0:
            raise IntegrationError(
                details=f"Step of {h_taken:.3e} s made no progress in floating point.",
                time=t0,
                integrator_name=self.registered_name,
                fqn=system.fqn,
            )

        context.set_time(t_new)
        if x_new is not None:
            context.set_continuous_state_vector(x_new)
        self.num_steps += 1
        return t_new

    def integrate_to(self, system: SystemBase, context: ContextBase, target_time: float) -> int:
        """Steps until the context reaches `target_time` exactly. Returns the number of steps taken."""
        steps = 0
        while context.time < target_time:
            if self.max_steps is not None and steps >= self.max_steps:
                raise IntegrationError(
                    details=f"Step budget of {self.max_steps} steps exhausted before reaching t={target_time:.9g}.",
                    time=context.time,
                    integrator_name=self.registered_name,
                    fqn=system.fqn,
                )
            self.step(system, context, target_time)
            steps += 1
        return steps

    @abstractmethod
    def _do_step(
        self, system: SystemBase, context: ContextBase, t0: float, x0: np.ndarray, h: float
    ) -> Tuple[float, np.ndarray]:
        """
        Advances from (t0, x0) by at most `h`. Returns the step actually taken and the new
        state. Must not modify `x0`.
        """
        ...
