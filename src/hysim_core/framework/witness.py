# src/hysim_core/framework/witness.py
"""
Witness functions and the discrete events they trigger.

A witness function is a scalar function of a system's context. The Simulator samples
it at the start and end of every step; when the pair of samples matches the witness's
trigger type, the crossing is isolated in time and the associated `DiscreteEvent` is
dispatched back to the owning system through `handle_event`.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TYPE_CHECKING

from .context import AccessPermissions, ContextBase, READ_ONLY
from .exceptions import SystemEvaluationError

if TYPE_CHECKING:
    from .system_base import SystemBase

logger = logging.getLogger(__name__)

WitnessCalc = Callable[[ContextBase], float]
EventCallback = Callable[[ContextBase], Any]


class WitnessTriggerType(Enum):
    """
    Which sign changes of a witness value, from w0 (start of step) to w1 (end of step),
    count as a trigger. For CROSSES_ZERO a zero at the start of a step never triggers, so
    an event that leaves its witness exactly at zero does not fire again. BECOMES_POSITIVE
    and BECOMES_NEGATIVE treat a starting zero as non-positive and non-negative respectively.
    """
    CROSSES_ZERO = "crosses_zero"
    BECOMES_POSITIVE = "becomes_positive"
    BECOMES_NEGATIVE = "becomes_negative"

    def __str__(self):
        return self.value

    def should_trigger(self, w0: float, w1: float) -> bool:
        if self is WitnessTriggerType.CROSSES_ZERO:
            return (w0 > 0 and w1 <= 0) or (w0 < 0 and w1 >= 0)
        if self is WitnessTriggerType.BECOMES_POSITIVE:
            return w0 <= 0 and w1 > 0
        if self is WitnessTriggerType.BECOMES_NEGATIVE:
            return w0 >= 0 and w1 < 0
        raise NotImplementedError(f"No trigger rule for {self!r}.")


class EventAction(Enum):
    """The kind of reaction an event performs, which determines what its handler may write."""
    PUBLISH = "publish"
    DISCRETE_UPDATE = "discrete_update"
    UNRESTRICTED_UPDATE = "unrestricted_update"

    def __str__(self):
        return self.value

    @property
    def permissions(self) -> AccessPermissions:
        if self is EventAction.PUBLISH:
            return READ_ONLY
        if self is EventAction.DISCRETE_UPDATE:
            return AccessPermissions(time=False, continuous=False, discrete=True, abstract=False, parameters=False)
        return AccessPermissions(time=False, continuous=True, discrete=True, abstract=True, parameters=False)


@dataclass(frozen=True)
class DiscreteEvent:
    """
    An event bound to a system. `callback(context)` runs with the owning system's context.
    A publish event without a callback falls back to the system's `do_publish` hook.
    """
    action: EventAction
    callback: Optional[EventCallback] = None


class WitnessFunction:
    """A named, scalar guard function of a system's context with an associated event."""

    def __init__(
        self,
        system: "SystemBase",
        name: str,
        trigger_type: WitnessTriggerType,
        calc: WitnessCalc,
        event: DiscreteEvent,
    ):
        self.system = system
        self.name = name
        self.trigger_type = trigger_type
        self._calc = calc
        self.event = event

    def __repr__(self):
        return f"WitnessFunction('{self.fqn}', {self.trigger_type}, action={self.event.action})"

    @property
    def fqn(self) -> str:
        return f"{self.system.fqn}:{self.name}"

    def evaluate(self, context: ContextBase) -> float:
        """Evaluates the witness against its own system's context. Must not modify the context."""
        self.system.validate_context(context)
        operation = f"witness function '{self.name}'"
        with context.restricted(READ_ONLY):
            raw = self.system.invoke_user_callback(self._calc, context, operation)
        try:
            return float(raw)
        except (TypeError, ValueError) as e:
            raise SystemEvaluationError(
                fqn=self.system.fqn,
                operation=operation,
                details=f"Witness value must be a real scalar, got {raw!r}.",
                time=context.time,
                original_error=e,
            ) from e

    def should_trigger(self, w0: float, w1: float) -> bool:
        return self.trigger_type.should_trigger(w0, w1)
