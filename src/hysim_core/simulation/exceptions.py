# src/hysim_core/simulation/exceptions.py
"""
Diagnosable failures detected by the Simulator itself.

Together with `IntegrationError` (numeric, raised by integrators) and the framework's
`SystemEvaluationError` / `ContextAccessError` (evaluation, raised while calling user
code), these make up the run-time failure taxonomy. Every one of them is a
`SimulationFailure`: the Simulator catches it, restores the last good context and
reports a Failed outcome with the failure's `kind`.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import FailureKind, SimulationFailure, format_diagnostic_report


@dataclass(eq=False)
class WitnessEvaluationError(SimulationFailure):
    """Raised when a witness function returns NaN or an infinite value."""
    witness_fqn: str
    value: float
    time: Optional[float] = None

    kind = FailureKind.NUMERIC

    def summary(self) -> str:
        return f"Witness function '{self.witness_fqn}' returned non-finite value {self.value!r}."

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Non-Finite Witness Value",
            details=self.summary(),
            suggestion="Witness functions must be finite everywhere along the trajectory. Check for divisions by zero or unbounded state.",
            context={'fqn': self.witness_fqn, 'time': self.time}
        )


@dataclass(eq=False)
class ExcessiveEventsError(SimulationFailure):
    """
    Raised by the Zeno guard when events accumulate faster than allowed, either too
    many isolations within one unit of simulated time, or too many consecutive
    isolations at numerically the same instant.
    """
    details: str
    event_count: int
    time: Optional[float] = None

    kind = FailureKind.EVENT_STORM

    def summary(self) -> str:
        return f"Excessive events: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Excessive Events (Possible Zeno Behaviour)",
            details=f"{self.details}\nEvents counted: {self.event_count}",
            suggestion=(
                "The model may be Zeno (e.g. a bouncing ball coming to rest) or chattering around a "
                "switching surface. Add hysteresis or a rest condition to the model, or raise "
                "max_events_per_unit_time / max_coincident_events if the event rate is genuine."
            ),
            context={'time': self.time}
        )
