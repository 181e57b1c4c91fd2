# src/hysim_core/framework/exceptions.py
"""
Diagnosable exceptions raised by the system framework itself.

Two families live here:

- Build-time configuration errors (`SystemConfigurationError`), raised while a
  system declares its state, ports and witness functions. These are never retried.
- Run-time evaluation errors (`SystemEvaluationError`, `ContextAccessError`,
  `UnconnectedInputError`), raised while a system is evaluated against a Context.
  They are `SimulationFailure`s, so a running `Simulator` turns them into a
  Failed outcome rather than letting them escape.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, FailureKind, SimulationFailure, format_diagnostic_report


@dataclass(eq=False)
class SystemConfigurationError(DiagnosableError):
    """Raised when a system's declarations are invalid (bad sizes, duplicate names, etc.)."""
    fqn: str
    details: str
    suggestion: str = "Review the declarations made in the system's constructor."

    def __str__(self):
        return f"Invalid configuration of system '{self.fqn}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="System Configuration Error",
            details=self.details,
            suggestion=self.suggestion,
            context={'fqn': self.fqn}
        )


@dataclass(eq=False)
class SystemEvaluationError(SimulationFailure):
    """
    Wraps an unexpected exception raised by user code (a derivative rule, an output
    calculation, a witness function or an event callback), or a result of the wrong shape.
    """
    fqn: str
    operation: str
    details: str
    time: Optional[float] = None
    original_error: Optional[BaseException] = None

    kind = FailureKind.EVALUATION

    def summary(self) -> str:
        return f"Evaluation of {self.operation} in system '{self.fqn}' failed: {self.details}"

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.original_error is not None:
            details += f"\nOriginal error: {type(self.original_error).__name__}: {self.original_error}"
        return format_diagnostic_report(
            error_type=f"System Evaluation Error ({self.operation})",
            details=details,
            suggestion="Check the user-supplied callback for this system. It must be a pure function of the context and return a value of the declared size.",
            context={'fqn': self.fqn, 'time': self.time}
        )


@dataclass(eq=False)
class ContextAccessError(SimulationFailure):
    """
    Raised when a Context is used in a way that violates its access rules, e.g. a
    publish handler writing state, any handler writing time, or a context that
    belongs to a different system.
    """
    fqn: str
    operation: str
    details: str
    time: Optional[float] = None

    kind = FailureKind.EVALUATION

    def summary(self) -> str:
        return f"Illegal context access '{self.operation}' on '{self.fqn}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Context Access Violation",
            details=self.details,
            suggestion=(
                "Derivatives, outputs, witnesses and publish handlers may only read the context. "
                "Discrete-update handlers may only write discrete state. "
                "Unrestricted-update handlers may write any state but never time."
            ),
            context={'fqn': self.fqn, 'time': self.time}
        )


@dataclass(eq=False)
class UnconnectedInputError(SimulationFailure):
    """Raised when a required input port is evaluated but has neither a connection nor a fixed value."""
    fqn: str
    port_name: str
    time: Optional[float] = None

    kind = FailureKind.EVALUATION

    def summary(self) -> str:
        return f"Required input port '{self.port_name}' of '{self.fqn}' has no value source."

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unconnected Input Port",
            details=self.summary(),
            suggestion="Connect the port inside a diagram, export it, or fix its value with Context.fix_input_port().",
            context={'fqn': self.fqn, 'time': self.time}
        )


@dataclass(eq=False)
class NonFiniteValueError(SimulationFailure):
    """Raised when an output port evaluates to NaN or an infinite value."""
    fqn: str
    operation: str
    value: list
    time: Optional[float] = None

    kind = FailureKind.NUMERIC

    def summary(self) -> str:
        return f"{self.operation} of system '{self.fqn}' is non-finite: {self.value}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Non-Finite Output Value",
            details=self.summary(),
            suggestion="Outputs must stay finite along the trajectory. Check the calculation for divisions by zero or unbounded state.",
            context={'fqn': self.fqn, 'time': self.time}
        )
