# src/hysim_core/errors.py
import logging
from abc import abstractmethod
from enum import Enum
from typing import Any, ClassVar, Dict, Protocol
from typing import runtime_checkable

logger = logging.getLogger(__name__)

# --- User-Facing Exception Hierarchy ---

class HySimError(Exception):
    """Base class for all custom, user-facing errors in HySim Core."""
    pass

class SystemBuildError(HySimError):
    """
    Raised when a system or diagram cannot be constructed: bad declarations,
    unconnected required inputs, cyclic connections or size mismatches.
    The message is a pre-formatted, user-friendly diagnostic report.
    """
    pass

class SimulationRunError(HySimError):
    """
    Raised when a simulation cannot be started or fails for a reason that is not a
    regular run outcome (e.g., an unfixed root input or an internal framework bug).
    The message is a pre-formatted, user-friendly diagnostic report.
    """
    pass


# --- Diagnostic Protocol & Base Exception ---

@runtime_checkable
class Diagnosable(Protocol):
    """
    A protocol for exceptions that can generate their own rich diagnostic report.
    Code that only needs the report can depend on this protocol instead of a
    concrete exception type.
    """
    def get_diagnostic_report(self) -> str:
        """Generates a complete, user-friendly, multi-line report string."""
        ...

class DiagnosableError(Exception, Diagnosable):
    """
    Concrete base class for all internal exceptions that are diagnosable.

    It inherits from `Exception`, so it can be used in `except` clauses, and declares
    `get_diagnostic_report` abstract, so every subclass has to provide a report.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        """
        Abstract method to generate the diagnostic report.
        Subclasses MUST implement this.
        """
        raise NotImplementedError


class FrameworkLogicError(DiagnosableError):
    """
    Raised when the framework detects a violation of one of its own internal
    contracts. This always indicates a bug in HySim Core, never a user error.
    """
    def __init__(self, details: str):
        self.details = details
        super().__init__(details)

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Internal Framework Logic Error",
            details=self.details,
            suggestion="This is a bug in HySim Core. Please file a report including the traceback.",
            context={}
        )


# --- Stateless Formatting Utility ---

def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    A stateless helper to format the final multi-line report string, ensuring a
    consistent look and feel for all user-facing diagnostics.

    Args:
        error_type: The high-level category of the error (e.g., "Integration Failure").
        details: A detailed, potentially multi-line description of the problem.
        suggestion: Actionable advice for the user to resolve the issue.
        context: A dictionary of contextual information (FQN, simulation time,
                 last good time, source file, user input).

    Returns:
        A formatted, user-friendly diagnostic report string ready for display.
    """
    lines = [
        "\n",
        "=============== HySim Core: Actionable Diagnostic Report ===============",
        f"Error Type:     {error_type}",
    ]
    if fqn := context.get('fqn'):
        lines.append(f"System FQN:     {fqn}")
    if (time := context.get('time')) is not None:
        lines.append(f"Sim Time:       {time}")
    if (last_good_time := context.get('last_good_time')) is not None:
        lines.append(f"Last Good Time: {last_good_time}")
    if source_file := context.get('source_file'):
        lines.append(f"Source File:    {source_file}")
    if user_input := context.get('user_input'):
        lines.append(f"User Input:     '{user_input}'")

    lines.append("\nDetails:")
    for line in details.splitlines():
        lines.append(f"  {line}")

    if suggestion:
        lines.append("\nSuggestion:")
        for line in suggestion.splitlines():
            lines.append(f"  {line}")

    lines.append("========================================================================")
    return "\n".join(lines)


# --- Run-Time Failure Taxonomy ---

class FailureKind(Enum):
    """Category of a fatal run-time failure, reported in a Failed outcome."""
    NUMERIC = "numeric"
    EVENT_STORM = "event_storm"
    EVALUATION = "evaluation"

    def __str__(self):
        return self.value


class SimulationFailure(DiagnosableError):
    """
    Base class for fatal failures that end a simulation run.

    The `Simulator` catches these, restores the last good state and reports them as
    a Failed outcome instead of propagating them. Subclasses carry the time at which
    the failure was detected in a `time` attribute (None when unknown) and implement
    `summary()`, a one-line reason used in the outcome and in `str()`.
    """
    kind: ClassVar[FailureKind] = FailureKind.EVALUATION

    @abstractmethod
    def summary(self) -> str:
        raise NotImplementedError

    def __str__(self):
        return self.summary()
