# src/hysim_core/integrators/exceptions.py
from dataclasses import dataclass
from typing import Optional

from ..errors import FailureKind, SimulationFailure, format_diagnostic_report


@dataclass(eq=False)
class IntegrationError(SimulationFailure):
    """
    A numeric failure of continuous integration: a non-finite derivative, a step size
    driven below its floor, an exhausted step budget, or a failed external solver.
    """
    details: str
    time: Optional[float] = None
    integrator_name: Optional[str] = None
    fqn: Optional[str] = None

    kind = FailureKind.NUMERIC

    def summary(self) -> str:
        where = f" at t={self.time:.9g}" if self.time is not None else ""
        return f"Integration failed{where}: {self.details}"

    def get_diagnostic_report(self) -> str:
        details = self.details
        if self.integrator_name:
            details += f"\nIntegrator: {self.integrator_name}"
        return format_diagnostic_report(
            error_type="Numerical Integration Failure",
            details=details,
            suggestion=(
                "Check the derivative function for singularities or unbounded growth near the reported time. "
                "For stiff dynamics, try a smaller max_step_size or an implicit SciPy method (Radau, BDF)."
            ),
            context={'fqn': self.fqn, 'time': self.time}
        )
