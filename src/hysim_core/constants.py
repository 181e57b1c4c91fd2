# src/hysim_core/constants.py
import logging

logger = logging.getLogger(__name__)

# --- Numerical Defaults for the Simulator ---

#: Upper bound on a single committed simulator step, in seconds.
DEFAULT_MAX_STEP_SIZE: float = 0.1

#: Width below which a bracketed witness crossing is considered isolated, in seconds.
DEFAULT_EVENT_ISOLATION_TOLERANCE: float = 1.0e-9

#: Isolated events allowed inside any one-second window before a run is declared Zeno.
DEFAULT_MAX_EVENTS_PER_UNIT_TIME: int = 1000

#: Consecutive events isolated at (numerically) the same time before a run is declared Zeno.
DEFAULT_MAX_COINCIDENT_EVENTS: int = 100

#: Step budget an integrator may spend on a single simulator step.
DEFAULT_MAX_INTEGRATION_STEPS: int = 100_000

# --- Error-Controlled Integration ---

DEFAULT_RELATIVE_TOLERANCE: float = 1.0e-6
DEFAULT_ABSOLUTE_TOLERANCE: float = 1.0e-9

#: Steps smaller than this (relative to the current time scale) are a numeric failure.
DEFAULT_MIN_STEP_SIZE: float = 1.0e-12

#: Fixed step used by the fixed-step integrators unless overridden, in seconds.
DEFAULT_FIXED_STEP_SIZE: float = 1.0e-3

logger.debug("Defined core simulator constants.")
