# src/hysim_core/simulation/__init__.py
from .exceptions import WitnessEvaluationError, ExcessiveEventsError
from .config import SimulatorConfig, ConfigParsingError, parse_simulator_config, load_simulator_config
from .results import (
    OutcomeStatus,
    SimulationOutcome,
    EventRecord,
    SimulatorStatistics,
    SimulationResult,
)
from .isolation import EventIsolator, evaluate_witnesses
from .simulator import Simulator, SimulatorPhase
from .execution import simulate

__all__ = [
    # Exceptions
    "WitnessEvaluationError",
    "ExcessiveEventsError",
    # Configuration
    "SimulatorConfig",
    "ConfigParsingError",
    "parse_simulator_config",
    "load_simulator_config",
    # Results
    "OutcomeStatus",
    "SimulationOutcome",
    "EventRecord",
    "SimulatorStatistics",
    "SimulationResult",
    # Core Classes
    "EventIsolator",
    "evaluate_witnesses",
    "Simulator",
    "SimulatorPhase",
    "simulate",
]
