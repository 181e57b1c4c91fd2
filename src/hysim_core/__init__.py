# src/hysim_core/__init__.py
import logging
from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("HySim Core package initialized.")

from .units import ureg, pint, Quantity, TIME_DIMENSIONALITY, RATE_DIMENSIONALITY
from .errors import HySimError, SystemBuildError, SimulationRunError, FailureKind, SimulationFailure
from .framework import (
    State,
    ContextBase,
    Context,
    LeafContext,
    DiagramContext,
    InputPort,
    OutputPort,
    WitnessTriggerType,
    EventAction,
    DiscreteEvent,
    WitnessFunction,
    SystemBase,
    LeafSystem,
    Diagram,
    DiagramBuilder,
    SystemConfigurationError,
    SystemEvaluationError,
    ContextAccessError,
    UnconnectedInputError,
    NonFiniteValueError,
)
from .integrators import (
    IntegratorBase,
    IntegrationError,
    INTEGRATOR_REGISTRY,
    register_integrator,
    create_integrator,
)
from .simulation import (
    SimulatorConfig,
    ConfigParsingError,
    parse_simulator_config,
    load_simulator_config,
    Simulator,
    SimulatorPhase,
    SimulationResult,
    SimulationOutcome,
    OutcomeStatus,
    EventRecord,
    WitnessEvaluationError,
    ExcessiveEventsError,
    simulate,
)

__all__ = [
    # Units
    "ureg", "pint", "Quantity",
    # Canonical dimensionalities
    "TIME_DIMENSIONALITY", "RATE_DIMENSIONALITY",
    # State, Context and Systems
    "State", "ContextBase", "Context", "LeafContext", "DiagramContext",
    "InputPort", "OutputPort",
    "WitnessTriggerType", "EventAction", "DiscreteEvent", "WitnessFunction",
    "SystemBase", "LeafSystem", "Diagram", "DiagramBuilder",
    # Integrators
    "IntegratorBase", "INTEGRATOR_REGISTRY", "register_integrator", "create_integrator",
    # Simulation
    "SimulatorConfig", "parse_simulator_config", "load_simulator_config",
    "Simulator", "SimulatorPhase", "simulate",
    "SimulationResult", "SimulationOutcome", "OutcomeStatus", "EventRecord",
    # Top-Level Errors (Actionable Diagnostics)
    "HySimError", "SystemBuildError", "SimulationRunError",
    # Run-time failure taxonomy
    "FailureKind", "SimulationFailure", "IntegrationError", "WitnessEvaluationError",
    "ExcessiveEventsError", "SystemEvaluationError", "ContextAccessError", "UnconnectedInputError", "NonFiniteValueError",
    # Build-time configuration
    "SystemConfigurationError", "ConfigParsingError",
]
