# src/hysim_core/framework/__init__.py
from .exceptions import (
    ContextAccessError,
    NonFiniteValueError,
    SystemConfigurationError,
    SystemEvaluationError,
    UnconnectedInputError,
)
from .state import State
from .context import (
    AccessPermissions,
    ContextBase,
    Context,
    LeafContext,
    DiagramContext,
    FixedInput,
    ConnectedInput,
    ExportedInput,
)
from .ports import InputPort, OutputPort
from .witness import DiscreteEvent, EventAction, WitnessFunction, WitnessTriggerType
from .system_base import SystemBase
from .leaf_system import LeafSystem
from .diagram import Diagram, build_port_graph
from .diagram_builder import DiagramBuilder

__all__ = [
    # Exceptions
    "ContextAccessError",
    "NonFiniteValueError",
    "SystemConfigurationError",
    "SystemEvaluationError",
    "UnconnectedInputError",
    # State and Context
    "State",
    "AccessPermissions",
    "ContextBase",
    "Context",
    "LeafContext",
    "DiagramContext",
    "FixedInput",
    "ConnectedInput",
    "ExportedInput",
    # Ports, witnesses and events
    "InputPort",
    "OutputPort",
    "DiscreteEvent",
    "EventAction",
    "WitnessFunction",
    "WitnessTriggerType",
    # Systems
    "SystemBase",
    "LeafSystem",
    "Diagram",
    "build_port_graph",
    "DiagramBuilder",
]
