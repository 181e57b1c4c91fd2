# src/hysim_core/framework/diagram_builder.py
"""
Defines the DiagramBuilder, the only way to assemble systems into a `Diagram`.

The builder records systems, connections and exports without checking them. All
validation happens in `build()`, which runs the `DiagramValidator` over the complete
wiring and reports every problem in one `SystemBuildError`. This mirrors how a wiring
diagram is usually written: top to bottom, with ports referenced before everything
they depend on has been added.

Top-level error handling: any `DiagnosableError` raised while building is caught and
re-raised as a user-facing `SystemBuildError` carrying the diagnostic report.
"""
import logging
from typing import List, Optional, Tuple, Union

from ..errors import DiagnosableError, SystemBuildError
from ..validation import DiagramIssueCode, DiagramValidationError, DiagramValidator, ValidationIssue, ValidationIssueLevel
from .diagram import Diagram
from .ports import InputPort, OutputPort
from .system_base import SystemBase

logger = logging.getLogger(__name__)


class DiagramBuilder:
    """Collects subsystems and their wiring, then builds an immutable `Diagram`."""

    def __init__(self, name: str = "diagram"):
        self.name = name
        self._systems: List[SystemBase] = []
        self._connections: List[Tuple[OutputPort, InputPort]] = []
        self._input_exports: List[Tuple[str, List[InputPort]]] = []
        self._output_exports: List[Tuple[str, OutputPort]] = []
        self._built = False

    def add_system(self, system: SystemBase, name: Optional[str] = None) -> SystemBase:
        """Adds a system (optionally renaming it first) and returns it for chaining."""
        if name is not None:
            system.set_name(name)
        self._systems.append(system)
        logger.debug(f"Builder '{self.name}': added system '{system.name}' ({type(system).__name__}).")
        return system

    @property
    def systems(self) -> Tuple[SystemBase, ...]:
        return tuple(self._systems)

    def connect(self, source: OutputPort, dest: InputPort) -> None:
        """Feeds input port `dest` from output port `source`. Both systems must be added to this builder."""
        self._connections.append((source, dest))

    def export_input(self, port: InputPort, name: Optional[str] = None) -> int:
        """
        Exposes a child input port as a new input port of the diagram. Returns the
        index of the diagram port. Use `connect_input` to fan that port out to more children.
        """
        export_name = name if name is not None else f"{port.system.name}_{port.name}"
        self._input_exports.append((export_name, [port]))
        return len(self._input_exports) - 1

    def connect_input(self, diagram_port: Union[int, str], port: InputPort) -> None:
        """Feeds another child input port from an already exported diagram input."""
        if isinstance(diagram_port, str):
            matches = [i for i, (name, _) in enumerate(self._input_exports) if name == diagram_port]
            if not matches:
                raise KeyError(f"Builder '{self.name}' has no exported input named '{diagram_port}'.")
            diagram_port = matches[0]
        self._input_exports[diagram_port][1].append(port)

    def export_output(self, port: OutputPort, name: Optional[str] = None) -> int:
        export_name = name if name is not None else f"{port.system.name}_{port.name}"
        self._output_exports.append((export_name, port))
        return len(self._output_exports) - 1

    def build(self) -> Diagram:
        """
        Validates the wiring and returns the new `Diagram`, which takes ownership of
        every added system.

        Raises:
            SystemBuildError: A user-friendly report of every wiring error found.
        """
        try:
            if self._built:
                raise DiagramValidationError([ValidationIssue(
                    level=ValidationIssueLevel.ERROR,
                    code=DiagramIssueCode.DIAG_BUILDER_REUSED.code,
                    message=DiagramIssueCode.DIAG_BUILDER_REUSED.format_message(diagram_name=self.name),
                    diagram_name=self.name,
                )])

            validator = DiagramValidator(
                self.name, self._systems, self._connections, self._input_exports, self._output_exports
            )
            issues = validator.validate()
            if any(issue.level == ValidationIssueLevel.ERROR for issue in issues):
                raise DiagramValidationError(issues)

            diagram = Diagram(
                self.name,
                self._systems,
                self._connections,
                [(name, list(ports)) for name, ports in self._input_exports],
                self._output_exports,
            )
            self._built = True
            logger.info(f"Built diagram '{self.name}' with {len(self._systems)} subsystems.")
            return diagram

        except DiagnosableError as e:
            logger.error(f"Failed to build diagram '{self.name}': {e}")
            raise SystemBuildError(e.get_diagnostic_report()) from e
