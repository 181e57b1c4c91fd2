# src/hysim_core/validation/diagram_validator.py
import logging
from collections import Counter
from typing import Dict, List, Sequence, Set, Tuple

import networkx as nx

from ..framework.diagram import Connection, InputExport, OutputExport, build_port_graph
from ..framework.system_base import SystemBase
from .issues import ValidationIssue, ValidationIssueLevel
from .issue_codes import DiagramIssueCode

logger = logging.getLogger(__name__)


def _port_label(port) -> str:
    return f"{port.system.name}.{port.name}"


class DiagramValidator:
    """
    Checks a prospective diagram (the contents of a `DiagramBuilder`) for wiring errors
    before any `Diagram` object is created.

    Every check runs, so a single pass reports all problems. The caller decides what
    to do with the returned issues; `DiagramBuilder.build()` raises a
    `DiagramValidationError` if any of them is ERROR-level.
    """

    def __init__(
        self,
        diagram_name: str,
        systems: Sequence[SystemBase],
        connections: Sequence[Connection],
        input_exports: Sequence[InputExport],
        output_exports: Sequence[OutputExport],
    ):
        self.diagram_name = diagram_name
        self.systems = list(systems)
        self.connections = list(connections)
        self.input_exports = list(input_exports)
        self.output_exports = list(output_exports)
        self.issues: List[ValidationIssue] = []
        self._member_ids: Set[int] = {id(system) for system in self.systems}

    def validate(self) -> List[ValidationIssue]:
        self.issues = []
        logger.info(f"Validating diagram '{self.diagram_name}' ({len(self.systems)} systems, {len(self.connections)} connections)...")

        if not self.systems:
            self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.DIAG_EMPTY)
            return self.issues

        self._check_membership()
        foreign_free = self._check_foreign_ports()
        self._check_connection_sizes()
        self._check_input_sources()
        self._check_exports()
        if foreign_free:
            self._check_algebraic_loops()

        errors = sum(1 for i in self.issues if i.level == ValidationIssueLevel.ERROR)
        warnings = sum(1 for i in self.issues if i.level == ValidationIssueLevel.WARNING)
        infos = sum(1 for i in self.issues if i.level == ValidationIssueLevel.INFO)
        logger.info(f"Validation complete. Found: {errors} errors, {warnings} warnings, {infos} info messages.")
        return self.issues

    def _add_issue(self, level: ValidationIssueLevel, code_enum: DiagramIssueCode, system_fqn: str = None, **kwargs):
        message = code_enum.format_message(diagram_name=self.diagram_name, **kwargs)
        self.issues.append(ValidationIssue(
            level=level, code=code_enum.code, message=message,
            system_fqn=system_fqn, diagram_name=self.diagram_name, details=kwargs
        ))

    # --- Individual checks ---

    def _check_membership(self):
        for system_id, count in Counter(id(s) for s in self.systems).items():
            if count > 1:
                system = next(s for s in self.systems if id(s) == system_id)
                self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.SYS_ADDED_TWICE,
                                system_fqn=system.fqn, system_name=system.name)

        for system in self.systems:
            if system.parent is not None:
                self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.SYS_ALREADY_OWNED,
                                system_fqn=system.fqn, system_name=system.name, owner_fqn=system.parent.fqn)

        unique_systems = {id(s): s for s in self.systems}.values()
        for name, count in Counter(s.name for s in unique_systems).items():
            if count > 1:
                self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.SYS_NAME_DUPLICATE,
                                system_name=name, count=count)

    def _all_referenced_ports(self) -> list:
        ports = []
        for source, dest in self.connections:
            ports.extend([source, dest])
        for _, export_ports in self.input_exports:
            ports.extend(export_ports)
        ports.extend(port for _, port in self.output_exports)
        return ports

    def _check_foreign_ports(self) -> bool:
        reported: Set[Tuple[int, str, int]] = set()
        for port in self._all_referenced_ports():
            if id(port.system) in self._member_ids:
                continue
            key = (id(port.system), type(port).__name__, port.index)
            if key not in reported:
                reported.add(key)
                self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.CONN_FOREIGN_SYSTEM,
                                system_fqn=port.system.fqn, port_label=_port_label(port),
                                system_name=port.system.name)
        return not reported

    def _check_connection_sizes(self):
        for source, dest in self.connections:
            if source.size != dest.size:
                self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.CONN_SIZE_MISMATCH,
                                system_fqn=dest.system.fqn,
                                source_label=_port_label(source), source_size=source.size,
                                dest_label=_port_label(dest), dest_size=dest.size)

    def _check_input_sources(self):
        source_counts: Dict[Tuple[int, int], int] = Counter()
        for _, dest in self.connections:
            source_counts[(id(dest.system), dest.index)] += 1
        for _, export_ports in self.input_exports:
            for port in export_ports:
                source_counts[(id(port.system), port.index)] += 1

        for system in {id(s): s for s in self.systems}.values():
            for port in system._input_ports:
                count = source_counts.get((id(system), port.index), 0)
                label = _port_label(port)
                if count > 1:
                    self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.CONN_INPUT_MULTIPLY_DRIVEN,
                                    system_fqn=system.fqn, dest_label=label, count=count)
                elif count == 0 and port.required:
                    self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.INPUT_UNCONNECTED,
                                    system_fqn=system.fqn, dest_label=label)
                elif count == 0:
                    self._add_issue(ValidationIssueLevel.INFO, DiagramIssueCode.INPUT_OPTIONAL_UNCONNECTED,
                                    system_fqn=system.fqn, dest_label=label)

    def _check_exports(self):
        for kind, names in (("input", [n for n, _ in self.input_exports]),
                            ("output", [n for n, _ in self.output_exports])):
            for name, count in Counter(names).items():
                if count > 1:
                    self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.EXPORT_NAME_DUPLICATE,
                                    kind=kind, port_name=name)

        for name, export_ports in self.input_exports:
            sizes = sorted({port.size for port in export_ports})
            if len(sizes) > 1:
                self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.EXPORT_SIZE_MISMATCH,
                                port_name=name, sizes=sizes)

    def _check_algebraic_loops(self):
        graph = build_port_graph(self.systems, self.connections, self.input_exports, self.output_exports)
        try:
            cycle_edges = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            return
        labels = [graph.nodes[u].get('label', str(u)) for u, _ in cycle_edges]
        cycle = " -> ".join(labels + labels[:1])
        self._add_issue(ValidationIssueLevel.ERROR, DiagramIssueCode.CONN_ALGEBRAIC_LOOP, cycle=cycle)
