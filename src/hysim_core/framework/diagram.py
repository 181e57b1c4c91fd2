# src/hysim_core/framework/diagram.py
"""
Defines `Diagram`, a system composed of child systems wired together by port connections.

A Diagram is created by `DiagramBuilder.build()` after validation, never edited
afterwards. It exclusively owns its children, in declaration order, and presents them
to the Simulator as a single system:

- Its continuous state is the concatenation of the children's, in declaration order.
- Its witness functions are the concatenation of the children's, in declaration order;
  each witness keeps a reference to its owning leaf and is evaluated against that
  leaf's sub-context.
- Events are routed to the child that owns the triggered witness.

Connections are resolved by index through the DiagramContext, so a child's input port
reads the value of the sibling output (or exported diagram input) that feeds it.
"""
import logging
from typing import Dict, List, Sequence, Tuple

import networkx as nx
import numpy as np

from ..errors import FrameworkLogicError
from .context import ConnectedInput, ContextBase, DiagramContext, ExportedInput, InputSource
from .exceptions import SystemConfigurationError
from .ports import InputPort, OutputPort
from .system_base import SystemBase
from .witness import WitnessFunction

logger = logging.getLogger(__name__)

Connection = Tuple[OutputPort, InputPort]
InputExport = Tuple[str, List[InputPort]]
OutputExport = Tuple[str, OutputPort]


def build_port_graph(
    systems: Sequence[SystemBase],
    connections: Sequence[Connection],
    input_exports: Sequence[InputExport],
    output_exports: Sequence[OutputExport],
) -> nx.DiGraph:
    """
    Builds the directed value-flow graph of a prospective diagram at port granularity.

    Nodes are ('u', child, port) for child inputs, ('y', child, port) for child outputs,
    ('U', k) for diagram inputs and ('Y', k) for diagram outputs. Edges follow the flow
    of values: a connection links an output to an input, and a feedthrough links an
    input of a child to those of its outputs that read it directly. A cycle in this
    graph is an algebraic loop. Ports of systems not in `systems` are ignored.
    """
    index_of = {id(system): i for i, system in enumerate(systems)}
    graph = nx.DiGraph()

    for i, system in enumerate(systems):
        for in_port in system._input_ports:
            graph.add_node(('u', i, in_port.index), label=f"{system.name}.{in_port.name}")
        for out_port in system._output_ports:
            graph.add_node(('y', i, out_port.index), label=f"{system.name}.{out_port.name}")
            for in_port in system._input_ports:
                if out_port.depends_on_input(in_port.index):
                    graph.add_edge(('u', i, in_port.index), ('y', i, out_port.index))

    for source, dest in connections:
        if id(source.system) in index_of and id(dest.system) in index_of:
            graph.add_edge(
                ('y', index_of[id(source.system)], source.index),
                ('u', index_of[id(dest.system)], dest.index),
            )

    for k, (name, ports) in enumerate(input_exports):
        graph.add_node(('U', k), label=name)
        for port in ports:
            if id(port.system) in index_of:
                graph.add_edge(('U', k), ('u', index_of[id(port.system)], port.index))

    for k, (name, port) in enumerate(output_exports):
        graph.add_node(('Y', k), label=name)
        if id(port.system) in index_of:
            graph.add_edge(('y', index_of[id(port.system)], port.index), ('Y', k))

    return graph


class Diagram(SystemBase):
    """A composite system. Construct through `DiagramBuilder`."""

    def __init__(
        self,
        name: str,
        systems: Sequence[SystemBase],
        connections: Sequence[Connection],
        input_exports: Sequence[InputExport],
        output_exports: Sequence[OutputExport],
    ):
        super().__init__(name)
        self._children: List[SystemBase] = list(systems)
        self._index_of: Dict[int, int] = {id(system): i for i, system in enumerate(self._children)}
        self._input_sources: Dict[Tuple[int, int], InputSource] = {}

        for source, dest in connections:
            key = (self._index_of[id(dest.system)], dest.index)
            self._input_sources[key] = ConnectedInput(self._index_of[id(source.system)], source.index)

        for k, (port_name, ports) in enumerate(input_exports):
            for port in ports:
                self._input_sources[(self._index_of[id(port.system)], port.index)] = ExportedInput(k)
            self._input_ports.append(
                InputPort(self, k, port_name, ports[0].size, required=any(p.required for p in ports))
            )

        self._port_graph = build_port_graph(self._children, connections, input_exports, output_exports)
        if not nx.is_directed_acyclic_graph(self._port_graph):
            raise FrameworkLogicError(f"Diagram '{name}' was constructed with an algebraic loop.")

        for k, (port_name, port) in enumerate(output_exports):
            child_index = self._index_of[id(port.system)]
            feedthrough = tuple(
                j for j in range(len(input_exports))
                if nx.has_path(self._port_graph, ('U', j), ('Y', k))
            )
            self._output_ports.append(
                OutputPort(
                    self, k, port_name, port.size,
                    self._make_forwarding_calc(child_index, port.index),
                    feedthrough,
                )
            )

        for child in self._children:
            child._parent = self

        logger.debug(
            f"Diagram '{name}' assembled: {len(self._children)} children, {len(connections)} connections, "
            f"{len(self._input_ports)} exported inputs, {len(self._output_ports)} exported outputs."
        )

    def _make_forwarding_calc(self, child_index: int, port_index: int):
        def calc(context: DiagramContext):
            child = self._children[child_index]
            return child.get_output_port(port_index).eval(context.get_subcontext(child_index))
        return calc

    # --- Structure ---

    @property
    def children(self) -> Tuple[SystemBase, ...]:
        return tuple(self._children)

    @property
    def num_subsystems(self) -> int:
        return len(self._children)

    def get_child(self, index: int) -> SystemBase:
        return self._children[index]

    def get_subsystem_by_name(self, name: str) -> SystemBase:
        for child in self._children:
            if child.name == name:
                return child
        raise KeyError(f"Diagram '{self.fqn}' has no subsystem named '{name}'.")

    @property
    def port_graph(self) -> nx.DiGraph:
        """A copy of the port-level value-flow graph of this diagram's children."""
        return self._port_graph.copy()

    def _child_index_containing(self, system: SystemBase) -> int:
        current = system
        while current is not None and current._parent is not self:
            current = current._parent
        if current is None:
            raise SystemConfigurationError(
                fqn=self.fqn,
                details=f"System '{system.fqn}' is not contained in diagram '{self.fqn}'.",
            )
        return self._index_of[id(current)]

    # --- Contexts ---

    def allocate_context(self) -> DiagramContext:
        return DiagramContext(
            self,
            [child.allocate_context() for child in self._children],
            self._input_sources,
            len(self._input_ports),
        )

    @property
    def num_continuous_states(self) -> int:
        return sum(child.num_continuous_states for child in self._children)

    def get_subsystem_context(self, subsystem: SystemBase, context: ContextBase) -> ContextBase:
        self.validate_context(context)
        if subsystem is self:
            return context
        child_index = self._child_index_containing(subsystem)
        child = self._children[child_index]
        return child.get_subsystem_context(subsystem, context.get_subcontext(child_index))

    # --- Capabilities ---

    def _do_calc_time_derivatives(self, context: DiagramContext) -> np.ndarray:
        parts = [
            child.calc_time_derivatives(context.get_subcontext(i))
            for i, child in enumerate(self._children)
        ]
        return np.concatenate(parts) if parts else np.zeros(0)

    def get_witness_functions(self, context: ContextBase) -> List[WitnessFunction]:
        self.validate_context(context)
        witnesses: List[WitnessFunction] = []
        for i, child in enumerate(self._children):
            witnesses.extend(child.get_witness_functions(context.get_subcontext(i)))
        return witnesses

    def handle_event(self, witness: WitnessFunction, context: ContextBase) -> None:
        self.validate_context(context)
        child_index = self._child_index_containing(witness.system)
        self._children[child_index].handle_event(witness, context.get_subcontext(child_index))
