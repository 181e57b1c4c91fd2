# src/hysim_core/framework/context.py
"""
Defines the Context: the mutable, per-run data a System is evaluated against.

A System is a stateless description; everything that changes during a simulation
(time, state, numeric parameters and fixed input values) lives in a Context
allocated by that System. Leaf systems allocate a `LeafContext`. Diagrams allocate a
`DiagramContext`, which is the disjoint union of one sub-context per child plus the
index-based connection table that lets a child's input port find its value source.

Children hold a weak, non-owning reference to their parent DiagramContext. Every
context is exclusively owned by the tree it was allocated in, so cloning a root
context produces a fully independent copy suitable for a separate trajectory.

Writes are guarded by `AccessPermissions`. Outside of event handling a root context
is fully writable. While an event handler runs, the Simulator narrows the
permissions of the handler's context (see `ContextBase.restricted`).
"""
import logging
import weakref
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

import numpy as np

from .state import State, read_only_view
from .exceptions import ContextAccessError

if TYPE_CHECKING:
    from .system_base import SystemBase

logger = logging.getLogger(__name__)


# --- Access Control ---

@dataclass(frozen=True)
class AccessPermissions:
    """Which parts of a context may currently be written."""
    time: bool = True
    continuous: bool = True
    discrete: bool = True
    abstract: bool = True
    #: Numeric parameters and fixed input values.
    parameters: bool = True


FULL_ACCESS = AccessPermissions()
READ_ONLY = AccessPermissions(time=False, continuous=False, discrete=False, abstract=False, parameters=False)


# --- Input Value Sources ---

@dataclass(frozen=True)
class FixedInput:
    """An input port whose value was fixed directly in the context."""
    value: np.ndarray


@dataclass(frozen=True)
class ConnectedInput:
    """A child input port fed by the output port of a sibling child."""
    source_child_index: int
    source_port_index: int


@dataclass(frozen=True)
class ExportedInput:
    """A child input port fed by an input port of the enclosing diagram."""
    diagram_port_index: int


InputSource = Union[FixedInput, ConnectedInput, ExportedInput]


class ContextBase(ABC):
    """Behaviour shared by leaf and diagram contexts: time, parentage, fixed inputs and access control."""

    def __init__(self, system: "SystemBase", num_input_ports: int):
        self._system = system
        self._time: float = 0.0
        self._num_input_ports = num_input_ports
        self._fixed_inputs: Dict[int, np.ndarray] = {}
        self._parent_ref: Optional[weakref.ReferenceType] = None
        self._index_in_parent: Optional[int] = None
        self._permissions: AccessPermissions = FULL_ACCESS

    # --- Identity and parentage ---

    @property
    def system(self) -> "SystemBase":
        """The system that allocated this context."""
        return self._system

    @property
    def parent(self) -> Optional["DiagramContext"]:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def index_in_parent(self) -> Optional[int]:
        return self._index_in_parent

    @property
    def is_root(self) -> bool:
        return self._parent_ref is None

    def _link_parent(self, parent: "DiagramContext", index: int) -> None:
        self._parent_ref = weakref.ref(parent)
        self._index_in_parent = index

    def _check_access(self, part: str, operation: str) -> None:
        if not getattr(self._permissions, part):
            raise ContextAccessError(
                fqn=self._system.fqn,
                operation=operation,
                details=f"Writing {part} is not permitted in the current phase.",
                time=self._time,
            )

    # --- Time ---

    @property
    def time(self) -> float:
        return self._time

    def set_time(self, time: float) -> None:
        """Sets the time of a root context and of every sub-context beneath it."""
        if not self.is_root:
            raise ContextAccessError(
                fqn=self._system.fqn,
                operation="set_time",
                details="Time is owned by the root context and cannot be set on a sub-context.",
                time=self._time,
            )
        self._check_access('time', "set_time")
        self._propagate_time(float(time))

    def _propagate_time(self, time: float) -> None:
        self._time = time

    # --- Inputs ---

    @property
    def num_input_ports(self) -> int:
        return self._num_input_ports

    def fix_input_port(self, index: int, value: Any) -> None:
        """
        Fixes the value of one of this context's input ports.

        For a child of a diagram, only ports without a connection or export may be fixed.
        """
        if not 0 <= index < self._num_input_ports:
            raise IndexError(f"Input port index {index} out of range for '{self._system.fqn}'.")
        self._check_access('parameters', "fix_input_port")
        parent = self.parent
        if parent is not None and parent.child_input_source(self._index_in_parent, index) is not None:
            raise ContextAccessError(
                fqn=self._system.fqn,
                operation="fix_input_port",
                details=f"Input port {index} is already connected inside its diagram.",
                time=self._time,
            )
        port = self._system.get_input_port(index)
        vector = np.array(value, dtype=float).reshape(-1)
        if vector.size != port.size:
            raise ValueError(
                f"Input port '{port.name}' of '{self._system.fqn}' has size {port.size}; got {vector.size} values."
            )
        vector.flags.writeable = False
        self._fixed_inputs[index] = vector
        logger.debug(f"Fixed input port '{port.name}' of '{self._system.fqn}' to {vector.tolist()}")

    def get_input_source(self, index: int) -> Optional[InputSource]:
        """Returns where input port `index` gets its value from, or None if nothing feeds it."""
        if index in self._fixed_inputs:
            return FixedInput(self._fixed_inputs[index])
        parent = self.parent
        if parent is None:
            return None
        return parent.child_input_source(self._index_in_parent, index)

    # --- Access restriction ---

    @contextmanager
    def restricted(self, permissions: AccessPermissions):
        """Narrows write access for this context (and every sub-context) for the duration of the block."""
        previous = self._collect_permissions()
        self._apply_permissions(permissions)
        try:
            yield self
        finally:
            self._restore_permissions(previous)

    def _collect_permissions(self) -> Any:
        return self._permissions

    def _apply_permissions(self, permissions: AccessPermissions) -> None:
        self._permissions = permissions

    def _restore_permissions(self, previous: Any) -> None:
        self._permissions = previous

    # --- Continuous state as one vector ---

    @property
    @abstractmethod
    def num_continuous_states(self) -> int:
        ...

    @abstractmethod
    def get_continuous_state_vector(self) -> np.ndarray:
        """Returns the continuous state of the whole tree as one read-only vector."""
        ...

    @abstractmethod
    def set_continuous_state_vector(self, values: Any) -> None:
        ...

    # --- Copying ---

    @abstractmethod
    def clone(self) -> "ContextBase":
        """
        Returns an independent deep copy. The copy has no parent: cloning a sub-context
        detaches it from the connections of its diagram.
        """
        ...

    @abstractmethod
    def restore_from(self, other: "ContextBase") -> None:
        """Overwrites time and all state with the values from a same-shaped context (e.g. a snapshot)."""
        ...

    def _copy_common_into(self, target: "ContextBase") -> None:
        target._time = self._time
        target._fixed_inputs = dict(self._fixed_inputs)


class LeafContext(ContextBase):
    """The context of a single leaf system: time, one `State`, numeric parameters and fixed inputs."""

    def __init__(
        self,
        system: "SystemBase",
        state: State,
        parameters: List[np.ndarray],
        num_input_ports: int,
    ):
        super().__init__(system, num_input_ports)
        self._state = state
        self._parameters = [np.array(p, dtype=float).reshape(-1) for p in parameters]

    def __repr__(self):
        return f"LeafContext(system='{self._system.fqn}', time={self._time}, state={self._state!r})"

    # --- State access ---

    @property
    def num_continuous_states(self) -> int:
        return self._state.num_continuous

    def get_continuous_state(self) -> np.ndarray:
        return self._state.continuous

    def set_continuous_state(self, values: Any) -> None:
        self._check_access('continuous', "set_continuous_state")
        self._state.set_continuous(values)

    def get_continuous_state_vector(self) -> np.ndarray:
        return self._state.continuous

    def set_continuous_state_vector(self, values: Any) -> None:
        self.set_continuous_state(values)

    @property
    def num_discrete_state_groups(self) -> int:
        return self._state.num_discrete_groups

    def get_discrete_state(self, index: int = 0) -> np.ndarray:
        return self._state.discrete(index)

    def set_discrete_state(self, index: int, values: Any) -> None:
        self._check_access('discrete', "set_discrete_state")
        self._state.set_discrete(index, values)

    @property
    def num_abstract_states(self) -> int:
        return self._state.num_abstract

    def get_abstract_state(self, index: int = 0) -> Any:
        return self._state.abstract(index)

    def set_abstract_state(self, index: int, value: Any) -> None:
        self._check_access('abstract', "set_abstract_state")
        self._state.set_abstract(index, value)

    # --- Parameters ---

    @property
    def num_numeric_parameters(self) -> int:
        return len(self._parameters)

    def get_numeric_parameter(self, index: int) -> np.ndarray:
        return read_only_view(self._parameters[index])

    def set_numeric_parameter(self, index: int, values: Any) -> None:
        self._check_access('parameters', "set_numeric_parameter")
        vector = np.array(values, dtype=float).reshape(-1)
        if vector.size != self._parameters[index].size:
            raise ValueError(
                f"Parameter {index} of '{self._system.fqn}' has size {self._parameters[index].size}; "
                f"got {vector.size} values."
            )
        self._parameters[index][:] = vector

    # --- Copying ---

    def clone(self) -> "LeafContext":
        twin = LeafContext(self._system, self._state.clone(), self._parameters, self._num_input_ports)
        self._copy_common_into(twin)
        return twin

    def restore_from(self, other: "ContextBase") -> None:
        if not isinstance(other, LeafContext) or other._system is not self._system:
            raise ValueError("Can only restore a leaf context from a context of the same system.")
        self._time = other._time
        self._state.copy_from(other._state)


class DiagramContext(ContextBase):
    """
    The context of a Diagram: one sub-context per child, in child declaration order,
    plus the table mapping each (child index, input port index) to its value source.
    """

    def __init__(
        self,
        system: "SystemBase",
        children: List[ContextBase],
        input_sources: Dict[Tuple[int, int], InputSource],
        num_input_ports: int,
    ):
        super().__init__(system, num_input_ports)
        self._children = list(children)
        self._input_sources = dict(input_sources)
        for index, child in enumerate(self._children):
            child._link_parent(self, index)

    def __repr__(self):
        return f"DiagramContext(system='{self._system.fqn}', time={self._time}, children={len(self._children)})"

    @property
    def num_subcontexts(self) -> int:
        return len(self._children)

    def get_subcontext(self, index: int) -> ContextBase:
        return self._children[index]

    def child_input_source(self, child_index: int, port_index: int) -> Optional[InputSource]:
        return self._input_sources.get((child_index, port_index))

    def _propagate_time(self, time: float) -> None:
        self._time = time
        for child in self._children:
            child._propagate_time(time)

    # --- Access restriction over the whole subtree ---

    def _collect_permissions(self) -> Any:
        return (self._permissions, [child._collect_permissions() for child in self._children])

    def _apply_permissions(self, permissions: AccessPermissions) -> None:
        self._permissions = permissions
        for child in self._children:
            child._apply_permissions(permissions)

    def _restore_permissions(self, previous: Any) -> None:
        own, children = previous
        self._permissions = own
        for child, child_previous in zip(self._children, children):
            child._restore_permissions(child_previous)

    # --- Continuous state ---

    @property
    def num_continuous_states(self) -> int:
        return sum(child.num_continuous_states for child in self._children)

    def get_continuous_state_vector(self) -> np.ndarray:
        parts = [child.get_continuous_state_vector() for child in self._children]
        vector = np.concatenate(parts) if parts else np.zeros(0)
        vector.flags.writeable = False
        return vector

    def set_continuous_state_vector(self, values: Any) -> None:
        self._check_access('continuous', "set_continuous_state_vector")
        vector = np.array(values, dtype=float).reshape(-1)
        expected = self.num_continuous_states
        if vector.size != expected:
            raise ValueError(
                f"Diagram '{self._system.fqn}' has {expected} continuous states; cannot assign {vector.size} values."
            )
        offset = 0
        for child in self._children:
            size = child.num_continuous_states
            if size:
                child.set_continuous_state_vector(vector[offset:offset + size])
            offset += size

    # --- Copying ---

    def clone(self) -> "DiagramContext":
        twin = DiagramContext(
            self._system,
            [child.clone() for child in self._children],
            self._input_sources,
            self._num_input_ports,
        )
        self._copy_common_into(twin)
        return twin

    def restore_from(self, other: "ContextBase") -> None:
        if not isinstance(other, DiagramContext) or other._system is not self._system:
            raise ValueError("Can only restore a diagram context from a context of the same diagram.")
        self._time = other._time
        for child, other_child in zip(self._children, other._children):
            child.restore_from(other_child)


Context = ContextBase
