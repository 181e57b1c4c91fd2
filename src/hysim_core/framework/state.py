# src/hysim_core/framework/state.py
import copy
import logging
from typing import Any, List, Sequence

import numpy as np

logger = logging.getLogger(__name__)


def _as_vector(values: Any) -> np.ndarray:
    return np.array(values, dtype=float).reshape(-1)


def read_only_view(array: np.ndarray) -> np.ndarray:
    """Returns a view of `array` that raises on assignment."""
    view = array.view()
    view.flags.writeable = False
    return view


class State:
    """
    The complete state of a single leaf system.

    - `continuous`: one real vector, evolved by the integrator.
    - `discrete`: an ordered list of real vectors, changed only by event handlers.
    - `abstract`: an ordered list of arbitrary Python values, changed only by
      unrestricted-update handlers. They are deep-copied when the state is cloned.

    All vector sizes are fixed at construction. Setters copy values into the existing
    buffers and reject any size change.
    """

    def __init__(
        self,
        continuous: Sequence[float] = (),
        discrete: Sequence[Sequence[float]] = (),
        abstract: Sequence[Any] = (),
    ):
        self._continuous = _as_vector(continuous)
        self._discrete: List[np.ndarray] = [_as_vector(group) for group in discrete]
        self._abstract: List[Any] = [copy.deepcopy(value) for value in abstract]

    # --- Continuous ---

    @property
    def num_continuous(self) -> int:
        return self._continuous.size

    @property
    def continuous(self) -> np.ndarray:
        return read_only_view(self._continuous)

    def set_continuous(self, values: Any) -> None:
        vector = _as_vector(values)
        if vector.size != self._continuous.size:
            raise ValueError(
                f"Continuous state has size {self._continuous.size}; cannot assign {vector.size} values."
            )
        self._continuous[:] = vector

    # --- Discrete ---

    @property
    def num_discrete_groups(self) -> int:
        return len(self._discrete)

    def discrete(self, index: int) -> np.ndarray:
        return read_only_view(self._discrete[index])

    def set_discrete(self, index: int, values: Any) -> None:
        vector = _as_vector(values)
        current = self._discrete[index]
        if vector.size != current.size:
            raise ValueError(
                f"Discrete state group {index} has size {current.size}; cannot assign {vector.size} values."
            )
        current[:] = vector

    # --- Abstract ---

    @property
    def num_abstract(self) -> int:
        return len(self._abstract)

    def abstract(self, index: int) -> Any:
        return self._abstract[index]

    def set_abstract(self, index: int, value: Any) -> None:
        if not 0 <= index < len(self._abstract):
            raise IndexError(f"Abstract state index {index} out of range; {len(self._abstract)} declared.")
        self._abstract[index] = value

    # --- Copying ---

    def clone(self) -> "State":
        return State(self._continuous, self._discrete, self._abstract)

    def copy_from(self, other: "State") -> None:
        """Overwrites every value of this state with the values of a same-shaped state."""
        self.set_continuous(other._continuous)
        if len(other._discrete) != len(self._discrete) or len(other._abstract) != len(self._abstract):
            raise ValueError("Cannot copy between states with different layouts.")
        for index, group in enumerate(other._discrete):
            self.set_discrete(index, group)
        self._abstract = [copy.deepcopy(value) for value in other._abstract]

    def __repr__(self):
        return (
            f"State(continuous={self._continuous.tolist()}, "
            f"discrete={[group.tolist() for group in self._discrete]}, "
            f"abstract={self._abstract!r})"
        )
