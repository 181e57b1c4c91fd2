# tests/test_context.py

"""
Tests for State and Context: fixed sizes, read-only views, cloning, snapshots,
time ownership and access permissions.
"""

import numpy as np
import pytest

from hysim_core import ContextAccessError, DiagramBuilder, EventAction, State
from hysim_core.framework import AccessPermissions, FixedInput
from hysim_core.library import ConstantSource, ContinuousIntegrator, Gain

from conftest import BouncingBall, ConstantVelocity


class TestState:

    def test_sizes_are_fixed(self):
        """VERIFIES: Assigning a vector of a different size to a state part is rejected."""
        state = State(continuous=[1.0, 2.0], discrete=[[0.0]], abstract=["tag"])
        with pytest.raises(ValueError, match="size 2"):
            state.set_continuous([1.0])
        with pytest.raises(ValueError, match="size 1"):
            state.set_discrete(0, [1.0, 2.0])
        assert state.num_continuous == 2
        assert state.num_discrete_groups == 1
        assert state.num_abstract == 1

    def test_abstract_slots_are_fixed(self):
        state = State(abstract=["tag"])
        state.set_abstract(0, {"mode": "open"})
        assert state.abstract(0) == {"mode": "open"}
        for index in (1, -1):
            with pytest.raises(IndexError, match="out of range"):
                state.set_abstract(index, "extra")
        assert state.num_abstract == 1

    def test_continuous_view_is_read_only(self):
        state = State(continuous=[1.0, 2.0])
        view = state.continuous
        with pytest.raises(ValueError):
            view[0] = 5.0
        state.set_continuous([3.0, 4.0])
        np.testing.assert_array_equal(view, [3.0, 4.0])

    def test_clone_deep_copies_abstract_values(self):
        """VERIFIES: A cloned state shares no mutable data with its source."""
        state = State(continuous=[1.0], discrete=[[2.0]], abstract=[{"hits": []}])
        twin = state.clone()
        twin.set_continuous([10.0])
        twin.set_discrete(0, [20.0])
        twin.abstract(0)["hits"].append(1)

        np.testing.assert_array_equal(state.continuous, [1.0])
        np.testing.assert_array_equal(state.discrete(0), [2.0])
        assert state.abstract(0) == {"hits": []}


class TestLeafContext:

    def test_default_context_holds_declared_defaults(self):
        ball = BouncingBall(height=2.0)
        context = ball.create_default_context()
        assert context.time == 0.0
        np.testing.assert_array_equal(context.get_continuous_state(), [2.0, 0.0])
        np.testing.assert_array_equal(context.get_discrete_state(ball.bounces), [0.0])
        assert context.is_root

    def test_clone_is_independent(self):
        """VERIFIES: Mutating a clone leaves the original untouched, and vice versa."""
        context = BouncingBall().create_default_context()
        twin = context.clone()
        twin.set_time(3.0)
        twin.set_continuous_state([0.5, -1.0])

        assert context.time == 0.0
        np.testing.assert_array_equal(context.get_continuous_state(), [1.0, 0.0])

        context.set_continuous_state([7.0, 7.0])
        np.testing.assert_array_equal(twin.get_continuous_state(), [0.5, -1.0])

    def test_restore_from_snapshot(self):
        context = BouncingBall().create_default_context()
        snapshot = context.clone()
        context.set_time(1.5)
        context.set_continuous_state([-1.0, 2.0])
        context.set_discrete_state(0, [4.0])

        context.restore_from(snapshot)

        assert context.time == 0.0
        np.testing.assert_array_equal(context.get_continuous_state(), [1.0, 0.0])
        np.testing.assert_array_equal(context.get_discrete_state(0), [0.0])

    def test_restore_from_other_system_is_rejected(self):
        context = BouncingBall().create_default_context()
        with pytest.raises(ValueError, match="same system"):
            context.restore_from(BouncingBall().create_default_context())

    def test_restricted_permissions_block_writes_and_are_restored(self):
        """VERIFIES: Writes outside the active permissions raise, and leaving the block restores full access."""
        context = BouncingBall().create_default_context()
        with context.restricted(EventAction.DISCRETE_UPDATE.permissions):
            context.set_discrete_state(0, [1.0])
            with pytest.raises(ContextAccessError, match="continuous"):
                context.set_continuous_state([0.0, 0.0])
            with pytest.raises(ContextAccessError, match="time"):
                context.set_time(1.0)

        context.set_continuous_state([0.0, 0.0])
        context.set_time(1.0)
        assert context.time == 1.0

    def test_unrestricted_update_may_not_write_time(self):
        context = BouncingBall().create_default_context()
        with context.restricted(EventAction.UNRESTRICTED_UPDATE.permissions):
            context.set_continuous_state([0.0, 1.0])
            with pytest.raises(ContextAccessError):
                context.set_time(2.0)

    def test_parameters_write_permission(self):
        source = ConstantSource([1.0, 2.0])
        context = source.create_default_context()
        context.set_numeric_parameter(0, [3.0, 4.0])
        np.testing.assert_array_equal(source.calc_output(context, "y"), [3.0, 4.0])
        with context.restricted(AccessPermissions(parameters=False)):
            with pytest.raises(ContextAccessError):
                context.set_numeric_parameter(0, [0.0, 0.0])

    def test_fix_input_port_checks_size(self):
        gain = Gain(2.0, size=2)
        context = gain.create_default_context()
        with pytest.raises(ValueError, match="size 2"):
            context.fix_input_port(0, [1.0])
        context.fix_input_port(0, [1.0, 2.0])
        assert isinstance(context.get_input_source(0), FixedInput)
        np.testing.assert_array_equal(gain.calc_output(context), [2.0, 4.0])

    def test_fix_input_port_requires_parameter_permission(self):
        """VERIFIES: An event handler without parameter access cannot rewire inputs."""
        gain = Gain(2.0, size=2)
        context = gain.create_default_context()
        for action in EventAction:
            with context.restricted(action.permissions):
                with pytest.raises(ContextAccessError, match="fix_input_port"):
                    context.fix_input_port(0, [1.0, 2.0])
        assert context.get_input_source(0) is None


class TestDiagramContext:

    @staticmethod
    def _build():
        builder = DiagramBuilder("plant")
        source = builder.add_system(ConstantSource(1.0), "source")
        first = builder.add_system(ContinuousIntegrator(1, [1.0]), "first")
        second = builder.add_system(ConstantVelocity(x0=5.0), "second")
        builder.connect(source.get_output_port("y"), first.get_input_port("u"))
        return builder.build(), first, second

    def test_continuous_vector_concatenates_in_declaration_order(self):
        diagram, first, second = self._build()
        context = diagram.create_default_context()
        np.testing.assert_array_equal(context.get_continuous_state_vector(), [1.0, 5.0])

        context.set_continuous_state_vector([2.0, 3.0])
        np.testing.assert_array_equal(diagram.get_subsystem_context(first, context).get_continuous_state(), [2.0])
        np.testing.assert_array_equal(diagram.get_subsystem_context(second, context).get_continuous_state(), [3.0])

    def test_time_is_owned_by_the_root(self):
        """VERIFIES: Time set on the root propagates down; setting it on a sub-context is refused."""
        diagram, first, _ = self._build()
        context = diagram.create_default_context()
        context.set_time(0.25)
        sub = diagram.get_subsystem_context(first, context)
        assert sub.time == 0.25
        assert not sub.is_root
        with pytest.raises(ContextAccessError, match="root"):
            sub.set_time(1.0)

    def test_connected_port_cannot_be_fixed(self):
        diagram, first, _ = self._build()
        context = diagram.create_default_context()
        with pytest.raises(ContextAccessError, match="already connected"):
            diagram.get_subsystem_context(first, context).fix_input_port(0, [1.0])

    def test_clone_of_diagram_context_is_independent(self):
        diagram, first, _ = self._build()
        context = diagram.create_default_context()
        twin = context.clone()
        twin.set_time(1.0)
        twin.set_continuous_state_vector([9.0, 9.0])

        assert context.time == 0.0
        np.testing.assert_array_equal(context.get_continuous_state_vector(), [1.0, 5.0])
        assert diagram.get_subsystem_context(first, twin).parent is twin

    def test_restricted_applies_to_the_whole_subtree(self):
        diagram, first, _ = self._build()
        context = diagram.create_default_context()
        sub = diagram.get_subsystem_context(first, context)
        with context.restricted(EventAction.PUBLISH.permissions):
            with pytest.raises(ContextAccessError):
                sub.set_continuous_state([0.0])
        sub.set_continuous_state([0.0])

    def test_foreign_context_is_rejected(self):
        diagram, _, _ = self._build()
        with pytest.raises(ContextAccessError, match="allocated by"):
            diagram.calc_time_derivatives(BouncingBall().create_default_context())
