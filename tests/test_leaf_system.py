# tests/test_leaf_system.py

"""
Tests for the LeafSystem declaration API and the system capability contract:
derivatives, outputs, witness functions and event dispatch.
"""

import numpy as np
import pytest

from hysim_core import (
    ContextAccessError,
    EventAction,
    LeafSystem,
    SystemConfigurationError,
    SystemEvaluationError,
    UnconnectedInputError,
    WitnessTriggerType,
)
from hysim_core.errors import FrameworkLogicError
from hysim_core.framework import NonFiniteValueError

from conftest import BouncingBall, ConstantVelocity, CountingDerivative, LogisticSystem


class TestDeclarations:

    def test_continuous_state_declared_once(self):
        system = LeafSystem("twice")
        system.declare_continuous_state(2)
        with pytest.raises(SystemConfigurationError, match="already declared"):
            system.declare_continuous_state(1)

    def test_continuous_state_size_and_default_must_agree(self):
        with pytest.raises(SystemConfigurationError, match="size 3"):
            LeafSystem().declare_continuous_state(size=3, default=[1.0, 2.0])
        with pytest.raises(SystemConfigurationError, match="at least one"):
            LeafSystem().declare_continuous_state(size=0)

    def test_duplicate_names_are_rejected(self):
        system = LeafSystem("dup")
        system.declare_input_port("u", 1)
        with pytest.raises(SystemConfigurationError, match="Duplicate input port"):
            system.declare_input_port("u", 2)
        system.declare_numeric_parameter("k", 1.0)
        with pytest.raises(SystemConfigurationError, match="Duplicate parameter"):
            system.declare_numeric_parameter("k", 2.0)

    def test_update_witness_requires_callback(self):
        system = LeafSystem("guarded")
        with pytest.raises(SystemConfigurationError, match="without a callback"):
            system.declare_witness_function(
                "w", WitnessTriggerType.CROSSES_ZERO, lambda c: 0.0, action=EventAction.DISCRETE_UPDATE
            )

    def test_feedthrough_must_name_declared_inputs(self):
        system = LeafSystem("ft")
        system.declare_input_port("u", 1)
        with pytest.raises(SystemConfigurationError, match="undeclared feedthrough"):
            system.declare_output_port("y", 1, lambda c: [0.0], feedthrough=(0, 3))

    def test_parameter_lookup_by_name(self):
        system = LeafSystem("params")
        system.declare_numeric_parameter("a", 1.0)
        index = system.declare_numeric_parameter("b", [2.0, 3.0])
        assert system.get_parameter_index("b") == index
        context = system.create_default_context()
        np.testing.assert_array_equal(context.get_numeric_parameter(index), [2.0, 3.0])
        with pytest.raises(KeyError, match="no parameter 'c'"):
            system.get_parameter_index("c")


class TestCapabilities:

    def test_derivatives_have_declared_size(self, logistic_system):
        context = logistic_system.create_default_context()
        context.set_time(2.0)
        np.testing.assert_allclose(logistic_system.calc_time_derivatives(context), [4.0])

    def test_stateless_system_has_empty_derivatives(self):
        system = LeafSystem("empty")
        assert system.calc_time_derivatives(system.create_default_context()).size == 0

    def test_missing_derivative_override_is_a_configuration_error(self):
        system = LeafSystem("lazy")
        system.declare_continuous_state(1)
        with pytest.raises(SystemConfigurationError, match="do_calc_time_derivatives"):
            system.calc_time_derivatives(system.create_default_context())

    def test_wrong_sized_derivative_is_an_evaluation_error(self):
        class WrongSize(LeafSystem):
            def __init__(self):
                super().__init__()
                self.declare_continuous_state(2)

            def do_calc_time_derivatives(self, context):
                return [1.0]

        system = WrongSize()
        with pytest.raises(SystemEvaluationError, match="Expected 2 values"):
            system.calc_time_derivatives(system.create_default_context())

    def test_user_exception_is_wrapped_with_system_fqn(self):
        system = LeafSystem("faulty")
        system.declare_output_port("y", 1, lambda c: 1.0 / 0.0)
        with pytest.raises(SystemEvaluationError) as excinfo:
            system.calc_output(system.create_default_context())
        assert excinfo.value.fqn == "faulty"
        assert isinstance(excinfo.value.original_error, ZeroDivisionError)
        assert "ZeroDivisionError" in excinfo.value.get_diagnostic_report()

    def test_non_finite_output_is_a_numeric_failure(self):
        system = LeafSystem("blowup")
        system.declare_output_port("y", 1, lambda c: [np.inf])
        with pytest.raises(NonFiniteValueError):
            system.calc_output(system.create_default_context())

    def test_derivatives_may_not_write_the_context(self):
        """VERIFIES: A derivative callback runs read-only; write access is restored afterwards."""
        system = CountingDerivative()
        context = system.create_default_context()
        with pytest.raises(ContextAccessError, match="set_discrete_state"):
            system.calc_time_derivatives(context)
        np.testing.assert_array_equal(context.get_discrete_state(system.counter), [0.0])

        context.set_discrete_state(system.counter, [2.0])
        np.testing.assert_array_equal(context.get_discrete_state(system.counter), [2.0])

    def test_outputs_may_not_write_the_context(self):
        system = ConstantVelocity()
        system.declare_output_port("sneaky", 1, lambda c: c.set_continuous_state([1.0]) or [0.0])
        context = system.create_default_context()
        with pytest.raises(ContextAccessError):
            system.calc_output(context, "sneaky")
        np.testing.assert_array_equal(context.get_continuous_state(), [-0.5])

    def test_required_unconnected_input_raises(self):
        system = LeafSystem("open")
        system.declare_input_port("u", 1)
        with pytest.raises(UnconnectedInputError, match="'u'"):
            system.get_input_port("u").eval(system.create_default_context())

    def test_optional_unconnected_input_is_none(self):
        system = LeafSystem("open")
        system.declare_input_port("u", 1, required=False)
        assert system.get_input_port(0).eval(system.create_default_context()) is None

    def test_calc_outputs_evaluates_every_port(self, constant_velocity):
        context = constant_velocity.create_default_context()
        outputs = constant_velocity.calc_outputs(context)
        assert len(outputs) == 1
        np.testing.assert_array_equal(outputs[0], [-0.5])


class TestWitnessAndEvents:

    def test_witness_fqn_and_value(self, logistic_system):
        context = logistic_system.create_default_context()
        witness = logistic_system.get_witness_functions(context)[0]
        assert witness.fqn == "LogisticSystem:x_zero"
        assert witness.evaluate(context) == -1.0

    def test_witness_may_not_write_the_context(self):
        system = ConstantVelocity()
        system.declare_witness_function(
            "sneaky", WitnessTriggerType.CROSSES_ZERO,
            lambda c: c.set_continuous_state([1.0]) or 0.0,
        )
        context = system.create_default_context()
        with pytest.raises(ContextAccessError):
            system.get_witness_functions(context)[1].evaluate(context)

    def test_non_scalar_witness_is_an_evaluation_error(self):
        system = ConstantVelocity()
        system.declare_witness_function("vector", WitnessTriggerType.CROSSES_ZERO, lambda c: "high")
        context = system.create_default_context()
        with pytest.raises(SystemEvaluationError, match="real scalar"):
            system.get_witness_functions(context)[1].evaluate(context)

    def test_publish_uses_callback(self, logistic_system):
        seen = []
        logistic_system.set_publish_callback(lambda context: seen.append(context.time))
        context = logistic_system.create_default_context()
        context.set_time(0.5)
        logistic_system.handle_event(logistic_system.witness, context)
        assert seen == [0.5]

    def test_publish_may_not_write_state(self):
        system = ConstantVelocity(callback=lambda c: c.set_continuous_state([0.0]))
        context = system.create_default_context()
        with pytest.raises(ContextAccessError):
            system.handle_event(system.witness, context)
        # Permissions are restored after the failed handler.
        context.set_continuous_state([1.0])

    def test_unrestricted_update_resets_state(self, bouncing_ball):
        context = bouncing_ball.create_default_context()
        context.set_continuous_state([-1e-12, -4.0])
        witness = bouncing_ball.get_witness_functions(context)[0]
        bouncing_ball.handle_event(witness, context)
        np.testing.assert_allclose(context.get_continuous_state(), [0.0, 3.2])
        np.testing.assert_array_equal(context.get_discrete_state(bouncing_ball.bounces), [1.0])

    def test_discrete_update_may_not_touch_continuous_state(self):
        system = ConstantVelocity(
            action=EventAction.DISCRETE_UPDATE, callback=lambda c: c.set_continuous_state([0.0])
        )
        with pytest.raises(ContextAccessError):
            system.handle_event(system.witness, system.create_default_context())

    def test_foreign_witness_is_a_framework_bug(self, logistic_system, constant_velocity):
        with pytest.raises(FrameworkLogicError):
            logistic_system.handle_event(constant_velocity.witness, logistic_system.create_default_context())
