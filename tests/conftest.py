# tests/conftest.py
import numpy as np
import pytest

from hysim_core import EventAction, LeafSystem, SimulatorConfig, WitnessTriggerType


class LogisticSystem(LeafSystem):
    """
    x' = alpha * (1 - (x/k)^nu) * t, with a crosses-zero publish witness on x.
    For k = alpha = nu = 1 and x(0) = -1 the solution is x = 1 - 2 exp(-t^2 / 2),
    which crosses zero at t = sqrt(2 ln 2).
    """

    def __init__(self, k=1.0, alpha=1.0, nu=1.0, x0=-1.0, name=None):
        super().__init__(name)
        self.k, self.alpha, self.nu = k, alpha, nu
        self.declare_continuous_state(default=[x0])
        self.witness = self.declare_witness_function(
            "x_zero", WitnessTriggerType.CROSSES_ZERO, lambda context: context.get_continuous_state()[0]
        )

    def do_calc_time_derivatives(self, context):
        x = context.get_continuous_state()[0]
        return [self.alpha * (1.0 - (x / self.k) ** self.nu) * context.time]


class ConstantVelocity(LeafSystem):
    """x' = velocity with one witness on x. x(0) = -0.5 and velocity 1 cross zero at t = 0.5."""

    def __init__(self, x0=-0.5, velocity=1.0, trigger_type=WitnessTriggerType.CROSSES_ZERO,
                 action=EventAction.PUBLISH, callback=None, name=None):
        super().__init__(name)
        self.velocity = velocity
        self.declare_continuous_state(default=[x0])
        self.declare_state_output_port("x")
        self.witness = self.declare_witness_function(
            "x_zero", trigger_type, lambda context: context.get_continuous_state()[0],
            action=action, callback=callback,
        )

    def do_calc_time_derivatives(self, context):
        return [self.velocity]


class BouncingBall(LeafSystem):
    """
    State [height, velocity] under gravity. Hitting the floor reflects the velocity
    with the given restitution and clamps the height back onto the floor.
    """
    GRAVITY = 9.81

    def __init__(self, height=1.0, restitution=0.8, name=None):
        super().__init__(name)
        self.restitution = restitution
        self.declare_continuous_state(default=[height, 0.0])
        self.bounces = self.declare_discrete_state([0.0])
        self.declare_witness_function(
            "floor", WitnessTriggerType.BECOMES_NEGATIVE, lambda context: context.get_continuous_state()[0],
            action=EventAction.UNRESTRICTED_UPDATE, callback=self._bounce,
        )

    def do_calc_time_derivatives(self, context):
        _, velocity = context.get_continuous_state()
        return [velocity, -self.GRAVITY]

    def _bounce(self, context):
        _, velocity = context.get_continuous_state()
        context.set_continuous_state([0.0, -self.restitution * velocity])
        context.set_discrete_state(self.bounces, context.get_discrete_state(self.bounces) + 1)


class ChirpWitnessSystem(LeafSystem):
    """
    A trivial continuous state with a witness sin(rate * t^2) whose zero crossings
    accumulate ever faster, at t = sqrt(k pi / rate).
    """

    def __init__(self, rate=50.0, name=None):
        super().__init__(name)
        self.rate = rate
        self.declare_continuous_state(default=[0.0])
        self.declare_witness_function(
            "chirp", WitnessTriggerType.CROSSES_ZERO, lambda context: np.sin(self.rate * context.time ** 2)
        )

    def do_calc_time_derivatives(self, context):
        return [1.0]


class CountingDerivative(LeafSystem):
    """x' = 1, but the derivative callback also bumps a discrete counter, which it is not allowed to do."""

    def __init__(self, name="counting"):
        super().__init__(name)
        self.declare_continuous_state(default=[0.0])
        self.counter = self.declare_discrete_state([0.0])

    def do_calc_time_derivatives(self, context):
        context.set_discrete_state(self.counter, context.get_discrete_state(self.counter) + 1.0)
        return [1.0]


@pytest.fixture
def logistic_system():
    return LogisticSystem()


@pytest.fixture
def constant_velocity():
    return ConstantVelocity()


@pytest.fixture
def bouncing_ball():
    return BouncingBall()


@pytest.fixture
def default_config():
    return SimulatorConfig()
