# tests/test_witness.py
import pytest

from hysim_core import EventAction, WitnessTriggerType


CROSSES = WitnessTriggerType.CROSSES_ZERO
POSITIVE = WitnessTriggerType.BECOMES_POSITIVE
NEGATIVE = WitnessTriggerType.BECOMES_NEGATIVE


@pytest.mark.parametrize("trigger_type, w0, w1, expected", [
    # crosses-zero: any strict sign change, landing exactly on zero counts
    (CROSSES, 1.0, -1.0, True),
    (CROSSES, -1.0, 1.0, True),
    (CROSSES, 1.0, 0.0, True),
    (CROSSES, -1.0, 0.0, True),
    (CROSSES, 0.0, 1.0, False),
    (CROSSES, 0.0, -1.0, False),
    (CROSSES, 1.0, 2.0, False),
    # becomes-positive
    (POSITIVE, -1.0, 1.0, True),
    (POSITIVE, 0.0, 1.0, True),
    (POSITIVE, -1.0, 0.0, False),
    (POSITIVE, 1.0, -1.0, False),
    # becomes-negative
    (NEGATIVE, 1.0, -1.0, True),
    (NEGATIVE, 0.0, -1.0, True),
    (NEGATIVE, 1.0, 0.0, False),
    (NEGATIVE, -1.0, 1.0, False),
])
def test_trigger_rules(trigger_type, w0, w1, expected):
    """VERIFIES: Each trigger type fires on exactly the sign changes it names."""
    assert trigger_type.should_trigger(w0, w1) is expected


def test_zero_start_does_not_retrigger_crossing():
    """VERIFIES: A witness left exactly at zero by its event does not fire again on the next step."""
    assert not CROSSES.should_trigger(0.0, 0.0)
    assert not POSITIVE.should_trigger(0.0, 0.0)
    assert not NEGATIVE.should_trigger(0.0, 0.0)


def test_event_action_permissions():
    publish = EventAction.PUBLISH.permissions
    assert not any([publish.time, publish.continuous, publish.discrete, publish.abstract, publish.parameters])

    discrete = EventAction.DISCRETE_UPDATE.permissions
    assert discrete.discrete and not discrete.continuous and not discrete.abstract and not discrete.time

    unrestricted = EventAction.UNRESTRICTED_UPDATE.permissions
    assert unrestricted.continuous and unrestricted.discrete and unrestricted.abstract
    assert not unrestricted.time and not unrestricted.parameters
