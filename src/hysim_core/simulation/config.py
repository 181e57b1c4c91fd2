# src/hysim_core/simulation/config.py
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import cerberus
import pint
import yaml

from ..constants import (
    DEFAULT_EVENT_ISOLATION_TOLERANCE,
    DEFAULT_MAX_COINCIDENT_EVENTS,
    DEFAULT_MAX_EVENTS_PER_UNIT_TIME,
    DEFAULT_MAX_INTEGRATION_STEPS,
    DEFAULT_MAX_STEP_SIZE,
)
from ..integrators import INTEGRATOR_REGISTRY
from ..units import to_per_second, to_seconds

logger = logging.getLogger(__name__)


class ConfigParsingError(ValueError):
    """Custom exception for errors during simulator configuration parsing."""
    pass


@dataclass(frozen=True)
class SimulatorConfig:
    """
    Tuning knobs of a simulation run. All times are in seconds.

    Attributes:
        max_step_size: Upper bound on each committed step; also bounds how long a
            witness sign change can go unnoticed.
        event_isolation_tolerance: Bisection stops once the bracket around a crossing
            is no wider than this.
        max_events_per_unit_time: Zeno guard. More event isolations than this inside
            any window of one time unit fail the run. None disables the check.
        max_coincident_events: Zeno guard. More consecutive isolations than this, each
            within `event_isolation_tolerance` of the previous one, fail the run.
        max_integration_steps: Step budget of the integrator for one simulator step.
        integrator: Registered integrator name ('euler', 'rk4', 'rk45', 'scipy').
        integrator_options: Keyword options passed to the integrator constructor.
        record_trajectory: Record time and continuous state after every committed step.
    """
    max_step_size: float = DEFAULT_MAX_STEP_SIZE
    event_isolation_tolerance: float = DEFAULT_EVENT_ISOLATION_TOLERANCE
    max_events_per_unit_time: Optional[int] = DEFAULT_MAX_EVENTS_PER_UNIT_TIME
    max_coincident_events: int = DEFAULT_MAX_COINCIDENT_EVENTS
    max_integration_steps: Optional[int] = DEFAULT_MAX_INTEGRATION_STEPS
    integrator: str = "rk45"
    integrator_options: Dict[str, Any] = field(default_factory=dict)
    record_trajectory: bool = False

    def __post_init__(self):
        if not self.max_step_size > 0:
            raise ValueError(f"max_step_size must be positive, got {self.max_step_size}.")
        if not self.event_isolation_tolerance > 0:
            raise ValueError(f"event_isolation_tolerance must be positive, got {self.event_isolation_tolerance}.")
        if self.event_isolation_tolerance > self.max_step_size:
            raise ValueError(
                f"event_isolation_tolerance ({self.event_isolation_tolerance}) cannot exceed "
                f"max_step_size ({self.max_step_size})."
            )
        if self.max_events_per_unit_time is not None and self.max_events_per_unit_time < 1:
            raise ValueError(f"max_events_per_unit_time must be at least 1 or None, got {self.max_events_per_unit_time}.")
        if self.max_coincident_events < 1:
            raise ValueError(f"max_coincident_events must be at least 1, got {self.max_coincident_events}.")
        if self.max_integration_steps is not None and self.max_integration_steps < 1:
            raise ValueError(f"max_integration_steps must be at least 1 or None, got {self.max_integration_steps}.")
        if self.integrator not in INTEGRATOR_REGISTRY:
            raise ValueError(
                f"Unknown integrator '{self.integrator}'. Available integrators: {sorted(INTEGRATOR_REGISTRY)}."
            )


class ConfigValidator(cerberus.Validator):
    """Cerberus validator with rules for unit-bearing values."""

    def _validate_time_quantity(self, constraint, field, value):
        """Requires a positive duration: a number of seconds or a string such as '10 ms'.

        The rule's arguments are validated against this schema:
        {'type': 'boolean'}
        """
        if not constraint:
            return
        try:
            seconds = to_seconds(value)
        except (pint.UndefinedUnitError, pint.DimensionalityError, TypeError, ValueError) as e:
            self._error(field, f"'{value}' is not a valid duration: {e}")
            return
        if seconds <= 0:
            self._error(field, f"'{value}' must be a positive duration.")

    def _validate_rate_quantity(self, constraint, field, value):
        """Requires a positive rate: a number per second or a string such as '200 / second'.

        The rule's arguments are validated against this schema:
        {'type': 'boolean'}
        """
        if not constraint or value is None:
            return
        try:
            rate = to_per_second(value)
        except (pint.UndefinedUnitError, pint.DimensionalityError, TypeError, ValueError) as e:
            self._error(field, f"'{value}' is not a valid rate: {e}")
            return
        if rate < 1:
            self._error(field, f"'{value}' must allow at least one event per second.")


def _build_schema() -> Dict[str, Any]:
    return {
        'max_step_size': {'type': ['number', 'string'], 'time_quantity': True},
        'event_isolation_tolerance': {'type': ['number', 'string'], 'time_quantity': True},
        'max_events_per_unit_time': {'type': ['integer', 'string'], 'nullable': True, 'rate_quantity': True},
        'max_coincident_events': {'type': 'integer', 'min': 1},
        'max_integration_steps': {'type': 'integer', 'min': 1, 'nullable': True},
        'integrator': {
            'type': 'dict',
            'schema': {
                'name': {'type': 'string', 'required': True, 'allowed': sorted(INTEGRATOR_REGISTRY)},
                'options': {'type': 'dict'},
            },
        },
        'record_trajectory': {'type': 'boolean'},
    }


def parse_simulator_config(raw_config: Optional[Dict[str, Any]]) -> SimulatorConfig:
    """
    Validates a raw configuration mapping (e.g. loaded from YAML) and converts it into a
    `SimulatorConfig`. Missing keys take their defaults. Durations and rates may carry
    units: `max_step_size: '5 ms'`, `max_events_per_unit_time: '2 kHz'`.
    """
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigParsingError(f"Simulator configuration must be a mapping, got {type(raw_config).__name__}.")

    validator = ConfigValidator(_build_schema())
    if not validator.validate(raw_config):
        raise ConfigParsingError(f"Invalid simulator configuration: {validator.errors}")

    kwargs: Dict[str, Any] = {}
    try:
        for key in ('max_step_size', 'event_isolation_tolerance'):
            if key in raw_config:
                kwargs[key] = to_seconds(raw_config[key])
        if 'max_events_per_unit_time' in raw_config:
            rate = raw_config['max_events_per_unit_time']
            kwargs['max_events_per_unit_time'] = None if rate is None else int(round(to_per_second(rate)))
        for key in ('max_coincident_events', 'max_integration_steps', 'record_trajectory'):
            if key in raw_config:
                kwargs[key] = raw_config[key]
        if 'integrator' in raw_config:
            kwargs['integrator'] = raw_config['integrator']['name']
            kwargs['integrator_options'] = dict(raw_config['integrator'].get('options') or {})
        config = SimulatorConfig(**kwargs)
    except (ValueError, pint.DimensionalityError, pint.UndefinedUnitError) as e:
        raise ConfigParsingError(f"Failed to parse simulator configuration: {e}") from e

    logger.debug(f"Parsed simulator configuration: {config}")
    return config


def load_simulator_config(path: Union[str, Path]) -> SimulatorConfig:
    """
    Loads a simulator configuration from a YAML file. The settings may sit at the top
    level of the document or under a `simulator:` key.
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            document = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigParsingError(f"Simulator configuration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigParsingError(f"Malformed YAML in simulator configuration '{path}': {e}") from e

    if isinstance(document, dict) and 'simulator' in document:
        document = document['simulator']
    logger.info(f"Loading simulator configuration from '{path}'")
    return parse_simulator_config(document)
