# src/hysim_core/simulation/results.py
"""
Formal, immutable result contracts returned by a simulation run.

`SimulationResult` bundles the final context, the ordered event log, the run outcome
and statistics. The outcome makes success or failure explicit: a numeric failure or
an event storm is not an exception escaping `simulate()`, it is a `FAILED` outcome
carrying its reason, the failure time and the last good time, with the final context
restored to the last good state.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from ..errors import FailureKind, SimulationFailure, SimulationRunError
from ..framework import ContextBase, EventAction, WitnessTriggerType


class OutcomeStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class SimulationOutcome:
    """
    How a run ended.

    Attributes:
        status: COMPLETED, FAILED or ABORTED.
        time: The end time reached (COMPLETED, ABORTED) or the time the failure was detected (FAILED).
        reason: One-line failure reason. None unless FAILED.
        failure_kind: NUMERIC, EVENT_STORM or EVALUATION. None unless FAILED.
        last_good_time: Time of the last committed state, which the final context holds.
        diagnostic_report: The full report of the failure. None unless FAILED.
    """
    status: OutcomeStatus
    time: float
    reason: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    last_good_time: Optional[float] = None
    diagnostic_report: Optional[str] = None

    @classmethod
    def completed(cls, time: float) -> "SimulationOutcome":
        return cls(OutcomeStatus.COMPLETED, time, last_good_time=time)

    @classmethod
    def aborted(cls, time: float) -> "SimulationOutcome":
        return cls(OutcomeStatus.ABORTED, time, reason="Aborted by request.", last_good_time=time)

    @classmethod
    def failed(cls, failure: SimulationFailure, failure_time: float, last_good_time: float) -> "SimulationOutcome":
        return cls(
            OutcomeStatus.FAILED,
            failure_time,
            reason=failure.summary(),
            failure_kind=failure.kind,
            last_good_time=last_good_time,
            diagnostic_report=failure.get_diagnostic_report(),
        )

    @property
    def is_completed(self) -> bool:
        return self.status is OutcomeStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @property
    def is_aborted(self) -> bool:
        return self.status is OutcomeStatus.ABORTED


@dataclass(frozen=True)
class EventRecord:
    """One dispatched event: when it happened and which witness of which system triggered it."""
    time: float
    system_fqn: str
    witness_name: str
    trigger_type: WitnessTriggerType
    action: EventAction


@dataclass(frozen=True)
class SimulatorStatistics:
    steps: int = 0
    event_isolations: int = 0
    events_dispatched: int = 0
    bisection_iterations: int = 0
    integrator_steps: int = 0
    derivative_evaluations: int = 0
    rejected_steps: int = 0


@dataclass(frozen=True)
class SimulationResult:
    """
    The user-facing result of `simulate()`.

    `times` and `states` are populated only when trajectory recording is enabled: one
    row per committed step (including the post-event state at each event time) of the
    root context's continuous state vector.
    """
    final_context: ContextBase
    event_log: Tuple[EventRecord, ...]
    outcome: SimulationOutcome
    statistics: SimulatorStatistics
    times: Optional[np.ndarray] = None
    states: Optional[np.ndarray] = None

    def raise_for_outcome(self) -> "SimulationResult":
        """Raises `SimulationRunError` with the diagnostic report if the run failed; returns self otherwise."""
        if self.outcome.is_failed:
            raise SimulationRunError(self.outcome.diagnostic_report)
        return self
