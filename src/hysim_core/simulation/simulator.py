# src/hysim_core/simulation/simulator.py
"""
Defines the event-driven `Simulator`.

The Simulator advances a system's root context through time with a pluggable
integrator and resolves witness-function zero-crossings. Each iteration of the main
loop is one simulator step:

1. Sample every active witness at the step start t0 and snapshot the context.
2. Integrate to t1 = min(t0 + max_step_size, end_time) and sample the witnesses again.
3. If no witness triggered, commit the step.
4. Otherwise bisect [t0, t1] down to the isolation tolerance (`EventIsolator`), leaving
   the context at the isolated time t*. Apply the Zeno guard, then dispatch every
   witness that triggers at t* to its system, in declaration order, and commit.
5. Poll the cooperative abort check.

Any `SimulationFailure` raised along the way ends the run: the context is restored to
the last committed state and a FAILED outcome is returned with the failure's kind,
reason and time.
"""
import logging
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional

import numpy as np

from ..errors import SimulationFailure
from ..framework import ContextBase, SystemBase, UnconnectedInputError, WitnessFunction
from ..integrators import IntegratorBase, create_integrator
from .config import SimulatorConfig
from .exceptions import ExcessiveEventsError
from .isolation import EventIsolator, evaluate_witnesses, triggered_indices
from .results import EventRecord, SimulationOutcome, SimulationResult, SimulatorStatistics

logger = logging.getLogger(__name__)

AbortCheck = Callable[[ContextBase], bool]

#: Length of the sliding window used by the events-per-unit-time guard.
EVENT_RATE_WINDOW = 1.0


class SimulatorPhase(Enum):
    IDLE = "idle"
    STEPPING = "stepping"
    ISOLATING_EVENT = "isolating_event"
    DISPATCHING = "dispatching"
    DONE = "done"
    FAILED = "failed"
    ABORTED = "aborted"

    def __str__(self):
        return self.value


class Simulator:
    """
    Runs one trajectory of one system. Not thread-safe; run independent trajectories
    with independent Simulators on cloned contexts.
    """

    def __init__(
        self,
        system: SystemBase,
        context: Optional[ContextBase] = None,
        config: Optional[SimulatorConfig] = None,
        integrator: Optional[IntegratorBase] = None,
        abort_check: Optional[AbortCheck] = None,
    ):
        self.system = system
        self.context = context if context is not None else system.create_default_context()
        self.config = config if config is not None else SimulatorConfig()
        if integrator is None:
            integrator = create_integrator(
                self.config.integrator,
                max_steps=self.config.max_integration_steps,
                **self.config.integrator_options,
            )
        self.integrator = integrator
        self.abort_check = abort_check
        self.phase = SimulatorPhase.IDLE

        self._isolator = EventIsolator(system, integrator, self.config.event_isolation_tolerance)
        self._event_log: List[EventRecord] = []
        self._initialized = False
        self._last_good: Optional[ContextBase] = None
        self._recent_event_times: Deque[float] = deque()
        self._last_event_time: Optional[float] = None
        self._coincident_events = 0
        self._times: List[float] = []
        self._states: List[np.ndarray] = []
        self._steps = 0
        self._isolations = 0
        self._events_dispatched = 0
        self._bisection_iterations = 0

    # --- Lifecycle ---

    def initialize(self) -> None:
        """
        Validates the context and prepares a fresh run from the context's current time.

        Raises:
            ContextAccessError: The context was not allocated by the system.
            UnconnectedInputError: A required root input port has no fixed value.
        """
        self.system.validate_context(self.context)
        for port in self.system._input_ports:
            if port.required and self.context.get_input_source(port.index) is None:
                raise UnconnectedInputError(fqn=self.system.fqn, port_name=port.name, time=self.context.time)

        self.integrator.reset()
        self._event_log = []
        self._recent_event_times.clear()
        self._last_event_time = None
        self._coincident_events = 0
        self._steps = self._isolations = self._events_dispatched = self._bisection_iterations = 0
        self._times = []
        self._states = []
        self._last_good = self.context.clone()
        self._record_sample()
        self.phase = SimulatorPhase.IDLE
        self._initialized = True
        logger.debug(f"Simulator initialized for '{self.system.fqn}' at t={self.context.time}.")

    @property
    def event_log(self) -> List[EventRecord]:
        return list(self._event_log)

    def get_statistics(self) -> SimulatorStatistics:
        integrator_stats = self.integrator.get_statistics()
        return SimulatorStatistics(
            steps=self._steps,
            event_isolations=self._isolations,
            events_dispatched=self._events_dispatched,
            bisection_iterations=self._bisection_iterations,
            integrator_steps=integrator_stats['steps'],
            derivative_evaluations=integrator_stats['derivative_evaluations'],
            rejected_steps=integrator_stats['rejected_steps'],
        )

    def build_result(self, outcome: SimulationOutcome) -> SimulationResult:
        times = states = None
        if self.config.record_trajectory:
            times = np.array(self._times)
            states = np.array(self._states).reshape(len(self._times), self.context.num_continuous_states)
        return SimulationResult(
            final_context=self.context,
            event_log=tuple(self._event_log),
            outcome=outcome,
            statistics=self.get_statistics(),
            times=times,
            states=states,
        )

    # --- Main loop ---

    def advance_to(self, end_time: float) -> SimulationOutcome:
        """Advances the context to `end_time`, or until the run fails or is aborted."""
        if not self._initialized:
            self.initialize()
        if end_time < self.context.time:
            raise ValueError(f"Cannot advance backwards from t={self.context.time} to t={end_time}.")
        # The context may have been edited between calls.
        self._last_good = self.context.clone()

        logger.info(f"Advancing '{self.system.fqn}' from t={self.context.time} to t={end_time}.")
        try:
            while self.context.time < end_time:
                self._advance_one_step(end_time)
                if self.abort_check is not None and self.abort_check(self.context):
                    self.phase = SimulatorPhase.ABORTED
                    logger.info(f"Simulation of '{self.system.fqn}' aborted at t={self.context.time}.")
                    return SimulationOutcome.aborted(self.context.time)
        except SimulationFailure as failure:
            return self._fail(failure)

        self.phase = SimulatorPhase.DONE
        logger.info(
            f"Simulation of '{self.system.fqn}' reached t={self.context.time} "
            f"({self._steps} steps, {self._events_dispatched} events)."
        )
        return SimulationOutcome.completed(self.context.time)

    def _advance_one_step(self, end_time: float) -> None:
        self.phase = SimulatorPhase.STEPPING
        context = self.context
        t0 = context.time
        start_snapshot = self._last_good

        witnesses = self.system.get_witness_functions(context)
        w0 = evaluate_witnesses(self.system, witnesses, context)

        t1 = min(t0 + self.config.max_step_size, end_time)
        self.integrator.integrate_to(self.system, context, t1)
        w1 = evaluate_witnesses(self.system, witnesses, context)
        self._steps += 1

        if not triggered_indices(witnesses, w0, w1):
            self._commit()
            return

        self.phase = SimulatorPhase.ISOLATING_EVENT
        isolation = self._isolator.isolate(context, start_snapshot, witnesses, w0, w1)
        self._isolations += 1
        self._bisection_iterations += isolation.iterations
        self._check_event_rate(isolation.time)

        self.phase = SimulatorPhase.DISPATCHING
        self._dispatch(isolation.triggered)
        self._commit()

    def _dispatch(self, triggered: List[WitnessFunction]) -> None:
        for witness in triggered:
            logger.debug(f"Dispatching {witness.event.action} event of '{witness.fqn}' at t={self.context.time:.12g}.")
            self.system.handle_event(witness, self.context)
            self._event_log.append(EventRecord(
                time=self.context.time,
                system_fqn=witness.system.fqn,
                witness_name=witness.name,
                trigger_type=witness.trigger_type,
                action=witness.event.action,
            ))
            self._events_dispatched += 1

    def _commit(self) -> None:
        self._last_good = self.context.clone()
        self._record_sample()

    def _record_sample(self) -> None:
        if self.config.record_trajectory:
            self._times.append(self.context.time)
            self._states.append(np.array(self.context.get_continuous_state_vector()))

    # --- Zeno guard ---

    def _check_event_rate(self, event_time: float) -> None:
        tolerance = self.config.event_isolation_tolerance
        if self._last_event_time is not None and event_time - self._last_event_time <= tolerance:
            self._coincident_events += 1
        else:
            self._coincident_events = 1
        self._last_event_time = event_time
        if self._coincident_events > self.config.max_coincident_events:
            raise ExcessiveEventsError(
                details=(
                    f"{self._coincident_events} consecutive events within {tolerance:g} s of each other "
                    f"(limit {self.config.max_coincident_events})."
                ),
                event_count=self._coincident_events,
                time=event_time,
            )

        limit = self.config.max_events_per_unit_time
        if limit is None:
            return
        self._recent_event_times.append(event_time)
        while event_time - self._recent_event_times[0] >= EVENT_RATE_WINDOW:
            self._recent_event_times.popleft()
        if len(self._recent_event_times) > limit:
            raise ExcessiveEventsError(
                details=(
                    f"{len(self._recent_event_times)} events within {EVENT_RATE_WINDOW:g} time unit(s) "
                    f"ending at t={event_time:.9g} (limit {limit})."
                ),
                event_count=len(self._recent_event_times),
                time=event_time,
            )

    # --- Failure handling ---

    def _fail(self, failure: SimulationFailure) -> SimulationOutcome:
        self.phase = SimulatorPhase.FAILED
        failure_time = getattr(failure, 'time', None)
        if failure_time is None:
            failure_time = self.context.time
        self.context.restore_from(self._last_good)
        last_good_time = self.context.time
        logger.error(
            f"Simulation of '{self.system.fqn}' failed at t={failure_time} "
            f"({failure.kind}): {failure.summary()} Last good time: {last_good_time}."
        )
        return SimulationOutcome.failed(failure, failure_time, last_good_time)
