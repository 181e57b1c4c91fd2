# src/hysim_core/simulation/isolation.py
"""
Witness evaluation and zero-crossing isolation by bisection.

Given a step [t0, t1] at whose ends at least one witness function changed sign in
the way its trigger type requires, `EventIsolator.isolate` shrinks the bracket
[ta, tb] around the earliest such crossing:

- every bisection point rewinds the context to the t0 snapshot and re-integrates to the
  midpoint tm;
- if any witness triggers between its t0 value and its value at tm, the crossing lies
  in [ta, tm] and the right end moves (tb = tm); otherwise ta = tm;
- iteration stops when tb - ta <= tolerance (or when floating point can no longer
  split the bracket).

The right end is kept because it is the end at which a trigger is known to hold.
The context is left at tb, in exactly the state sampled there, and every witness
that triggers at tb is returned in declaration order.
"""
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..framework import ContextBase, SystemBase, WitnessFunction
from ..integrators import IntegratorBase
from .exceptions import WitnessEvaluationError

logger = logging.getLogger(__name__)


def evaluate_witnesses(
    system: SystemBase, witnesses: Sequence[WitnessFunction], context: ContextBase
) -> np.ndarray:
    """Evaluates each witness against its owning subsystem's context. Non-finite values are fatal."""
    values = np.empty(len(witnesses))
    for i, witness in enumerate(witnesses):
        value = witness.evaluate(system.get_subsystem_context(witness.system, context))
        if not np.isfinite(value):
            raise WitnessEvaluationError(witness_fqn=witness.fqn, value=value, time=context.time)
        values[i] = value
    return values


def triggered_indices(witnesses: Sequence[WitnessFunction], w0: np.ndarray, w1: np.ndarray) -> List[int]:
    return [i for i, witness in enumerate(witnesses) if witness.should_trigger(w0[i], w1[i])]


@dataclass(frozen=True)
class IsolationResult:
    time: float
    triggered: List[WitnessFunction]
    witness_values: np.ndarray
    iterations: int


class EventIsolator:
    """Locates the earliest witness trigger inside a step by bisection in time."""

    def __init__(self, system: SystemBase, integrator: IntegratorBase, tolerance: float):
        self.system = system
        self.integrator = integrator
        self.tolerance = tolerance

    def isolate(
        self,
        context: ContextBase,
        start_snapshot: ContextBase,
        witnesses: Sequence[WitnessFunction],
        w0: np.ndarray,
        w1: np.ndarray,
    ) -> IsolationResult:
        """
        `context` must be at the step end t1 with witness values `w1`; `start_snapshot`
        holds the step start t0 where the values were `w0`. On return `context` is at
        the isolated time.
        """
        ta = start_snapshot.time
        tb = context.time
        wb = w1
        at_tb = context.clone()
        iterations = 0

        while tb - ta > self.tolerance:
            tm = ta + 0.5 * (tb - ta)
            if not ta < tm < tb:
                break
            context.restore_from(start_snapshot)
            self.integrator.integrate_to(self.system, context, tm)
            wm = evaluate_witnesses(self.system, witnesses, context)
            iterations += 1
            if triggered_indices(witnesses, w0, wm):
                tb, wb = tm, wm
                at_tb = context.clone()
            else:
                ta = tm

        context.restore_from(at_tb)
        triggered = [witnesses[i] for i in triggered_indices(witnesses, w0, wb)]
        logger.debug(
            f"Isolated event at t={tb:.12g} after {iterations} bisection(s); "
            f"triggered: {[w.fqn for w in triggered]}"
        )
        return IsolationResult(time=tb, triggered=triggered, witness_values=wb, iterations=iterations)
