# src/hysim_core/simulation/execution.py
"""
Provides `simulate`, the primary public entry point for running a simulation.

This module is a thin Facade over `Simulator`: it normalizes the arguments (units,
raw configuration mappings, default contexts), runs the simulator, and packages the
final context, event log and outcome into a `SimulationResult`.

Error handling follows one rule. Anything that goes wrong *during* the run
(numeric failures, event storms, failing user callbacks) is a regular outcome and
comes back inside the result. Anything that prevents the run from starting, and any
unexpected internal error, is raised as a `SimulationRunError` carrying a
diagnostic report.
"""
import logging
from typing import Any, Dict, Optional, Union

from ..errors import SimulationRunError, DiagnosableError, format_diagnostic_report
from ..framework import ContextBase, SystemBase
from ..integrators import IntegratorBase
from ..units import Quantity, to_seconds
from .config import ConfigParsingError, SimulatorConfig, parse_simulator_config
from .results import SimulationResult
from .simulator import AbortCheck, Simulator

logger = logging.getLogger(__name__)


def simulate(
    system: SystemBase,
    context: Optional[ContextBase] = None,
    end_time: Union[float, str, Quantity] = 1.0,
    config: Union[SimulatorConfig, Dict[str, Any], None] = None,
    abort_check: Optional[AbortCheck] = None,
    integrator: Optional[IntegratorBase] = None,
) -> SimulationResult:
    """
    Simulates `system` from the context's current time to `end_time`.

    Args:
        system: The root system (a LeafSystem or a built Diagram).
        context: A context allocated by `system`. It is advanced in place and returned
                 as `result.final_context`. If None, a default context is created.
        end_time: The final time, in seconds or as a unit string such as '250 ms'.
        config: A `SimulatorConfig`, a raw configuration mapping (see
                `parse_simulator_config`), or None for the defaults.
        abort_check: Optional callable polled with the context after every committed
                     step; returning True stops the run with an ABORTED outcome.
        integrator: Optional pre-built integrator, overriding `config.integrator`.

    Returns:
        A `SimulationResult` whose `outcome` is COMPLETED, FAILED or ABORTED.

    Raises:
        SimulationRunError: The run could not be started (invalid configuration, a
                            foreign context, an unfixed required input port) or an
                            unexpected internal error occurred.
    """
    try:
        if not isinstance(config, SimulatorConfig):
            config = parse_simulator_config(config)
        end_seconds = to_seconds(end_time)

        logger.info(f"--- Starting simulation of '{system.fqn}' to t={end_seconds} ---")
        simulator = Simulator(system, context, config, integrator=integrator, abort_check=abort_check)
        simulator.initialize()
        outcome = simulator.advance_to(end_seconds)
        result = simulator.build_result(outcome)
        logger.info(f"Simulation finished with outcome '{outcome.status}' at t={outcome.time}.")
        return result

    except DiagnosableError as e:
        logger.error(f"A diagnosable error prevented the simulation from running: {e}")
        raise SimulationRunError(e.get_diagnostic_report()) from e

    except ConfigParsingError as e:
        logger.error(f"Invalid simulator configuration: {e}")
        report = format_diagnostic_report(
            error_type="Invalid Simulator Configuration",
            details=str(e),
            suggestion="Correct the simulator configuration values listed above.",
            context={'user_input': config}
        )
        raise SimulationRunError(report) from e

    except Exception as e:
        logger.critical(f"An unexpected internal error occurred during simulation: {e}", exc_info=True)
        report = format_diagnostic_report(
            error_type=f"An Unexpected Simulation Error Occurred ({type(e).__name__})",
            details=f"The simulator encountered an unexpected internal error: {e}",
            suggestion="This may be a bug. Review the traceback and consider filing a bug report.",
            context={}
        )
        raise SimulationRunError(report) from e
