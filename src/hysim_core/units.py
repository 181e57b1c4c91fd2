# src/hysim_core/units.py
import logging
from numbers import Real
from typing import Union

import pint

logger = logging.getLogger(__name__)
ureg = pint.UnitRegistry()
Quantity = ureg.Quantity
logger.debug("Pint Unit Registry initialized.")

# --- Canonical dimensionality objects for explicit checks ---
TIME_DIMENSIONALITY = ureg.parse_expression('second').dimensionality
RATE_DIMENSIONALITY = ureg.parse_expression('1 / second').dimensionality


def _to_quantity(value: Union[str, Real, Quantity]) -> Quantity:
    if isinstance(value, Quantity):
        return value
    if isinstance(value, str):
        return ureg.Quantity(value)
    raise TypeError(f"Expected a string or pint Quantity, got {type(value).__name__}.")


def to_seconds(value: Union[str, Real, Quantity]) -> float:
    """
    Converts a time-like value to a float number of seconds.

    Bare numbers are interpreted as seconds. Strings such as '10 ms' are parsed
    with the shared unit registry. A value with any other dimensionality raises
    `pint.DimensionalityError`.
    """
    if isinstance(value, Real) and not isinstance(value, bool):
        return float(value)
    quantity = _to_quantity(value)
    if quantity.dimensionality != TIME_DIMENSIONALITY:
        raise pint.DimensionalityError(quantity.units, ureg.second)
    return float(quantity.to(ureg.second).magnitude)


def to_per_second(value: Union[str, Real, Quantity]) -> float:
    """Converts a rate-like value ('200 / s', '1 kHz', or a bare number) to 1/s."""
    if isinstance(value, Real) and not isinstance(value, bool):
        return float(value)
    quantity = _to_quantity(value)
    if quantity.dimensionality != RATE_DIMENSIONALITY:
        raise pint.DimensionalityError(quantity.units, 1 / ureg.second)
    return float(quantity.to(1 / ureg.second).magnitude)
