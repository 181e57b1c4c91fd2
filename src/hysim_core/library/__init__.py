# src/hysim_core/library/__init__.py
from .primitives import ConstantSource, PassThrough, Adder, Gain, ContinuousIntegrator
from .ode_system import OdeSystem

__all__ = [
    "ConstantSource",
    "PassThrough",
    "Adder",
    "Gain",
    "ContinuousIntegrator",
    "OdeSystem",
]
