# src/hysim_core/integrators/__init__.py
from .exceptions import IntegrationError
from .base import IntegratorBase
from .registry import INTEGRATOR_REGISTRY, register_integrator, create_integrator

# Importing the implementation modules registers them.
from .fixed_step import FixedStepIntegrator, ExplicitEulerIntegrator, RK4Integrator
from .adaptive import DormandPrince45Integrator
from .scipy_integrator import ScipyIntegrator

__all__ = [
    "IntegrationError",
    "IntegratorBase",
    "INTEGRATOR_REGISTRY",
    "register_integrator",
    "create_integrator",
    "FixedStepIntegrator",
    "ExplicitEulerIntegrator",
    "RK4Integrator",
    "DormandPrince45Integrator",
    "ScipyIntegrator",
]
