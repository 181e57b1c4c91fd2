# src/hysim_core/integrators/registry.py
import inspect
import logging
from typing import Any, Dict, Type

from .base import IntegratorBase

logger = logging.getLogger(__name__)

#: Maps an integrator's configuration name (e.g. 'rk45') to its class.
INTEGRATOR_REGISTRY: Dict[str, Type[IntegratorBase]] = {}


def register_integrator(name: str):
    """
    Class decorator that makes an integrator available under `name` in
    `INTEGRATOR_REGISTRY` and through `create_integrator`.
    """
    def decorator(cls: Type[IntegratorBase]) -> Type[IntegratorBase]:
        if not inspect.isclass(cls) or not issubclass(cls, IntegratorBase):
            raise TypeError(f"@register_integrator('{name}') can only decorate IntegratorBase subclasses, got {cls!r}.")
        if inspect.isabstract(cls):
            raise TypeError(f"Cannot register abstract integrator class '{cls.__name__}' as '{name}'.")
        if name in INTEGRATOR_REGISTRY and INTEGRATOR_REGISTRY[name] is not cls:
            raise ValueError(
                f"Integrator name '{name}' is already registered to '{INTEGRATOR_REGISTRY[name].__name__}'."
            )
        cls.registered_name = name
        INTEGRATOR_REGISTRY[name] = cls
        logger.debug(f"Registered integrator '{name}' -> {cls.__name__}")
        return cls
    return decorator


def create_integrator(name: str, **options: Any) -> IntegratorBase:
    """Instantiates the integrator registered under `name` with the given keyword options."""
    try:
        cls = INTEGRATOR_REGISTRY[name]
    except KeyError:
        raise ValueError(
            f"Unknown integrator '{name}'. Available integrators: {sorted(INTEGRATOR_REGISTRY)}."
        ) from None
    try:
        return cls(**options)
    except TypeError as e:
        raise ValueError(f"Invalid options for integrator '{name}': {e}") from e
