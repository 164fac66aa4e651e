# Configuration models
from .base import BaseConfig
from .resilience import CircuitBreakerSettings, PRESET_POLICIES, ResilienceConfig

__all__ = [
    "BaseConfig",
    "CircuitBreakerSettings",
    "PRESET_POLICIES",
    "ResilienceConfig",
]
