# Config module - resilience configuration system
from .exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    UnknownEntryError,
)
from .loader import ConfigLoader, load_config
from .models import (
    BaseConfig,
    CircuitBreakerSettings,
    PRESET_POLICIES,
    ResilienceConfig,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    "UnknownEntryError",
    # Loader
    "ConfigLoader",
    "load_config",
    # Models
    "BaseConfig",
    "CircuitBreakerSettings",
    "PRESET_POLICIES",
    "ResilienceConfig",
]
