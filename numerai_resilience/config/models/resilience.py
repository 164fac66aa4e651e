"""
Resilience Configuration Model.

Named retry policies and circuit breakers, loaded from YAML.
"""

from pydantic import Field

from numerai_resilience.config.exceptions import UnknownEntryError
from numerai_resilience.core.retry import (
    DEFAULT_RETRY_POLICY,
    DOWNLOAD_RETRY_POLICY,
    GRAPHQL_RETRY_POLICY,
    CircuitBreaker,
    CircuitBreakerRegistry,
    RetryPolicy,
)

from .base import BaseConfig

PRESET_POLICIES: dict[str, RetryPolicy] = {
    "default": DEFAULT_RETRY_POLICY,
    "graphql": GRAPHQL_RETRY_POLICY,
    "download": DOWNLOAD_RETRY_POLICY,
}


class CircuitBreakerSettings(BaseConfig):
    """Settings for one protected endpoint."""

    failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Failures before the circuit opens",
    )
    recovery_timeout: float = Field(
        default=60.0,
        ge=0.0,
        description="Seconds after the last failure before a trial call",
    )


class ResilienceConfig(BaseConfig):
    """
    Resilience layer configuration.

    Example:
        >>> config = ResilienceConfig(
        ...     policies={"graphql": {"max_attempts": 8, "jitter": False}},
        ...     breakers={"numerai_api": {"failure_threshold": 3}},
        ... )
        >>> config.get_policy("graphql").max_attempts
        8
        >>> config.get_policy("download").max_attempts
        3
    """

    policies: dict[str, RetryPolicy] = Field(
        default_factory=dict,
        description="Named retry policies; override the built-in presets",
    )
    breakers: dict[str, CircuitBreakerSettings] = Field(
        default_factory=dict,
        description="Circuit breaker settings per protected endpoint",
    )

    def get_policy(self, name: str) -> RetryPolicy:
        """
        Get a named policy, falling back to the built-in presets.

        Raises:
            UnknownEntryError: If neither configured nor a preset
        """
        if name in self.policies:
            return self.policies[name]
        if name in PRESET_POLICIES:
            return PRESET_POLICIES[name]
        raise UnknownEntryError(name, list(self.policies) + list(PRESET_POLICIES))

    def build_breaker(self, name: str) -> CircuitBreaker:
        """Create a new breaker from the named settings."""
        settings = self.breakers.get(name)
        if settings is None:
            raise UnknownEntryError(name, list(self.breakers), section="circuit breaker")
        return CircuitBreaker(
            name,
            failure_threshold=settings.failure_threshold,
            recovery_timeout=settings.recovery_timeout,
        )

    def build_registry(self) -> CircuitBreakerRegistry:
        """Create a registry holding one breaker per configured endpoint."""
        registry = CircuitBreakerRegistry()
        for name in self.breakers:
            registry.register(self.build_breaker(name))
        return registry
