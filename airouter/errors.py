"""
Exception hierarchy for ai-router.

Every error raised by the router derives from AIRouterError so the CLI can
report failures from a single place. Provider failures carry the vendor id
and, when the vendor answered, the HTTP status code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from airouter.pricing.estimator import CostEstimate


class AIRouterError(Exception):
    """Base exception for all ai-router errors."""


# ============================================================================
# Provider errors
# ============================================================================


class ProviderError(AIRouterError):
    """
    Raised when a vendor call fails or returns an unusable response.

    Args:
        message: Human readable description
        provider: Vendor id that produced the failure
        status_code: HTTP status code when the vendor answered
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message


class UnknownProviderError(ProviderError):
    """Raised when a provider id has no registered factory."""

    def __init__(self, provider: str):
        super().__init__(f"Unknown provider: {provider}", provider=provider)


class NotInitializedError(ProviderError):
    """Raised when an adapter is used before initialize() was called."""

    def __init__(self, provider: str):
        super().__init__("Provider not initialized", provider=provider)


class UnsupportedCapabilityError(ProviderError):
    """Raised when an adapter is asked for a capability it does not declare."""

    def __init__(self, provider: str, capability: str):
        super().__init__(
            f"Provider does not support {capability} generation",
            provider=provider,
        )
        self.capability = capability


class NoModelAvailableError(ProviderError):
    """Raised when no model can be resolved for a capability."""

    def __init__(self, provider: str, capability: str):
        super().__init__(
            f"No model available for {capability} generation",
            provider=provider,
        )
        self.capability = capability


class ProviderTimeoutError(ProviderError):
    """Raised when a single attempt exceeds its deadline."""

    def __init__(self, provider: Optional[str] = None, timeout_seconds: float = 0.0):
        super().__init__(
            f"Request timed out after {timeout_seconds:g}s",
            provider=provider,
        )
        self.timeout_seconds = timeout_seconds


# ============================================================================
# Cost, configuration and CLI errors
# ============================================================================


class CostLimitExceededError(AIRouterError):
    """
    Raised by the cost guard before dispatch when a request would cost more
    than the configured ceiling.
    """

    def __init__(self, estimate: "CostEstimate", max_cost: float):
        super().__init__(
            f"Estimated cost ${estimate.total_cost:.4f} exceeds limit ${max_cost:.4f}"
        )
        self.estimate = estimate
        self.max_cost = max_cost


class ConfigError(AIRouterError):
    """Raised when configuration cannot be loaded, validated or persisted."""


class CLIError(AIRouterError):
    """Raised by CLI handlers for invalid invocations."""


__all__ = [
    "AIRouterError",
    "ProviderError",
    "UnknownProviderError",
    "NotInitializedError",
    "UnsupportedCapabilityError",
    "NoModelAvailableError",
    "ProviderTimeoutError",
    "CostLimitExceededError",
    "ConfigError",
    "CLIError",
]
