"""
Provider Registry

Maps provider ids to adapter factories and owns the live adapter instances.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from airouter.errors import UnknownProviderError
from airouter.observability.logging import get_logger
from airouter.providers.interfaces import Capability, ProviderAdapter, ProviderConfig, ProviderMeta

logger = get_logger(__name__)

ProviderFactory = Callable[[], ProviderAdapter]


class ProviderRegistry:
    """
    Registry of provider factories and their cached instances.

    At most one live instance exists per id. The first get() that passes a
    config initializes the instance; later calls return it unchanged even if
    they pass a different config.

    Thread-safe: This implementation is not thread-safe. It is meant to be
    used from a single asyncio event loop.

    Example:
        >>> registry = ProviderRegistry()
        >>> registry.register("openai", OpenAIProvider)
        >>> provider = registry.get("openai", ProviderConfig(api_key="sk-..."))
    """

    def __init__(self):
        self._factories: Dict[str, ProviderFactory] = {}
        self._instances: Dict[str, ProviderAdapter] = {}

    def register(self, provider_id: str, factory: ProviderFactory) -> None:
        """
        Install a factory for ``provider_id``, replacing any earlier one.

        Args:
            provider_id: Registry id (e.g. 'openai')
            factory: Zero-argument callable returning a new adapter

        Raises:
            ValueError: If provider_id is empty
        """
        if not isinstance(provider_id, str) or not provider_id.strip():
            raise ValueError("Provider id must be a non-empty string")
        self._factories[provider_id] = factory

    def get(self, provider_id: str, config: Optional[ProviderConfig] = None) -> ProviderAdapter:
        """
        Return the live adapter for ``provider_id``, building it on first use.

        Args:
            provider_id: Registry id
            config: Config used to initialize a newly built instance

        Raises:
            UnknownProviderError: If no factory is registered for the id
        """
        instance = self._instances.get(provider_id)
        if instance is not None:
            return instance

        factory = self._factories.get(provider_id)
        if factory is None:
            raise UnknownProviderError(provider_id)

        instance = factory()
        if config is not None:
            instance.initialize(config)
        self._instances[provider_id] = instance
        logger.debug("provider_instantiated", provider=provider_id, initialized=config is not None)
        return instance

    def has_provider(self, provider_id: str) -> bool:
        return provider_id in self._factories

    def list_providers(self) -> List[str]:
        """Registered ids in registration order."""
        return list(self._factories)

    def describe(self, provider_id: str) -> Optional[ProviderMeta]:
        """Metadata for ``provider_id`` from a throwaway instance, or None."""
        factory = self._factories.get(provider_id)
        if factory is None:
            return None
        return factory().meta

    def providers_supporting(self, capability: Capability) -> List[str]:
        """Ids whose metadata declares ``capability``, in registration order."""
        return [
            provider_id
            for provider_id, factory in self._factories.items()
            if capability in factory().meta.capabilities
        ]


def build_default_registry() -> ProviderRegistry:
    """Registry with the built-in vendor adapters."""
    from airouter.providers.implementations import (
        GoogleProvider,
        OpenAIProvider,
        OpenRouterProvider,
    )

    registry = ProviderRegistry()
    registry.register("openai", OpenAIProvider)
    registry.register("google", GoogleProvider)
    registry.register("openrouter", OpenRouterProvider)
    return registry


__all__ = ["ProviderRegistry", "ProviderFactory", "build_default_registry"]
