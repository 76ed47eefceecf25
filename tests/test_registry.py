"""Tests for ProviderRegistry."""

from typing import List

import pytest

from airouter.errors import UnknownProviderError
from airouter.providers.interfaces import Capability, ProviderConfig, ProviderMeta
from airouter.providers.registry import ProviderRegistry, build_default_registry


class FakeProvider:
    built = 0

    meta = ProviderMeta(
        id="fake",
        name="Fake",
        version="0.1.0",
        capabilities=(Capability.TEXT,),
    )

    def __init__(self):
        FakeProvider.built += 1
        self.configs: List[ProviderConfig] = []

    def initialize(self, config: ProviderConfig) -> None:
        self.configs.append(config)

    def supports(self, capability: Capability) -> bool:
        return capability in self.meta.capabilities

    def get_models(self, capability: Capability) -> List[str]:
        return ["fake-1"]

    async def validate_credentials(self) -> bool:
        return True


class OtherProvider(FakeProvider):
    meta = ProviderMeta(id="other", name="Other", version="0.2.0", capabilities=(Capability.IMAGE,))


@pytest.fixture(autouse=True)
def reset_counter():
    FakeProvider.built = 0


def test_get_unknown_provider_raises():
    registry = ProviderRegistry()

    with pytest.raises(UnknownProviderError) as exc_info:
        registry.get("missing")

    assert exc_info.value.provider == "missing"


def test_get_builds_initializes_and_caches_once():
    registry = ProviderRegistry()
    registry.register("fake", FakeProvider)
    first_config = ProviderConfig(api_key="first")

    first = registry.get("fake", first_config)
    second = registry.get("fake", ProviderConfig(api_key="second"))

    assert first is second
    assert FakeProvider.built == 1
    assert first.configs == [first_config]


def test_get_without_config_leaves_instance_uninitialized():
    registry = ProviderRegistry()
    registry.register("fake", FakeProvider)

    provider = registry.get("fake")

    assert provider.configs == []


def test_register_overwrites_previous_factory():
    registry = ProviderRegistry()
    registry.register("fake", FakeProvider)
    registry.register("fake", OtherProvider)

    assert registry.describe("fake").id == "other"
    assert registry.list_providers() == ["fake"]


def test_register_rejects_empty_id():
    with pytest.raises(ValueError):
        ProviderRegistry().register("  ", FakeProvider)


def test_list_providers_keeps_registration_order():
    registry = ProviderRegistry()
    registry.register("zeta", FakeProvider)
    registry.register("alpha", OtherProvider)

    assert registry.list_providers() == ["zeta", "alpha"]
    assert registry.has_provider("alpha")
    assert not registry.has_provider("beta")


def test_describe_uses_throwaway_instances():
    registry = ProviderRegistry()
    registry.register("fake", FakeProvider)

    meta = registry.describe("fake")
    registry.get("fake")

    assert meta.name == "Fake"
    assert registry.describe("nope") is None
    # describe() does not populate the instance cache
    assert FakeProvider.built == 2


def test_default_registry_capability_lookup():
    registry = build_default_registry()

    assert registry.list_providers() == ["openai", "google", "openrouter"]
    assert registry.providers_supporting(Capability.TEXT) == ["openai", "google", "openrouter"]
    assert registry.providers_supporting(Capability.IMAGE) == ["openai", "google", "openrouter"]
    assert registry.providers_supporting(Capability.AUDIO) == ["openai"]
    assert registry.providers_supporting(Capability.VIDEO) == ["google"]
    assert registry.providers_supporting(Capability.EMBEDDING) == ["openai", "google"]


def test_default_registry_metadata():
    registry = build_default_registry()

    assert registry.describe("openai").capabilities == (
        Capability.TEXT,
        Capability.IMAGE,
        Capability.AUDIO,
        Capability.EMBEDDING,
    )
    assert registry.describe("google").name == "Google AI"
    assert registry.describe("openrouter").to_dict() == {
        "id": "openrouter",
        "name": "OpenRouter",
        "version": "1.0.0",
        "capabilities": ["text", "image"],
    }
