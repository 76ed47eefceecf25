"""
Provider abstraction layer

A capability-oriented interface over several AI vendors. Callers obtain an
adapter from a ProviderRegistry, check the capability, and call the matching
generate_* coroutine.

Key Components:
    - Capability / ProviderMeta: what an adapter can do
    - Request and response models for text, image, audio and video
    - ProviderRegistry: factory registry and instance cache
    - AdapterCore: shared initialization, model resolution, retry and HTTP
    - RetryExecutor and SSEDecoder: execution primitives

Example:
    >>> from airouter.providers import build_default_registry, ProviderConfig, TextGenerationRequest
    >>> registry = build_default_registry()
    >>> provider = registry.get("openai", ProviderConfig(api_key="sk-..."))
    >>> response = await provider.generate_text(TextGenerationRequest(prompt="Hello"))
    >>> print(response.data)
"""

from airouter.providers.base import AdapterCore
from airouter.providers.interfaces import (
    AudioGenerationRequest,
    AudioGenerationResponse,
    Capability,
    GenerationResponse,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ProviderAdapter,
    ProviderConfig,
    ProviderMeta,
    StreamingTextResponse,
    TextGenerationRequest,
    TextGenerationResponse,
    VideoGenerationRequest,
    VideoGenerationResponse,
    get_capability_method,
)
from airouter.providers.registry import ProviderRegistry, build_default_registry
from airouter.providers.retry import RetryExecutor
from airouter.providers.streaming import SSEDecoder

__all__ = [
    "AdapterCore",
    "AudioGenerationRequest",
    "AudioGenerationResponse",
    "Capability",
    "GenerationResponse",
    "ImageGenerationRequest",
    "ImageGenerationResponse",
    "ProviderAdapter",
    "ProviderConfig",
    "ProviderMeta",
    "ProviderRegistry",
    "RetryExecutor",
    "SSEDecoder",
    "StreamingTextResponse",
    "TextGenerationRequest",
    "TextGenerationResponse",
    "VideoGenerationRequest",
    "VideoGenerationResponse",
    "build_default_registry",
    "get_capability_method",
]
