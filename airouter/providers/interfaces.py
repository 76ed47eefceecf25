"""
Provider Interface Definitions

Defines the capability model shared by every vendor adapter: capabilities,
provider metadata, request/response models and per-provider configuration.
Adapters implement the ProviderAdapter protocol plus whichever capability
methods they support.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    Generic,
    List,
    Literal,
    Optional,
    Protocol,
    Tuple,
    TypeVar,
    runtime_checkable,
)

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Capability(str, Enum):
    """Kinds of generation a provider can declare."""

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    EMBEDDING = "embedding"


# Capability -> adapter method implementing it. Embedding is declarable but
# no adapter exposes a method for it yet.
CAPABILITY_METHODS: Dict[Capability, str] = {
    Capability.TEXT: "generate_text",
    Capability.IMAGE: "generate_image",
    Capability.AUDIO: "generate_audio",
    Capability.VIDEO: "generate_video",
    Capability.EMBEDDING: "generate_embedding",
}


@dataclass(frozen=True)
class ProviderMeta:
    """
    Static description of a provider adapter.

    Attributes:
        id: Registry id (e.g. 'openai')
        name: Display name
        version: Adapter version string
        capabilities: Declared capabilities in declaration order
    """

    id: str
    name: str
    version: str
    capabilities: Tuple[Capability, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "capabilities": [c.value for c in self.capabilities],
        }


# ============================================================================
# Configuration
# ============================================================================


class CamelModel(BaseModel):
    """Base for models persisted as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ModelDefaults(CamelModel):
    """Per-capability default model overrides from configuration."""

    text: Optional[str] = None
    image: Optional[str] = None
    audio: Optional[str] = None
    tts: Optional[str] = None
    video: Optional[str] = None
    embedding: Optional[str] = None

    def for_capability(self, capability: Capability) -> Optional[str]:
        """Configured model for a capability; audio falls back to the tts entry."""
        if capability is Capability.AUDIO:
            return self.audio or self.tts
        return getattr(self, capability.value)


class ProviderConfig(CamelModel):
    """
    Configuration for a single provider.

    Adapters keep a reference to this object and never mutate it.

    Example:
        >>> config = ProviderConfig(api_key="sk-...", timeout_seconds=30)
        >>> config.max_retries
        3
    """

    api_key: str = Field(default="", description="Vendor API key")
    base_url: Optional[str] = Field(default=None, description="Override for the vendor base URL")
    timeout_seconds: float = Field(default=60.0, gt=0, description="Per-attempt timeout")
    max_retries: int = Field(default=3, ge=1, le=10, description="Total attempts per request")
    organization: Optional[str] = None
    project_id: Optional[str] = None
    region: Optional[str] = None
    models: ModelDefaults = Field(default_factory=ModelDefaults)


# ============================================================================
# Requests
# ============================================================================


class GenerationRequest(BaseModel):
    """Fields common to every generation request."""

    prompt: str = Field(..., min_length=1, description="Prompt sent to the model")
    model: Optional[str] = Field(default=None, description="Explicit model override")
    options: Dict[str, Any] = Field(default_factory=dict)


class TextGenerationRequest(GenerationRequest):
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    system_prompt: Optional[str] = None
    stream: bool = False


ImageSize = Literal["256x256", "512x512", "1024x1024", "1792x1024", "1024x1792"]


class ImageGenerationRequest(GenerationRequest):
    size: ImageSize = "1024x1024"
    quality: Literal["standard", "hd"] = "standard"
    style: Literal["natural", "vivid"] = "vivid"
    n: int = Field(default=1, ge=1, le=10)
    output_path: Optional[str] = None


class AudioGenerationRequest(GenerationRequest):
    voice: str = "alloy"
    format: Literal["mp3", "opus", "aac", "flac", "wav"] = "mp3"
    speed: float = Field(default=1.0, ge=0.25, le=4.0)
    output_path: Optional[str] = None


class VideoGenerationRequest(GenerationRequest):
    duration: Optional[int] = Field(default=None, gt=0, description="Length in seconds")
    fps: Optional[int] = Field(default=None, gt=0)
    resolution: Optional[str] = None
    output_path: Optional[str] = None


# ============================================================================
# Responses
# ============================================================================


class UsageInfo(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMeta(BaseModel):
    model: str
    provider: str
    duration_ms: float = 0.0


class ImageResult(BaseModel):
    url: Optional[str] = None
    base64: Optional[str] = None
    file_path: Optional[str] = None
    revised_prompt: Optional[str] = None


class AudioResult(BaseModel):
    file_path: str
    format: str
    duration: Optional[float] = None


class VideoResult(BaseModel):
    file_path: str
    format: str
    duration: Optional[float] = None


T = TypeVar("T")


class GenerationResponse(BaseModel, Generic[T]):
    """
    Outcome of a generation call.

    A successful response carries data and no error; a failed response
    carries an error and no data.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    usage: Optional[UsageInfo] = None
    meta: Optional[ResponseMeta] = None

    @model_validator(mode="after")
    def _check_outcome(self) -> "GenerationResponse[T]":
        if self.success:
            if self.data is None or self.error is not None:
                raise ValueError("successful response requires data and no error")
        elif self.error is None or self.data is not None:
            raise ValueError("failed response requires an error and no data")
        return self


class TextGenerationResponse(GenerationResponse[str]):
    pass


class ImageGenerationResponse(GenerationResponse[List[ImageResult]]):
    pass


class AudioGenerationResponse(GenerationResponse[AudioResult]):
    pass


class VideoGenerationResponse(GenerationResponse[VideoResult]):
    pass


@dataclass
class StreamingTextResponse:
    """Lazy text stream plus the model and provider that produce it."""

    stream: AsyncIterator[str]
    model: str
    provider: str


# ============================================================================
# Adapter protocol
# ============================================================================


@runtime_checkable
class ProviderAdapter(Protocol):
    """
    Protocol every vendor adapter satisfies.

    Capability methods (generate_text, generate_text_stream, generate_image,
    generate_audio, generate_video) are optional; use get_capability_method()
    before calling one.
    """

    meta: ProviderMeta

    def initialize(self, config: ProviderConfig) -> None:
        ...

    def supports(self, capability: Capability) -> bool:
        ...

    def get_models(self, capability: Capability) -> List[str]:
        ...

    async def validate_credentials(self) -> bool:
        ...


def get_capability_method(
    provider: ProviderAdapter, capability: Capability
) -> Optional[Callable[..., Any]]:
    """
    Return the adapter method for a capability, or None.

    Both guards apply: the capability must be declared in the provider's
    metadata and the adapter must actually define the method.
    """
    if not provider.supports(capability):
        return None
    method = getattr(provider, CAPABILITY_METHODS[capability], None)
    return method if callable(method) else None


__all__ = [
    "Capability",
    "CAPABILITY_METHODS",
    "ProviderMeta",
    "CamelModel",
    "ModelDefaults",
    "ProviderConfig",
    "GenerationRequest",
    "TextGenerationRequest",
    "ImageGenerationRequest",
    "AudioGenerationRequest",
    "VideoGenerationRequest",
    "UsageInfo",
    "ResponseMeta",
    "ImageResult",
    "AudioResult",
    "VideoResult",
    "GenerationResponse",
    "TextGenerationResponse",
    "ImageGenerationResponse",
    "AudioGenerationResponse",
    "VideoGenerationResponse",
    "StreamingTextResponse",
    "ProviderAdapter",
    "get_capability_method",
]
