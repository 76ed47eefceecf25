"""
OpenAI adapter.

Text through /chat/completions (plain and SSE streaming), images through
/images/generations and speech through /audio/speech. The chat payload and
delta helpers are shared with other OpenAI-compatible vendors.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx

from airouter.errors import ProviderError
from airouter.providers.base import AdapterCore, elapsed_ms
from airouter.providers.interfaces import (
    AudioGenerationRequest,
    AudioGenerationResponse,
    AudioResult,
    Capability,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageResult,
    ProviderConfig,
    ProviderMeta,
    ResponseMeta,
    StreamingTextResponse,
    TextGenerationRequest,
    TextGenerationResponse,
    UsageInfo,
)
from airouter.providers.media import indexed_filename, save_media, split_output_path
from airouter.providers.retry import SleepFunc

META = ProviderMeta(
    id="openai",
    name="OpenAI",
    version="1.0.0",
    capabilities=(
        Capability.TEXT,
        Capability.IMAGE,
        Capability.AUDIO,
        Capability.EMBEDDING,
    ),
)

DEFAULT_MODELS: Dict[Capability, List[str]] = {
    Capability.TEXT: ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    Capability.IMAGE: ["dall-e-3", "dall-e-2"],
    Capability.AUDIO: ["tts-1", "tts-1-hd", "whisper-1"],
    Capability.EMBEDDING: ["text-embedding-3-large", "text-embedding-3-small"],
}

BASE_URL = "https://api.openai.com/v1"


# ============================================================================
# Chat-completions helpers (shared with OpenAI-compatible vendors)
# ============================================================================


def chat_messages(prompt: str, system_prompt: Optional[str] = None) -> List[Dict[str, str]]:
    messages: List[Dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def chat_payload(model: str, request: TextGenerationRequest, stream: bool = False) -> Dict[str, Any]:
    """Build a chat-completions body. Request options are passed through verbatim."""
    payload: Dict[str, Any] = {
        "model": model,
        "messages": chat_messages(request.prompt, request.system_prompt),
    }
    if request.max_tokens is not None:
        payload["max_tokens"] = request.max_tokens
    if request.temperature is not None:
        payload["temperature"] = request.temperature
    payload.update(request.options)
    if stream:
        payload["stream"] = True
    return payload


def chat_text(data: Any) -> Optional[str]:
    """Return choices[0].message.content when it is a string."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None


def chat_usage(data: Any) -> Optional[UsageInfo]:
    usage = data.get("usage") if isinstance(data, dict) else None
    if not isinstance(usage, dict):
        return None
    return UsageInfo(
        prompt_tokens=usage.get("prompt_tokens", 0),
        completion_tokens=usage.get("completion_tokens", 0),
        total_tokens=usage.get("total_tokens", 0),
    )


def chat_delta(event: Any) -> Optional[str]:
    """Extract choices[0].delta.content from a streamed chunk."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


# ============================================================================
# Adapter
# ============================================================================


class OpenAIProvider:
    """
    OpenAI adapter.

    Example:
        >>> provider = OpenAIProvider()
        >>> provider.initialize(ProviderConfig(api_key="sk-..."))
        >>> response = await provider.generate_text(TextGenerationRequest(prompt="Hi"))
    """

    meta = META

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.core = AdapterCore(META, DEFAULT_MODELS, BASE_URL, transport=transport, sleep=sleep)

    def initialize(self, config: ProviderConfig) -> None:
        self.core.initialize(config)

    def supports(self, capability: Capability) -> bool:
        return self.core.supports(capability)

    def get_models(self, capability: Capability) -> List[str]:
        return self.core.get_models(capability)

    def _headers(self) -> Dict[str, str]:
        config = self.core.config
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }
        if config.organization:
            headers["OpenAI-Organization"] = config.organization
        if config.project_id:
            headers["OpenAI-Project"] = config.project_id
        return headers

    async def validate_credentials(self) -> bool:
        try:
            await self.core.request("GET", f"{self.core.base_url}/models", headers=self._headers())
        except ProviderError:
            return False
        return True

    async def generate_text(self, request: TextGenerationRequest) -> TextGenerationResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.TEXT)
        model = self.core.resolve_model(Capability.TEXT, request.model)
        payload = chat_payload(model, request)
        started = time.perf_counter()

        data = await self.core.execute_with_retry(
            lambda: self.core.request_json(
                "POST",
                f"{self.core.base_url}/chat/completions",
                headers=self._headers(),
                json_body=payload,
            )
        )

        text = chat_text(data)
        if text is None:
            raise self.core.invalid_response(data)

        return TextGenerationResponse(
            success=True,
            data=text,
            usage=chat_usage(data),
            meta=ResponseMeta(model=model, provider=META.id, duration_ms=elapsed_ms(started)),
        )

    async def generate_text_stream(self, request: TextGenerationRequest) -> StreamingTextResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.TEXT)
        model = self.core.resolve_model(Capability.TEXT, request.model)

        decoder = await self.core.open_stream(
            f"{self.core.base_url}/chat/completions",
            chat_delta,
            headers=self._headers(),
            json_body=chat_payload(model, request, stream=True),
        )
        return StreamingTextResponse(stream=decoder, model=model, provider=META.id)

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.IMAGE)
        model = self.core.resolve_model(Capability.IMAGE, request.model)
        payload: Dict[str, Any] = {
            "model": model,
            "prompt": request.prompt,
            "n": request.n,
            "size": request.size,
            "response_format": "b64_json",
        }
        # dall-e-2 rejects quality/style
        if model != "dall-e-2":
            payload["quality"] = request.quality
            payload["style"] = request.style
        payload.update(request.options)
        started = time.perf_counter()

        data = await self.core.execute_with_retry(
            lambda: self.core.request_json(
                "POST",
                f"{self.core.base_url}/images/generations",
                headers=self._headers(),
                json_body=payload,
            )
        )

        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or not items:
            raise self.core.invalid_response(data)

        items = [item for item in items if isinstance(item, dict)]
        if not items:
            raise self.core.invalid_response(data)

        directory, filename = split_output_path(request.output_path)
        results: List[ImageResult] = []
        for index, item in enumerate(items):
            encoded = item.get("b64_json")
            result = ImageResult(
                url=item.get("url"),
                base64=encoded,
                revised_prompt=item.get("revised_prompt"),
            )
            if encoded and request.output_path:
                path = save_media(
                    encoded,
                    directory=directory,
                    filename=indexed_filename(filename, index, len(items)),
                    media_type="image",
                    format="png",
                )
                result.file_path = str(path)
            results.append(result)

        return ImageGenerationResponse(
            success=True,
            data=results,
            meta=ResponseMeta(model=model, provider=META.id, duration_ms=elapsed_ms(started)),
        )

    async def generate_audio(self, request: AudioGenerationRequest) -> AudioGenerationResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.AUDIO)
        model = self.core.resolve_model(Capability.AUDIO, request.model)
        payload: Dict[str, Any] = {
            "model": model,
            "input": request.prompt,
            "voice": request.voice,
            "response_format": request.format,
            "speed": request.speed,
        }
        started = time.perf_counter()

        response = await self.core.execute_with_retry(
            lambda: self.core.request(
                "POST",
                f"{self.core.base_url}/audio/speech",
                headers=self._headers(),
                json_body=payload,
            )
        )
        if not response.content:
            raise self.core.invalid_response("empty audio body")

        directory, filename = split_output_path(request.output_path)
        path = save_media(
            response.content,
            directory=directory,
            filename=filename,
            media_type="audio",
            format=request.format,
        )
        return AudioGenerationResponse(
            success=True,
            data=AudioResult(file_path=str(path), format=request.format),
            meta=ResponseMeta(model=model, provider=META.id, duration_ms=elapsed_ms(started)),
        )


__all__ = [
    "OpenAIProvider",
    "META",
    "DEFAULT_MODELS",
    "chat_payload",
    "chat_text",
    "chat_usage",
    "chat_delta",
]
