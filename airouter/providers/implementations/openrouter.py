"""
OpenRouter adapter.

OpenRouter speaks the OpenAI chat-completions dialect for every model it
proxies. Image generation goes through chat completions as well, and the
generated image can come back in several shapes, so the response is scanned
with a fixed fallback chain.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from airouter.errors import ProviderError
from airouter.providers.base import AdapterCore, elapsed_ms, truncate
from airouter.providers.implementations.openai import (
    chat_delta,
    chat_payload,
    chat_text,
    chat_usage,
)
from airouter.providers.interfaces import (
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
)
from airouter.providers.media import indexed_filename, save_media, split_output_path
from airouter.providers.retry import SleepFunc

META = ProviderMeta(
    id="openrouter",
    name="OpenRouter",
    version="1.0.0",
    capabilities=(Capability.TEXT, Capability.IMAGE),
)

DEFAULT_MODELS: Dict[Capability, List[str]] = {
    Capability.TEXT: [
        "anthropic/claude-sonnet-4",
        "anthropic/claude-4.5-haiku",
        "openai/gpt-5.1",
        "openai/gpt-5",
        "openai/gpt-5-mini",
        "google/gemini-3-pro-preview",
        "google/gemini-3-flash-preview",
        "google/gemini-2.5-flash",
        "meta-llama/llama-3.1-405b-instruct",
        "meta-llama/llama-3.1-70b-instruct",
        "mistralai/mistral-large",
        "deepseek/deepseek-chat",
    ],
    Capability.IMAGE: [
        "google/gemini-2.5-flash-image",
        "openai/dall-e-3",
        "stability/stable-diffusion-xl",
    ],
    Capability.EMBEDDING: [
        "openai/text-embedding-3-large",
        "openai/text-embedding-3-small",
    ],
}

BASE_URL = "https://openrouter.ai/api/v1"
APP_REFERER = "https://github.com/ai-router"
APP_TITLE = "ai-router"

DATA_URI_RE = re.compile(r"data:image/([^;]+);base64,([^\"'\s]+)")
IMAGE_URL_RE = re.compile(r"https?://[^\s\"']+\.(?:png|jpg|jpeg|webp|gif)", re.IGNORECASE)

# (kind, value, extension) where kind is "base64" or "url"
FoundImage = Tuple[str, str, str]


def _extension(subtype: str) -> str:
    subtype = subtype.lower()
    return "jpg" if subtype == "jpeg" else subtype


def _from_image_url(url: str) -> FoundImage:
    match = DATA_URI_RE.match(url)
    if match:
        return ("base64", match.group(2), _extension(match.group(1)))
    return ("url", url, "png")


def find_images(data: Any) -> List[FoundImage]:
    """
    Locate generated images in a chat-completions response.

    The first strategy that finds anything wins:
    structured ``message.images`` entries, list-form content parts of type
    ``image_url``, a base64 data URI inside text content, then an HTTP(S)
    image URL inside text content.
    """
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError):
        return []
    if not isinstance(message, dict):
        return []

    structured = [
        _from_image_url(image["image_url"]["url"])
        for image in message.get("images") or []
        if isinstance(image, dict)
        and isinstance(image.get("image_url"), dict)
        and image["image_url"].get("url")
    ]
    if structured:
        return structured

    content = message.get("content")
    if isinstance(content, list):
        return [
            _from_image_url(part["image_url"]["url"])
            for part in content
            if isinstance(part, dict)
            and part.get("type") == "image_url"
            and isinstance(part.get("image_url"), dict)
            and part["image_url"].get("url")
        ]

    if isinstance(content, str):
        data_uris = [
            ("base64", match.group(2), _extension(match.group(1)))
            for match in DATA_URI_RE.finditer(content)
        ]
        if data_uris:
            return data_uris
        return [("url", match.group(0), "png") for match in IMAGE_URL_RE.finditer(content)]

    return []


class OpenRouterProvider:
    """OpenRouter adapter (text and image through chat completions)."""

    meta = META

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.core = AdapterCore(META, DEFAULT_MODELS, BASE_URL, transport=transport, sleep=sleep)
        self._available_models: Optional[List[str]] = None

    def initialize(self, config: ProviderConfig) -> None:
        self.core.initialize(config)

    def supports(self, capability: Capability) -> bool:
        return self.core.supports(capability)

    def get_models(self, capability: Capability) -> List[str]:
        return self.core.get_models(capability)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.core.config.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": APP_REFERER,
            "X-Title": APP_TITLE,
        }

    async def validate_credentials(self) -> bool:
        try:
            await self.core.request("GET", f"{self.core.base_url}/auth/key", headers=self._headers())
        except ProviderError:
            return False
        return True

    async def list_available_models(self) -> List[str]:
        """Model ids currently offered by OpenRouter, fetched once per adapter."""
        if self._available_models is None:
            data = await self.core.request_json(
                "GET", f"{self.core.base_url}/models", headers=self._headers()
            )
            entries = data.get("data") if isinstance(data, dict) else None
            if not isinstance(entries, list):
                raise self.core.invalid_response(data)
            self._available_models = [e["id"] for e in entries if isinstance(e, dict) and "id" in e]
        return list(self._available_models)

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
            "messages": [{"role": "user", "content": f"Generate an image: {request.prompt}"}],
            "modalities": ["image", "text"],
        }
        payload.update(request.options)
        started = time.perf_counter()

        data = await self.core.execute_with_retry(
            lambda: self.core.request_json(
                "POST",
                f"{self.core.base_url}/chat/completions",
                headers=self._headers(),
                json_body=payload,
            )
        )

        found = find_images(data)
        if not found:
            raise ProviderError(
                f"No image found in response: {truncate(json.dumps(data))}",
                provider=META.id,
            )

        directory, filename = split_output_path(request.output_path)
        results: List[ImageResult] = []
        for index, (kind, value, extension) in enumerate(found):
            if kind == "url":
                results.append(ImageResult(url=value))
                continue
            result = ImageResult(base64=value)
            if request.output_path:
                path = save_media(
                    value,
                    directory=directory,
                    filename=indexed_filename(filename, index, len(found)),
                    media_type="image",
                    format=extension,
                )
                result.file_path = str(path)
            results.append(result)

        return ImageGenerationResponse(
            success=True,
            data=results,
            usage=chat_usage(data),
            meta=ResponseMeta(model=model, provider=META.id, duration_ms=elapsed_ms(started)),
        )


__all__ = ["OpenRouterProvider", "META", "DEFAULT_MODELS", "find_images"]
