"""
Google AI (Gemini / Imagen / Veo) adapter.

Authenticates with the ``key`` query parameter. Video generation is a long
running operation: the adapter submits it, polls the operation until it is
done, then downloads and saves the generated file.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx

from airouter.errors import ProviderError
from airouter.observability.logging import get_logger
from airouter.providers.base import AdapterCore, elapsed_ms
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
    UsageInfo,
    VideoGenerationRequest,
    VideoGenerationResponse,
    VideoResult,
)
from airouter.providers.media import indexed_filename, save_media, split_output_path
from airouter.providers.retry import SleepFunc

logger = get_logger(__name__)

META = ProviderMeta(
    id="google",
    name="Google AI",
    version="1.0.0",
    capabilities=(
        Capability.TEXT,
        Capability.IMAGE,
        Capability.VIDEO,
        Capability.EMBEDDING,
    ),
)

DEFAULT_MODELS: Dict[Capability, List[str]] = {
    Capability.TEXT: ["gemini-1.5-pro", "gemini-1.5-flash", "gemini-pro"],
    Capability.IMAGE: ["imagen-3.0-generate-001"],
    Capability.VIDEO: ["veo-2.0-generate-001"],
    Capability.EMBEDDING: ["text-embedding-004"],
}

BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

_ASPECT_RATIOS = {
    "1792x1024": "16:9",
    "1024x1792": "9:16",
}

_MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


def candidate_text(data: Any) -> Optional[str]:
    """Join the text parts of candidates[0]; None when there are none."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(parts, list):
        return None
    texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
    if not texts:
        return None
    return "".join(texts)


def candidate_usage(data: Any) -> Optional[UsageInfo]:
    usage = data.get("usageMetadata") if isinstance(data, dict) else None
    if not isinstance(usage, dict):
        return None
    return UsageInfo(
        prompt_tokens=usage.get("promptTokenCount", 0),
        completion_tokens=usage.get("candidatesTokenCount", 0),
        total_tokens=usage.get("totalTokenCount", 0),
    )


def content_payload(request: TextGenerationRequest) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
    }
    generation_config: Dict[str, Any] = {}
    if request.max_tokens is not None:
        generation_config["maxOutputTokens"] = request.max_tokens
    if request.temperature is not None:
        generation_config["temperature"] = request.temperature
    if generation_config:
        payload["generationConfig"] = generation_config
    if request.system_prompt:
        payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
    payload.update(request.options)
    return payload


class GoogleProvider:
    """Google AI adapter (Gemini text, Imagen images, Veo video)."""

    meta = META

    # Veo operations usually finish within a few minutes
    poll_interval_seconds = 10.0
    max_polls = 60

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

    def _params(self, **extra: str) -> Dict[str, str]:
        return {"key": self.core.config.api_key, **extra}

    def _model_url(self, model: str, method: str) -> str:
        return f"{self.core.base_url}/models/{model}:{method}"

    async def validate_credentials(self) -> bool:
        try:
            await self.core.request("GET", f"{self.core.base_url}/models", params=self._params())
        except ProviderError:
            return False
        return True

    async def generate_text(self, request: TextGenerationRequest) -> TextGenerationResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.TEXT)
        model = self.core.resolve_model(Capability.TEXT, request.model)
        payload = content_payload(request)
        started = time.perf_counter()

        data = await self.core.execute_with_retry(
            lambda: self.core.request_json(
                "POST",
                self._model_url(model, "generateContent"),
                params=self._params(),
                json_body=payload,
            )
        )

        text = candidate_text(data)
        if text is None:
            raise self.core.invalid_response(data)

        return TextGenerationResponse(
            success=True,
            data=text,
            usage=candidate_usage(data),
            meta=ResponseMeta(model=model, provider=META.id, duration_ms=elapsed_ms(started)),
        )

    async def generate_text_stream(self, request: TextGenerationRequest) -> StreamingTextResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.TEXT)
        model = self.core.resolve_model(Capability.TEXT, request.model)

        decoder = await self.core.open_stream(
            self._model_url(model, "streamGenerateContent"),
            candidate_text,
            params=self._params(alt="sse"),
            json_body=content_payload(request),
        )
        return StreamingTextResponse(stream=decoder, model=model, provider=META.id)

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.IMAGE)
        model = self.core.resolve_model(Capability.IMAGE, request.model)
        payload = {
            "instances": [{"prompt": request.prompt}],
            "parameters": {
                "sampleCount": request.n,
                "aspectRatio": _ASPECT_RATIOS.get(request.size, "1:1"),
            },
        }
        started = time.perf_counter()

        data = await self.core.execute_with_retry(
            lambda: self.core.request_json(
                "POST",
                self._model_url(model, "predict"),
                params=self._params(),
                json_body=payload,
            )
        )

        predictions = data.get("predictions") if isinstance(data, dict) else None
        encoded = [
            p for p in predictions or []
            if isinstance(p, dict) and p.get("bytesBase64Encoded")
        ]
        if not encoded:
            raise self.core.invalid_response(data)

        results: List[ImageResult] = []
        for index, prediction in enumerate(encoded):
            result = ImageResult(base64=prediction["bytesBase64Encoded"])
            if request.output_path:
                directory, filename = split_output_path(request.output_path)
                path = save_media(
                    result.base64,
                    directory=directory,
                    filename=indexed_filename(filename, index, len(encoded)),
                    media_type="image",
                    format=_MIME_EXTENSIONS.get(prediction.get("mimeType", ""), "png"),
                )
                result.file_path = str(path)
            results.append(result)

        return ImageGenerationResponse(
            success=True,
            data=results,
            meta=ResponseMeta(model=model, provider=META.id, duration_ms=elapsed_ms(started)),
        )

    async def generate_video(self, request: VideoGenerationRequest) -> VideoGenerationResponse:
        self.core.ensure_initialized()
        self.core.ensure_capability(Capability.VIDEO)
        model = self.core.resolve_model(Capability.VIDEO, request.model)

        parameters: Dict[str, Any] = {}
        if request.duration is not None:
            parameters["durationSeconds"] = request.duration
        if request.resolution:
            parameters["resolution"] = request.resolution
        if request.fps is not None:
            logger.info("video_fps_ignored", provider=META.id, fps=request.fps)
        payload = {"instances": [{"prompt": request.prompt}], "parameters": parameters}
        started = time.perf_counter()

        operation = await self.core.execute_with_retry(
            lambda: self.core.request_json(
                "POST",
                self._model_url(model, "predictLongRunning"),
                params=self._params(),
                json_body=payload,
            )
        )
        name = operation.get("name") if isinstance(operation, dict) else None
        if not name:
            raise self.core.invalid_response(operation)

        operation = await self._wait_for_operation(name, operation)
        video_uri = self._video_uri(operation)

        # The URI carries its own query (alt=media); only the key is added
        download_url = httpx.URL(video_uri).copy_merge_params(self._params())
        download = await self.core.execute_with_retry(
            lambda: self.core.request("GET", str(download_url))
        )
        directory, filename = split_output_path(request.output_path)
        path = save_media(
            download.content,
            directory=directory,
            filename=filename,
            media_type="video",
            format="mp4",
        )
        return VideoGenerationResponse(
            success=True,
            data=VideoResult(file_path=str(path), format="mp4", duration=request.duration),
            meta=ResponseMeta(model=model, provider=META.id, duration_ms=elapsed_ms(started)),
        )

    async def _wait_for_operation(self, name: str, operation: Dict[str, Any]) -> Dict[str, Any]:
        polls = 0
        while not operation.get("done"):
            if polls >= self.max_polls:
                raise ProviderError(
                    f"Video operation {name} did not finish after {polls} polls",
                    provider=META.id,
                )
            await self.core.sleep(self.poll_interval_seconds)
            polls += 1
            operation = await self.core.execute_with_retry(
                lambda: self.core.request_json(
                    "GET", f"{self.core.base_url}/{name}", params=self._params()
                )
            )
            if not isinstance(operation, dict):
                raise self.core.invalid_response(operation)
            logger.debug("video_operation_polled", operation=name, done=bool(operation.get("done")))

        error = operation.get("error")
        if error:
            message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            raise ProviderError(f"Video generation failed: {message}", provider=META.id)
        return operation

    def _video_uri(self, operation: Dict[str, Any]) -> str:
        try:
            samples = operation["response"]["generateVideoResponse"]["generatedSamples"]
            return samples[0]["video"]["uri"]
        except (KeyError, IndexError, TypeError):
            raise self.core.invalid_response(operation) from None


__all__ = ["GoogleProvider", "META", "DEFAULT_MODELS", "candidate_text"]
