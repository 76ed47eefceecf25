"""
Shared adapter core.

Vendor adapters compose an AdapterCore instead of inheriting from a base
class. The core owns initialization state, capability and model resolution,
retrying execution, and the HTTP plumbing every vendor needs.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

import httpx

from airouter.errors import (
    NoModelAvailableError,
    NotInitializedError,
    ProviderError,
    ProviderTimeoutError,
    UnsupportedCapabilityError,
)
from airouter.observability.logging import get_logger
from airouter.providers.interfaces import Capability, ProviderConfig, ProviderMeta
from airouter.providers.retry import RetryExecutor, SleepFunc
from airouter.providers.streaming import DeltaExtractor, SSEDecoder

logger = get_logger(__name__)

T = TypeVar("T")

# Raw vendor bodies included in error messages are capped at this length
ERROR_BODY_LIMIT = 500


def truncate(text: str, limit: int = ERROR_BODY_LIMIT) -> str:
    return text if len(text) <= limit else text[:limit]


class AdapterCore:
    """
    Helper shared by all vendor adapters.

    Args:
        meta: Static provider metadata
        default_models: Built-in model lists per capability, first entry preferred
        default_base_url: Vendor API root used when the config has no base_url
        transport: Optional httpx transport (tests pass httpx.MockTransport)
        sleep: Sleep coroutine handed to the retry executor

    Example:
        >>> core = AdapterCore(meta, {Capability.TEXT: ["gpt-4o"]}, "https://api.openai.com/v1")
        >>> core.initialize(ProviderConfig(api_key="sk-test"))
        >>> core.resolve_model(Capability.TEXT)
        'gpt-4o'
    """

    def __init__(
        self,
        meta: ProviderMeta,
        default_models: Mapping[Capability, List[str]],
        default_base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.meta = meta
        self.default_models = dict(default_models)
        self.default_base_url = default_base_url
        self.transport = transport
        self._sleep = sleep
        self._config: Optional[ProviderConfig] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, config: ProviderConfig) -> None:
        """Store the provider config. Calling again replaces it."""
        self._config = config
        logger.debug("provider_initialized", provider=self.meta.id)

    @property
    def initialized(self) -> bool:
        return self._config is not None

    @property
    def config(self) -> ProviderConfig:
        return self.ensure_initialized()

    def ensure_initialized(self) -> ProviderConfig:
        if self._config is None:
            raise NotInitializedError(self.meta.id)
        return self._config

    # ------------------------------------------------------------------
    # Capabilities and models
    # ------------------------------------------------------------------

    def supports(self, capability: Capability) -> bool:
        return capability in self.meta.capabilities

    def ensure_capability(self, capability: Capability) -> None:
        if not self.supports(capability):
            raise UnsupportedCapabilityError(self.meta.id, capability.value)

    def get_models(self, capability: Capability) -> List[str]:
        return list(self.default_models.get(capability, []))

    def resolve_model(self, capability: Capability, requested: Optional[str] = None) -> str:
        """
        Pick the model for a request.

        Precedence: explicit request, configured default for the capability,
        first built-in default.

        Raises:
            NoModelAvailableError: If none of the three yields a model
        """
        if requested:
            return requested
        if self._config is not None:
            configured = self._config.models.for_capability(capability)
            if configured:
                return configured
        builtin = self.default_models.get(capability) or []
        if builtin:
            return builtin[0]
        raise NoModelAvailableError(self.meta.id, capability.value)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        configured = self._config.base_url if self._config is not None else None
        return (configured or self.default_base_url).rstrip("/")

    def retry_executor(self) -> RetryExecutor:
        config = self.ensure_initialized()
        return RetryExecutor(
            max_retries=config.max_retries,
            timeout_seconds=config.timeout_seconds,
            provider=self.meta.id,
            sleep=self._sleep,
        )

    async def execute_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.retry_executor().run(operation)

    def client(self) -> httpx.AsyncClient:
        timeout = self._config.timeout_seconds if self._config is not None else 60.0
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)

    def api_error(self, status_code: int, body: str) -> ProviderError:
        return ProviderError(
            f"API error: {status_code} - {truncate(body)}",
            provider=self.meta.id,
            status_code=status_code,
        )

    def invalid_response(self, payload: Any) -> ProviderError:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        return ProviderError(
            f"Invalid response from {self.meta.name} API: {truncate(body)}",
            provider=self.meta.id,
        )

    def _transport_error(self, error: httpx.HTTPError) -> ProviderError:
        if isinstance(error, httpx.TimeoutException):
            return ProviderTimeoutError(self.meta.id, self.config.timeout_seconds)
        return ProviderError(f"Request failed: {error}", provider=self.meta.id)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """
        Perform one HTTP call and return the fully read response.

        Raises:
            ProviderError: On transport failure or a non-2xx status
        """
        try:
            async with self.client() as client:
                response = await client.request(
                    method, url, headers=headers, params=params, json=json_body
                )
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e

        if not response.is_success:
            raise self.api_error(response.status_code, response.text)
        return response

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        response = await self.request(
            method, url, headers=headers, params=params, json_body=json_body
        )
        try:
            return response.json()
        except ValueError:
            raise self.invalid_response(response.text) from None

    async def open_stream(
        self,
        url: str,
        extract: DeltaExtractor,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> SSEDecoder:
        """
        Open a streaming POST and wrap its body in an SSEDecoder.

        Streaming is not retried. A non-2xx status is read, the connection
        is closed, and a ProviderError carrying the status is raised.
        """
        client = self.client()
        try:
            request = client.build_request(
                "POST", url, headers=headers, params=params, json=json_body
            )
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            raise self._transport_error(e) from e

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
                await client.aclose()
            raise self.api_error(response.status_code, body)

        async def chunks() -> AsyncIterator[bytes]:
            try:
                async for chunk in response.aiter_bytes():
                    yield chunk
            except httpx.HTTPError as e:
                raise self._transport_error(e) from e

        async def close() -> None:
            try:
                await response.aclose()
            finally:
                await client.aclose()

        return SSEDecoder(chunks(), extract, close)


def elapsed_ms(started: float) -> float:
    """Milliseconds since a time.perf_counter() reading."""
    return round((time.perf_counter() - started) * 1000, 1)


__all__ = ["AdapterCore", "ERROR_BODY_LIMIT", "truncate", "elapsed_ms"]
