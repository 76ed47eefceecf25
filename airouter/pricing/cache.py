"""
Pricing cache.

Per-model prices (USD per 1M tokens) are pulled from OpenRouter's model
listing and stored in the config file with a timestamp. A stale or missing
cache is replaced wholesale by a single refresh.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

import httpx
from pydantic import Field

from airouter.errors import ConfigError
from airouter.observability.logging import get_logger
from airouter.providers.interfaces import CamelModel

if TYPE_CHECKING:
    from airouter.config import ConfigStore, RouterConfig

logger = get_logger(__name__)

OPENROUTER_MODELS_URL = "https://openrouter.ai/api/v1/models"
DEFAULT_TTL_HOURS = 24
TOKENS_PER_MILLION = 1_000_000
MS_PER_HOUR = 3_600_000


class ModelPricing(CamelModel):
    """Prices in USD per 1M tokens."""

    input: float = Field(ge=0)
    output: float = Field(ge=0)


class PricingCache(CamelModel):
    last_updated: int = Field(description="Refresh time in epoch milliseconds")
    ttl_hours: float = Field(default=DEFAULT_TTL_HOURS, gt=0)
    models: Dict[str, ModelPricing] = Field(default_factory=dict)


def now_ms() -> int:
    return int(time.time() * 1000)


def is_pricing_cache_valid(cache: Optional[PricingCache], current_ms: Optional[int] = None) -> bool:
    """True when the cache exists and is younger than its TTL."""
    if cache is None:
        return False
    current = now_ms() if current_ms is None else current_ms
    return current - cache.last_updated < cache.ttl_hours * MS_PER_HOUR


def _per_million(value: Any) -> Optional[float]:
    try:
        return float(value) * TOKENS_PER_MILLION
    except (TypeError, ValueError):
        return None


def parse_openrouter_pricing(data: Any) -> Dict[str, ModelPricing]:
    """
    Convert an OpenRouter ``/models`` body into per-million prices.

    OpenRouter reports ``pricing.prompt`` and ``pricing.completion`` as
    per-token decimal strings. Entries without both values are skipped.
    """
    entries = data.get("data") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigError("Unexpected pricing response from OpenRouter")

    models: Dict[str, ModelPricing] = {}
    for entry in entries:
        if not isinstance(entry, dict) or "id" not in entry:
            continue
        pricing = entry.get("pricing") or {}
        prompt = _per_million(pricing.get("prompt"))
        completion = _per_million(pricing.get("completion"))
        if prompt is None or completion is None or prompt < 0 or completion < 0:
            continue
        models[entry["id"]] = ModelPricing(input=prompt, output=completion)
    return models


async def fetch_openrouter_pricing(
    api_key: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout_seconds: float = 30.0,
) -> PricingCache:
    """
    Download the current price list.

    Raises:
        ConfigError: If the listing cannot be fetched or parsed
    """
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    try:
        async with httpx.AsyncClient(transport=transport, timeout=timeout_seconds) as client:
            response = await client.get(OPENROUTER_MODELS_URL, headers=headers)
    except httpx.HTTPError as e:
        raise ConfigError(f"Failed to fetch pricing: {e}") from e

    if not response.is_success:
        raise ConfigError(f"Failed to fetch pricing: HTTP {response.status_code}")
    try:
        data = response.json()
    except ValueError as e:
        raise ConfigError("Failed to fetch pricing: invalid JSON") from e

    return PricingCache(last_updated=now_ms(), models=parse_openrouter_pricing(data))


async def ensure_pricing_available(
    config: "RouterConfig",
    api_key: Optional[str],
    store: Optional["ConfigStore"] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    force: bool = False,
) -> PricingCache:
    """
    Return a valid pricing cache, refreshing it when stale or missing.

    A fresh cache replaces the old one wholesale, is set on ``config`` and
    is persisted through ``store`` when one is given.
    """
    if not force and is_pricing_cache_valid(config.pricing):
        return config.pricing

    cache = await fetch_openrouter_pricing(api_key, transport=transport)
    config.pricing = cache
    if store is not None:
        store.persist_pricing(cache)
    logger.info("pricing_cache_refreshed", models=len(cache.models))
    return cache


__all__ = [
    "ModelPricing",
    "PricingCache",
    "DEFAULT_TTL_HOURS",
    "is_pricing_cache_valid",
    "parse_openrouter_pricing",
    "fetch_openrouter_pricing",
    "ensure_pricing_available",
]
