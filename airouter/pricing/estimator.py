"""
Cost estimation and the pre-flight cost guard.

Estimates are approximate: input tokens are counted locally, output tokens
are the caller's expectation (usually max_tokens), and models missing from
the pricing cache are priced at a deliberately high default.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from airouter.errors import CostLimitExceededError
from airouter.pricing.cache import ModelPricing, PricingCache
from airouter.pricing.tokens import count_tokens
from airouter.providers.interfaces import UsageInfo

DEFAULT_PRICING = ModelPricing(input=10.0, output=30.0)
DEFAULT_EXPECTED_OUTPUT_TOKENS = 1000


@dataclass(frozen=True)
class CostEstimate:
    """Pre-flight cost estimate in USD."""

    model: str
    input_tokens: int
    estimated_output_tokens: int
    input_cost: float
    output_cost: float
    total_cost: float
    is_estimate: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def qualified_model_id(provider_id: str, model: str) -> str:
    """
    Model id as used in the pricing cache.

    OpenRouter ids are already vendor-qualified; other providers get their
    id prefixed.

    Example:
        >>> qualified_model_id("openai", "gpt-4o")
        'openai/gpt-4o'
    """
    if provider_id == "openrouter":
        return model
    return f"{provider_id}/{model}"


def get_model_pricing(model: str, cache: Optional[PricingCache] = None) -> ModelPricing:
    if cache is not None and model in cache.models:
        return cache.models[model]
    return DEFAULT_PRICING


def _cost(tokens: int, per_million: float) -> float:
    return tokens / 1_000_000 * per_million


def estimate_cost(
    model: str,
    prompt: str,
    system_prompt: Optional[str] = None,
    expected_output_tokens: int = DEFAULT_EXPECTED_OUTPUT_TOKENS,
    cache: Optional[PricingCache] = None,
) -> CostEstimate:
    """
    Estimate what a text request will cost.

    Args:
        model: Fully-qualified model id (see qualified_model_id)
        prompt: User prompt
        system_prompt: Optional system prompt, counted as input
        expected_output_tokens: Output tokens to budget for
        cache: Pricing cache; models not found use DEFAULT_PRICING

    Returns:
        CostEstimate with is_estimate=True when default pricing was used
    """
    pricing = get_model_pricing(model, cache)
    input_tokens = count_tokens((system_prompt or "") + prompt, model)
    input_cost = _cost(input_tokens, pricing.input)
    output_cost = _cost(expected_output_tokens, pricing.output)
    return CostEstimate(
        model=model,
        input_tokens=input_tokens,
        estimated_output_tokens=expected_output_tokens,
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
        is_estimate=cache is None or model not in cache.models,
    )


def check_cost_limit(estimate: CostEstimate, max_cost: float) -> None:
    """
    Raise CostLimitExceededError when the estimate is above ``max_cost``.

    A ceiling of 0 (or below) means unlimited.
    """
    if max_cost > 0 and estimate.total_cost > max_cost:
        raise CostLimitExceededError(estimate, max_cost)


def cost_from_usage(model: str, usage: UsageInfo, cache: Optional[PricingCache] = None) -> Dict[str, float]:
    """Actual cost of a finished request from the vendor's reported usage."""
    pricing = get_model_pricing(model, cache)
    input_cost = _cost(usage.prompt_tokens, pricing.input)
    output_cost = _cost(usage.completion_tokens, pricing.output)
    return {
        "input_cost": input_cost,
        "output_cost": output_cost,
        "total_cost": input_cost + output_cost,
    }


def format_cost(cost: float) -> str:
    """
    Human readable cost; amounts under a cent are shown in cents.

    Example:
        >>> format_cost(0.25)
        '$0.2500'
        >>> format_cost(0.0015)
        '0.1500¢'
    """
    if cost < 0.01:
        return f"{cost * 100:.4f}¢"
    return f"${cost:.4f}"


__all__ = [
    "CostEstimate",
    "DEFAULT_PRICING",
    "qualified_model_id",
    "get_model_pricing",
    "estimate_cost",
    "check_cost_limit",
    "cost_from_usage",
    "format_cost",
]
