"""Token counting, pricing cache and the pre-flight cost guard."""

from airouter.pricing.cache import (
    ModelPricing,
    PricingCache,
    ensure_pricing_available,
    fetch_openrouter_pricing,
    is_pricing_cache_valid,
)
from airouter.pricing.estimator import (
    DEFAULT_PRICING,
    CostEstimate,
    check_cost_limit,
    cost_from_usage,
    estimate_cost,
    format_cost,
    get_model_pricing,
    qualified_model_id,
)
from airouter.pricing.tokens import count_tokens, encoding_name_for

__all__ = [
    "ModelPricing",
    "PricingCache",
    "ensure_pricing_available",
    "fetch_openrouter_pricing",
    "is_pricing_cache_valid",
    "DEFAULT_PRICING",
    "CostEstimate",
    "check_cost_limit",
    "cost_from_usage",
    "estimate_cost",
    "format_cost",
    "get_model_pricing",
    "qualified_model_id",
    "count_tokens",
    "encoding_name_for",
]
