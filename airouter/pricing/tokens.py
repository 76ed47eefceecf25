"""Token counting with tiktoken, falling back to a character heuristic."""

from __future__ import annotations

import math
from functools import lru_cache

import tiktoken

from airouter.observability.logging import get_logger

logger = get_logger(__name__)

# Model id fragments that use the newer o200k_base vocabulary
O200K_MARKERS = ("gpt-4o", "gpt-5", "o1-", "o3-")

CHARS_PER_TOKEN = 4


def encoding_name_for(model: str) -> str:
    """
    Pick the tiktoken encoding for a model id.

    Example:
        >>> encoding_name_for("openai/gpt-4o-mini")
        'o200k_base'
        >>> encoding_name_for("anthropic/claude-sonnet-4")
        'cl100k_base'
    """
    lowered = model.lower()
    if any(marker in lowered for marker in O200K_MARKERS):
        return "o200k_base"
    return "cl100k_base"


@lru_cache(maxsize=4)
def _encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


def heuristic_token_count(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_tokens(text: str, model: str) -> int:
    """
    Count tokens in ``text`` for ``model``.

    Any tokenizer failure (unknown encoding, missing BPE files offline)
    falls back to ceil(len(text) / 4).
    """
    try:
        return len(_encoding(encoding_name_for(model)).encode(text, disallowed_special=()))
    except Exception as e:
        logger.debug("tokenizer_unavailable", model=model, error=str(e))
        return heuristic_token_count(text)


__all__ = ["encoding_name_for", "count_tokens", "heuristic_token_count"]
