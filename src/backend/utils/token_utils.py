"""
Token counting for history budgets.

Counts with tiktoken. Models tiktoken does not know (Claude, Gemini)
fall back to the ``cl100k_base`` encoding, which is close enough for
budgeting against those vendors' limits.
"""

from __future__ import annotations

from functools import lru_cache
from hashlib import blake2b
from typing import Any

import tiktoken

from core.constants import FALLBACK_TOKEN_ENCODING, TOKEN_CACHE_SIZE, TOKEN_COUNT_MODEL

# Encoders are expensive to build; one per model name
_encoder_cache: dict[str, Any] = {}


def get_encoder(model: str = TOKEN_COUNT_MODEL) -> Any:
    """Get the cached encoder for ``model``."""
    if model not in _encoder_cache:
        try:
            _encoder_cache[model] = tiktoken.encoding_for_model(model)
        except KeyError:
            _encoder_cache[model] = tiktoken.get_encoding(FALLBACK_TOKEN_ENCODING)
    return _encoder_cache[model]


def _hash_text(text: str) -> str:
    return blake2b(text.encode("utf-8"), digest_size=16).hexdigest()


@lru_cache(maxsize=TOKEN_CACHE_SIZE)
def _count_tokens_cached(text_hash: str, text: str, model: str) -> int:
    # Special-token markers in user text are counted as plain text
    return len(get_encoder(model).encode(text, disallowed_special=()))


def count_tokens(text: str, model: str = TOKEN_COUNT_MODEL) -> int:
    """Exact token count of ``text`` under ``model``'s encoding."""
    if not text:
        return 0
    return _count_tokens_cached(_hash_text(text), text, model)


__all__ = ["count_tokens", "get_encoder"]
