from __future__ import annotations

import tiktoken

from core.constants import FALLBACK_TOKEN_ENCODING
from utils.token_utils import count_tokens, get_encoder


def test_count_tokens_matches_model_encoding() -> None:
    text = "Summarize the quarterly numbers for the channel."

    assert count_tokens(text, "gpt-4o") == len(tiktoken.encoding_for_model("gpt-4o").encode(text))


def test_unknown_models_fall_back_to_cl100k() -> None:
    assert get_encoder("claude-3-5-sonnet-latest").name == FALLBACK_TOKEN_ENCODING
    assert get_encoder("gemini-1.5-pro").name == FALLBACK_TOKEN_ENCODING


def test_encoder_is_cached_per_model() -> None:
    assert get_encoder("gpt-4o") is get_encoder("gpt-4o")


def test_empty_text_has_no_tokens() -> None:
    assert count_tokens("") == 0


def test_special_token_markers_are_counted_as_text() -> None:
    assert count_tokens("ignore <|endoftext|> this", "gpt-4o") > 0
