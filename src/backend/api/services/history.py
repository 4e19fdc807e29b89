"""Conversation history and system prompt assembly for assistant calls.

History is replayed oldest first and trimmed to a per-provider token
budget counted with tiktoken.
"""

from __future__ import annotations

from collections.abc import Sequence

from core.constants import (
    HISTORY_MIN_TURNS,
    HISTORY_RESERVED_OUTPUT_TOKENS,
    HISTORY_SAFETY_BUFFER,
    PROVIDERS,
    TOKEN_COUNT_MODEL,
)
from models.chat_models import ChatMessage, ContextChunk, ConversationTurn
from utils.logger import ChatLogger
from utils.logger import logger as default_logger
from utils.token_utils import count_tokens

CONTEXT_DIVIDER = "━" * 65

CONTEXT_PREAMBLE = (
    "## COMPANY CONTEXT (CRITICAL - USE THIS INFORMATION)\n\n"
    "You have access to the following relevant company knowledge. Reference this\n"
    "information in your response when appropriate. Be specific and cite your sources\n"
    'naturally (e.g., "According to our [source]...").'
)

CONTEXT_CLOSING = "Now respond to the user's question using the context above where relevant."


def estimate_tokens(text: str, model: str = TOKEN_COUNT_MODEL) -> int:
    return count_tokens(text, model)


def messages_to_history(recent: Sequence[ChatMessage]) -> list[ConversationTurn]:
    """Convert a newest-first message window into oldest-first turns.

    Messages with empty content (unfinished or failed stream placeholders)
    are dropped.
    """
    return [message.to_turn() for message in reversed(recent) if message.content.strip()]


def drop_pending_prompt(turns: Sequence[ConversationTurn], user_message: str) -> list[ConversationTurn]:
    """Remove the trailing user turn that repeats ``user_message``.

    The send route stores the human message before any assistant is asked,
    so the replayed window usually ends with the prompt about to be sent.
    """
    if turns and turns[-1].role == "user" and turns[-1].content.strip() == user_message.strip():
        return list(turns[:-1])
    return list(turns)


def history_budget(provider: str, system_prompt: str, model: str = TOKEN_COUNT_MODEL) -> int:
    """Tokens left for history once output, overhead and the system prompt are reserved."""
    spec = PROVIDERS.get(provider)
    limit = spec.history_token_budget if spec else min(p.history_token_budget for p in PROVIDERS.values())
    return limit - HISTORY_RESERVED_OUTPUT_TOKENS - HISTORY_SAFETY_BUFFER - estimate_tokens(system_prompt, model)


def trim_history(
    turns: Sequence[ConversationTurn],
    system_prompt: str,
    provider: str,
    model: str = TOKEN_COUNT_MODEL,
    logger: ChatLogger | None = None,
) -> list[ConversationTurn]:
    """Keep the newest turns that fit the provider's budget, preserving order.

    If the system prompt alone exhausts the budget only the last
    ``HISTORY_MIN_TURNS`` turns are kept.
    """
    log = logger or default_logger
    remaining = history_budget(provider, system_prompt, model)

    if remaining <= 0:
        log.warning(
            f"System prompt exceeds {provider} history budget; keeping last {HISTORY_MIN_TURNS} turns",
            provider=provider,
        )
        return list(turns[-HISTORY_MIN_TURNS:])

    kept: list[ConversationTurn] = []
    used = 0
    for turn in reversed(turns):
        cost = estimate_tokens(turn.content, model)
        if used + cost > remaining:
            break
        kept.append(turn)
        used += cost
    kept.reverse()

    if len(kept) < len(turns):
        log.info(
            f"Trimmed {len(turns) - len(kept)} older turns to fit {provider} budget",
            provider=provider,
            kept=len(kept),
        )
    return kept


def build_contextual_prompt(
    system_prompt: str,
    assistant_name: str,
    chunks: Sequence[ContextChunk] | None = None,
) -> str:
    """Fold retrieved knowledge chunks into the system prompt.

    Without chunks the system prompt is returned unchanged.
    """
    if not chunks:
        return system_prompt

    sections = []
    for idx, chunk in enumerate(chunks, start=1):
        page = f" (p.{chunk.page})" if chunk.page else ""
        sections.append(f"### Context {idx}: {chunk.source}{page}\n{chunk.content}")

    return "\n\n".join(
        [
            f"# YOU ARE: {assistant_name}",
            system_prompt,
            CONTEXT_DIVIDER,
            CONTEXT_PREAMBLE,
            "\n\n".join(sections),
            CONTEXT_DIVIDER,
            CONTEXT_CLOSING,
        ]
    )


__all__ = [
    "build_contextual_prompt",
    "drop_pending_prompt",
    "estimate_tokens",
    "history_budget",
    "messages_to_history",
    "trim_history",
]
