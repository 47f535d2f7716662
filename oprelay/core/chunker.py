"""Message chunking for chat webhook size limits."""

from __future__ import annotations

from oprelay.config import DiscordConfig


def chunk_message(
    text: str,
    limit: int = 1900,
    window: int = 400,
    config: DiscordConfig | None = None,
) -> list[str]:
    """Split text into chunks of at most *limit* characters.

    Each cut is made at the last newline within the limit, so the newline
    opens the next chunk and joining the chunks gives back *text* exactly.
    If no newline falls in the trailing *window* characters the chunk is
    hard-split at the limit.
    """
    if config:
        limit = config.message_limit
        window = config.split_window

    if not text:
        return []

    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        split_at = remaining.rfind("\n", 0, limit + 1)
        if split_at <= 0 or split_at < limit - window:
            split_at = limit
        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:]

    if remaining:
        chunks.append(remaining)
    return chunks
