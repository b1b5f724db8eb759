"""
Outbound message segmentation.

Messages longer than the model-facing limit are cut into same-role chunks,
preferring paragraph, line, sentence, clause and word boundaries over a hard
cut in the middle of a word.
"""

from typing import List, Optional

from restaurant_assistant.config import settings
from restaurant_assistant.models import ChatMessage

# Boundaries in order of preference
SPLIT_CANDIDATES = ("\n\n", "\n", ". ", "! ", "? ", ", ", " ")

# A boundary closer to the chunk start than this is ignored
MIN_SPLIT_RATIO = 0.7


def _max_length(max_length: Optional[int]) -> int:
    limit = max_length if max_length is not None else settings.chat_max_message_length
    return max(1, limit)


def find_best_split_point(text: str, max_length: int) -> int:
    """Index to cut `text` at so the first part fits in `max_length`."""
    if len(text) <= max_length:
        return len(text)

    for candidate in SPLIT_CANDIDATES:
        position = text.rfind(candidate, 0, max_length)
        if position > max_length * MIN_SPLIT_RATIO:
            return position + 1

    return max_length


def split_message(message: ChatMessage, max_length: Optional[int] = None) -> List[ChatMessage]:
    max_length = _max_length(max_length)
    if len(message.content) <= max_length:
        return [message]

    parts = []
    remaining = message.content

    while remaining:
        if len(remaining) <= max_length:
            parts.append(ChatMessage(role=message.role, content=remaining.strip()))
            break

        split_point = find_best_split_point(remaining, max_length)
        chunk = remaining[:split_point].strip()
        if chunk:
            parts.append(ChatMessage(role=message.role, content=chunk))

        remaining = remaining[split_point:].strip()

    return parts


def split_messages(messages: List[ChatMessage], max_length: Optional[int] = None) -> List[ChatMessage]:
    result = []
    for message in messages:
        result.extend(split_message(message, max_length))
    return result


def should_split_message(message: ChatMessage, max_length: Optional[int] = None) -> bool:
    return len(message.content) > _max_length(max_length)
