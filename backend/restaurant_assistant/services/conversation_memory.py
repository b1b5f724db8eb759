"""
Conversation Memory

Process-wide, in-memory store of the most recent turns of each conversation.
Retention is bounded per role: at most N user messages and N assistant
messages are kept, the oldest of a role being dropped first. Nothing is
persisted; a restart starts every conversation from scratch.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import re
import threading

from restaurant_assistant.config import settings
from restaurant_assistant.models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_ID = "default"
CONVERSATION_ID_PREFIX = "conv_"
CONVERSATION_ID_SOURCE_LENGTH = 30

_WHITESPACE_RUN = re.compile(r"\s+")
_NON_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def get_conversation_id(messages: List[ChatMessage]) -> str:
    """
    Derive a conversation key from a message list.

    The key is built from the first user message, so every request that
    replays the same opening question lands in the same conversation. This
    is a coarse grouping device, not a unique identifier.
    """
    first_user_message = next(
        (m for m in messages if m.role == MessageRole.USER), None
    )
    if first_user_message is None:
        return DEFAULT_CONVERSATION_ID

    source = first_user_message.content[:CONVERSATION_ID_SOURCE_LENGTH]
    source = _WHITESPACE_RUN.sub("_", source)
    source = _NON_KEY_CHARS.sub("", source)
    return f"{CONVERSATION_ID_PREFIX}{source.lower()}"


@dataclass
class MemoryEntry:
    """Stored turns of one conversation."""
    messages: List[ChatMessage] = field(default_factory=list)
    last_update_time: datetime = field(default_factory=datetime.utcnow)


class ConversationMemory:
    """
    Bounded per-conversation history.

    All operations are synchronous. Under asyncio they cannot interleave
    with each other; the lock additionally covers callers on other threads.
    """

    def __init__(self, max_messages_per_role: Optional[int] = None):
        self._entries: Dict[str, MemoryEntry] = {}
        self._max_per_role = (
            max_messages_per_role if max_messages_per_role is not None
            else settings.chat_memory_max_messages
        )
        self._lock = threading.Lock()

    @property
    def max_messages_per_role(self) -> int:
        return self._max_per_role

    def read(self, conversation_id: str) -> List[ChatMessage]:
        """Stored messages for a conversation, oldest first ([] if unknown)."""
        with self._lock:
            entry = self._entries.get(conversation_id)
            return list(entry.messages) if entry else []

    def append(self, conversation_id: str, message: ChatMessage) -> None:
        """Append a message and trim each role back to its bound."""
        with self._lock:
            entry = self._entries.get(conversation_id)
            if entry is None:
                entry = MemoryEntry()
                self._entries[conversation_id] = entry

            entry.messages.append(message)
            entry.last_update_time = datetime.utcnow()

            for role in (MessageRole.USER, MessageRole.ASSISTANT):
                entry.messages = self._trim_role(entry.messages, role)

        logger.debug(
            f"[MEMORY] {conversation_id}: appended {message.role} message "
            f"({len(entry.messages)} stored)"
        )

    def _trim_role(self, messages: List[ChatMessage], role: MessageRole) -> List[ChatMessage]:
        excess = sum(1 for m in messages if m.role == role) - self._max_per_role
        if excess <= 0:
            return messages

        kept = []
        for message in messages:
            if message.role == role and excess > 0:
                excess -= 1
                continue
            kept.append(message)
        return kept

    def tail(self, conversation_id: str, count: Optional[int] = None) -> List[ChatMessage]:
        """The last `count` messages (defaults to the per-role bound)."""
        count = self._max_per_role if count is None else count
        if count <= 0:
            return []
        return self.read(conversation_id)[-count:]

    def clear(self, conversation_id: str) -> bool:
        """Forget a conversation. Returns True if it existed."""
        with self._lock:
            removed = self._entries.pop(conversation_id, None) is not None
        if removed:
            logger.info(f"[MEMORY] Cleared conversation {conversation_id}")
        return removed

    def last_update_time(self, conversation_id: str) -> Optional[datetime]:
        with self._lock:
            entry = self._entries.get(conversation_id)
            return entry.last_update_time if entry else None

    def get_stats(self) -> Dict[str, Any]:
        """Conversation and message counts, for diagnostics."""
        with self._lock:
            return {
                "conversations": len(self._entries),
                "messages": sum(len(e.messages) for e in self._entries.values()),
                "max_messages_per_role": self._max_per_role,
            }


# Singleton instance
conversation_memory = ConversationMemory()
