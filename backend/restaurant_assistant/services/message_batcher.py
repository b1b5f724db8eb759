"""
Message Batcher

Debounces bursts of user messages per conversation. A manager who fires off
three short messages in a row should get one answer to the combined
question, not three answers racing each other.

The first message of a burst owns the batch: its future resolves with every
message accumulated before the window closes. Messages that arrive while the
window is open are absorbed; their futures resolve with an empty list at the
same moment, meaning "answered as part of another request".
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from restaurant_assistant.config import settings
from restaurant_assistant.models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)

BATCH_SEPARATOR = "\n\n"


@dataclass
class PendingBatch:
    """Messages collected for one conversation while its window is open."""
    conversation_id: str
    owner: asyncio.Future
    last_update_time: float
    messages: List[ChatMessage] = field(default_factory=list)
    absorbed: List[asyncio.Future] = field(default_factory=list)
    timer: Optional[asyncio.TimerHandle] = None


class MessageBatcher:
    """
    Per-conversation debounce table.

    Table mutations never await, so on a single event loop a timer callback
    and a concurrent submit for the same key cannot interleave.
    """

    def __init__(self, window_ms: Optional[int] = None):
        self._pending: Dict[str, PendingBatch] = {}
        self._window_ms = window_ms if window_ms is not None else settings.chat_batch_window_ms

    def submit(
        self,
        conversation_id: str,
        message: ChatMessage,
        window_ms: Optional[int] = None,
    ) -> asyncio.Future:
        """
        Add a message to the conversation's batch.

        Returns a future resolving with the full batch (for the message that
        opened it) or with [] (for a message absorbed into an open batch).
        """
        loop = asyncio.get_running_loop()
        window = (self._window_ms if window_ms is None else window_ms) / 1000
        now = loop.time()

        batch = self._pending.get(conversation_id)

        if batch is not None and now - batch.last_update_time < window:
            batch.timer.cancel()
            batch.messages.append(message)
            batch.last_update_time = now
            batch.timer = loop.call_later(window, self._on_window_closed, batch)

            future = loop.create_future()
            batch.absorbed.append(future)
            logger.debug(
                f"[BATCH] {conversation_id}: absorbed message "
                f"({len(batch.messages)} in batch, window re-armed)"
            )
            return future

        if batch is not None:
            # Window elapsed but the timer has not run yet
            logger.debug(f"[BATCH] {conversation_id}: resolving stale batch before starting a new one")
            self._resolve(batch)

        batch = PendingBatch(
            conversation_id=conversation_id,
            owner=loop.create_future(),
            last_update_time=now,
            messages=[message],
        )
        batch.timer = loop.call_later(window, self._on_window_closed, batch)
        self._pending[conversation_id] = batch
        return batch.owner

    def _on_window_closed(self, batch: PendingBatch) -> None:
        messages = self._resolve(batch)
        logger.info(f"[BATCH] {batch.conversation_id}: window closed with {len(messages)} message(s)")

    def _resolve(self, batch: PendingBatch) -> List[ChatMessage]:
        """Remove a batch from the table and settle all of its futures."""
        if batch.timer is not None:
            batch.timer.cancel()
        if self._pending.get(batch.conversation_id) is batch:
            del self._pending[batch.conversation_id]

        messages = list(batch.messages)
        if not batch.owner.done():
            batch.owner.set_result(messages)
        for future in batch.absorbed:
            if not future.done():
                future.set_result([])
        return messages

    def flush(self, conversation_id: str) -> Optional[List[ChatMessage]]:
        """Close the window now. Returns the batch, or None if nothing is pending."""
        batch = self._pending.get(conversation_id)
        if batch is None:
            return None
        return self._resolve(batch)

    def discard(self, conversation_id: str) -> Optional[List[ChatMessage]]:
        """
        Drop the pending batch without delivering it.

        Futures still waiting on the batch are cancelled so their callers fall
        back to handling their own message. Returns the dropped messages.
        """
        batch = self._pending.pop(conversation_id, None)
        if batch is None:
            return None

        if batch.timer is not None:
            batch.timer.cancel()
        for future in [batch.owner, *batch.absorbed]:
            if not future.done():
                future.cancel()

        logger.debug(f"[BATCH] {conversation_id}: discarded batch of {len(batch.messages)} message(s)")
        return list(batch.messages)

    def has_pending(self, conversation_id: str) -> bool:
        return conversation_id in self._pending

    def pending_count(self) -> int:
        return len(self._pending)


def combine_batched_messages(messages: List[ChatMessage]) -> ChatMessage:
    """Merge a batch into a single user message, one blank line between parts."""
    if not messages:
        return ChatMessage(role=MessageRole.USER, content="")
    if len(messages) == 1:
        return messages[0]
    return ChatMessage(
        role=MessageRole.USER,
        content=BATCH_SEPARATOR.join(m.content for m in messages),
    )


# Singleton instance
message_batcher = MessageBatcher()
