"""
Chat Service

Prepares one conversational turn: keys the conversation, batches the
incoming user message, builds the model context from memory (or the
client's own history when memory is empty) and hands back a text stream
plus a callback that records the finished answer.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
import logging

from restaurant_assistant.config import settings
from restaurant_assistant.models import ChatMessage, MessageRole
from restaurant_assistant.services.conversation_memory import (
    ConversationMemory,
    conversation_memory,
    get_conversation_id,
)
from restaurant_assistant.services.message_batcher import (
    MessageBatcher,
    combine_batched_messages,
    message_batcher,
)
from restaurant_assistant.services.message_divider import detect_message_parts
from restaurant_assistant.services.message_splitter import split_messages
from restaurant_assistant.services.tool_loop import ToolInvocationLoop

logger = logging.getLogger(__name__)


@dataclass
class ChatTurn:
    """A prepared turn, ready to be streamed."""
    text_stream: AsyncIterator[str]
    conversation_id: str
    save_response: Callable[[str], None]
    # False when the message was merged into another request's turn
    answered_here: bool = True


async def _empty_stream() -> AsyncIterator[str]:
    return
    yield


class ChatService:
    """Wires keying, batching, memory and the tool loop together."""

    def __init__(
        self,
        memory: Optional[ConversationMemory] = None,
        batcher: Optional[MessageBatcher] = None,
        tool_loop: Optional[ToolInvocationLoop] = None,
        fallback_ms: Optional[int] = None,
    ):
        self.memory = memory or conversation_memory
        self.batcher = batcher or message_batcher
        self._tool_loop = tool_loop
        self.fallback_ms = fallback_ms if fallback_ms is not None else settings.chat_batch_fallback_ms

    @property
    def tool_loop(self) -> ToolInvocationLoop:
        # Built on first use so settings changes before startup are honoured
        if self._tool_loop is None:
            self._tool_loop = ToolInvocationLoop()
        return self._tool_loop

    async def batch_user_message(self, conversation_id: str, message: ChatMessage) -> Optional[ChatMessage]:
        """
        Race the batch window against the fallback timer.

        Returns the message to answer (the combined batch, or the caller's own
        message when the fallback wins), or None when the message was absorbed
        into a batch another request is answering.
        """
        future = self.batcher.submit(conversation_id, message)
        done, _ = await asyncio.wait({future}, timeout=self.fallback_ms / 1000)

        if not done:
            # Fallback won: answer alone and drop the batch so nobody answers it later
            self.batcher.discard(conversation_id)
            return message

        if future.cancelled():
            # Another request's fallback discarded the batch we were in
            return message

        batch = future.result()
        if not batch:
            logger.info(f"[BATCH] {conversation_id}: message absorbed into a pending batch")
            return None

        if len(batch) > 1:
            logger.info(f"[BATCH] {conversation_id}: answering {len(batch)} merged messages")
        return combine_batched_messages(batch)

    async def prepare_turn(self, messages: List[ChatMessage]) -> ChatTurn:
        """Build the context for the last message and start the model turn."""
        conversation_id = get_conversation_id(messages)
        prior = self.memory.read(conversation_id)

        last_message = messages[-1]
        history = prior or list(messages[:-1])

        current = last_message
        if last_message.role == MessageRole.USER:
            current = await self.batch_user_message(conversation_id, last_message)
            if current is None:
                return ChatTurn(
                    text_stream=_empty_stream(),
                    conversation_id=conversation_id,
                    save_response=lambda text: None,
                    answered_here=False,
                )

        context = split_messages([*history, current])
        logger.info(
            f"[CHAT] {conversation_id}: {len(context)} context messages "
            f"({'memory' if prior else 'client history'})"
        )

        saved = False

        def save_response(text: str) -> None:
            nonlocal saved
            if saved or not text:
                return
            saved = True
            # The question is recorded together with its answer
            if current.role == MessageRole.USER:
                self.memory.append(conversation_id, current)
            self.memory.append(conversation_id, ChatMessage(role=MessageRole.ASSISTANT, content=text))

        return ChatTurn(
            text_stream=self.tool_loop.run(context, conversation_id),
            conversation_id=conversation_id,
            save_response=save_response,
        )

    async def complete(self, messages: List[ChatMessage]) -> Dict[str, Any]:
        """Run a turn to completion and return the text and its display parts."""
        turn = await self.prepare_turn(messages)
        chunks = []
        async for chunk in turn.text_stream:
            chunks.append(chunk)
        content = "".join(chunks)
        turn.save_response(content)
        return {
            "conversation_id": turn.conversation_id,
            "content": content,
            "parts": detect_message_parts(content),
        }

    def get_history(self, conversation_id: str, limit: Optional[int] = None) -> List[ChatMessage]:
        if limit is None:
            return self.memory.read(conversation_id)
        return self.memory.tail(conversation_id, limit)

    def clear_history(self, conversation_id: str) -> bool:
        return self.memory.clear(conversation_id)


# Singleton instance
chat_service = ChatService()
