"""
Tool Invocation Loop

Drives the model through the analysis tool: the first step must call the
data tool, later steps may call it again or answer. The loop stops on a
natural answer, once the cumulative tool-call budget is exceeded, or at the
hard step bound.

Only text reaches the caller. Text produced by separate steps is joined
with the message separator so the client can show it as separate bubbles.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
import logging

from restaurant_assistant.config import settings
from restaurant_assistant.models import ChatMessage
from restaurant_assistant.services.llm_service import LLMService, llm_service
from restaurant_assistant.services.message_divider import MESSAGE_SEPARATOR
from restaurant_assistant.services.prompts import build_system_prompt
from restaurant_assistant.services.report_tools import ANALYZE_RESTAURANT_DATA
from restaurant_assistant.services.tool_service import ToolService, tool_service

logger = logging.getLogger(__name__)


class CompletionProviderError(Exception):
    """The completion provider failed after its own retries."""


class ToolInvocationLoop:
    """Runs one assistant turn against the completion provider."""

    def __init__(
        self,
        llm: Optional[LLMService] = None,
        tools: Optional[ToolService] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        max_tool_calls: Optional[int] = None,
        max_steps: Optional[int] = None,
        max_retries: Optional[int] = None,
    ):
        self.llm = llm or llm_service
        self.tools = tools or tool_service
        self.model = model or settings.default_model
        self.temperature = temperature if temperature is not None else settings.default_temperature
        self.system_prompt = system_prompt or build_system_prompt()
        self.max_tool_calls = max_tool_calls if max_tool_calls is not None else settings.chat_max_tool_calls
        self.max_steps = max_steps if max_steps is not None else settings.chat_max_steps
        self.max_retries = max_retries if max_retries is not None else settings.chat_tool_max_retries

    def _tool_choice(self, step: int) -> str:
        # The first step has to fetch data before answering
        return "required" if step == 0 else "auto"

    async def run(self, messages: List[ChatMessage], conversation_id: str) -> AsyncIterator[str]:
        """
        Stream the text of one assistant turn.

        Raises:
            CompletionProviderError: If the provider reports an error
        """
        working_messages: List[Dict[str, Any]] = [m.to_api_dict() for m in messages]
        tool_schemas = self.tools.get_tool_schemas(names=[ANALYZE_RESTAURANT_DATA])

        if logger.isEnabledFor(logging.DEBUG):
            context_tokens = sum(self.llm.count_tokens(m.content) for m in messages)
            logger.debug(f"[CHAT] {conversation_id}: ~{context_tokens} context tokens in {len(messages)} messages")

        total_tool_calls = 0
        text_emitted = False

        for step in range(self.max_steps):
            step_text_started = False
            step_content_blocks: List[Dict[str, Any]] = []
            step_tool_use: List[Dict[str, Any]] = []

            async for event in self.llm.send_message_stream(
                messages=working_messages,
                model=self.model,
                system_prompt=self.system_prompt,
                temperature=self.temperature,
                tools=tool_schemas,
                tool_choice=self._tool_choice(step),
                max_retries=self.max_retries,
            ):
                if event["type"] == "token":
                    if not event["content"]:
                        continue
                    if not step_text_started:
                        step_text_started = True
                        if text_emitted:
                            yield MESSAGE_SEPARATOR
                    text_emitted = True
                    yield event["content"]
                elif event["type"] == "done":
                    step_content_blocks = event.get("content_blocks") or []
                    step_tool_use = event.get("tool_use") or []
                elif event["type"] == "error":
                    logger.error(f"[CHAT] {conversation_id}: provider error on step {step}: {event['error']}")
                    raise CompletionProviderError(event["error"])

            if not step_tool_use:
                logger.info(f"[CHAT] {conversation_id}: answered after {step + 1} step(s), {total_tool_calls} tool call(s)")
                return

            logger.info(f"[TOOLS] {conversation_id}: step {step} requested {len(step_tool_use)} tool call(s)")
            results = await self.tools.execute_tools(step_tool_use)
            total_tool_calls += len(step_tool_use)

            working_messages.append({"role": "assistant", "content": step_content_blocks})
            working_messages.append({
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": result.tool_use_id,
                        "content": result.content,
                        "is_error": result.is_error,
                    }
                    for result in results
                ],
            })

            if total_tool_calls > self.max_tool_calls:
                logger.warning(
                    f"[TOOLS] {conversation_id}: stopping after {total_tool_calls} tool calls "
                    f"(limit {self.max_tool_calls})"
                )
                return

        logger.warning(f"[CHAT] {conversation_id}: step limit ({self.max_steps}) reached")
