from typing import Optional, List, Dict, Any, AsyncIterator, Tuple
from anthropic import AsyncAnthropic
from restaurant_assistant.config import settings
import tiktoken
import json
import logging

logger = logging.getLogger(__name__)


class AnthropicService:
    # Neutral tool choice values mapped to the Messages API
    TOOL_CHOICES = {
        "required": {"type": "any"},
        "auto": {"type": "auto"},
        "none": {"type": "none"},
    }

    def __init__(self):
        self.client = None
        self._encoder = None

    def _ensure_client(self):
        """Lazily initialize the Anthropic client."""
        if self.client is None:
            if settings.anthropic_api_key:
                # Retries are configured per request
                self.client = AsyncAnthropic(api_key=settings.anthropic_api_key, max_retries=0)
            else:
                raise ValueError("Anthropic API key not configured")
        return self.client

    def is_configured(self) -> bool:
        return bool(settings.anthropic_api_key)

    @property
    def encoder(self):
        if self._encoder is None:
            # Use cl100k_base as approximation for Claude tokenization
            self._encoder = tiktoken.get_encoding("cl100k_base")
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """Approximate token count for a text string."""
        return len(self.encoder.encode(text))

    def _split_system_messages(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str],
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """
        The Messages API has no system role in the message list; system
        messages from the conversation are appended to the system prompt.
        """
        system_parts = [system_prompt] if system_prompt else []
        conversation = []
        for msg in messages:
            if msg["role"] == "system":
                system_parts.append(msg["content"])
            else:
                conversation.append(msg)
        return ("\n\n".join(system_parts) or None), conversation

    async def send_message_stream(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        max_retries: int = 0,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Send a message to Claude API with streaming response.

        Yields events with type and data:
        - {"type": "start", "model": str}
        - {"type": "token", "content": str}
        - {"type": "tool_use_start", "tool_use": dict} - Start of a tool use block
        - {"type": "done", "content": str, "content_blocks": list, "tool_use": list|None, "model": str, "usage": dict, "stop_reason": str}
        - {"type": "error", "error": str}
        """
        try:
            client = self._ensure_client().with_options(max_retries=max_retries)
        except ValueError as e:
            yield {"type": "error", "error": str(e)}
            return

        model = model or settings.default_model
        temperature = temperature if temperature is not None else settings.default_temperature
        max_tokens = max_tokens or settings.default_max_tokens

        system, conversation = self._split_system_messages(messages, system_prompt)

        api_params = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation,
        }
        if system:
            api_params["system"] = system

        if tools:
            api_params["tools"] = tools
            if tool_choice:
                api_params["tool_choice"] = self.TOOL_CHOICES[tool_choice]
            logger.info(f"[TOOLS] Streaming request with {len(tools)} tools (tool_choice={tool_choice})")

        try:
            yield {"type": "start", "model": model}

            full_content = ""
            content_blocks = []
            tool_use_blocks = []
            current_tool_use = None
            current_tool_input_json = ""
            input_tokens = 0
            output_tokens = 0
            stop_reason = None

            async with client.messages.stream(**api_params) as stream:
                async for event in stream:
                    if event.type == "message_start":
                        input_tokens = event.message.usage.input_tokens

                    elif event.type == "content_block_start":
                        if event.content_block.type == "tool_use":
                            current_tool_use = {
                                "type": "tool_use",
                                "id": event.content_block.id,
                                "name": event.content_block.name,
                                "input": {},
                            }
                            current_tool_input_json = ""
                            logger.info(f"[TOOLS] Tool use started: {event.content_block.name} (id={event.content_block.id})")
                            yield {
                                "type": "tool_use_start",
                                "tool_use": {
                                    "id": event.content_block.id,
                                    "name": event.content_block.name,
                                }
                            }

                    elif event.type == "content_block_delta":
                        if event.delta.type == "text_delta":
                            full_content += event.delta.text
                            yield {"type": "token", "content": event.delta.text}
                        elif event.delta.type == "input_json_delta":
                            current_tool_input_json += event.delta.partial_json

                    elif event.type == "content_block_stop":
                        if current_tool_use is not None:
                            try:
                                current_tool_use["input"] = json.loads(current_tool_input_json) if current_tool_input_json else {}
                            except json.JSONDecodeError:
                                logger.error(f"[TOOLS] Failed to parse tool input JSON: {current_tool_input_json}")
                                current_tool_use["input"] = {}

                            content_blocks.append(current_tool_use)
                            tool_use_blocks.append(current_tool_use)
                            current_tool_use = None
                            current_tool_input_json = ""

                    elif event.type == "message_delta":
                        output_tokens = event.usage.output_tokens
                        stop_reason = event.delta.stop_reason

            if full_content:
                content_blocks.insert(0, {"type": "text", "text": full_content})

            if current_tool_use is not None:
                logger.warning(
                    f"[TOOLS] Tool use '{current_tool_use['name']}' was cut off by max_tokens "
                    f"({output_tokens} output tokens) and will not run"
                )

            yield {
                "type": "done",
                "content": full_content,
                "content_blocks": content_blocks,
                "tool_use": tool_use_blocks or None,
                "model": model,
                "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
                "stop_reason": stop_reason,
            }

        except Exception as e:
            logger.exception(f"[ANTHROPIC] Stream error: {e}")
            yield {"type": "error", "error": str(e)}


# Singleton instance
anthropic_service = AnthropicService()
