from typing import Optional, List, Dict, Any, AsyncIterator
from openai import AsyncOpenAI
from restaurant_assistant.config import settings
import tiktoken
import logging
import json

logger = logging.getLogger(__name__)


class OpenAIService:
    """Service for OpenAI API interactions."""

    # Models that use max_completion_tokens instead of max_tokens
    MODELS_WITH_COMPLETION_TOKENS = {
        "o1", "o1-mini", "o3", "o3-mini", "o4-mini",
        "gpt-5", "gpt-5-mini", "gpt-5.1",
    }

    # Models that don't support the temperature parameter
    MODELS_WITHOUT_TEMPERATURE = {
        "o1", "o1-mini", "o3", "o3-mini", "o4-mini",
        "gpt-5", "gpt-5-mini", "gpt-5.1",
    }

    # Neutral tool choice values mapped to the Chat Completions API
    TOOL_CHOICES = {"required": "required", "auto": "auto", "none": "none"}

    def __init__(self):
        self.client = None
        self._encoder = None

    def _uses_completion_tokens(self, model: str) -> bool:
        return model in self.MODELS_WITH_COMPLETION_TOKENS

    def _supports_temperature(self, model: str) -> bool:
        return model not in self.MODELS_WITHOUT_TEMPERATURE

    def _convert_tools_to_openai_format(
        self,
        tools: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """
        Convert Anthropic-style tool schemas to OpenAI format.

        Anthropic format:
        {"name": ..., "description": ..., "input_schema": {...}}

        OpenAI format:
        {"type": "function", "function": {"name": ..., "description": ..., "parameters": {...}}}
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": tool.get("input_schema", {"type": "object", "properties": {}}),
                }
            }
            for tool in tools
        ]

    def _build_api_messages(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str],
    ) -> List[Dict[str, Any]]:
        """
        Convert the loop's message list (Anthropic block format for tool
        traffic) into Chat Completions messages.
        """
        api_messages = []
        if system_prompt:
            api_messages.append({"role": "system", "content": system_prompt})

        for msg in messages:
            role = msg["role"]
            content = msg["content"]

            # Tool results go back as one "tool" message per call
            if role == "user" and isinstance(content, list):
                if content and isinstance(content[0], dict) and content[0].get("type") == "tool_result":
                    for result in content:
                        api_messages.append({
                            "role": "tool",
                            "tool_call_id": result["tool_use_id"],
                            "content": result.get("content", ""),
                        })
                    continue

            # Assistant turns carrying tool_use blocks
            if role == "assistant" and isinstance(content, list):
                text_content = ""
                tool_calls = []
                for block in content:
                    if block.get("type") == "text":
                        text_content += block.get("text", "")
                    elif block.get("type") == "tool_use":
                        tool_calls.append({
                            "id": block["id"],
                            "type": "function",
                            "function": {
                                "name": block["name"],
                                "arguments": json.dumps(block.get("input", {})),
                            }
                        })
                if tool_calls:
                    api_messages.append({
                        "role": "assistant",
                        "content": text_content or None,
                        "tool_calls": tool_calls,
                    })
                    continue
                content = text_content

            api_messages.append({"role": role, "content": content})

        return api_messages

    def _ensure_client(self):
        """Lazily initialize the OpenAI client."""
        if self.client is None:
            if settings.openai_api_key:
                # Retries are configured per request
                self.client = AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
            else:
                raise ValueError("OpenAI API key not configured")
        return self.client

    def is_configured(self) -> bool:
        """Check if OpenAI is configured with an API key."""
        return bool(settings.openai_api_key)

    @property
    def encoder(self):
        if self._encoder is None:
            # cl100k_base is close enough for the gpt-4.1 family
            self._encoder = tiktoken.get_encoding("cl100k_base")
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """Approximate token count for a text string."""
        return len(self.encoder.encode(text))

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
        Send a message to OpenAI API with streaming response.

        Args:
            messages: Loop messages (plain text or Anthropic tool blocks)
            system_prompt: Optional system prompt
            model: Model to use (defaults to settings.default_model)
            temperature: Sampling temperature (defaults to settings)
            max_tokens: Max tokens in response (defaults to settings)
            tools: Tool definitions in Anthropic format, converted here
            tool_choice: "required", "auto" or "none"
            max_retries: SDK-level retries for this request

        Yields events with type and data:
        - {"type": "start", "model": str}
        - {"type": "token", "content": str}
        - {"type": "tool_use_start", "tool_use": dict}
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

        api_messages = self._build_api_messages(messages, system_prompt)
        logger.info(f"[OPENAI] Sending {len(api_messages)} messages to API")

        try:
            yield {"type": "start", "model": model}

            api_params = {
                "model": model,
                "messages": api_messages,
                "stream": True,
                "stream_options": {"include_usage": True},
            }

            if self._uses_completion_tokens(model):
                api_params["max_completion_tokens"] = max_tokens
            else:
                api_params["max_tokens"] = max_tokens

            if self._supports_temperature(model):
                api_params["temperature"] = temperature

            if tools:
                api_params["tools"] = self._convert_tools_to_openai_format(tools)
                if tool_choice:
                    api_params["tool_choice"] = self.TOOL_CHOICES[tool_choice]
                logger.info(f"[TOOLS] OpenAI: Streaming request with {len(tools)} tools (tool_choice={tool_choice})")

            stream = await client.chat.completions.create(**api_params)

            full_content = ""
            stop_reason = None
            input_tokens = 0
            output_tokens = 0

            # OpenAI streams tool calls as deltas keyed by index
            current_tool_calls: Dict[int, Dict[str, Any]] = {}

            async for chunk in stream:
                if chunk.choices:
                    delta = chunk.choices[0].delta

                    if delta.content:
                        full_content += delta.content
                        yield {"type": "token", "content": delta.content}

                    if delta.tool_calls:
                        for tool_call_delta in delta.tool_calls:
                            tc = current_tool_calls.setdefault(
                                tool_call_delta.index, {"id": "", "name": "", "arguments": ""}
                            )
                            if tool_call_delta.id:
                                tc["id"] = tool_call_delta.id
                            if tool_call_delta.function:
                                if tool_call_delta.function.name:
                                    tc["name"] = tool_call_delta.function.name
                                    yield {
                                        "type": "tool_use_start",
                                        "tool_use": {"id": tc["id"], "name": tc["name"]},
                                    }
                                if tool_call_delta.function.arguments:
                                    tc["arguments"] += tool_call_delta.function.arguments

                    if chunk.choices[0].finish_reason:
                        stop_reason = chunk.choices[0].finish_reason

                # Usage info comes in the final chunk
                if chunk.usage:
                    input_tokens = chunk.usage.prompt_tokens
                    output_tokens = chunk.usage.completion_tokens

            content_blocks = []
            tool_use_blocks = []
            if full_content:
                content_blocks.append({"type": "text", "text": full_content})

            for idx in sorted(current_tool_calls):
                tc = current_tool_calls[idx]
                if not (tc["id"] and tc["name"]):
                    continue
                try:
                    arguments = json.loads(tc["arguments"]) if tc["arguments"] else {}
                except json.JSONDecodeError:
                    # Executed anyway so the model sees a validation error
                    arguments = {}
                    logger.error(f"[TOOLS] Failed to parse tool arguments: {tc['arguments']}")

                tool_use_block = {
                    "type": "tool_use",
                    "id": tc["id"],
                    "name": tc["name"],
                    "input": arguments,
                }
                content_blocks.append(tool_use_block)
                tool_use_blocks.append(tool_use_block)
                logger.info(f"[TOOLS] OpenAI tool use complete: {tc['name']} (id={tc['id']})")

            # Normalize for the tool loop
            if stop_reason == "tool_calls":
                stop_reason = "tool_use"

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
            logger.error(f"[OPENAI] Streaming request failed: {e}")
            yield {"type": "error", "error": str(e)}


# Singleton instance
openai_service = OpenAIService()
