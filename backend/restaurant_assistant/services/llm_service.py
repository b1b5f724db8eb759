"""
Unified LLM Service

Provides a single streaming interface over the completion providers
(OpenAI GPT, Anthropic Claude). Routes requests based on the model id.
"""

from typing import Optional, List, Dict, Any, AsyncIterator
from enum import Enum

from restaurant_assistant.services.anthropic_service import anthropic_service
from restaurant_assistant.services.openai_service import openai_service
from restaurant_assistant.config import settings


class ModelProvider(str, Enum):
    """Supported LLM providers."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


# Model to provider mapping
MODEL_PROVIDER_MAP = {
    # OpenAI GPT-4.1 models
    "gpt-4.1": ModelProvider.OPENAI,
    "gpt-4.1-mini": ModelProvider.OPENAI,
    "gpt-4.1-nano": ModelProvider.OPENAI,
    # OpenAI GPT-4o / GPT-5 models
    "gpt-4o": ModelProvider.OPENAI,
    "gpt-4o-mini": ModelProvider.OPENAI,
    "gpt-5": ModelProvider.OPENAI,
    "gpt-5-mini": ModelProvider.OPENAI,
    # Anthropic Claude models
    "claude-sonnet-4-5-20250929": ModelProvider.ANTHROPIC,
    "claude-haiku-4-5-20251001": ModelProvider.ANTHROPIC,
    "claude-sonnet-4-20250514": ModelProvider.ANTHROPIC,
}

# Credential error reported before any work is done
MISSING_CREDENTIAL_ERRORS = {
    ModelProvider.OPENAI: "Missing OPENAI_API_KEY",
    ModelProvider.ANTHROPIC: "Missing ANTHROPIC_API_KEY",
}


class LLMService:
    """
    Unified LLM service that routes requests to the appropriate provider.
    """

    def get_provider_for_model(self, model: Optional[str] = None) -> Optional[ModelProvider]:
        """Determine the provider for a model id, inferring from the name if unknown."""
        model = model or settings.default_model
        provider = MODEL_PROVIDER_MAP.get(model)
        if provider is None:
            if model.startswith("claude"):
                provider = ModelProvider.ANTHROPIC
            elif model.startswith("gpt") or model.startswith("o"):
                provider = ModelProvider.OPENAI
        return provider

    def is_provider_configured(self, provider: ModelProvider) -> bool:
        """Check if a provider is configured with API keys."""
        if provider == ModelProvider.ANTHROPIC:
            return anthropic_service.is_configured()
        elif provider == ModelProvider.OPENAI:
            return openai_service.is_configured()
        return False

    def get_missing_credential_error(self, model: Optional[str] = None) -> Optional[str]:
        """
        The error to report when the model's provider has no credential,
        or None when the model can be called.
        """
        provider = self.get_provider_for_model(model)
        if provider is None:
            return f"Unknown model: {model or settings.default_model}"
        if not self.is_provider_configured(provider):
            return MISSING_CREDENTIAL_ERRORS[provider]
        return None

    def get_configured_providers(self) -> List[str]:
        return [p.value for p in ModelProvider if self.is_provider_configured(p)]

    def count_tokens(self, text: str) -> int:
        """Approximate token count. Both services use tiktoken with cl100k_base."""
        return openai_service.count_tokens(text)

    async def send_message_stream(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        max_retries: int = 0,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream a completion from the provider that serves `model`.

        Yields the provider events unchanged:
        - {"type": "start", "model": str}
        - {"type": "token", "content": str}
        - {"type": "tool_use_start", "tool_use": dict}
        - {"type": "done", "content": str, "content_blocks": list, "tool_use": list|None, "model": str, "usage": dict, "stop_reason": str}
        - {"type": "error", "error": str}
        """
        model = model or settings.default_model
        provider = self.get_provider_for_model(model)

        if provider is None:
            yield {"type": "error", "error": f"Unknown model: {model}"}
            return

        if not self.is_provider_configured(provider):
            yield {"type": "error", "error": f"Provider {provider.value} is not configured (missing API key)"}
            return

        service = anthropic_service if provider == ModelProvider.ANTHROPIC else openai_service
        async for event in service.send_message_stream(
            messages=messages,
            system_prompt=system_prompt,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            tools=tools,
            tool_choice=tool_choice,
            max_retries=max_retries,
        ):
            yield event


# Singleton instance
llm_service = LLMService()
