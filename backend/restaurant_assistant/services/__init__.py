from restaurant_assistant.services.anthropic_service import AnthropicService, anthropic_service
from restaurant_assistant.services.openai_service import OpenAIService, openai_service
from restaurant_assistant.services.llm_service import LLMService, ModelProvider, llm_service
from restaurant_assistant.services.cache_service import CacheService, TTLCache, cache_service
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
from restaurant_assistant.services.message_divider import (
    MESSAGE_SEPARATOR,
    detect_message_parts,
    should_divide_message,
)
from restaurant_assistant.services.message_splitter import (
    split_message,
    split_messages,
    should_split_message,
)
from restaurant_assistant.services.report_client import ReportClient, report_client
from restaurant_assistant.services.tool_service import ToolService, ToolCategory, ToolResult, tool_service
from restaurant_assistant.services.report_tools import register_report_tools
from restaurant_assistant.services.tool_loop import CompletionProviderError, ToolInvocationLoop
from restaurant_assistant.services.chat_service import ChatService, ChatTurn, chat_service

# Register tools at module load time
register_report_tools(tool_service)

__all__ = [
    # Classes
    "AnthropicService",
    "OpenAIService",
    "LLMService",
    "ModelProvider",
    "CacheService",
    "TTLCache",
    "ConversationMemory",
    "MessageBatcher",
    "ReportClient",
    "ToolService",
    "ToolCategory",
    "ToolResult",
    "ToolInvocationLoop",
    "CompletionProviderError",
    "ChatService",
    "ChatTurn",
    # Singleton instances
    "anthropic_service",
    "openai_service",
    "llm_service",
    "cache_service",
    "conversation_memory",
    "message_batcher",
    "report_client",
    "tool_service",
    "chat_service",
    # Pipeline helpers
    "MESSAGE_SEPARATOR",
    "get_conversation_id",
    "combine_batched_messages",
    "detect_message_parts",
    "should_divide_message",
    "split_message",
    "split_messages",
    "should_split_message",
    # Tool registration functions
    "register_report_tools",
]
