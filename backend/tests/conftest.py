"""
Pytest configuration and fixtures for Restaurant Assistant tests.
"""
import pytest
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import httpx

from restaurant_assistant.config import Settings
from restaurant_assistant.models import ChatMessage, MessageRole, REPORT_DOMAINS
from restaurant_assistant.services.cache_service import CacheService
from restaurant_assistant.services.chat_service import ChatService
from restaurant_assistant.services.conversation_memory import ConversationMemory
from restaurant_assistant.services.message_batcher import MessageBatcher
from restaurant_assistant.services.report_client import ReportClient
from restaurant_assistant.services.report_tools import ANALYZE_RESTAURANT_DATA, register_report_tools
from restaurant_assistant.services.tool_loop import ToolInvocationLoop
from restaurant_assistant.services.tool_service import ToolService


def user(content: str) -> ChatMessage:
    return ChatMessage(role=MessageRole.USER, content=content)


def assistant(content: str) -> ChatMessage:
    return ChatMessage(role=MessageRole.ASSISTANT, content=content)


def analysis_input(time_filter: Optional[Dict[str, Any]] = None, **use: bool) -> Dict[str, Any]:
    """Tool input as the model would send it; domains default to use=False."""
    payload = {
        domain: {"why": f"{domain} reason", "use": use.get(domain, False)}
        for domain in REPORT_DOMAINS
    }
    if time_filter is not None:
        payload["timeFilter"] = time_filter
    return payload


def text_step(*tokens: str) -> List[Dict[str, Any]]:
    """Provider events for a step that only answers."""
    content = "".join(tokens)
    events = [{"type": "start", "model": "gpt-4.1-mini"}]
    events += [{"type": "token", "content": token} for token in tokens]
    events.append({
        "type": "done",
        "content": content,
        "content_blocks": [{"type": "text", "text": content}] if content else [],
        "tool_use": None,
        "model": "gpt-4.1-mini",
        "usage": {"input_tokens": 10, "output_tokens": 5},
        "stop_reason": "stop",
    })
    return events


def tool_step(*tool_inputs: Dict[str, Any], text: str = "", step_id: str = "s") -> List[Dict[str, Any]]:
    """Provider events for a step that calls the analysis tool once per input."""
    tool_use = [
        {"type": "tool_use", "id": f"call_{step_id}_{i}", "name": ANALYZE_RESTAURANT_DATA, "input": tool_input}
        for i, tool_input in enumerate(tool_inputs)
    ]
    events = [{"type": "start", "model": "gpt-4.1-mini"}]
    if text:
        events.append({"type": "token", "content": text})
    blocks = ([{"type": "text", "text": text}] if text else []) + tool_use
    events.append({
        "type": "done",
        "content": text,
        "content_blocks": blocks,
        "tool_use": tool_use,
        "model": "gpt-4.1-mini",
        "usage": {"input_tokens": 10, "output_tokens": 5},
        "stop_reason": "tool_use",
    })
    return events


class ScriptedLLM:
    """Stands in for LLMService: replays one scripted event list per call."""

    def __init__(self, steps: List[List[Dict[str, Any]]]):
        self.steps = list(steps)
        self.calls: List[Dict[str, Any]] = []

    def count_tokens(self, text: str) -> int:
        return len(text.split())

    async def send_message_stream(self, **kwargs):
        self.calls.append({**kwargs, "messages": list(kwargs["messages"])})
        if not self.steps:
            raise AssertionError("Provider called more times than scripted")
        for event in self.steps.pop(0):
            yield event


@pytest.fixture
def test_settings():
    """Settings with mock API keys, ignoring any local .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
    )


@pytest.fixture
def memory():
    return ConversationMemory(max_messages_per_role=5)


@pytest.fixture
def batcher():
    return MessageBatcher(window_ms=500)


@pytest.fixture
def report_requests():
    """Requests seen by the mock report API."""
    return []


@pytest.fixture
def report_transport(report_requests):
    """Mock report API answering every endpoint with a small wrapped payload."""
    def handler(request: httpx.Request) -> httpx.Response:
        report_requests.append(request)
        if request.url.path == "/api/orders/total":
            return httpx.Response(200, json={"success": True, "cached": False, "data": {"total": 42}})
        return httpx.Response(200, json={"success": True, "data": {"path": request.url.path}})

    return httpx.MockTransport(handler)


@pytest.fixture
def report_client(report_transport):
    return ReportClient(
        base_url="http://reports.test",
        transport=report_transport,
        cache=CacheService(report_ttl_seconds=0),
    )


@pytest.fixture
def report_tool_service(report_client):
    """A ToolService with the analysis tool wired to the mock report API."""
    service = ToolService()
    register_report_tools(service, client=report_client)
    return service


@pytest.fixture
def make_chat_service(memory, batcher, report_tool_service):
    """Build a ChatService around a scripted provider."""
    def factory(steps, fallback_ms: int = 10, **loop_kwargs) -> ChatService:
        llm = ScriptedLLM(steps)
        loop = ToolInvocationLoop(llm=llm, tools=report_tool_service, **loop_kwargs)
        service = ChatService(memory=memory, batcher=batcher, tool_loop=loop, fallback_ms=fallback_ms)
        service.llm = llm
        return service

    return factory


@pytest.fixture
def mock_encoder():
    """Encoder stand-in so tiktoken never downloads its tables."""
    mock = MagicMock()
    mock.encode.side_effect = lambda text: list(range(len(text.split())))
    return mock
