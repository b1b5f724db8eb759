"""
Unit tests for the pydantic models.
"""
import pytest
from pydantic import ValidationError

from restaurant_assistant.models import (
    REPORT_DOMAINS,
    ChatMessage,
    MessageRole,
    TimeFilter,
    ToolAnalysisResult,
)

from conftest import analysis_input


class TestChatMessage:

    def test_role_stored_as_value(self):
        message = ChatMessage(role=MessageRole.USER, content="hi")
        assert message.role == "user"
        assert message.role == MessageRole.USER

    def test_role_from_string(self):
        assert ChatMessage(role="system", content="x").role == MessageRole.SYSTEM

    def test_invalid_role(self):
        with pytest.raises(ValidationError):
            ChatMessage(role="bot", content="x")

    def test_equality_by_value(self):
        assert ChatMessage(role="user", content="a") == ChatMessage(role="user", content="a")


class TestToolAnalysisResult:

    def test_selected_domains_in_catalogue_order(self):
        analysis = ToolAnalysisResult.model_validate(analysis_input(store=True, orders=True, campaign=True))
        assert analysis.selected_domains() == ["campaign", "orders", "store"]

    def test_nothing_selected(self):
        assert ToolAnalysisResult.model_validate(analysis_input()).selected_domains() == []

    def test_time_filter_optional(self):
        assert ToolAnalysisResult.model_validate(analysis_input()).time_filter is None

    def test_time_filter_aliases(self):
        analysis = ToolAnalysisResult.model_validate(analysis_input({
            "type": "custom",
            "startDate": "2024-01-01T00:00:00.000Z",
            "endDate": "2024-01-31T23:59:59.999Z",
        }))

        assert analysis.time_filter.type == "custom"
        assert analysis.time_filter.start_date == "2024-01-01T00:00:00.000Z"
        assert analysis.time_filter.end_date == "2024-01-31T23:59:59.999Z"

    def test_unknown_time_filter_rejected(self):
        with pytest.raises(ValidationError):
            TimeFilter(type="yesterday")

    def test_every_domain_required(self):
        payload = analysis_input()
        del payload["menu"]

        with pytest.raises(ValidationError):
            ToolAnalysisResult.model_validate(payload)

    def test_input_schema_properties(self):
        schema = ToolAnalysisResult.input_schema()

        assert set(REPORT_DOMAINS) <= set(schema["properties"])
        assert "timeFilter" in schema["properties"]
        assert "$defs" not in schema
