from restaurant_assistant.models.message import ChatMessage, MessageRole
from restaurant_assistant.models.analysis import (
    REPORT_DOMAINS,
    DomainDecision,
    TimeFilter,
    ToolAnalysisResult,
)

__all__ = [
    "ChatMessage",
    "MessageRole",
    "REPORT_DOMAINS",
    "DomainDecision",
    "TimeFilter",
    "ToolAnalysisResult",
]
