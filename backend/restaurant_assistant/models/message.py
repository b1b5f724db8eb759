import enum
from typing import Dict

from pydantic import BaseModel, ConfigDict


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """A single chat turn. Frozen so stored history cannot be edited in place."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: MessageRole
    content: str

    def to_api_dict(self) -> Dict[str, str]:
        """Message in the {role, content} shape the completion APIs expect."""
        return {"role": self.role, "content": self.content}
