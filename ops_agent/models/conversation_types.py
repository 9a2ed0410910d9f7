from pydantic import BaseModel, Field
from typing import Dict, Any
from enum import Enum


class TurnRole(str, Enum):
    """Conversation turn roles."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ConversationMessage(BaseModel):
    """Message exchanged with a model endpoint."""

    role: TurnRole
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def system(cls, content: str) -> "ConversationMessage":
        return cls(role=TurnRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ConversationMessage":
        return cls(role=TurnRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ConversationMessage":
        return cls(role=TurnRole.ASSISTANT, content=content)

    def to_openai(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}
