"""Chat message types handed to completion services."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChatRole(str, Enum):
    """Role of a chat message sender."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass
class ChatMessage:
    """A single message of a prepared prompt."""

    role: ChatRole
    content: str
    name: Optional[str] = None  # Speaker name for multi-party history

    @classmethod
    def user(cls, content: str, name: Optional[str] = None) -> "ChatMessage":
        """Create a user message."""
        return cls(role=ChatRole.USER, content=content, name=name)

    @classmethod
    def assistant(cls, content: str, name: Optional[str] = None) -> "ChatMessage":
        """Create an assistant message."""
        return cls(role=ChatRole.ASSISTANT, content=content, name=name)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        """Create a system message."""
        return cls(role=ChatRole.SYSTEM, content=content)

    def to_dict(self) -> dict[str, str]:
        """Convert to the role/content mapping most chat APIs accept."""
        data = {"role": self.role.value, "content": self.content}
        if self.name:
            data["name"] = self.name
        return data
