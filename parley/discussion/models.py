"""Data models for discussion entities."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

# Reserved author ids
USER_AGENT_ID = "user"
SYSTEM_AGENT_ID = "system"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class AgentRole(str, Enum):
    """Role an agent plays in a discussion."""

    MODERATOR = "moderator"
    PARTICIPANT = "participant"


class AgentDef(BaseModel):
    """Read-only descriptor of an agent.

    ``slug`` is a stable identifier that survives display-name edits and
    localization; user-created agents may not have one.
    """

    id: str
    name: str
    slug: Optional[str] = None
    version: Optional[int] = None
    avatar: str = ""
    prompt: str = ""
    role: AgentRole = AgentRole.PARTICIPANT
    personality: str = ""
    expertise: list[str] = Field(default_factory=list)
    bias: str = ""
    response_style: str = ""

    @property
    def is_moderator(self) -> bool:
        """Check if this agent moderates discussions."""
        return self.role == AgentRole.MODERATOR


class Member(BaseModel):
    """An agent enrolled in a discussion."""

    agent_id: str
    is_auto_reply: bool = False


class MessageStatus(str, Enum):
    """Lifecycle status of a streamed message."""

    STREAMING = "streaming"
    COMPLETED = "completed"
    ERROR = "error"


class NormalMessage(BaseModel):
    """A text message authored by the user, an agent or the system."""

    type: Literal["text"] = "text"
    id: Optional[str] = None
    discussion_id: str
    agent_id: str
    content: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    status: Optional[MessageStatus] = None
    last_update_time: Optional[datetime] = None

    @property
    def is_user_message(self) -> bool:
        """Check if this message was written by the human user."""
        return self.agent_id == USER_AGENT_ID


class ActionResultStatus(str, Enum):
    """Outcome of a single executed action."""

    SUCCESS = "success"
    ERROR = "error"


class ActionResult(BaseModel):
    """Outcome of one capability invocation embedded in an agent reply."""

    operation_id: str
    capability: str
    params: dict[str, Any] = Field(default_factory=dict)
    status: ActionResultStatus
    result: Any = None
    error: Optional[str] = None
    description: str = ""
    start_time: datetime
    end_time: datetime


class ActionResultMessage(BaseModel):
    """Auditable record of the actions executed for one agent reply."""

    type: Literal["action_result"] = "action_result"
    id: Optional[str] = None
    discussion_id: str
    agent_id: str = SYSTEM_AGENT_ID
    timestamp: datetime = Field(default_factory=utcnow)
    origin_message_id: str
    results: list[ActionResult] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if any action in this message failed."""
        return any(r.status == ActionResultStatus.ERROR for r in self.results)


AgentMessage = Annotated[
    Union[NormalMessage, ActionResultMessage],
    Field(discriminator="type"),
]


def filter_normal_messages(messages: list[Any]) -> list[NormalMessage]:
    """Drop action-result messages, keeping only text messages."""
    return [m for m in messages if isinstance(m, NormalMessage)]
