"""Discussion data model, message store and agent registry for Parley."""

from .agents import AgentRegistry, StaticAgentRegistry
from .models import (
    SYSTEM_AGENT_ID,
    USER_AGENT_ID,
    ActionResult,
    ActionResultMessage,
    ActionResultStatus,
    AgentDef,
    AgentMessage,
    AgentRole,
    Member,
    MessageStatus,
    NormalMessage,
    filter_normal_messages,
)
from .store import InMemoryMessageStore, Message, MessageStore

__all__ = [
    # Models
    "AgentDef",
    "AgentRole",
    "Member",
    "NormalMessage",
    "ActionResult",
    "ActionResultStatus",
    "ActionResultMessage",
    "AgentMessage",
    "MessageStatus",
    "USER_AGENT_ID",
    "SYSTEM_AGENT_ID",
    "filter_normal_messages",
    # Storage
    "Message",
    "MessageStore",
    "InMemoryMessageStore",
    # Agents
    "AgentRegistry",
    "StaticAgentRegistry",
]
