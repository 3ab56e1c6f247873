"""Message store interface and a process-local implementation.

The orchestrator only talks to the abstract :class:`MessageStore`; real
deployments plug in their own persistence. :class:`InMemoryMessageStore`
keeps messages for the lifetime of the process, which is enough for the
CLI dry-run and for tests.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Mapping, Union

from parley.errors import MessageNotFoundError

from .models import ActionResultMessage, NormalMessage

logger = logging.getLogger(__name__)

Message = Union[NormalMessage, ActionResultMessage]

# Fields a patch is never allowed to rewrite
_IMMUTABLE_FIELDS = frozenset({"id", "type"})


class MessageStore(ABC):
    """Abstract message persistence used by the discussion core."""

    @abstractmethod
    async def create_message(self, message: Message) -> Message:
        """Persist a new message and return it with its id assigned."""

    @abstractmethod
    async def update_message(self, message_id: str, patch: Mapping[str, Any]) -> Message:
        """Apply a partial update to a stored message and return the result."""

    @abstractmethod
    async def get_message(self, message_id: str) -> Message:
        """Read a message back from the store."""

    @abstractmethod
    async def list_messages(self, discussion_id: str) -> list[Message]:
        """List a discussion's messages in creation order."""


class InMemoryMessageStore(MessageStore):
    """Message store backed by an insertion-ordered dict.

    Stored objects are never handed out directly; callers always receive
    copies so that only :meth:`update_message` can change stored state.
    """

    def __init__(self) -> None:
        self._messages: dict[str, Message] = {}

    async def create_message(self, message: Message) -> Message:
        message_id = message.id or str(uuid.uuid4())
        if message_id in self._messages:
            raise ValueError(f"Message '{message_id}' already exists")

        stored = message.model_copy(update={"id": message_id}, deep=True)
        self._messages[message_id] = stored
        logger.debug(f"Created {stored.type} message {message_id} in {stored.discussion_id}")
        return stored.model_copy(deep=True)

    async def update_message(self, message_id: str, patch: Mapping[str, Any]) -> Message:
        current = self._messages.get(message_id)
        if current is None:
            raise MessageNotFoundError(message_id)

        data = current.model_dump()
        data.update({k: v for k, v in patch.items() if k not in _IMMUTABLE_FIELDS})
        updated = type(current).model_validate(data)
        self._messages[message_id] = updated
        return updated.model_copy(deep=True)

    async def get_message(self, message_id: str) -> Message:
        current = self._messages.get(message_id)
        if current is None:
            raise MessageNotFoundError(message_id)
        return current.model_copy(deep=True)

    async def list_messages(self, discussion_id: str) -> list[Message]:
        return [
            m.model_copy(deep=True)
            for m in self._messages.values()
            if m.discussion_id == discussion_id
        ]

    def __len__(self) -> int:
        """Return the number of stored messages across all discussions."""
        return len(self._messages)
