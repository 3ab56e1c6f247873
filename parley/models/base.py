"""Streaming completion abstraction consumed by the discussion core."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import AsyncIterator, Iterable, Optional

from .types import ChatMessage

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Raised by completion services when a stream fails."""

    pass


class CompletionService(ABC):
    """Produces a reply as an asynchronous sequence of text chunks.

    Implementations own the actual language model call. Consumers may stop
    iterating at any point; implementations must release their resources
    when the iterator is closed.
    """

    @abstractmethod
    def stream_chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Stream a completion for the prepared prompt messages.

        Args:
            messages: Prompt messages, system prompt first
            temperature: Optional sampling temperature

        Returns:
            Async iterator of text chunks
        """


class ScriptedCompletionService(CompletionService):
    """Completion service that replays canned replies in order.

    Each call consumes the next reply and streams it in small chunks. Once
    the script is exhausted, ``fallback`` is streamed instead.

    Example:
        >>> service = ScriptedCompletionService(["Hello there", "Bye"])
        >>> # first call streams "Hello", " there"; second streams "Bye"
    """

    def __init__(
        self,
        replies: Iterable[str] = (),
        fallback: str = "",
        delay: float = 0.0,
    ):
        """Initialize the scripted service.

        Args:
            replies: Replies to return, one per call
            fallback: Reply used once the script runs out
            delay: Seconds to sleep before each chunk
        """
        self._replies = list(replies)
        self.fallback = fallback
        self.delay = delay
        self.calls: list[list[ChatMessage]] = []

    @property
    def remaining(self) -> int:
        """Number of scripted replies not yet used."""
        return len(self._replies)

    def stream_chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        self.calls.append(list(messages))
        reply = self._replies.pop(0) if self._replies else self.fallback
        return self._stream(reply)

    async def _stream(self, reply: str) -> AsyncIterator[str]:
        for chunk in split_into_chunks(reply):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk


def split_into_chunks(text: str) -> list[str]:
    """Split text into word-sized chunks that concatenate back to it.

    Examples:
        >>> split_into_chunks("hello big world")
        ['hello', ' big', ' world']
    """
    return re.findall(r"\s*\S+|\s+$", text)
