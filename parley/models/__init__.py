"""Prompt message types and the streaming completion abstraction."""

from .base import (
    CompletionError,
    CompletionService,
    ScriptedCompletionService,
    split_into_chunks,
)
from .types import ChatMessage, ChatRole

__all__ = [
    "ChatMessage",
    "ChatRole",
    "CompletionError",
    "CompletionService",
    "ScriptedCompletionService",
    "split_into_chunks",
]
