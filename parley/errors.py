"""Centralized exception hierarchy for Parley.

This module defines the custom exceptions used throughout Parley, organized
in a hierarchy for easy handling and specificity, together with the policy
applied when a discussion-level error reaches the orchestrator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ParleyError(Exception):
    """Base exception for all Parley errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ParleyError):
    """Raised when there's a configuration problem."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# Message Store Errors
# =============================================================================

class MessageNotFoundError(ParleyError):
    """Raised when a message is not found in the store."""

    def __init__(self, message_id: str):
        super().__init__(
            message=f"Message '{message_id}' not found",
            code="MESSAGE_NOT_FOUND",
            details={"message_id": message_id},
        )


# =============================================================================
# Capability Errors
# =============================================================================

class CapabilityError(ParleyError):
    """Base exception for capability-related errors."""

    def __init__(
        self,
        message: str,
        capability: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if capability:
            details["capability"] = capability
        super().__init__(message, code, details)


class CapabilityNotFoundError(CapabilityError):
    """Raised when an action names a capability that is not registered."""

    def __init__(self, capability: str):
        super().__init__(
            message=f"Capability '{capability}' not found",
            capability=capability,
            code="CAPABILITY_NOT_FOUND",
        )


class CapabilityDisabledError(CapabilityError):
    """Raised when an action names a capability that is disabled."""

    def __init__(self, capability: str):
        super().__init__(
            message=f"Capability '{capability}' is disabled",
            capability=capability,
            code="CAPABILITY_DISABLED",
        )


class CapabilityTimeoutError(CapabilityError):
    """Raised when a capability handler runs past its timeout."""

    def __init__(self, capability: str, timeout: float):
        super().__init__(
            message=f"Capability '{capability}' timed out after {timeout}s",
            capability=capability,
            code="CAPABILITY_TIMEOUT",
            details={"timeout_seconds": timeout},
        )


class ActionParseError(CapabilityError):
    """Raised when an embedded action block cannot be understood."""

    def __init__(self, reason: str, raw: str = ""):
        preview = raw[:80] + "..." if len(raw) > 80 else raw
        super().__init__(
            message=f"Invalid action: {reason}",
            code="ACTION_PARSE_ERROR",
            details={"reason": reason, "raw_preview": preview},
        )


# =============================================================================
# Discussion Errors
# =============================================================================

class DiscussionErrorType(str, Enum):
    """Classification of errors surfaced by the discussion loop."""

    NO_DISCUSSION = "no_discussion"
    PROCESS_MESSAGE = "process_message"
    GENERATE_RESPONSE = "generate_response"
    ACTION_EXECUTION = "action_execution"
    UNKNOWN = "unknown"


class DiscussionError(ParleyError):
    """The single discussion-level error kind.

    Wraps the underlying cause together with free-form context such as the
    discussion or agent involved.
    """

    def __init__(
        self,
        error_type: DiscussionErrorType,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        details = dict(context or {})
        if cause is not None:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__
        super().__init__(message, code=error_type.value.upper(), details=details)
        self.error_type = error_type
        self.cause = cause
        self.context = dict(context or {})
        if cause is not None:
            self.__cause__ = cause


@dataclass(frozen=True)
class ErrorHandlingResult:
    """Policy decision attached to a handled discussion error."""

    should_pause: bool
    error: DiscussionError


def handle_discussion_error(error: DiscussionError) -> ErrorHandlingResult:
    """Log a discussion error and decide what the loop should do next.

    Every unhandled core error currently pauses the discussion.
    """
    logger.error(f"Discussion error: {error}", extra={"error": error.to_dict()})
    return ErrorHandlingResult(should_pause=True, error=error)
