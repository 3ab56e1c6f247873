"""Capability system for Parley.

This package provides capability registration, action parsing and
execution, and the permission policy for agents embedding actions in
their replies.
"""

from parley.tools.executor import ActionExecution, ActionExecutor
from parley.tools.parser import ActionDef, ActionParser, ParsedAction
from parley.tools.permissions import can_use_actions
from parley.tools.registry import (
    Capability,
    CapabilityDescriptor,
    CapabilityHandler,
    CapabilityRegistry,
    create_capability,
)

__all__ = [
    # Registry
    "Capability",
    "CapabilityDescriptor",
    "CapabilityHandler",
    "CapabilityRegistry",
    "create_capability",
    # Parsing
    "ActionDef",
    "ActionParser",
    "ParsedAction",
    # Execution
    "ActionExecution",
    "ActionExecutor",
    # Permissions
    "can_use_actions",
]
