"""Parsing of action directives embedded in agent replies.

Agents invoke capabilities by embedding a JSON object in their reply,
either inside an ``<action>`` tag or in a fenced code block tagged
``action``::

    <action>{"operationId": "q1", "capability": "search", "params": {"q": "tides"}}</action>

    ```action
    {"capability": "search", "params": {"q": "tides"}}
    ```
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from parley.errors import ActionParseError

logger = logging.getLogger(__name__)

ACTION_TAG_PATTERN = re.compile(r"<action>(.*?)</action>", re.DOTALL | re.IGNORECASE)
ACTION_FENCE_PATTERN = re.compile(r"```action[ \t]*\n(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass
class ActionDef:
    """A well-formed action directive."""

    capability: str
    params: dict[str, Any] = field(default_factory=dict)
    operation_id: Optional[str] = None
    description: str = ""


@dataclass
class ParsedAction:
    """One action block found in a reply.

    ``parsed`` is None when the block could not be understood; ``error``
    then explains why, so the failure can be reported back to the agent.
    """

    raw: str
    parsed: Optional[ActionDef] = None
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """Check if the block parsed into an action."""
        return self.parsed is not None


class ActionParser:
    """Extracts action directives from message content."""

    def parse(self, content: str) -> list[ParsedAction]:
        """Parse every action block in the content, in order of appearance.

        Args:
            content: The agent's reply text

        Returns:
            One ParsedAction per block found, empty if there are none
        """
        if not content:
            return []

        blocks: list[tuple[int, str]] = []
        for pattern in (ACTION_TAG_PATTERN, ACTION_FENCE_PATTERN):
            blocks.extend((m.start(), m.group(1)) for m in pattern.finditer(content))
        blocks.sort(key=lambda b: b[0])

        actions = []
        for _, body in blocks:
            raw = body.strip()
            try:
                actions.append(ParsedAction(raw=raw, parsed=self.parse_block(raw)))
            except ActionParseError as e:
                logger.warning(f"Skipping malformed action block: {e.message}")
                actions.append(ParsedAction(raw=raw, error=e.message))
        return actions

    def parse_block(self, raw: str) -> ActionDef:
        """Parse the JSON body of a single action block.

        Raises:
            ActionParseError: If the body is not a valid action object
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ActionParseError(f"body is not valid JSON ({e.msg})", raw) from e

        if not isinstance(data, dict):
            raise ActionParseError("body must be a JSON object", raw)

        capability = data.get("capability") or data.get("name")
        if not isinstance(capability, str) or not capability.strip():
            raise ActionParseError("missing 'capability'", raw)

        params = data.get("params", {})
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ActionParseError("'params' must be a JSON object", raw)

        operation_id = data.get("operationId", data.get("operation_id"))
        return ActionDef(
            capability=capability.strip(),
            params=params,
            operation_id=str(operation_id) if operation_id is not None else None,
            description=str(data.get("description") or ""),
        )
