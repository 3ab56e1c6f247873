"""@mention parsing and resolution for the orchestrator.

Mentions are extracted from a trigger message once and then served one at a
time as candidates for the next speaker. Supported forms:

- ``@Name`` or ``@Name With Spaces`` up to the next punctuation mark
- quoted names: ``@"Name"``, ``@'Name'``, ``@“Name”``, ``@‘Name’``,
  ``@「Name」``, ``@『Name』``, ``@（Name）``, ``@【Name】``, ``@《Name》``,
  ``@〈Name〉``
"""

import logging
import re
from typing import Optional, Sequence

from parley.discussion.models import AgentDef, Member, NormalMessage

logger = logging.getLogger(__name__)

# Characters that end an unquoted mention
_STOP_CHARS = r"\s@，。,！？!?:：；;"

MENTION_PATTERN = re.compile(
    r"@(?:"
    r'"([^"]+)"'
    r"|'([^']+)'"
    r"|“([^”]+)”"
    r"|‘([^’]+)’"
    r"|「([^」]+)」"
    r"|『([^』]+)』"
    r"|（([^）]+)）"
    r"|【([^】]+)】"
    r"|《([^》]+)》"
    r"|〈([^〉]+)〉"
    rf"|([^{_STOP_CHARS}]+(?:\s+[^{_STOP_CHARS}]+)*)"
    r")"
)

_LEADING_PUNCTUATION = re.compile(r"^[\"'“”‘’「」『』【】《》〈〉（）()]+")
_TRAILING_PUNCTUATION = re.compile(r"[\"'“”‘’「」『』【】《》〈〉（）()\s，。,！？!?:：；;、]+$")
_BOUNDARY_CHARS = frozenset("，。,！？!?:：；;、")


def extract_mentions(content: str) -> list[str]:
    """Extract raw mention candidates from text, in order of appearance.

    Examples:
        >>> extract_mentions('hi @Alice, and @"Bob Smith"')
        ['Alice', 'Bob Smith']
    """
    results = []
    for match in MENTION_PATTERN.finditer(content or ""):
        candidate = next((g for g in match.groups() if g), None)
        if candidate:
            results.append(candidate)
    return results


def normalize_mention_target(target: Optional[str]) -> Optional[str]:
    """Trim structural punctuation and collapse inner whitespace.

    Returns None when nothing is left.
    """
    if not target:
        return None
    cleaned = _LEADING_PUNCTUATION.sub("", target.strip())
    cleaned = _TRAILING_PUNCTUATION.sub("", cleaned)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip()
    return cleaned or None


def is_boundary_char(char: str) -> bool:
    """Check if a character may follow a matched display name."""
    if not char:
        return True
    return char.isspace() or char in _BOUNDARY_CHARS


class MentionResolver:
    """Queue of mention targets for the current trigger message.

    The queue belongs to one source message; feeding the same message again
    while targets remain does not re-parse it.
    """

    def __init__(self) -> None:
        self._pending: list[str] = []
        self._source_id: Optional[str] = None

    @property
    def pending(self) -> list[str]:
        """Mention targets not yet consumed."""
        return list(self._pending)

    @property
    def source_id(self) -> Optional[str]:
        """Id of the message the queue was built from."""
        return self._source_id

    def feed(self, trigger: object) -> None:
        """Load mention targets from a trigger message."""
        if not isinstance(trigger, NormalMessage):
            return

        if self._source_id == trigger.id and self._pending:
            return

        mentions = [
            m for m in (normalize_mention_target(raw) for raw in extract_mentions(trigger.content))
            if m
        ]

        if mentions:
            self._pending = mentions
            self._source_id = trigger.id
            logger.debug(f"Queued mentions {mentions} from message {trigger.id}")
        elif self._source_id == trigger.id:
            self.clear()

    def take_next(
        self,
        members: Sequence[Member],
        agents: Sequence[AgentDef],
    ) -> Optional[str]:
        """Pop targets until one resolves to a current member.

        Resolution tries the slug first (exact, case-insensitive, against the
        target's first word), then a case-insensitive display-name prefix
        followed by a boundary character.

        Returns:
            The resolved agent id, or None once the queue is exhausted
        """
        if not self._pending:
            return None

        member_ids = {m.agent_id for m in members}

        while self._pending:
            target = self._pending.pop(0)
            target_lower = target.lower()
            first_token = target_lower.split()[0] if target_lower.split() else ""

            by_slug = next(
                (a for a in agents if a.slug and a.slug.lower() == first_token),
                None,
            )
            if by_slug and by_slug.id in member_ids:
                self._release_if_drained()
                return by_slug.id

            by_name = next(
                (a for a in agents if self._matches_name(target_lower, a.name.lower())),
                None,
            )
            if by_name and by_name.id in member_ids:
                self._release_if_drained()
                return by_name.id

            logger.debug(f"Mention '{target}' does not resolve to a member")

        self._source_id = None
        return None

    def clear(self) -> None:
        """Drop all queued targets."""
        self._pending = []
        self._source_id = None

    def _release_if_drained(self) -> None:
        if not self._pending:
            self._source_id = None

    @staticmethod
    def _matches_name(target_lower: str, name_lower: str) -> bool:
        if not name_lower or not target_lower.startswith(name_lower):
            return False
        return is_boundary_char(target_lower[len(name_lower):len(name_lower) + 1])
