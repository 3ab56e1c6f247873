"""Next-speaker selection for the orchestrator.

The selector encodes the turn-taking policy, in priority order:

1. An action result goes back to the agent that requested the actions
2. An @mention in a text message picks the mentioned member
3. A user message goes to the first auto-reply member, else a moderator,
   else the first member
4. An agent message goes to the first auto-reply member other than its author
"""

import logging
from typing import Optional, Sequence

from parley.discussion.models import (
    USER_AGENT_ID,
    ActionResultMessage,
    AgentDef,
    AgentRole,
    Member,
    NormalMessage,
)

from .mentions import MentionResolver

logger = logging.getLogger(__name__)


class NextSpeakerSelector:
    """Decides who speaks next in a discussion."""

    def __init__(self, mention_resolver: Optional[MentionResolver] = None):
        """Initialize the selector.

        Args:
            mention_resolver: Resolver holding the mention queue; a fresh one
                is created when omitted
        """
        self.mention_resolver = mention_resolver or MentionResolver()

    def select(
        self,
        trigger: object,
        last_responder: Optional[str],
        members: Sequence[Member],
        agents: Sequence[AgentDef],
    ) -> Optional[str]:
        """Select the next speaker.

        Args:
            trigger: The message that prompts the next turn
            last_responder: Agent that produced the previous turn, if any
            members: Current roster, in order
            agents: All known agent definitions

        Returns:
            The next speaker's agent id, or None if nobody should speak
        """
        if not members:
            return None

        member_ids = {m.agent_id for m in members}

        if isinstance(trigger, ActionResultMessage) and last_responder:
            if last_responder in member_ids:
                logger.debug(f"Action result routed back to {last_responder}")
                return last_responder

        if isinstance(trigger, NormalMessage):
            self.mention_resolver.feed(trigger)
            mentioned = self.mention_resolver.take_next(members, agents)
            if mentioned:
                logger.debug(f"Mention selects {mentioned}")
                return mentioned

        autos = [m for m in members if m.is_auto_reply]
        author = getattr(trigger, "agent_id", None)

        if author == USER_AGENT_ID:
            if autos:
                return autos[0].agent_id
            roles = {a.id: a.role for a in agents}
            moderator = next(
                (m for m in members if roles.get(m.agent_id) == AgentRole.MODERATOR),
                None,
            )
            return moderator.agent_id if moderator else members[0].agent_id

        following = next((m for m in autos if m.agent_id != author), None)
        return following.agent_id if following else None
