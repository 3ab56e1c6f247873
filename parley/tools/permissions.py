"""Permission policy deciding which agents may execute actions."""

from typing import Mapping, Optional

from parley.discussion.models import AgentDef, AgentRole


def can_use_actions(
    agent: Optional[AgentDef],
    tool_permissions: Optional[Mapping[str, bool]] = None,
) -> bool:
    """Check whether an agent may run embedded actions.

    An explicit boolean for the agent's role wins. Without one, only
    moderators may act.

    Args:
        agent: The agent, or None when the author is unknown
        tool_permissions: Role name mapped to an explicit permission

    Returns:
        True if the agent may execute actions
    """
    if agent is None:
        return False

    allowed = (tool_permissions or {}).get(agent.role.value)
    if isinstance(allowed, bool):
        return allowed
    return agent.role == AgentRole.MODERATOR
