"""Prompt templates and prompt assembly for agent turns.

The prompt for a turn consists of:
- A system prompt describing the agent, the roster and the discussion rules
- The discussion history, rewritten from the speaking agent's perspective
- A closing instruction pointing at the message that triggered the turn
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from parley.config.settings import DiscussionSettings
from parley.discussion.models import (
    SYSTEM_AGENT_ID,
    USER_AGENT_ID,
    ActionResultMessage,
    ActionResultStatus,
    AgentDef,
    NormalMessage,
)
from parley.models.types import ChatMessage
from parley.tools.registry import CapabilityDescriptor

# Longest result/trigger excerpt quoted back into the prompt
MAX_EXCERPT_CHARS = 500

# History budget: keep the newest messages that fit in MAX_HISTORY_CHARS plus
# one more, but never fewer than the turn's context_messages
MAX_HISTORY_CHARS = 20000
DEFAULT_CONTEXT_MESSAGES = 10

SYSTEM_PROMPT_TEMPLATE = """You are {name}, the {role} of a multi-party discussion.
{prompt}
## About you
{traits}

## Participants
{roster}

## Rules
{rules}"""

ACTIONS_SECTION_TEMPLATE = """

## Actions
You can call the capabilities below by embedding an action block in your reply:
<action>{{"operationId": "op-1", "description": "why you call it", "capability": "<name>", "params": {{}}}}</action>
The results are posted back to you in the next turn.

Available capabilities:
{capabilities}"""

TURN_INSTRUCTION_TEMPLATE = (
    "It is your turn. Reply to the latest message from {speaker}:\n\"{excerpt}\""
)

MODERATOR_RULES = (
    "Guide the discussion, summarize progress and hand the floor to others.",
    "Close the discussion when the question is settled.",
)

PARTICIPANT_RULES = (
    "Contribute from your own expertise; do not repeat what was already said.",
)

COMMON_RULES = (
    "Address another participant with @name to hand them the next turn.",
    "Speak only for yourself; never write other participants' lines.",
)


@dataclass(frozen=True)
class AgentTurnConfig:
    """Per-turn configuration of the speaking agent."""

    agent_id: str
    can_use_actions: bool = False
    context_messages: int = DEFAULT_CONTEXT_MESSAGES


def window_history(
    history: Sequence[ChatMessage],
    context_messages: int = DEFAULT_CONTEXT_MESSAGES,
    max_chars: int = MAX_HISTORY_CHARS,
) -> list[ChatMessage]:
    """Keep the tail of the history that the prompt has room for.

    The kept count is ``min(total, max(fit + 1, context_messages))`` where
    ``fit`` is how many of the newest messages fit in ``max_chars``.

    Examples:
        >>> msgs = [ChatMessage.user("x" * 1000) for _ in range(60)]
        >>> len(window_history(msgs))
        21
    """
    used = 0
    fit = 0
    for message in reversed(history):
        if used + len(message.content) > max_chars:
            break
        used += len(message.content)
        fit += 1

    keep = min(len(history), max(fit + 1, context_messages))
    return list(history[len(history) - keep :])


def _excerpt(text: str, limit: int = MAX_EXCERPT_CHARS) -> str:
    text = text.strip()
    return text if len(text) <= limit else text[:limit] + "..."


def format_traits(agent: AgentDef) -> str:
    """Format the agent's behavioral traits as a bullet list."""
    traits = [
        ("Personality", agent.personality),
        ("Expertise", ", ".join(agent.expertise)),
        ("Bias", agent.bias),
        ("Response style", agent.response_style),
    ]
    lines = [f"- {label}: {value}" for label, value in traits if value]
    return "\n".join(lines) if lines else "- (no specific traits)"


def format_roster(agents: Sequence[AgentDef], current_id: str) -> str:
    """Format the member roster, marking the current agent."""
    if not agents:
        return "- (no other participants)"
    lines = []
    for agent in agents:
        handle = f" (@{agent.slug})" if agent.slug else ""
        marker = " <- you" if agent.id == current_id else ""
        lines.append(f"- {agent.name}{handle}, {agent.role.value}{marker}")
    return "\n".join(lines)


def format_rules(agent: AgentDef, settings: DiscussionSettings) -> str:
    """Format the discussion rules for this agent and these settings."""
    rules = list(MODERATOR_RULES if agent.is_moderator else PARTICIPANT_RULES)
    if settings.moderation_style == "strict":
        rules.append("Stay strictly on topic and keep replies short.")
    if not settings.allow_conflict:
        rules.append("Avoid open disagreement; look for common ground.")
    if settings.focus_topics:
        rules.append(f"Focus on: {', '.join(settings.focus_topics)}.")
    rules.extend(COMMON_RULES)
    return "\n".join(f"- {rule}" for rule in rules)


def format_capabilities(capabilities: Sequence[CapabilityDescriptor]) -> str:
    """Format capability descriptors as a bullet list."""
    lines = []
    for capability in capabilities:
        params = ", ".join(f"{name}: {desc}" if desc else name for name, desc in capability.params.items())
        lines.append(f"- {capability.name}({params}): {capability.description}")
    return "\n".join(lines)


def format_system_prompt(
    agent: AgentDef,
    members: Sequence[AgentDef],
    settings: DiscussionSettings,
    capabilities: Sequence[CapabilityDescriptor] = (),
    can_use_actions: bool = False,
) -> str:
    """Format the system prompt for an agent's turn."""
    prompt = SYSTEM_PROMPT_TEMPLATE.format(
        name=agent.name,
        role=agent.role.value,
        prompt=f"\n{agent.prompt.strip()}\n" if agent.prompt.strip() else "",
        traits=format_traits(agent),
        roster=format_roster(members, agent.id),
        rules=format_rules(agent, settings),
    )
    if can_use_actions and capabilities:
        prompt += ACTIONS_SECTION_TEMPLATE.format(
            capabilities=format_capabilities(capabilities),
        )
    return prompt


def format_action_results(message: ActionResultMessage) -> str:
    """Summarize an action-result message for the prompt."""
    lines = ["[Action results]"]
    for result in message.results:
        label = f"{result.operation_id} ({result.capability})"
        if result.status == ActionResultStatus.SUCCESS:
            lines.append(f"- {label} succeeded: {_excerpt(str(result.result))}")
        else:
            lines.append(f"- {label} failed: {result.error or 'unknown error'}")
    return "\n".join(lines)


class PromptBuilder:
    """Builds the chat messages for one agent turn."""

    def build_prompt(
        self,
        current_agent: AgentDef,
        agent_config: AgentTurnConfig,
        agents: Sequence[AgentDef],
        messages: Sequence[object],
        trigger_message: Optional[NormalMessage] = None,
        capabilities: Sequence[CapabilityDescriptor] = (),
        settings: Optional[DiscussionSettings] = None,
    ) -> list[ChatMessage]:
        """Build the prompt for an agent's turn.

        Args:
            current_agent: The agent about to speak
            agent_config: Turn configuration (speaking id, action permission)
            agents: Member agent definitions
            messages: Full discussion history
            trigger_message: The text message being answered, if any
            capabilities: Capability catalog
            settings: Discussion settings

        Returns:
            Prompt messages, system prompt first
        """
        settings = settings or DiscussionSettings()
        names = {a.id: a.name for a in agents}
        names.setdefault(current_agent.id, current_agent.name)

        prompt = [
            ChatMessage.system(
                format_system_prompt(
                    agent=current_agent,
                    members=agents,
                    settings=settings,
                    capabilities=capabilities,
                    can_use_actions=agent_config.can_use_actions,
                )
            )
        ]

        history = [
            converted
            for converted in (self._convert(m, agent_config.agent_id, names) for m in messages)
            if converted is not None
        ]
        prompt.extend(window_history(history, agent_config.context_messages))

        if trigger_message is not None:
            prompt.append(
                ChatMessage.user(
                    TURN_INSTRUCTION_TEMPLATE.format(
                        speaker=self._speaker_name(trigger_message.agent_id, names),
                        excerpt=_excerpt(trigger_message.content),
                    )
                )
            )

        return prompt

    def _convert(
        self,
        message: object,
        self_id: str,
        names: dict[str, str],
    ) -> Optional[ChatMessage]:
        if isinstance(message, ActionResultMessage):
            return ChatMessage.user(format_action_results(message), name="system")

        if not isinstance(message, NormalMessage) or not message.content.strip():
            return None

        if message.agent_id == self_id:
            return ChatMessage.assistant(message.content)

        speaker = self._speaker_name(message.agent_id, names)
        return ChatMessage.user(f"[{speaker}]: {message.content}", name=message.agent_id)

    @staticmethod
    def _speaker_name(agent_id: str, names: dict[str, str]) -> str:
        if agent_id == USER_AGENT_ID:
            return "User"
        if agent_id == SYSTEM_AGENT_ID:
            return "System"
        return names.get(agent_id, agent_id)
