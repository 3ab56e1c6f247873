"""Discussion orchestration for Parley.

This package provides the turn loop that lets several agents and a human
share one discussion.

Main components:
- DiscussionControl: Turn scheduler with pause/resume and a round limit
- NextSpeakerSelector: Decides who speaks next
- MentionResolver: Turns @mentions into speaker candidates
- StreamingResponder: Streams one agent reply into the message store
- ActionRunner: Executes actions embedded in a reply
- PromptBuilder: Builds the prompt for an agent's turn
"""

from .actions import ActionRunner
from .engine import (
    ROUND_LIMIT_MESSAGE,
    ControlState,
    DiscussionControl,
    create_discussion_control,
)
from .events import CancellationToken, EventChannel, Snapshot, StateSubject
from .mentions import (
    MentionResolver,
    extract_mentions,
    is_boundary_char,
    normalize_mention_target,
)
from .prompts import (
    SYSTEM_PROMPT_TEMPLATE,
    AgentTurnConfig,
    PromptBuilder,
    format_system_prompt,
    window_history,
)
from .speaking import NextSpeakerSelector
from .streaming import StreamingResponder, consume_stream, run_reload

__all__ = [
    # Discussion control
    "DiscussionControl",
    "ControlState",
    "create_discussion_control",
    "ROUND_LIMIT_MESSAGE",
    # Observable state
    "CancellationToken",
    "EventChannel",
    "Snapshot",
    "StateSubject",
    # Speaker selection
    "NextSpeakerSelector",
    "MentionResolver",
    "extract_mentions",
    "normalize_mention_target",
    "is_boundary_char",
    # Replies
    "StreamingResponder",
    "consume_stream",
    "run_reload",
    "ActionRunner",
    # Prompts
    "AgentTurnConfig",
    "PromptBuilder",
    "window_history",
    "SYSTEM_PROMPT_TEMPLATE",
    "format_system_prompt",
]
