"""Discussion control: the turn loop that drives a multi-agent discussion.

DiscussionControl coordinates a discussion by:
1. Selecting the next speaker from the trigger message
2. Streaming that agent's reply into the message store
3. Running actions embedded in the reply, if the agent may act
4. Feeding the outcome back in as the next trigger
5. Pausing on the round limit or on any error
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from parley.config.settings import DiscussionSettings
from parley.discussion.agents import AgentRegistry
from parley.discussion.models import (
    SYSTEM_AGENT_ID,
    ActionResultMessage,
    AgentDef,
    Member,
    NormalMessage,
)
from parley.discussion.store import Message, MessageStore
from parley.errors import DiscussionError, DiscussionErrorType, handle_discussion_error
from parley.models.base import CompletionService
from parley.tools.executor import ActionExecutor
from parley.tools.parser import ActionParser
from parley.tools.permissions import can_use_actions
from parley.tools.registry import CapabilityRegistry

from .actions import ActionRunner
from .events import (
    CancellationToken,
    EventChannel,
    Snapshot,
    StateSubject,
    Unsubscribe,
)
from .mentions import MentionResolver
from .prompts import PromptBuilder
from .speaking import NextSpeakerSelector
from .streaming import ReloadHook, StreamingResponder, run_reload

logger = logging.getLogger(__name__)

ROUND_LIMIT_MESSAGE = "Reached the message limit ({limit}); the discussion has been paused."


@dataclass(frozen=True)
class ControlState:
    """Runtime state owned by DiscussionControl.

    ``current_abort`` is set only while a reply is streaming.
    """

    discussion_id: Optional[str] = None
    members: tuple[Member, ...] = ()
    is_running: bool = False
    processed: int = 0
    round_limit: int = 1
    current_speaker_id: Optional[str] = None
    current_abort: Optional[CancellationToken] = None


class DiscussionControl:
    """Turn scheduler for one current discussion at a time.

    Calls to :meth:`process` are serialized: a trigger that arrives while
    another turn loop is running waits until that loop has settled.
    """

    def __init__(
        self,
        message_store: MessageStore,
        agent_registry: AgentRegistry,
        completion_service: CompletionService,
        capability_registry: Optional[CapabilityRegistry] = None,
        reload: Optional[ReloadHook] = None,
        settings: Optional[DiscussionSettings] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        action_parser: Optional[ActionParser] = None,
        action_executor: Optional[ActionExecutor] = None,
    ):
        """Initialize discussion control.

        Args:
            message_store: Store holding the discussion's messages
            agent_registry: Source of agent definitions
            completion_service: Streams agent replies
            capability_registry: Capabilities agents may invoke
            reload: Hook called after every store mutation
            settings: Initial discussion settings
            prompt_builder: Custom prompt builder
            action_parser: Custom action parser
            action_executor: Custom action executor
        """
        self.message_store = message_store
        self.agent_registry = agent_registry
        self.capability_registry = capability_registry or CapabilityRegistry()
        self.reload = reload

        self.on_error: EventChannel[DiscussionError] = EventChannel()
        self.on_current_discussion_id_change: EventChannel[Optional[str]] = EventChannel()

        initial = settings or DiscussionSettings()
        self._settings: StateSubject[DiscussionSettings] = StateSubject(initial)
        self._state = ControlState(round_limit=initial.round_limit)
        self._snapshot: StateSubject[Snapshot] = StateSubject(self._make_snapshot())

        self.mention_resolver = MentionResolver()
        self.selector = NextSpeakerSelector(self.mention_resolver)
        self.responder = StreamingResponder(
            completion_service=completion_service,
            message_store=message_store,
            reload=self._reload_messages,
            prompt_builder=prompt_builder,
            capability_registry=self.capability_registry,
        )
        self.action_runner = ActionRunner(
            message_store=message_store,
            registry=self.capability_registry,
            reload=self._reload_messages,
            parser=action_parser,
            executor=action_executor,
        )

        self._run_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # State readers
    # ------------------------------------------------------------------

    @property
    def current_discussion_id(self) -> Optional[str]:
        """Id of the discussion being controlled."""
        return self._state.discussion_id

    @property
    def members(self) -> tuple[Member, ...]:
        """Current roster."""
        return self._state.members

    def is_paused(self) -> bool:
        """Check if the turn loop is not running."""
        return not self._state.is_running

    def get_settings(self) -> DiscussionSettings:
        return self._settings.value

    def get_snapshot(self) -> Snapshot:
        return self._snapshot.value

    def subscribe_snapshot(self, listener: Callable[[Snapshot], None]) -> Unsubscribe:
        """Receive the current snapshot and every later change."""
        return self._snapshot.subscribe(listener)

    def subscribe_settings(self, listener: Callable[[DiscussionSettings], None]) -> Unsubscribe:
        """Receive the current settings and every later change."""
        return self._settings.subscribe(listener)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_current_discussion_id(self, discussion_id: Optional[str]) -> None:
        """Switch to another discussion, resetting round accounting."""
        if discussion_id == self._state.discussion_id:
            return
        self.mention_resolver.clear()
        self._patch(
            discussion_id=discussion_id,
            round_limit=self._settings.value.round_limit,
            processed=0,
        )
        logger.debug(f"Current discussion set to {discussion_id}")
        self.on_current_discussion_id_change.emit(discussion_id)

    def set_members(self, members: Iterable[Member]) -> None:
        self._patch(members=tuple(members))

    def set_settings(self, settings: Union[DiscussionSettings, Mapping[str, Any]]) -> None:
        """Replace the settings, or merge a partial mapping into them."""
        if isinstance(settings, DiscussionSettings):
            updated = settings
        else:
            updated = self._settings.value.merged(settings)
        self._settings.next(updated)
        self._patch(round_limit=updated.round_limit)

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    def start_if_eligible(self) -> bool:
        """Start the loop if there is anyone to talk.

        Returns:
            True if the loop is running afterwards
        """
        if self._state.is_running:
            return True
        if not self._state.members:
            return False
        self._patch(is_running=True, processed=0)
        return True

    def run(self) -> bool:
        return self.start_if_eligible()

    def resume(self) -> None:
        self._patch(is_running=True, processed=0)

    def pause(self) -> None:
        """Stop the loop and cancel the reply being streamed, if any."""
        token = self._state.current_abort
        if token is not None:
            token.cancel("paused")
        self._patch(is_running=False, current_abort=None, current_speaker_id=None)

    async def process(self, trigger: Message) -> None:
        """Run the turn loop starting from a trigger message.

        Errors never escape: they are reported on :attr:`on_error` and the
        discussion is paused.
        """
        async with self._run_lock:
            try:
                if not self._state.discussion_id:
                    raise DiscussionError(
                        DiscussionErrorType.NO_DISCUSSION,
                        "No discussion selected",
                    )
                if self.is_paused() and not self.start_if_eligible():
                    logger.debug("Nobody to talk; trigger ignored")
                    return
                await self._process_internal(trigger)
                await self._reload_messages()
            except Exception as e:
                self._handle_error(e, "Failed to process message")

    # ------------------------------------------------------------------
    # Turn loop
    # ------------------------------------------------------------------

    async def _process_internal(self, trigger: Message) -> None:
        if not self._state.discussion_id:
            return
        if not self._state.is_running:
            self.resume()

        last: Optional[Message] = trigger
        last_responder: Optional[str] = None
        self._patch(processed=0)

        while self._state.is_running and self._state.processed < self._state.round_limit and last:
            next_id = self._select_next_agent_id(last, last_responder)
            if not next_id:
                break
            logger.debug(f"Next speaker: {next_id}")

            outcome = await self._generate_streaming_response(next_id, last)
            if outcome is None:
                break

            last_responder = next_id
            last = outcome
            self._patch(processed=self._state.processed + 1)

        if self._state.processed >= self._state.round_limit:
            limit = self._state.round_limit
            logger.info(f"Round limit {limit} reached; pausing")
            await self._add_system_message(ROUND_LIMIT_MESSAGE.format(limit=limit))
            self.pause()

    def _select_next_agent_id(self, trigger: Message, last_responder: Optional[str]) -> Optional[str]:
        return self.selector.select(
            trigger,
            last_responder,
            self._state.members,
            self.agent_registry.list_agents(),
        )

    async def _generate_streaming_response(
        self,
        agent_id: str,
        trigger: Message,
    ) -> Optional[Message]:
        """Drive one full turn for an agent.

        Returns:
            The action-result message if actions ran, else the reply; None if
            the agent is unknown
        """
        discussion_id = self._state.discussion_id
        if not discussion_id:
            return None

        agents = self.agent_registry.list_agents()
        by_id = {a.id: a for a in agents}
        current = by_id.get(agent_id)
        if current is None:
            logger.warning(f"Selected agent {agent_id} is not registered")
            return None
        member_defs = [by_id[m.agent_id] for m in self._state.members if m.agent_id in by_id]
        settings = self._settings.value
        allowed = can_use_actions(current, settings.tool_permissions)

        token = CancellationToken()
        self._patch(current_speaker_id=agent_id, current_abort=token)
        logger.info(f"Turn started: {agent_id}")

        try:
            outcome: Message = await self.responder.respond(
                discussion_id=discussion_id,
                agent=current,
                agent_id=agent_id,
                trigger=trigger,
                members=member_defs,
                can_use_actions=allowed,
                cancel_token=token,
                settings=settings,
            )
            if allowed and not token.is_cancelled:
                action_message = await self._try_run_actions(current, outcome)
                if action_message is not None:
                    outcome = action_message
        except DiscussionError:
            raise
        except Exception as e:
            raise DiscussionError(
                DiscussionErrorType.GENERATE_RESPONSE,
                f"Failed to generate a reply from {agent_id}",
                cause=e,
                context={"discussion_id": discussion_id, "agent_id": agent_id},
            ) from e
        finally:
            self._patch(current_speaker_id=None, current_abort=None)

        logger.info(f"Turn finished: {agent_id}")
        return outcome

    async def _try_run_actions(
        self,
        author: AgentDef,
        agent_message: NormalMessage,
    ) -> Optional[ActionResultMessage]:
        allowed = can_use_actions(author, self._settings.value.tool_permissions)
        try:
            return await self.action_runner.run_if_any(author, allowed, agent_message)
        except Exception as e:
            raise DiscussionError(
                DiscussionErrorType.ACTION_EXECUTION,
                f"Failed to run actions from {author.id}",
                cause=e,
                context={"message_id": agent_message.id},
            ) from e

    async def _add_system_message(self, content: str) -> None:
        discussion_id = self._state.discussion_id
        if not discussion_id:
            return
        await self.message_store.create_message(
            NormalMessage(
                discussion_id=discussion_id,
                agent_id=SYSTEM_AGENT_ID,
                content=content,
            )
        )

    def _handle_error(self, error: Exception, message: str) -> None:
        if isinstance(error, DiscussionError):
            discussion_error = error
        else:
            discussion_error = DiscussionError(
                DiscussionErrorType.PROCESS_MESSAGE,
                message,
                cause=error,
                context={"discussion_id": self._state.discussion_id},
            )
        result = handle_discussion_error(discussion_error)
        if result.should_pause:
            self.pause()
        self.on_error.emit(discussion_error)

    async def _reload_messages(self) -> None:
        await run_reload(self.reload)

    # ------------------------------------------------------------------
    # Internal state
    # ------------------------------------------------------------------

    def _make_snapshot(self) -> Snapshot:
        return Snapshot(
            is_running=self._state.is_running,
            current_speaker_id=self._state.current_speaker_id,
            processed=self._state.processed,
            round_limit=self._state.round_limit,
        )

    def _patch(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        snapshot = self._make_snapshot()
        if snapshot != self._snapshot.value:
            self._snapshot.next(snapshot)


def create_discussion_control(
    message_store: MessageStore,
    agent_registry: AgentRegistry,
    completion_service: CompletionService,
    settings: Optional[DiscussionSettings] = None,
    capability_registry: Optional[CapabilityRegistry] = None,
    reload: Optional[ReloadHook] = None,
) -> DiscussionControl:
    """Factory function to create discussion control.

    Settings default to the ``discussion`` section of the loaded
    configuration.

    Args:
        message_store: Message store
        agent_registry: Agent registry
        completion_service: Completion service
        settings: Discussion settings
        capability_registry: Capability registry
        reload: Reload hook

    Returns:
        Configured DiscussionControl instance
    """
    if settings is None:
        from parley.config import get_settings

        settings = get_settings().discussion

    return DiscussionControl(
        message_store=message_store,
        agent_registry=agent_registry,
        completion_service=completion_service,
        capability_registry=capability_registry,
        reload=reload,
        settings=settings,
    )
