"""Streaming responder: drives one agent reply from prompt to final message.

A reply is created in ``streaming`` status, grows chunk by chunk in the
message store, and ends as either ``completed`` or ``error``. Cancellation
through a :class:`CancellationToken` stops consumption between chunks and
finishes the message as ``completed`` with the partial content kept.
"""

import asyncio
import inspect
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence, Union

from parley.config.settings import DiscussionSettings
from parley.discussion.models import AgentDef, MessageStatus, NormalMessage, utcnow
from parley.discussion.store import MessageStore
from parley.models.base import CompletionService
from parley.tools.registry import CapabilityRegistry

from .events import CancellationToken
from .prompts import AgentTurnConfig, PromptBuilder

logger = logging.getLogger(__name__)

ReloadHook = Callable[[], Union[None, Awaitable[None]]]
ChunkCallback = Callable[[str], Awaitable[None]]


async def run_reload(reload: Optional[ReloadHook]) -> None:
    """Call a reload hook, awaiting it if it is asynchronous."""
    if reload is None:
        return
    result = reload()
    if inspect.isawaitable(result):
        await result


async def consume_stream(
    stream: AsyncIterator[str],
    cancel_token: CancellationToken,
    on_chunk: ChunkCallback,
) -> bool:
    """Feed chunks from a stream to a callback until it ends or is cancelled.

    Waiting for the next chunk races against the token, so a stalled stream
    still stops promptly once cancellation is requested. The iterator is
    closed on every exit path.

    Returns:
        True if consumption stopped because of cancellation
    """
    iterator = stream.__aiter__()
    cancelled = asyncio.ensure_future(cancel_token.wait())
    pending: Optional[asyncio.Future] = None

    try:
        while not cancel_token.is_cancelled:
            pending = asyncio.ensure_future(iterator.__anext__())
            await asyncio.wait({pending, cancelled}, return_when=asyncio.FIRST_COMPLETED)

            if cancel_token.is_cancelled:
                return True

            next_chunk, pending = pending, None
            try:
                chunk = next_chunk.result()
            except StopAsyncIteration:
                return False

            await on_chunk(chunk)

        return True

    finally:
        cancelled.cancel()
        if pending is not None:
            if not pending.done():
                pending.cancel()
                await asyncio.wait({pending})
            if not pending.cancelled():
                pending.exception()
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


class StreamingResponder:
    """Produces one finalized reply message per call."""

    def __init__(
        self,
        completion_service: CompletionService,
        message_store: MessageStore,
        reload: Optional[ReloadHook] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        capability_registry: Optional[CapabilityRegistry] = None,
    ):
        """Initialize the responder.

        Args:
            completion_service: Source of streamed reply chunks
            message_store: Store the reply is written to
            reload: Hook called after every store mutation
            prompt_builder: Builds the prompt; a default one is used if omitted
            capability_registry: Catalog advertised to agents allowed to act
        """
        self.completion_service = completion_service
        self.message_store = message_store
        self.reload = reload
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.capability_registry = capability_registry

    async def respond(
        self,
        discussion_id: str,
        agent: AgentDef,
        agent_id: str,
        trigger: object,
        members: Sequence[AgentDef],
        can_use_actions: bool = False,
        cancel_token: Optional[CancellationToken] = None,
        settings: Optional[DiscussionSettings] = None,
    ) -> NormalMessage:
        """Stream a reply from an agent into a new message.

        Args:
            discussion_id: Discussion the reply belongs to
            agent: Definition of the speaking agent
            agent_id: Author id recorded on the reply
            trigger: Message being answered
            members: Agent definitions of the roster
            can_use_actions: Whether the agent may embed actions this turn
            cancel_token: Token that stops the stream when cancelled
            settings: Discussion settings used for the prompt

        Returns:
            The reply as read back from the store

        Raises:
            Exception: Any stream or store failure, after the reply has been
                marked ``error``
        """
        cancel_token = cancel_token or CancellationToken()

        history = await self.message_store.list_messages(discussion_id)
        capabilities = (
            self.capability_registry.get_capabilities()
            if self.capability_registry is not None
            else []
        )
        prompt = self.prompt_builder.build_prompt(
            current_agent=agent,
            agent_config=AgentTurnConfig(agent_id=agent_id, can_use_actions=can_use_actions),
            agents=members,
            messages=history,
            trigger_message=trigger if isinstance(trigger, NormalMessage) else None,
            capabilities=capabilities,
            settings=settings,
        )

        message = await self.message_store.create_message(
            NormalMessage(
                discussion_id=discussion_id,
                agent_id=agent_id,
                content="",
                status=MessageStatus.STREAMING,
                last_update_time=utcnow(),
            )
        )
        await run_reload(self.reload)

        content = ""

        async def append(chunk: str) -> None:
            nonlocal content
            content += chunk
            await self.message_store.update_message(
                message.id,
                {"content": content, "last_update_time": utcnow()},
            )
            await run_reload(self.reload)

        try:
            stream = self.completion_service.stream_chat_completion(
                prompt,
                temperature=settings.temperature if settings else None,
            )
            was_cancelled = await consume_stream(stream, cancel_token, append)
        except asyncio.CancelledError:
            await self._finish(message.id, MessageStatus.COMPLETED)
            raise
        except Exception:
            logger.exception(f"Reply from {agent_id} failed")
            try:
                await self._finish(message.id, MessageStatus.ERROR)
            except Exception:
                logger.exception(f"Could not mark message {message.id} as failed")
            raise

        if was_cancelled:
            logger.info(f"Reply from {agent_id} cancelled ({cancel_token.reason})")

        await self._finish(message.id, MessageStatus.COMPLETED)
        return await self.message_store.get_message(message.id)

    async def _finish(self, message_id: str, status: MessageStatus) -> None:
        await self.message_store.update_message(
            message_id,
            {"status": status, "last_update_time": utcnow()},
        )
        await run_reload(self.reload)
