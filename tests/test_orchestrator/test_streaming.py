"""Tests for the streaming responder."""

import asyncio
from typing import AsyncIterator, Optional

import pytest

from parley.discussion import InMemoryMessageStore, MessageStatus, NormalMessage
from parley.models import ChatRole, CompletionError, CompletionService, ScriptedCompletionService
from parley.orchestrator.events import CancellationToken
from parley.orchestrator.streaming import StreamingResponder, consume_stream, run_reload


class FailingCompletionService(CompletionService):
    """Streams some chunks, then fails."""

    def __init__(self, chunks: list[str]):
        self.chunks = chunks

    def stream_chat_completion(self, messages, temperature=None) -> AsyncIterator[str]:
        return self._stream()

    async def _stream(self) -> AsyncIterator[str]:
        for chunk in self.chunks:
            yield chunk
        raise CompletionError("connection reset")


class GatedCompletionService(CompletionService):
    """Streams the first chunk, then waits until released."""

    def __init__(self) -> None:
        self.first_chunk_sent = asyncio.Event()
        self.release = asyncio.Event()
        self.closed = False

    def stream_chat_completion(self, messages, temperature=None) -> AsyncIterator[str]:
        return self._stream()

    async def _stream(self) -> AsyncIterator[str]:
        try:
            yield "partial"
            self.first_chunk_sent.set()
            await self.release.wait()
            yield " never seen"
        finally:
            self.closed = True


class FlakyStore(InMemoryMessageStore):
    """Store whose content updates fail after the first one."""

    def __init__(self) -> None:
        super().__init__()
        self.content_updates = 0

    async def update_message(self, message_id, patch):
        if "content" in patch:
            self.content_updates += 1
            if self.content_updates > 1:
                raise OSError("disk full")
        return await super().update_message(message_id, patch)


class ReloadCounter:
    def __init__(self) -> None:
        self.count = 0

    async def __call__(self) -> None:
        self.count += 1


def trigger(content: str = "What do you think?") -> NormalMessage:
    return NormalMessage(id="t1", discussion_id="d1", agent_id="user", content=content)


async def respond(
    responder: StreamingResponder,
    agent,
    token: Optional[CancellationToken] = None,
    can_use_actions: bool = False,
) -> NormalMessage:
    return await responder.respond(
        discussion_id="d1",
        agent=agent,
        agent_id=agent.id,
        trigger=trigger(),
        members=[agent],
        can_use_actions=can_use_actions,
        cancel_token=token,
    )


class TestStreamingResponder:
    """Tests for StreamingResponder.respond."""

    @pytest.mark.asyncio
    async def test_streams_into_completed_message(self, moderator) -> None:
        store = InMemoryMessageStore()
        reload = ReloadCounter()
        responder = StreamingResponder(
            ScriptedCompletionService(["Hello there friends"]), store, reload=reload
        )

        message = await respond(responder, moderator)

        assert message.content == "Hello there friends"
        assert message.status == MessageStatus.COMPLETED
        assert message.agent_id == "mod"
        assert message.last_update_time is not None
        # create + 3 chunks + finish
        assert reload.count == 5

    @pytest.mark.asyncio
    async def test_creates_exactly_one_message(self, moderator) -> None:
        store = InMemoryMessageStore()
        responder = StreamingResponder(ScriptedCompletionService(["a b c"]), store)

        await respond(responder, moderator)

        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_returns_store_state(self, moderator) -> None:
        store = InMemoryMessageStore()
        responder = StreamingResponder(ScriptedCompletionService(["Hi"]), store)

        message = await respond(responder, moderator)

        assert message == await store.get_message(message.id)

    @pytest.mark.asyncio
    async def test_prompt_includes_history_and_trigger(self, moderator) -> None:
        store = InMemoryMessageStore()
        await store.create_message(trigger("Earlier question"))
        service = ScriptedCompletionService(["ok"])
        responder = StreamingResponder(service, store)

        await respond(responder, moderator)

        prompt = service.calls[0]
        assert prompt[0].role == ChatRole.SYSTEM
        assert "Moderator" in prompt[0].content
        assert any("Earlier question" in m.content for m in prompt[1:])
        assert "What do you think?" in prompt[-1].content

    @pytest.mark.asyncio
    async def test_stream_failure_marks_error_and_raises(self, moderator) -> None:
        store = InMemoryMessageStore()
        responder = StreamingResponder(FailingCompletionService(["Half "]), store)

        with pytest.raises(CompletionError):
            await respond(responder, moderator)

        [message] = await store.list_messages("d1")
        assert message.status == MessageStatus.ERROR
        assert message.content == "Half "

    @pytest.mark.asyncio
    async def test_persistence_failure_marks_error(self, moderator) -> None:
        store = FlakyStore()
        responder = StreamingResponder(ScriptedCompletionService(["one two three"]), store)

        with pytest.raises(OSError):
            await respond(responder, moderator)

        [message] = await store.list_messages("d1")
        assert message.status == MessageStatus.ERROR
        assert message.content == "one"

    @pytest.mark.asyncio
    async def test_cancellation_completes_with_partial_content(self, moderator) -> None:
        store = InMemoryMessageStore()
        service = GatedCompletionService()
        responder = StreamingResponder(service, store)
        token = CancellationToken()

        task = asyncio.create_task(respond(responder, moderator, token=token))
        await service.first_chunk_sent.wait()
        token.cancel("paused")
        message = await task

        assert message.status == MessageStatus.COMPLETED
        assert message.content == "partial"
        assert service.closed

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, moderator) -> None:
        store = InMemoryMessageStore()
        token = CancellationToken()
        token.cancel()
        responder = StreamingResponder(ScriptedCompletionService(["never"]), store)

        message = await respond(responder, moderator, token=token)

        assert message.status == MessageStatus.COMPLETED
        assert message.content == ""

    @pytest.mark.asyncio
    async def test_task_cancellation_finishes_message(self, moderator) -> None:
        store = InMemoryMessageStore()
        service = GatedCompletionService()
        responder = StreamingResponder(service, store)

        task = asyncio.create_task(respond(responder, moderator))
        await service.first_chunk_sent.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        [message] = await store.list_messages("d1")
        assert message.status == MessageStatus.COMPLETED


class TestConsumeStream:
    """Tests for consume_stream."""

    @pytest.mark.asyncio
    async def test_delivers_all_chunks(self) -> None:
        chunks = []

        async def collect(chunk: str) -> None:
            chunks.append(chunk)

        stream = ScriptedCompletionService(["a b"]).stream_chat_completion([])
        cancelled = await consume_stream(stream, CancellationToken(), collect)

        assert cancelled is False
        assert "".join(chunks) == "a b"


class TestRunReload:
    """Tests for run_reload."""

    @pytest.mark.asyncio
    async def test_accepts_sync_async_and_none(self) -> None:
        calls = []

        async def async_hook() -> None:
            calls.append("async")

        await run_reload(lambda: calls.append("sync"))
        await run_reload(async_hook)
        await run_reload(None)

        assert calls == ["sync", "async"]
