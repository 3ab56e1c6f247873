"""Tests for chat message types and the scripted completion service."""

import pytest

from parley.models import ChatMessage, ChatRole, ScriptedCompletionService, split_into_chunks


async def collect(service: ScriptedCompletionService) -> str:
    chunks = []
    async for chunk in service.stream_chat_completion([ChatMessage.user("hi")]):
        chunks.append(chunk)
    return "".join(chunks)


class TestChatMessage:
    """Tests for ChatMessage."""

    def test_constructors(self) -> None:
        assert ChatMessage.system("rules").role == ChatRole.SYSTEM
        assert ChatMessage.assistant("ok").role == ChatRole.ASSISTANT
        assert ChatMessage.user("hi", name="mod").name == "mod"

    def test_to_dict(self) -> None:
        assert ChatMessage.user("hi").to_dict() == {"role": "user", "content": "hi"}
        assert ChatMessage.user("hi", name="mod").to_dict() == {
            "role": "user",
            "content": "hi",
            "name": "mod",
        }


class TestSplitIntoChunks:
    """Tests for split_into_chunks."""

    @pytest.mark.parametrize("text", ["hello big world", "  leading", "trailing  ", "a\nb", ""])
    def test_chunks_concatenate_back(self, text: str) -> None:
        assert "".join(split_into_chunks(text)) == text

    def test_word_sized(self) -> None:
        assert split_into_chunks("hello big world") == ["hello", " big", " world"]


class TestScriptedCompletionService:
    """Tests for ScriptedCompletionService."""

    @pytest.mark.asyncio
    async def test_replays_in_order(self) -> None:
        service = ScriptedCompletionService(["first one", "second"])

        assert await collect(service) == "first one"
        assert await collect(service) == "second"
        assert service.remaining == 0

    @pytest.mark.asyncio
    async def test_fallback_when_exhausted(self) -> None:
        service = ScriptedCompletionService(fallback="default")

        assert await collect(service) == "default"

    @pytest.mark.asyncio
    async def test_records_prompts(self) -> None:
        service = ScriptedCompletionService(["x"])

        await collect(service)

        assert service.calls == [[ChatMessage.user("hi")]]
