"""
Tests for assistant.py - name capture, task-aware chat, single-flight and failures.
"""
import asyncio
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from assistant import (
    AssistantBusyError,
    AssistantEvent,
    AssistantFlow,
    UserProfile,
    extract_name,
    next_phase,
)
from llm import ModelError
from models import AssistantPhase, Task
from prompts import GREETING_PROMPT
from conftest import FakeGateway

TASKS = [
    Task(id="id-1", owner="user-1", title="Pay rent", due_date_type="urgent", created_at="2026-01-01T09:00:00"),
]


class TestExtractName:

    def test_hebrew_punctuation_stripped(self):
        assert extract_name("קוראים לי דנה!!") == "קוראים לי דנה"

    def test_latin_name(self):
        assert extract_name("  Dana :) ") == "Dana"

    def test_no_letters(self):
        assert extract_name("123!!") is None
        assert extract_name("   ") is None


class TestTransitions:

    def test_valid_transitions(self):
        assert next_phase(AssistantPhase.UNINITIALIZED, AssistantEvent.GREETED) == AssistantPhase.AWAITING_NAME
        assert next_phase(AssistantPhase.UNINITIALIZED, AssistantEvent.NAME_CACHED) == AssistantPhase.CHATTING
        assert next_phase(AssistantPhase.AWAITING_NAME, AssistantEvent.NAME_CAPTURED) == AssistantPhase.CHATTING
        assert next_phase(AssistantPhase.CHATTING, AssistantEvent.MESSAGE_ANSWERED) == AssistantPhase.CHATTING

    def test_chatting_is_terminal(self):
        with pytest.raises(ValueError):
            next_phase(AssistantPhase.CHATTING, AssistantEvent.GREETED)
        with pytest.raises(ValueError):
            next_phase(AssistantPhase.CHATTING, AssistantEvent.NAME_CAPTURED)


class TestOpen:

    @pytest.mark.asyncio
    async def test_open_without_name_asks_for_it(self):
        gateway = FakeGateway("שלום! איך קוראים לך?")
        flow = AssistantFlow(gateway, UserProfile())

        reply = await flow.open()

        assert reply == "שלום! איך קוראים לך?"
        assert flow.phase == AssistantPhase.AWAITING_NAME
        assert [m.role for m in flow.messages] == ["assistant"]
        assert gateway.complete.call_args.args[0] == GREETING_PROMPT

    @pytest.mark.asyncio
    async def test_open_with_cached_name_skips_model(self):
        gateway = FakeGateway()
        flow = AssistantFlow(gateway, UserProfile(name="Dana"))

        assert await flow.open() is None
        assert flow.phase == AssistantPhase.CHATTING
        assert flow.state.user_name == "Dana"
        gateway.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_failure_leaves_state(self):
        gateway = FakeGateway()
        gateway.complete.side_effect = ModelError("API error")
        flow = AssistantFlow(gateway, UserProfile())

        with pytest.raises(ModelError):
            await flow.open()
        assert flow.phase == AssistantPhase.UNINITIALIZED
        assert flow.messages == []


class TestSend:

    @pytest.mark.asyncio
    async def test_name_captured_without_model_call(self):
        gateway = FakeGateway("מה שמך?")
        profile = UserProfile()
        flow = AssistantFlow(gateway, profile)
        await flow.open()
        gateway.complete.reset_mock()

        reply = await flow.send("קוראים לי דנה!!", TASKS)

        assert profile.name == "קוראים לי דנה"
        assert flow.state.user_name == "קוראים לי דנה"
        assert "קוראים לי דנה" in reply
        assert flow.phase == AssistantPhase.CHATTING
        assert [m.role for m in flow.messages] == ["assistant", "user", "assistant"]
        gateway.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_letters_falls_through_to_chat(self):
        gateway = FakeGateway("מה שמך?")
        profile = UserProfile()
        flow = AssistantFlow(gateway, profile)
        await flow.open()
        gateway.complete.return_value = "תשובה"

        reply = await flow.send("123!!", TASKS)

        assert reply == "תשובה"
        assert profile.name is None
        assert flow.phase == AssistantPhase.CHATTING
        assert gateway.complete.call_count == 2

    @pytest.mark.asyncio
    async def test_chat_sends_tasks_and_name(self):
        gateway = FakeGateway("התחילי עם שכר הדירה")
        flow = AssistantFlow(gateway, UserProfile(name="Dana"))
        await flow.open()

        reply = await flow.send("מה לעשות קודם?", TASKS)

        assert reply == "התחילי עם שכר הדירה"
        system, prompt = gateway.complete.call_args.args
        assert "Dana" in system
        assert prompt == "מה לעשות קודם?"
        summaries = gateway.complete.call_args.kwargs["tasks"]
        assert [s.title for s in summaries] == ["Pay rent"]
        assert not hasattr(summaries[0], "owner")

    @pytest.mark.asyncio
    async def test_chatting_never_captures_name(self):
        gateway = FakeGateway("בטח")
        profile = UserProfile(name="Dana")
        flow = AssistantFlow(gateway, profile)
        await flow.open()

        await flow.send("Call me Roni", TASKS)

        assert profile.name == "Dana"
        gateway.complete.assert_called_once()

    @pytest.mark.asyncio
    async def test_model_failure_keeps_user_message(self):
        gateway = FakeGateway()
        flow = AssistantFlow(gateway, UserProfile(name="Dana"))
        await flow.open()
        gateway.complete.side_effect = ModelError("API error")

        with pytest.raises(ModelError):
            await flow.send("שאלה", TASKS)

        assert [(m.role, m.content) for m in flow.messages] == [("user", "שאלה")]
        assert flow.phase == AssistantPhase.CHATTING

        # A retry goes through once the model recovers
        gateway.complete.side_effect = None
        gateway.complete.return_value = "תשובה"
        assert await flow.send("שאלה", TASKS) == "תשובה"

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self):
        flow = AssistantFlow(FakeGateway(), UserProfile(name="Dana"))
        with pytest.raises(ValueError):
            await flow.send("   ", TASKS)
        assert flow.messages == []

    @pytest.mark.asyncio
    async def test_single_flight(self):
        release = asyncio.Event()
        gateway = FakeGateway()

        async def slow_complete(*args, **kwargs):
            await release.wait()
            return "תשובה"

        gateway.complete.side_effect = slow_complete
        flow = AssistantFlow(gateway, UserProfile(name="Dana"))
        await flow.open()

        first = asyncio.create_task(flow.send("ראשונה", TASKS))
        await asyncio.sleep(0)
        with pytest.raises(AssistantBusyError):
            await flow.send("שנייה", TASKS)

        release.set()
        assert await first == "תשובה"
        assert [m.content for m in flow.messages] == ["ראשונה", "תשובה"]


class TestClose:

    @pytest.mark.asyncio
    async def test_close_clears_history_keeps_name(self):
        gateway = FakeGateway("מה שמך?")
        profile = UserProfile()
        flow = AssistantFlow(gateway, profile)
        await flow.open()
        await flow.send("Dana", TASKS)

        flow.close()

        assert flow.messages == []
        assert flow.phase == AssistantPhase.UNINITIALIZED
        await flow.open()
        assert flow.phase == AssistantPhase.CHATTING
        assert gateway.complete.call_count == 1
