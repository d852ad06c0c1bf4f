"""
Conversational assistant: a short two-phase dialogue per chat session.

The session first asks for the user's name (unless the profile already has
one), then answers questions with the user's task list as context. The phase
is explicit state; transitions go through next_phase().
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from llm import LLMGateway
from models import AssistantPhase, AssistantState, Message, Task, TaskSummary
from prompts import GREETING_PROMPT, CHAT_PROMPT, NAME_ACK_MESSAGE

logger = logging.getLogger(__name__)

# Everything that is not a Latin or Hebrew letter or whitespace
NON_LETTERS = re.compile(r"[^A-Za-zא-ת\s]")


class AssistantEvent(str, Enum):
    GREETED = "greeted"
    NAME_CACHED = "name_cached"
    NAME_CAPTURED = "name_captured"
    MESSAGE_ANSWERED = "message_answered"


TRANSITIONS = {
    (AssistantPhase.UNINITIALIZED, AssistantEvent.GREETED): AssistantPhase.AWAITING_NAME,
    (AssistantPhase.UNINITIALIZED, AssistantEvent.NAME_CACHED): AssistantPhase.CHATTING,
    (AssistantPhase.UNINITIALIZED, AssistantEvent.MESSAGE_ANSWERED): AssistantPhase.CHATTING,
    (AssistantPhase.AWAITING_NAME, AssistantEvent.NAME_CAPTURED): AssistantPhase.CHATTING,
    (AssistantPhase.AWAITING_NAME, AssistantEvent.MESSAGE_ANSWERED): AssistantPhase.CHATTING,
    (AssistantPhase.CHATTING, AssistantEvent.MESSAGE_ANSWERED): AssistantPhase.CHATTING,
}


class AssistantBusyError(Exception):
    """Raised when a message is submitted while a model call is still outstanding."""


def next_phase(phase: AssistantPhase, event: AssistantEvent) -> AssistantPhase:
    try:
        return TRANSITIONS[(phase, event)]
    except KeyError:
        raise ValueError(f"Invalid assistant transition: {event.value} in phase {phase.value}") from None


def extract_name(text: str) -> Optional[str]:
    """Letters-only residue of text, or None when no letters remain.

    >>> extract_name("קוראים לי דנה!!")
    'קוראים לי דנה'
    """
    residue = " ".join(NON_LETTERS.sub("", text).split())
    return residue or None


@dataclass
class UserProfile:
    """Client-side profile data; the name survives across chat sessions."""
    name: Optional[str] = None


class AssistantFlow:
    def __init__(
        self,
        gateway: LLMGateway,
        profile: UserProfile,
        state: Optional[AssistantState] = None
    ):
        self.gateway = gateway
        self.profile = profile
        self.state = state or AssistantState(user_name=profile.name)
        self._in_flight = False

    @property
    def phase(self) -> AssistantPhase:
        return self.state.phase

    @property
    def messages(self) -> list[Message]:
        return self.state.messages

    def _append(self, role: str, content: str):
        self.state.messages.append(Message(role=role, content=content))

    def _advance(self, event: AssistantEvent):
        self.state.phase = next_phase(self.state.phase, event)

    def _begin(self):
        if self._in_flight:
            raise AssistantBusyError("A request is already in progress")
        self._in_flight = True

    async def open(self) -> Optional[str]:
        """Start the session. Asks for the user's name when the profile has none."""
        if self.phase != AssistantPhase.UNINITIALIZED:
            return None
        if self.profile.name:
            self.state.user_name = self.profile.name
            self._advance(AssistantEvent.NAME_CACHED)
            return None

        self._begin()
        try:
            greeting = await self.gateway.complete(GREETING_PROMPT, "שלום")
        finally:
            self._in_flight = False
        self._append("assistant", greeting)
        self._advance(AssistantEvent.GREETED)
        return greeting

    async def send(self, text: str, tasks: list[Task], today: Optional[date] = None) -> str:
        """
        Handle one user message and return the assistant's reply.
        The user message stays in the history even if the model call fails.
        """
        if not text or not text.strip():
            raise ValueError("Message must not be empty")

        self._begin()
        try:
            self._append("user", text)

            if self.phase == AssistantPhase.AWAITING_NAME:
                name = extract_name(text)
                if name:
                    self.profile.name = name
                    self.state.user_name = name
                    reply = NAME_ACK_MESSAGE.format(name=name)
                    self._append("assistant", reply)
                    self._advance(AssistantEvent.NAME_CAPTURED)
                    logger.info("Captured user name for assistant session")
                    return reply

            today = today or date.today()
            system = CHAT_PROMPT.format(
                name=self.state.user_name or "unknown (do not guess it)",
                today=today.isoformat(),
            )
            summaries = [TaskSummary.from_task(task) for task in tasks]
            reply = await self.gateway.complete(system, text, tasks=summaries)
            self._append("assistant", reply)
            self._advance(AssistantEvent.MESSAGE_ANSWERED)
            return reply
        finally:
            self._in_flight = False

    def close(self):
        """End the session: the history is dropped, the profile name is kept."""
        self.state = AssistantState(user_name=self.profile.name)
