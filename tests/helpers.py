"""Test doubles shared across unit and integration tests."""

import asyncio
import io
from collections.abc import AsyncGenerator, Sequence
from types import SimpleNamespace
from unittest.mock import patch

from pypdf import PdfWriter

from diagram_chat.agent.chat_agent import CompositionService
from diagram_chat.agent.config import AgentConfig
from diagram_chat.models.schemas import FinishEvent, Message, StreamEvent

# Smallest valid PNG: 1x1 transparent pixel
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000a49444154789c63000100000500010d0a2db40000000049454e44ae426082"
)


def make_pdf(pages: int = 1) -> bytes:
    """Build a blank PDF with the given number of pages."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class Hang:
    """Script step that blocks for the given number of seconds."""

    def __init__(self, seconds: float = 3600.0) -> None:
        self.seconds = seconds


class ScriptedAgent:
    """Stands in for agno's Agent, replaying one script per attempt.

    Script items: str yields a content event, an exception is raised,
    Hang sleeps.
    """

    def __init__(self, *attempts: Sequence[object]) -> None:
        self._attempts = list(attempts)
        self.calls: list[object] = []

    def arun(self, messages: object, stream: bool = False) -> AsyncGenerator[SimpleNamespace]:
        self.calls.append(messages)
        return self._play(self._attempts.pop(0))

    async def _play(self, script: Sequence[object]) -> AsyncGenerator[SimpleNamespace]:
        for step in script:
            if isinstance(step, BaseException):
                raise step
            if isinstance(step, Hang):
                await asyncio.sleep(step.seconds)
                continue
            yield SimpleNamespace(event="RunContent", content=step)


def make_service(agent: ScriptedAgent, **overrides: object) -> CompositionService:
    """Build a CompositionService whose Agno agent is the scripted double."""
    settings = {"api_key": "sk-test", "retry_backoff": 0.0, **overrides}
    config = AgentConfig(**settings)
    with (
        patch("diagram_chat.agent.chat_agent.OpenAIChat"),
        patch("diagram_chat.agent.chat_agent.Agent", return_value=agent),
    ):
        return CompositionService(config=config)


class ScriptedTransport:
    """Stands in for ChatTransport, yielding a fixed list of events.

    Set `gate` to hold the stream open until the event is set.
    """

    def __init__(self, events: Sequence[StreamEvent] = (FinishEvent(),)) -> None:
        self.events = list(events)
        self.sent: list[list[Message]] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def stream(self, messages: Sequence[Message]) -> AsyncGenerator[StreamEvent]:
        self.sent.append(list(messages))
        try:
            if self.gate is not None:
                await self.gate.wait()
            for event in self.events:
                yield event
        finally:
            self.closed = True
