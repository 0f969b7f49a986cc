"""Client-side conversation: the ordered message list and its reply stream."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from contextlib import aclosing

from diagram_chat.client.transport import ChatTransport
from diagram_chat.models.schemas import (
    ErrorEvent,
    FileEvent,
    FilePart,
    FinishEvent,
    Message,
    MessageStatus,
    Part,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextPart,
    TextStartEvent,
)

logger = logging.getLogger(__name__)


class ConversationBusyError(RuntimeError):
    """Raised when a turn is sent while another reply is still streaming."""

    pass


class Conversation:
    """Append-only list of messages for one page session.

    At most one assistant reply streams at a time. Stream events are applied
    to that reply in arrival order; earlier messages are never modified.
    """

    def __init__(self, transport: ChatTransport) -> None:
        self.messages: list[Message] = []
        self._transport = transport
        self._task: asyncio.Task[None] | None = None
        self._reply: Message | None = None
        self._listeners: list[Callable[[], None]] = []

    @property
    def is_streaming(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_change(self, callback: Callable[[], None]) -> None:
        """Register a callback run after every change to the message list."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in self._listeners:
            callback()

    def send(self, parts: Sequence[Part]) -> asyncio.Task[None]:
        """Append a user turn and start streaming the assistant reply.

        Args:
            parts: Parts of the new user message, in order.

        Returns:
            The task streaming the reply.

        Raises:
            ConversationBusyError: If a reply is still streaming.
        """
        if self.is_streaming:
            raise ConversationBusyError("A reply is still streaming")

        self.messages.append(Message(role="user", parts=list(parts)))
        # Failed replies stay visible but are not sent back to the model
        history = [m for m in self.messages if m.status == MessageStatus.COMPLETE]

        reply = Message(role="assistant", status=MessageStatus.STREAMING)
        self.messages.append(reply)
        self._reply = reply

        self._task = asyncio.create_task(self._stream_reply(history, reply))
        self._notify()
        return self._task

    def cancel(self) -> None:
        """Abandon the in-flight reply, releasing its connection."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        # The task may not have started yet, so mark the reply here
        if self._reply is not None and self._reply.is_streaming:
            self._reply.fail("Cancelled")
            self._notify()

    async def _stream_reply(self, history: list[Message], reply: Message) -> None:
        open_parts: dict[str, TextPart] = {}
        try:
            async with aclosing(self._transport.stream(history)) as events:
                async for event in events:
                    self._apply(reply, event, open_parts)
                    self._notify()
                    if not reply.is_streaming:
                        break
            if reply.is_streaming:
                reply.fail("Stream ended before the response was complete")
        except asyncio.CancelledError:
            if reply.is_streaming:
                reply.fail("Cancelled")
            raise
        except Exception as e:
            logger.exception(f"Reply stream failed: {e}")
            if reply.is_streaming:
                reply.fail(str(e) or type(e).__name__)
        finally:
            if reply.status == MessageStatus.FAILED:
                logger.warning(f"Assistant reply {reply.id} failed: {reply.error}")
            self._notify()

    @staticmethod
    def _apply(reply: Message, event: StreamEvent, open_parts: dict[str, TextPart]) -> None:
        if isinstance(event, TextStartEvent):
            part = TextPart()
            reply.add_part(part)
            open_parts[event.id] = part
        elif isinstance(event, TextDeltaEvent):
            reply.append_text(event.delta, open_parts.get(event.id))
        elif isinstance(event, TextEndEvent):
            open_parts.pop(event.id, None)
        elif isinstance(event, FileEvent):
            reply.add_part(FilePart(media_type=event.media_type, url=event.url))
        elif isinstance(event, FinishEvent):
            reply.finalize()
        elif isinstance(event, ErrorEvent):
            reply.fail(event.error_text)
