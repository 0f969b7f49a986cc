import uuid
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def new_id() -> str:
    """Generate an opaque identifier for messages and stream parts."""
    return uuid.uuid4().hex


class MessageStatus(str, Enum):
    """Lifecycle of a message on the client."""

    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class MessageFinalizedError(Exception):
    """Raised when mutating a message that is no longer streaming."""

    pass


class TextPart(BaseModel):
    """Plain text content of a message.

    Attributes:
        type: Always "text".
        text: The text content; grows while an assistant reply streams in.
    """

    model_config = ConfigDict(validate_assignment=True)

    type: Literal["text"] = "text"
    text: str = ""


class FilePart(BaseModel):
    """A file attached to a message.

    Attributes:
        type: Always "file".
        media_type: Media type in type/subtype form (wire name: mediaType).
        url: Data URI for user attachments, or a service URI for model files.
    """

    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)

    type: Literal["file"] = "file"
    media_type: str = Field(
        ...,
        alias="mediaType",
        pattern=r"^[\w.+-]+/[\w.+-]+$",
        description="Media type, e.g. image/png or application/pdf",
    )
    url: str = Field(..., min_length=1, description="Data URI or service URI")


Part = Annotated[TextPart | FilePart, Field(discriminator="type")]


class Message(BaseModel):
    """One conversational turn.

    Attributes:
        id: Opaque identifier assigned at creation.
        role: Either "user" or "assistant".
        parts: Ordered content parts; order defines render order.
        status: Client-side lifecycle; not sent over the wire.
        error: Failure reason for a failed assistant turn.
    """

    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant"]
    parts: list[Part] = Field(default_factory=list)
    status: MessageStatus = MessageStatus.COMPLETE
    error: str | None = None

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def is_streaming(self) -> bool:
        return self.status == MessageStatus.STREAMING

    def _ensure_streaming(self) -> None:
        if not self.is_streaming:
            raise MessageFinalizedError(f"Message {self.id} is {self.status.value}")

    def add_part(self, part: TextPart | FilePart) -> None:
        """Append a part to an in-flight message."""
        self._ensure_streaming()
        self.parts.append(part)

    def append_text(self, delta: str, part: TextPart | None = None) -> None:
        """Extend a text part of an in-flight message.

        Args:
            delta: Text fragment to append.
            part: Target part. Defaults to the last part, opening a new text
                part when the last part is a file.
        """
        self._ensure_streaming()
        if part is None:
            if not self.parts or not isinstance(self.parts[-1], TextPart):
                self.parts.append(TextPart())
            part = self.parts[-1]
        part.text += delta

    def finalize(self) -> None:
        """Mark the message complete. A finalized message always has a part."""
        self._ensure_streaming()
        if not self.parts:
            self.parts.append(TextPart())
        self.status = MessageStatus.COMPLETE

    def fail(self, reason: str) -> None:
        """Mark the message failed, keeping any partial content."""
        self._ensure_streaming()
        self.status = MessageStatus.FAILED
        self.error = reason

    def to_wire(self) -> dict:
        """Serialize for the chat endpoint (client-only fields dropped)."""
        return self.model_dump(by_alias=True, exclude={"status", "error"})


class ChatRequest(BaseModel):
    """Request payload for the chat streaming endpoint.

    Attributes:
        messages: Full ordered conversation, ending with the new user turn.
    """

    messages: list[Message] = Field(..., min_length=1)


# Stream events. Each SSE frame carries one of these as JSON, tagged by "type".


class StartEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["start"] = "start"
    message_id: str = Field(default_factory=new_id, alias="messageId")


class TextStartEvent(BaseModel):
    type: Literal["text-start"] = "text-start"
    id: str


class TextDeltaEvent(BaseModel):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str


class TextEndEvent(BaseModel):
    type: Literal["text-end"] = "text-end"
    id: str


class FileEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["file"] = "file"
    media_type: str = Field(..., alias="mediaType")
    url: str


class FinishEvent(BaseModel):
    type: Literal["finish"] = "finish"


class ErrorEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["error"] = "error"
    error_text: str = Field(..., alias="errorText")


StreamEvent = Annotated[
    StartEvent
    | TextStartEvent
    | TextDeltaEvent
    | TextEndEvent
    | FileEvent
    | FinishEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)

# Terminal marker sent after the last event of every response.
DONE_MARKER = "[DONE]"


def encode_sse(event: BaseModel) -> str:
    """Frame one event as a Server-Sent Events data line."""
    return f"data: {event.model_dump_json(by_alias=True)}\n\n"
