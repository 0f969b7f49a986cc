"""Pydantic models for messages, requests and stream events.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - Message: One conversational turn with ordered parts
    - TextPart / FilePart: Typed message content
    - ChatRequest: Incoming chat request payload
    - StreamEvent: Tagged events framing the streamed response
"""

from diagram_chat.models.schemas import (
    DONE_MARKER,
    ChatRequest,
    ErrorEvent,
    FileEvent,
    FilePart,
    FinishEvent,
    Message,
    MessageFinalizedError,
    MessageStatus,
    Part,
    StartEvent,
    StreamEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextPart,
    TextStartEvent,
    encode_sse,
    stream_event_adapter,
)

__all__ = [
    "DONE_MARKER",
    "ChatRequest",
    "ErrorEvent",
    "FileEvent",
    "FilePart",
    "FinishEvent",
    "Message",
    "MessageFinalizedError",
    "MessageStatus",
    "Part",
    "StartEvent",
    "StreamEvent",
    "TextDeltaEvent",
    "TextEndEvent",
    "TextPart",
    "TextStartEvent",
    "encode_sse",
    "stream_event_adapter",
]
