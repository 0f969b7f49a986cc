"""Chat streaming endpoint.

Receives the full conversation, forwards it to the composition service and
re-frames the model's deltas as Server-Sent Events.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from diagram_chat.agent.chat_agent import (
    CompositionService,
    CompositionTimeoutError,
    InvalidAttachmentError,
    UpstreamModelError,
    get_composition_service,
    to_model_messages,
)
from diagram_chat.models.schemas import (
    DONE_MARKER,
    ChatRequest,
    ErrorEvent,
    FinishEvent,
    StartEvent,
    TextDeltaEvent,
    TextEndEvent,
    TextStartEvent,
    encode_sse,
    new_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _event_stream(deltas: AsyncIterator[str]) -> AsyncGenerator[str]:
    """Frame model deltas as UI stream events, ending with the done marker."""
    text_id = new_id()
    text_open = False

    yield encode_sse(StartEvent())
    try:
        async with aclosing(deltas):
            async for delta in deltas:
                if not text_open:
                    yield encode_sse(TextStartEvent(id=text_id))
                    text_open = True
                yield encode_sse(TextDeltaEvent(id=text_id, delta=delta))

        if text_open:
            yield encode_sse(TextEndEvent(id=text_id))
        yield encode_sse(FinishEvent())
    except (UpstreamModelError, CompositionTimeoutError) as e:
        logger.error(f"Chat stream failed: {e}")
        yield encode_sse(ErrorEvent(error_text=str(e)))
    except Exception as e:
        logger.exception(f"Unexpected error while streaming: {e}")
        yield encode_sse(ErrorEvent(error_text="Internal error while streaming the response"))

    yield f"data: {DONE_MARKER}\n\n"


@router.post("/chat")
async def chat(
    request: ChatRequest,
    service: CompositionService = Depends(get_composition_service),
) -> StreamingResponse:
    """Stream an assistant reply for the conversation.

    Args:
        request: The full conversation, ending with the new user turn.
        service: Composition service forwarding to the model.

    Returns:
        text/event-stream response of JSON stream events, terminated by [DONE].

    Raises:
        400: Last message is not a user turn, or an attachment is unreadable.
        422: Malformed request body.
    """
    if request.messages[-1].role != "user":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Last message must be a user turn",
        )

    try:
        model_messages = to_model_messages(request.messages)
    except InvalidAttachmentError as e:
        logger.warning(f"Rejected chat request: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    logger.info(f"Streaming reply for conversation of {len(request.messages)} messages")

    return StreamingResponse(
        _event_stream(service.stream_response(model_messages)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
