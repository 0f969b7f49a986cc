"""HTTP streaming transport for the chat endpoint.

Consumes the Server-Sent Events stream of POST /api/chat and yields typed
stream events in arrival order. Every stream ends with either a FinishEvent
or an ErrorEvent; failures are reported as events, never as silent truncation.
"""

import json
import logging
from collections.abc import AsyncGenerator, Sequence

import httpx
from pydantic import ValidationError

from diagram_chat.models.schemas import (
    DONE_MARKER,
    ErrorEvent,
    FinishEvent,
    Message,
    StreamEvent,
    stream_event_adapter,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


def _error_detail(response: httpx.Response) -> str:
    """Extract the structured error detail from a failed response."""
    try:
        detail = response.json().get("detail")
    except (json.JSONDecodeError, AttributeError):
        detail = None
    if isinstance(detail, list):
        detail = "; ".join(str(item.get("msg", item)) for item in detail if isinstance(item, dict))
    return f"HTTP {response.status_code}" + (f": {detail}" if detail else "")


class ChatTransport:
    """Streams assistant replies from the chat endpoint.

    Args:
        api_url: Full URL of the chat endpoint.
        timeout: httpx timeout for the request.
        transport: Optional httpx transport, e.g. ASGITransport or MockTransport.
    """

    def __init__(
        self,
        api_url: str,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self._timeout = timeout
        self._transport = transport

    async def stream(self, messages: Sequence[Message]) -> AsyncGenerator[StreamEvent]:
        """Send the conversation and yield stream events as they arrive.

        Closing the generator (or cancelling its consumer) closes the
        underlying connection.

        Args:
            messages: Full conversation ending with the new user turn.

        Yields:
            Stream events in server order. The last event is a FinishEvent or
            an ErrorEvent.
        """
        payload = {"messages": [m.to_wire() for m in messages]}
        received = 0

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                async with client.stream(
                    "POST",
                    self.api_url,
                    json=payload,
                    headers={"Accept": "text/event-stream"},
                ) as response:
                    if response.is_error:
                        await response.aread()
                        yield ErrorEvent(error_text=_error_detail(response))
                        return

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[5:].strip()
                        if data == DONE_MARKER:
                            break

                        try:
                            event = stream_event_adapter.validate_json(data)
                        except ValidationError as e:
                            logger.error(f"Malformed stream frame: {data[:200]!r}")
                            yield ErrorEvent(error_text=f"Malformed stream frame: {e.error_count()} error(s)")
                            return

                        received += 1
                        yield event
                        if isinstance(event, (FinishEvent, ErrorEvent)):
                            return

                    yield ErrorEvent(error_text="Stream ended before the response was complete")

            except httpx.HTTPError as e:
                logger.error(f"Chat transport failed after {received} events: {e}")
                if received:
                    yield ErrorEvent(error_text=f"Connection lost: {e}")
                else:
                    yield ErrorEvent(error_text=f"Connection failed: {e}")
