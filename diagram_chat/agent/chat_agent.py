"""Composition service: turns a UI conversation into a streamed model call.

Core module for the server side of the chat.

Architecture decisions:

1. **Stateless Agent** - The client sends the full conversation on every
   request, so the Agno agent runs without storage or history of its own.
   The fixed system directive is the only context the server adds.

2. **Retries owned here** - The OpenAI client's own retries are disabled. A
   retry is only safe before the first delta reaches the client; after that a
   second attempt would duplicate content, so failures surface immediately.

3. **Deadline, not per-call timeout** - One wall-clock budget covers every
   attempt, every backoff and the whole stream.

4. **Streaming Generator** - Agno yields run events with metadata. We extract
   just the content deltas, providing a clean interface for the SSE endpoint.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Sequence

from agno.agent import Agent
from agno.media import File, Image
from agno.models.message import Message as ModelMessage
from agno.models.openai import OpenAIChat

from diagram_chat.agent.config import SYSTEM_DIRECTIVE, AgentConfig, get_agent_config
from diagram_chat.models.schemas import FilePart, Message, TextPart
from diagram_chat.parsing.data_uri import DataURIError, decode_data_uri, is_data_uri
from diagram_chat.parsing.pdf_parser import PDFParseError, inspect_pdf

logger = logging.getLogger(__name__)

_CONTENT_EVENT = "RunContent"
_ERROR_EVENT = "RunError"


class InvalidAttachmentError(Exception):
    """Raised when a file part cannot be forwarded to the model."""

    pass


class UpstreamModelError(Exception):
    """Raised when the model call fails and cannot be retried."""

    pass


class CompositionTimeoutError(Exception):
    """Raised when a request exceeds its wall-clock budget."""

    pass


def _file_to_media(part: FilePart, index: int) -> Image | File:
    """Convert one file part into an Agno media object."""
    media_type = part.media_type.lower()

    if not is_data_uri(part.url):
        if media_type.startswith("image/"):
            return Image(url=part.url)
        return File(url=part.url, mime_type=media_type)

    try:
        declared, content = decode_data_uri(part.url)
    except DataURIError as e:
        raise InvalidAttachmentError(f"Attachment {index + 1}: {e}") from e

    if declared != media_type:
        raise InvalidAttachmentError(
            f"Attachment {index + 1}: media type {media_type} does not match data URI ({declared})"
        )

    if media_type.startswith("image/"):
        return Image(url=part.url)

    if media_type == "application/pdf":
        try:
            info = inspect_pdf(content)
        except PDFParseError as e:
            raise InvalidAttachmentError(f"Attachment {index + 1}: {e}") from e
        logger.debug(f"Forwarding PDF attachment with {info.pages} pages")

    return File(content=content, mime_type=media_type, filename=f"attachment-{index + 1}")


def to_model_messages(messages: Sequence[Message]) -> list[ModelMessage]:
    """Convert UI messages into Agno model messages.

    Text parts are concatenated in order; images and files are attached as
    Agno media objects.

    Raises:
        InvalidAttachmentError: If a file part is malformed or unreadable.
    """
    converted: list[ModelMessage] = []
    for message in messages:
        text = "".join(p.text for p in message.parts if isinstance(p, TextPart))
        images: list[Image] = []
        files: list[File] = []

        for index, part in enumerate(p for p in message.parts if isinstance(p, FilePart)):
            media = _file_to_media(part, index)
            if isinstance(media, Image):
                images.append(media)
            else:
                files.append(media)

        converted.append(
            ModelMessage(
                role=message.role,
                content=text,
                images=images or None,
                files=files or None,
            )
        )
    return converted


def _extract_delta(chunk: object) -> str | None:
    """Pull the text delta out of an Agno run event."""
    event = getattr(chunk, "event", None)
    if event == _ERROR_EVENT:
        raise UpstreamModelError(str(getattr(chunk, "content", None) or "Model run failed"))
    if event is not None and event != _CONTENT_EVENT:
        return None

    content = getattr(chunk, "content", None)
    if isinstance(content, str) and content:
        return content
    return None


class CompositionService:
    """Forwards conversations to the model and streams the reply.

    Wraps Agno's Agent with:
    - The fixed system directive and generation parameters
    - Retry before first output, never after
    - A hard wall-clock deadline per request
    - Clean streaming interface for SSE endpoints
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        """Initialize the composition service.

        Args:
            config: Optional agent configuration.
                    Loads from environment if not provided.
        """
        self._config = config or get_agent_config()
        self._agent = self._create_agent()

    @property
    def model_name(self) -> str:
        return self._config.model_name

    def _create_agent(self) -> Agent:
        """Create the Agno agent instance.

        Returns:
            Configured stateless Agent with the OpenAI model.
        """
        model = OpenAIChat(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
            max_retries=0,
        )

        return Agent(
            model=model,
            system_message=SYSTEM_DIRECTIVE,
            markdown=False,
        )

    async def _stream_with_retries(
        self,
        model_messages: list[ModelMessage],
    ) -> AsyncGenerator[str]:
        attempt = 0
        while True:
            started = False
            try:
                async for chunk in self._agent.arun(model_messages, stream=True):
                    delta = _extract_delta(chunk)
                    if delta:
                        started = True
                        yield delta
                return
            except Exception as e:
                if started:
                    logger.error(f"Model stream failed after output started: {e}")
                    raise UpstreamModelError(f"Model stream interrupted: {e}") from e
                if attempt >= self._config.max_retries:
                    logger.error(f"Model call failed after {attempt + 1} attempts: {e}")
                    raise UpstreamModelError(
                        f"Model call failed after {attempt + 1} attempts: {e}"
                    ) from e

                delay = self._config.retry_backoff * (2**attempt)
                attempt += 1
                logger.warning(
                    f"Model call failed ({e}); retry {attempt}/{self._config.max_retries} "
                    f"in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def stream_response(
        self,
        model_messages: list[ModelMessage],
    ) -> AsyncGenerator[str]:
        """Stream response deltas for a conversation.

        Args:
            model_messages: Full conversation ending with the new user turn,
                as produced by to_model_messages.

        Yields:
            Response text deltas in the order the model emits them.

        Raises:
            UpstreamModelError: If the model fails after retries or mid-stream.
            CompositionTimeoutError: If the request outlives its deadline.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.request_timeout
        deltas = self._stream_with_retries(model_messages)

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise CompositionTimeoutError(
                        f"Request exceeded {self._config.request_timeout:g}s budget"
                    )
                try:
                    delta = await asyncio.wait_for(anext(deltas), timeout=remaining)
                except StopAsyncIteration:
                    return
                except TimeoutError as e:
                    logger.error("Model request timed out")
                    raise CompositionTimeoutError(
                        f"Request exceeded {self._config.request_timeout:g}s budget"
                    ) from e
                yield delta
        finally:
            await deltas.aclose()


# Module-level singleton instance
_composition_service: CompositionService | None = None


def get_composition_service() -> CompositionService:
    """Get or create the global composition service.

    Returns:
        The CompositionService instance.
    """
    global _composition_service
    if _composition_service is None:
        _composition_service = CompositionService()
    return _composition_service
