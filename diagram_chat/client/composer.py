"""Composition state machine for the chat input.

Tracks the draft of the next user turn (text, staged attachments, focus) and
drives submission to the conversation. UI callbacks map one-to-one onto the
transition methods here, so every guard is testable without a browser.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from pydantic import BaseModel, ConfigDict

from diagram_chat.client.attachments import (
    AttachmentEncodingError,
    AttachmentFile,
    PreviewStore,
    encode_files,
    preview_store,
    validate_media_type,
)
from diagram_chat.client.conversation import Conversation, ConversationBusyError
from diagram_chat.models.schemas import FilePart, TextPart

logger = logging.getLogger(__name__)

PLACEHOLDERS = (
    "Ask me about your documents...",
    "Summarize the file I've uploaded",
    "What are the key points in this image?",
    "Compare these two diagrams",
    "Explain this flowchart",
)
ACTIVE_PLACEHOLDER = "Type a message..."

# Seconds between hint swaps, and how long a hint stays hidden during a swap
PLACEHOLDER_INTERVAL = 3.0
PLACEHOLDER_FADE = 0.4


class ComposerState(str, Enum):
    """Lifecycle of the composition surface."""

    IDLE = "idle"
    ACTIVE = "active"
    SUBMITTING = "submitting"


class KeyAction(str, Enum):
    """What the input should do with a key press."""

    PASS = "pass"
    SWALLOW = "swallow"
    SUBMIT = "submit"


class StagedAttachment(BaseModel):
    """A selected file waiting to be sent, with its preview URL."""

    model_config = ConfigDict(frozen=True)

    file: AttachmentFile
    preview_url: str

    @property
    def id(self) -> str:
        return self.file.id


class PlaceholderRotator:
    """Cycles decorative input hints while the composer is idle and empty.

    tick() hides the current hint and reveal() shows the next one; the UI
    calls them on PLACEHOLDER_INTERVAL and PLACEHOLDER_FADE timers. Both are
    no-ops while the composer is active or holds text.
    """

    def __init__(self, composer: "Composer", hints: Sequence[str] = PLACEHOLDERS) -> None:
        self._composer = composer
        self._hints = tuple(hints)
        self.index = 0
        self.visible = True

    @property
    def enabled(self) -> bool:
        return self._composer.state == ComposerState.IDLE and not self._composer.text

    @property
    def current(self) -> str:
        return self._hints[self.index]

    @property
    def shown(self) -> str:
        """Hint to display right now; empty whenever rotation is suspended."""
        return self.current if self.enabled and self.visible else ""

    def tick(self) -> bool:
        """Start a swap. Returns True if a hint was hidden."""
        if not self.enabled or not self.visible:
            return False
        self.visible = False
        return True

    def reveal(self) -> None:
        """Finish a swap by showing the next hint."""
        if self.visible:
            return
        self.index = (self.index + 1) % len(self._hints)
        self.visible = True


class Composer:
    """Draft of the next user turn and the transitions that change it.

    Args:
        conversation: Conversation that receives submitted turns.
        previews: Store handing out preview URLs for staged files.
        encoder: Coroutine turning staged files into file parts.
    """

    def __init__(
        self,
        conversation: Conversation,
        previews: PreviewStore = preview_store,
        encoder: Callable[[Sequence[AttachmentFile]], Awaitable[list[FilePart]]] = encode_files,
    ) -> None:
        self.conversation = conversation
        self.state = ComposerState.IDLE
        self.text = ""
        self._attachments: list[StagedAttachment] = []
        self._previews = previews
        self._encode = encoder
        self.placeholder = PlaceholderRotator(self)
        self.closed = False

    @property
    def attachments(self) -> tuple[StagedAttachment, ...]:
        return tuple(self._attachments)

    @property
    def has_content(self) -> bool:
        return bool(self.text) or bool(self._attachments)

    @property
    def expanded(self) -> bool:
        return self.state != ComposerState.IDLE or self.has_content

    @property
    def input_placeholder(self) -> str:
        return ACTIVE_PLACEHOLDER if self.state != ComposerState.IDLE else ""

    @property
    def can_submit(self) -> bool:
        if self.closed or self.state == ComposerState.SUBMITTING or self.conversation.is_streaming:
            return False
        return bool(self.text.strip()) or bool(self._attachments)

    def _activate(self) -> None:
        if self.state == ComposerState.IDLE:
            self.state = ComposerState.ACTIVE

    def focus(self) -> None:
        self._activate()

    def type_text(self, text: str) -> None:
        """Replace the draft text with the input's current value.

        Typing stays live while a submission is encoding; the submitted text
        was captured when submit() started.
        """
        if text == self.text:
            return
        self.text = text
        self._activate()

    def click_outside(self) -> None:
        """Collapse the surface, unless that would hide unsent content."""
        if self.state == ComposerState.ACTIVE and not self.has_content:
            self.state = ComposerState.IDLE

    @staticmethod
    def key_down(key: str, ctrl: bool = False, meta: bool = False) -> KeyAction:
        """Map a key press to an action. Enter submits only with Ctrl or Cmd."""
        if key != "Enter":
            return KeyAction.PASS
        if ctrl or meta:
            return KeyAction.SUBMIT
        return KeyAction.SWALLOW

    def select_files(self, files: Sequence[AttachmentFile]) -> None:
        """Replace the staged attachments with a new selection.

        The whole selection is validated before anything changes.

        Raises:
            UnsupportedMediaTypeError: If any file is not an image or PDF.
        """
        if self.state == ComposerState.SUBMITTING or not files:
            return

        accepted = [
            f.model_copy(update={"media_type": validate_media_type(f.name, f.media_type)})
            for f in files
        ]

        self._release_all()
        self._attachments = [
            StagedAttachment(file=f, preview_url=self._previews.acquire(f)) for f in accepted
        ]
        logger.debug(f"Staged {len(accepted)} attachment(s)")
        self._activate()

    def remove_attachment(self, index: int, attachment_id: str | None = None) -> bool:
        """Remove one staged attachment and release its preview.

        Args:
            index: Position of the attachment.
            attachment_id: Expected id at that position. When given, a stale
                index (e.g. a repeated click) is rejected instead of removing
                a neighbour.

        Returns:
            True if an attachment was removed.
        """
        if self.state == ComposerState.SUBMITTING:
            return False
        if not 0 <= index < len(self._attachments):
            return False
        if attachment_id is not None and self._attachments[index].id != attachment_id:
            return False

        removed = self._attachments.pop(index)
        self._previews.release(removed.preview_url)
        return True

    def remove_attachment_by_id(self, attachment_id: str) -> bool:
        for index, attachment in enumerate(self._attachments):
            if attachment.id == attachment_id:
                return self.remove_attachment(index, attachment_id)
        return False

    def _release_all(self) -> None:
        for attachment in self._attachments:
            self._previews.release(attachment.preview_url)
        self._attachments = []

    async def submit(self) -> asyncio.Task[None] | None:
        """Send the draft as a new user turn.

        The text part always comes first, even when empty, followed by the
        attachments in staging order. The draft is cleared once the
        conversation accepts the turn; text typed while the attachments were
        encoding is kept as the start of the next draft.

        Returns:
            The task streaming the reply, or None if there was nothing to send
            or the composer was torn down before the turn could be sent.

        Raises:
            AttachmentEncodingError: If a file could not be read. The draft is
                left untouched so the user can retry.
        """
        if not self.can_submit:
            return None

        self.state = ComposerState.SUBMITTING
        sent_text = self.text
        try:
            file_parts = await self._encode([a.file for a in self._attachments])
            if self.closed:
                logger.info("Composer torn down during submission; turn not sent")
                self.state = ComposerState.IDLE
                return None
            task = self.conversation.send([TextPart(text=sent_text), *file_parts])
        except (AttachmentEncodingError, ConversationBusyError) as e:
            logger.warning(f"Submission aborted: {e}")
            self.state = ComposerState.ACTIVE
            raise
        except asyncio.CancelledError:
            self.state = ComposerState.ACTIVE
            raise

        self._release_all()
        self.text = self.text.removeprefix(sent_text)
        self.state = ComposerState.ACTIVE if self.text else ComposerState.IDLE
        return task

    def teardown(self) -> None:
        """Release every preview and abandon any in-flight reply.

        The composer stays closed afterwards, so a submission still encoding
        is dropped instead of opening a new stream.
        """
        self.closed = True
        self._release_all()
        self.conversation.cancel()
