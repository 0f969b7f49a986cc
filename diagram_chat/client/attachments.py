"""Attachment staging and encoding for the composer.

Converts user-selected files into data-URI file parts and manages the
preview resources shown while a file is staged.
"""

import asyncio
import logging
import mimetypes
import secrets
from collections.abc import Awaitable, Callable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from diagram_chat.models.schemas import FilePart, new_id
from diagram_chat.parsing.data_uri import encode_data_uri
from diagram_chat.parsing.pdf_parser import MAX_FILE_SIZE

logger = logging.getLogger(__name__)

# Accept filter for the file picker
ACCEPTED_MEDIA_TYPES = "image/*,application/pdf"
PREVIEW_ROUTE = "/previews"


class UnsupportedMediaTypeError(ValueError):
    """Raised when a selected file is neither an image nor a PDF."""

    def __init__(self, name: str, media_type: str) -> None:
        super().__init__(f"{name}: unsupported file type '{media_type or 'unknown'}'")
        self.name = name
        self.media_type = media_type


class AttachmentEncodingError(Exception):
    """Raised when a staged file cannot be read or encoded."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Could not attach {name}: {reason}")
        self.name = name
        self.reason = reason


class AttachmentFile(BaseModel):
    """Handle to a user-selected file.

    Attributes:
        id: Stable identifier, used to key previews and removal buttons.
        name: Original filename.
        media_type: Media type in type/subtype form.
        reader: Async callable returning the full file content.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    media_type: str
    reader: Callable[[], Awaitable[bytes]]

    async def read(self) -> bytes:
        return await self.reader()

    @property
    def is_image(self) -> bool:
        return self.media_type.startswith("image/")

    @classmethod
    def from_bytes(cls, name: str, media_type: str, data: bytes) -> "AttachmentFile":
        """Wrap in-memory content as an attachment handle."""

        async def _read() -> bytes:
            return data

        return cls(name=name, media_type=media_type, reader=_read)


def validate_media_type(name: str, media_type: str | None) -> str:
    """Normalize a media type and reject anything but images and PDFs.

    Falls back to guessing from the filename when the browser sent no type.

    Raises:
        UnsupportedMediaTypeError: If the type is not image/* or application/pdf.
    """
    normalized = (media_type or "").split(";")[0].strip().lower()
    if not normalized:
        normalized = (mimetypes.guess_type(name)[0] or "").lower()

    if normalized.startswith("image/") or normalized == "application/pdf":
        return normalized
    raise UnsupportedMediaTypeError(name, normalized)


async def encode_file(file: AttachmentFile) -> FilePart:
    """Read one file and encode it as a data-URI file part.

    Raises:
        AttachmentEncodingError: If the read fails or the file is too large.
    """
    try:
        data = await file.read()
    except Exception as e:
        logger.error(f"Failed to read attachment {file.name}: {e}")
        raise AttachmentEncodingError(file.name, str(e) or type(e).__name__) from e

    if len(data) > MAX_FILE_SIZE:
        size_mb = len(data) / (1024 * 1024)
        raise AttachmentEncodingError(
            file.name, f"file size ({size_mb:.1f}MB) exceeds maximum allowed (10MB)"
        )

    return FilePart(media_type=file.media_type, url=encode_data_uri(data, file.media_type))


async def encode_files(files: Sequence[AttachmentFile]) -> list[FilePart]:
    """Encode every file concurrently, preserving input order.

    Fail-fast: the first failure rejects the whole batch so a turn is never
    sent missing an attachment the user believes was included.

    Raises:
        AttachmentEncodingError: For the first file that fails.
    """
    if not files:
        return []
    return list(await asyncio.gather(*(encode_file(f) for f in files)))


class PreviewStore:
    """Scoped preview resources for staged attachments.

    Each acquire hands out a unique URL that stays servable until its single
    matching release.
    """

    def __init__(self, route: str = PREVIEW_ROUTE) -> None:
        self._route = route.rstrip("/")
        self._files: dict[str, AttachmentFile] = {}

    @property
    def active_count(self) -> int:
        return len(self._files)

    def acquire(self, file: AttachmentFile) -> str:
        """Register a preview for the file and return its URL."""
        token = secrets.token_urlsafe(16)
        self._files[token] = file
        return f"{self._route}/{token}"

    def release(self, url: str) -> bool:
        """Release a preview URL. Returns False if it was already released."""
        token = url.rsplit("/", 1)[-1]
        if self._files.pop(token, None) is None:
            logger.warning(f"Preview already released: {url}")
            return False
        return True

    def get(self, token: str) -> AttachmentFile | None:
        return self._files.get(token)


# Process-wide store backing the /previews route
preview_store = PreviewStore()
