"""Client-side chat model.

Responsibilities:
    - Composition draft state machine (text, attachments, focus)
    - Attachment encoding to data URIs and preview resources
    - Conversation ownership and in-order application of stream events
    - HTTP streaming transport for the chat endpoint

Independent of NiceGUI; the UI layer only forwards events here.
"""

from diagram_chat.client.attachments import (
    ACCEPTED_MEDIA_TYPES,
    AttachmentEncodingError,
    AttachmentFile,
    PreviewStore,
    UnsupportedMediaTypeError,
    encode_file,
    encode_files,
    preview_store,
    validate_media_type,
)
from diagram_chat.client.composer import (
    Composer,
    ComposerState,
    KeyAction,
    PlaceholderRotator,
    StagedAttachment,
)
from diagram_chat.client.conversation import Conversation, ConversationBusyError
from diagram_chat.client.transport import ChatTransport

__all__ = [
    "ACCEPTED_MEDIA_TYPES",
    "AttachmentEncodingError",
    "AttachmentFile",
    "ChatTransport",
    "Composer",
    "ComposerState",
    "Conversation",
    "ConversationBusyError",
    "KeyAction",
    "PlaceholderRotator",
    "PreviewStore",
    "StagedAttachment",
    "UnsupportedMediaTypeError",
    "encode_file",
    "encode_files",
    "preview_store",
    "validate_media_type",
]
