"""Unit tests for the chat page wiring that does not need a browser."""

from unittest.mock import MagicMock

from diagram_chat.client.attachments import AttachmentFile, PreviewStore
from diagram_chat.client.composer import Composer
from diagram_chat.client.conversation import Conversation
from diagram_chat.ui.chat_page import attach_teardown
from tests.helpers import ScriptedTransport


def test_teardown_waits_for_client_deletion() -> None:
    client = MagicMock()
    composer = Composer(Conversation(ScriptedTransport()))

    attach_teardown(client, composer)

    client.on_delete.assert_called_once_with(composer.teardown)
    client.on_disconnect.assert_not_called()


def test_staged_attachments_survive_until_client_is_deleted(preview_store: PreviewStore) -> None:
    client = MagicMock()
    composer = Composer(Conversation(ScriptedTransport()), previews=preview_store)
    composer.select_files([AttachmentFile.from_bytes("diagram.png", "image/png", b"png-bytes")])

    attach_teardown(client, composer)

    assert len(composer.attachments) == 1
    assert preview_store.active_count == 1

    client.on_delete.call_args.args[0]()

    assert composer.attachments == ()
    assert preview_store.active_count == 0
