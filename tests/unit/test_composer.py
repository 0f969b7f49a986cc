"""Unit tests for the composition state machine."""

import asyncio

import pytest

from diagram_chat.client.attachments import (
    AttachmentEncodingError,
    AttachmentFile,
    PreviewStore,
    UnsupportedMediaTypeError,
)
from diagram_chat.client.composer import (
    ACTIVE_PLACEHOLDER,
    PLACEHOLDERS,
    Composer,
    ComposerState,
    KeyAction,
)
from diagram_chat.client.conversation import Conversation
from diagram_chat.models.schemas import FilePart, TextPart
from diagram_chat.parsing.data_uri import decode_data_uri
from tests.helpers import ScriptedTransport


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def composer(transport: ScriptedTransport, preview_store: PreviewStore) -> Composer:
    return Composer(Conversation(transport), previews=preview_store)


def png(name: str = "diagram.png", data: bytes = b"png-bytes") -> AttachmentFile:
    return AttachmentFile.from_bytes(name, "image/png", data)


def pdf(name: str = "spec.pdf") -> AttachmentFile:
    return AttachmentFile.from_bytes(name, "application/pdf", b"%PDF-1.4")


class TestActivation:
    def test_starts_idle_and_empty(self, composer: Composer) -> None:
        assert composer.state == ComposerState.IDLE
        assert composer.text == ""
        assert composer.attachments == ()
        assert not composer.expanded

    @pytest.mark.parametrize("action", ["focus", "type", "select"])
    def test_input_events_activate(self, composer: Composer, action: str) -> None:
        if action == "focus":
            composer.focus()
        elif action == "type":
            composer.type_text("h")
        else:
            composer.select_files([png()])

        assert composer.state == ComposerState.ACTIVE
        assert composer.expanded

    def test_outside_click_collapses_empty_surface(self, composer: Composer) -> None:
        composer.focus()

        composer.click_outside()

        assert composer.state == ComposerState.IDLE

    def test_outside_click_keeps_text(self, composer: Composer) -> None:
        composer.type_text("half a thought")

        composer.click_outside()

        assert composer.state == ComposerState.ACTIVE
        assert composer.text == "half a thought"

    def test_outside_click_keeps_attachments(self, composer: Composer) -> None:
        composer.select_files([png()])

        composer.click_outside()

        assert composer.state == ComposerState.ACTIVE
        assert len(composer.attachments) == 1

    def test_input_placeholder_follows_state(self, composer: Composer) -> None:
        assert composer.input_placeholder == ""
        composer.focus()
        assert composer.input_placeholder == ACTIVE_PLACEHOLDER


class TestKeyDown:
    def test_plain_enter_is_swallowed(self) -> None:
        assert Composer.key_down("Enter") == KeyAction.SWALLOW

    @pytest.mark.parametrize(("ctrl", "meta"), [(True, False), (False, True), (True, True)])
    def test_modified_enter_submits(self, ctrl: bool, meta: bool) -> None:
        assert Composer.key_down("Enter", ctrl=ctrl, meta=meta) == KeyAction.SUBMIT

    def test_other_keys_pass_through(self) -> None:
        assert Composer.key_down("a", ctrl=True) == KeyAction.PASS


class TestSubmit:
    async def test_text_and_png_scenario(self, composer: Composer, preview_store: PreviewStore) -> None:
        composer.type_text("Summarize this diagram")
        composer.select_files([png(data=b"\x89PNG")])

        task = await composer.submit()
        await task

        user = composer.conversation.messages[0]
        assert user.role == "user"
        assert user.parts[0] == TextPart(text="Summarize this diagram")
        assert isinstance(user.parts[1], FilePart)
        assert user.parts[1].media_type == "image/png"
        assert user.parts[1].url.startswith("data:image/png;base64,")
        assert decode_data_uri(user.parts[1].url)[1] == b"\x89PNG"
        assert len(user.parts) == 2

        assert composer.state == ComposerState.IDLE
        assert composer.text == ""
        assert composer.attachments == ()
        assert preview_store.active_count == 0

    async def test_attachment_only_turn_keeps_empty_text_part_first(self, composer: Composer) -> None:
        composer.select_files([png("a.png"), pdf("b.pdf"), png("c.png")])

        await composer.submit()

        parts = composer.conversation.messages[0].parts
        assert parts[0] == TextPart(text="")
        assert [p.media_type for p in parts[1:]] == ["image/png", "application/pdf", "image/png"]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_submission_is_noop(self, composer: Composer, transport: ScriptedTransport, text: str) -> None:
        composer.type_text(text)

        assert await composer.submit() is None
        assert composer.conversation.messages == []
        assert transport.sent == []

    async def test_submission_produces_exactly_one_user_message(self, composer: Composer) -> None:
        composer.type_text("hello")

        task = await composer.submit()
        await task

        roles = [m.role for m in composer.conversation.messages]
        assert roles == ["user", "assistant"]

    async def test_encoding_failure_preserves_draft(self, composer: Composer, preview_store: PreviewStore) -> None:
        async def _broken() -> bytes:
            raise OSError("gone")

        composer.type_text("look at this")
        composer.select_files([png("ok.png"), AttachmentFile(name="bad.png", media_type="image/png", reader=_broken)])

        with pytest.raises(AttachmentEncodingError, match="bad.png"):
            await composer.submit()

        assert composer.state == ComposerState.ACTIVE
        assert composer.text == "look at this"
        assert [a.file.name for a in composer.attachments] == ["ok.png", "bad.png"]
        assert preview_store.active_count == 2
        assert composer.conversation.messages == []

    async def test_no_second_submit_while_reply_streams(
        self, composer: Composer, transport: ScriptedTransport
    ) -> None:
        transport.gate = asyncio.Event()
        composer.type_text("first")
        task = await composer.submit()

        composer.type_text("second")
        assert not composer.can_submit
        assert await composer.submit() is None
        assert composer.text == "second"

        transport.gate.set()
        await task
        assert composer.can_submit

    async def test_submitting_state_blocks_resubmit(self, composer: Composer) -> None:
        release = asyncio.Event()

        async def slow_encoder(files):
            await release.wait()
            return []

        composer._encode = slow_encoder
        composer.type_text("hi")
        pending = asyncio.create_task(composer.submit())
        await asyncio.sleep(0)

        assert composer.state == ComposerState.SUBMITTING
        assert not composer.can_submit

        release.set()
        await (await pending)
        assert composer.state == ComposerState.IDLE
        assert composer.text == ""

    async def test_text_typed_while_encoding_is_kept(self, composer: Composer) -> None:
        release = asyncio.Event()

        async def slow_encoder(files):
            await release.wait()
            return []

        composer._encode = slow_encoder
        composer.type_text("Summarize")
        pending = asyncio.create_task(composer.submit())
        await asyncio.sleep(0)
        composer.type_text("Summarize and compare")

        release.set()
        await (await pending)

        assert composer.conversation.messages[0].text == "Summarize"
        assert composer.text == " and compare"
        assert composer.state == ComposerState.ACTIVE

    async def test_teardown_during_encoding_sends_nothing(
        self, composer: Composer, transport: ScriptedTransport, preview_store: PreviewStore
    ) -> None:
        release = asyncio.Event()

        async def slow_encoder(files):
            await release.wait()
            return []

        composer._encode = slow_encoder
        composer.type_text("go")
        composer.select_files([png()])
        pending = asyncio.create_task(composer.submit())
        await asyncio.sleep(0)

        composer.teardown()
        release.set()

        assert await pending is None
        assert composer.conversation.messages == []
        assert not composer.conversation.is_streaming
        assert transport.sent == []
        assert preview_store.active_count == 0
        assert not composer.can_submit


class TestAttachments:
    def test_unsupported_type_leaves_draft_unchanged(self, composer: Composer, preview_store: PreviewStore) -> None:
        composer.select_files([png("keep.png")])
        zipped = AttachmentFile.from_bytes("a.zip", "application/zip", b"PK")

        with pytest.raises(UnsupportedMediaTypeError):
            composer.select_files([pdf(), zipped])

        assert [a.file.name for a in composer.attachments] == ["keep.png"]
        assert preview_store.active_count == 1

    def test_new_selection_supersedes_and_releases_previews(
        self, composer: Composer, preview_store: PreviewStore
    ) -> None:
        composer.select_files([png("a.png"), png("b.png")])
        old_urls = [a.preview_url for a in composer.attachments]

        composer.select_files([pdf("c.pdf")])

        assert [a.file.name for a in composer.attachments] == ["c.pdf"]
        assert preview_store.active_count == 1
        assert all(preview_store.release(url) is False for url in old_urls)

    def test_remove_keeps_order_and_identity(self, composer: Composer, preview_store: PreviewStore) -> None:
        composer.select_files([png("a.png"), png("b.png"), png("c.png")])
        a, b, c = composer.attachments

        assert composer.remove_attachment(1, b.id)

        assert composer.attachments == (a, c)
        assert preview_store.active_count == 2
        assert preview_store.release(b.preview_url) is False

    def test_repeated_removal_removes_only_one(self, composer: Composer) -> None:
        composer.select_files([png("a.png"), png("b.png"), png("c.png")])
        b = composer.attachments[1]

        assert composer.remove_attachment(1, b.id) is True
        assert composer.remove_attachment(1, b.id) is False

        assert [x.file.name for x in composer.attachments] == ["a.png", "c.png"]

    def test_remove_out_of_range_is_noop(self, composer: Composer) -> None:
        composer.select_files([png()])

        assert composer.remove_attachment(5) is False
        assert composer.remove_attachment(-1) is False
        assert len(composer.attachments) == 1

    def test_remove_by_id(self, composer: Composer) -> None:
        composer.select_files([png("a.png"), png("b.png")])
        a = composer.attachments[0]

        assert composer.remove_attachment_by_id(a.id)
        assert not composer.remove_attachment_by_id(a.id)
        assert [x.file.name for x in composer.attachments] == ["b.png"]

    def test_media_type_is_normalized(self, composer: Composer) -> None:
        composer.select_files([AttachmentFile.from_bytes("x.pdf", "", b"%PDF")])

        assert composer.attachments[0].file.media_type == "application/pdf"

    async def test_teardown_releases_everything(
        self, composer: Composer, transport: ScriptedTransport, preview_store: PreviewStore
    ) -> None:
        transport.gate = asyncio.Event()
        composer.type_text("go")
        task = await composer.submit()
        await asyncio.sleep(0)
        composer.select_files([png(), pdf()])

        composer.teardown()

        assert preview_store.active_count == 0
        with pytest.raises(asyncio.CancelledError):
            await task
        assert transport.closed
        assert composer.conversation.messages[-1].error == "Cancelled"


class TestPlaceholderRotation:
    def test_rotates_only_while_idle_and_empty(self, composer: Composer) -> None:
        rotator = composer.placeholder
        assert rotator.enabled
        assert rotator.shown == PLACEHOLDERS[0]

        assert rotator.tick() is True
        assert rotator.shown == ""
        rotator.reveal()

        assert rotator.shown == PLACEHOLDERS[1]

    def test_wraps_around(self, composer: Composer) -> None:
        rotator = composer.placeholder
        for _ in PLACEHOLDERS:
            rotator.tick()
            rotator.reveal()

        assert rotator.current == PLACEHOLDERS[0]

    def test_suspended_while_active(self, composer: Composer) -> None:
        composer.focus()
        rotator = composer.placeholder

        assert not rotator.enabled
        assert rotator.tick() is False
        assert rotator.shown == ""

    def test_suspended_while_typing(self, composer: Composer) -> None:
        composer.type_text("x")
        composer.state = ComposerState.IDLE

        assert not composer.placeholder.enabled
        assert composer.placeholder.shown == ""

    def test_resumes_after_returning_idle(self, composer: Composer) -> None:
        composer.focus()
        composer.click_outside()

        assert composer.placeholder.enabled
        assert composer.placeholder.tick() is True
