"""NiceGUI chat interface with streamed replies and image/PDF attachments."""

import html
import os

from fastapi import HTTPException, Response
from nicegui import app as nicegui_app
from nicegui import Client, events, ui

from diagram_chat.client.attachments import (
    ACCEPTED_MEDIA_TYPES,
    PREVIEW_ROUTE,
    AttachmentEncodingError,
    AttachmentFile,
    UnsupportedMediaTypeError,
    preview_store,
)
from diagram_chat.client.composer import (
    PLACEHOLDER_FADE,
    PLACEHOLDER_INTERVAL,
    Composer,
    KeyAction,
)
from diagram_chat.client.conversation import Conversation, ConversationBusyError
from diagram_chat.client.transport import ChatTransport
from diagram_chat.models.schemas import FilePart, Message, MessageStatus, TextPart

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")

CUSTOM_CSS = """
<style>
    .message-user { background: #4f46e5; color: white; border-radius: 18px 18px 4px 18px; }
    .message-assistant { background: #f3f4f6; color: #1f2937; border-radius: 18px 18px 18px 4px; }
    .body--dark .message-assistant { background: #1f2937; color: #f3f4f6; }
    .message-failed { border: 1px dashed #dc2626; }
    .composer { border-radius: 32px; transition: box-shadow 0.2s, min-height 0.2s; min-height: 68px; }
    .composer.expanded { box-shadow: 0 4px 16px rgba(0, 0, 0, 0.15); }
    .composer-hint { transition: opacity 0.4s; }
</style>
"""


@nicegui_app.get(PREVIEW_ROUTE + "/{token}")
async def serve_preview(token: str) -> Response:
    """Serve a staged attachment preview until it is released."""
    file = preview_store.get(token)
    if file is None:
        raise HTTPException(status_code=404, detail="Preview not found")
    return Response(content=await file.read(), media_type=file.media_type)


def render_part(message: Message, part: object, index: int) -> None:
    """Render one message part; unknown parts render nothing."""
    if isinstance(part, TextPart):
        if message.role == "assistant":
            ui.markdown(part.text).classes("text-sm leading-relaxed")
        else:
            ui.label(part.text).classes("text-sm whitespace-pre-wrap")
    elif isinstance(part, FilePart) and part.media_type.startswith("image/"):
        ui.image(part.url).props(f'alt="attachment-{index}"').classes("w-64 my-2 rounded-lg")
    elif isinstance(part, FilePart) and part.media_type == "application/pdf":
        src = html.escape(part.url, quote=True)
        ui.html(
            f'<iframe src="{src}" width="500" height="600" title="pdf-{index}" '
            'class="my-2 rounded border"></iframe>',
            sanitize=False,
        )


def render_message(message: Message) -> None:
    is_user = message.role == "user"
    align = "justify-end" if is_user else "justify-start"
    bubble = "message-user" if is_user else "message-assistant"
    if message.status == MessageStatus.FAILED:
        bubble += " message-failed"

    with ui.row().classes(f"w-full {align}"):
        with ui.column().classes(f"max-w-[80%] gap-1 px-4 py-3 {bubble}"):
            ui.label("You" if is_user else "AI").classes("font-medium text-xs opacity-70")
            for index, part in enumerate(message.parts):
                render_part(message, part, index)
            if message.is_streaming and not message.text:
                ui.spinner("dots").classes("text-gray-400")
            if message.status == MessageStatus.FAILED:
                ui.label(f"Incomplete response: {message.error}").classes(
                    "text-xs text-red-600 italic"
                )



def attach_teardown(client: Client, composer: Composer) -> None:
    """Tear the composer down once the page client is gone for good.

    on_disconnect also fires on every reconnect, which would drop the staged
    attachments of a page that is still open; on_delete waits out the
    reconnect timeout.
    """
    client.on_delete(composer.teardown)

@ui.page("/")
def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)
    dark = ui.dark_mode(value=False)

    conversation = Conversation(ChatTransport(f"{API_BASE_URL}/api/chat"))
    composer = Composer(conversation)
    reported_failures: set[str] = set()

    client = ui.context.client
    attach_teardown(client, composer)

    @ui.refreshable
    def messages_view() -> None:
        if not conversation.messages:
            with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                ui.icon("schema").classes("text-5xl text-gray-300")
                ui.label("Attach a diagram and ask away").classes("text-lg text-gray-400")
            return
        for message in conversation.messages:
            render_message(message)

    @ui.refreshable
    def previews_view() -> None:
        if not composer.attachments:
            return
        with ui.row().classes("gap-2 px-4 pt-2"):
            for index, staged in enumerate(composer.attachments):
                with ui.element("div").classes("relative w-16 h-16 rounded overflow-hidden bg-gray-200"):
                    if staged.file.is_image:
                        ui.image(staged.preview_url).classes("w-16 h-16 object-cover")
                    else:
                        ui.label("PDF").classes("w-full h-full flex items-center justify-center text-xs")
                    ui.button(
                        icon="close",
                        on_click=lambda _, i=index, a=staged.id: remove_file(i, a),
                    ).props("flat round dense size=xs").classes("absolute top-0 right-0")

    def on_conversation_change() -> None:
        # Runs from the reply task, outside any UI event handler
        with client:
            messages_view.refresh()
            for message in conversation.messages:
                if message.status == MessageStatus.FAILED and message.id not in reported_failures:
                    reported_failures.add(message.id)
                    ui.notify(f"Response incomplete: {message.error}", type="negative")

    conversation.on_change(on_conversation_change)

    def update_surface() -> None:
        if composer.expanded:
            surface.classes(add="expanded")
        else:
            surface.classes(remove="expanded")
        input_field.props(f'placeholder="{composer.input_placeholder}"')
        hint.set_text(composer.placeholder.shown)

    def remove_file(index: int, attachment_id: str) -> None:
        if composer.remove_attachment(index, attachment_id):
            previews_view.refresh()
            update_surface()

    async def on_upload(e: events.MultiUploadEventArguments) -> None:
        files = [
            AttachmentFile(name=f.name, media_type=f.content_type, reader=f.read)
            for f in e.files
        ]
        try:
            composer.select_files(files)
        except UnsupportedMediaTypeError as err:
            ui.notify(str(err), type="warning")
        finally:
            uploader.reset()
        previews_view.refresh()
        update_surface()

    def on_text(e: events.ValueChangeEventArguments) -> None:
        composer.type_text(e.value or "")
        update_surface()

    def on_focus() -> None:
        composer.focus()
        update_surface()

    def on_blur() -> None:
        composer.click_outside()
        update_surface()

    async def on_enter(e: events.GenericEventArguments) -> None:
        args = e.args or {}
        action = composer.key_down("Enter", ctrl=bool(args.get("ctrlKey")), meta=bool(args.get("metaKey")))
        if action == KeyAction.SUBMIT:
            await submit()

    async def submit() -> None:
        try:
            task = await composer.submit()
        except AttachmentEncodingError as err:
            ui.notify(str(err), type="negative")
            return
        except ConversationBusyError:
            ui.notify("Wait for the current reply to finish", type="warning")
            return
        if task is None:
            return
        input_field.value = composer.text
        previews_view.refresh()
        update_surface()

    def rotate_hint() -> None:
        if composer.placeholder.tick():
            hint.set_text("")
            ui.timer(PLACEHOLDER_FADE, finish_rotation, once=True)

    def finish_rotation() -> None:
        composer.placeholder.reveal()
        hint.set_text(composer.placeholder.shown)

    # === UI Layout ===
    with ui.column().classes("w-full max-w-3xl mx-auto min-h-screen pb-40"):
        with ui.row().classes("w-full items-center justify-between py-4"):
            ui.label("Diagram Chat").classes("text-lg font-semibold")
            ui.button(icon="dark_mode", on_click=dark.toggle).props("flat round")

        with ui.column().classes("w-full gap-4"):
            messages_view()

    with ui.footer().classes("bg-transparent"):
        with ui.column().classes("w-full max-w-3xl mx-auto bg-white composer").on("click", on_focus) as surface:
            previews_view()
            with ui.row().classes("w-full items-center gap-2 px-3 pb-2 no-wrap"):
                uploader = (
                    ui.upload(multiple=True, auto_upload=True, on_multi_upload=on_upload)
                    .props(f'accept="{ACCEPTED_MEDIA_TYPES}" flat')
                    .classes("w-14")
                )
                with ui.element("div").classes("relative flex-grow"):
                    input_field = (
                        ui.input(on_change=on_text)
                        .props("borderless dense")
                        .classes("w-full")
                        .on("focus", on_focus)
                        .on("blur", on_blur)
                        .on("keydown.enter.prevent", on_enter, ["ctrlKey", "metaKey"])
                    )
                    hint = ui.label(composer.placeholder.shown).classes(
                        "composer-hint absolute left-0 top-1/2 -translate-y-1/2 text-gray-400 "
                        "pointer-events-none select-none"
                    )
                with ui.button(icon="send", on_click=submit).props("round unelevated"):
                    ui.tooltip("Press Ctrl+Enter to send")

    ui.timer(PLACEHOLDER_INTERVAL, rotate_hint)
    update_surface()


def main() -> None:
    ui.run(title="Diagram Chat", port=int(os.getenv("UI_PORT", "8080")), reload=False)


if __name__ == "__main__":
    main()
