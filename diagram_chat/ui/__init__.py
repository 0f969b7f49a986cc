"""NiceGUI interface - thin visualization layer for chat interactions.

Responsibilities:
    - Message rendering: text, images and embedded PDFs
    - Composition surface wired to the client state machine
    - Attachment previews and placeholder rotation

Contains minimal business logic. Delegates all state to diagram_chat.client.
"""
