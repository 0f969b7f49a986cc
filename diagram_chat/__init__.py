"""Diagram Chat - multimodal chat with a system-design assistant.

Combines FastAPI for HTTP streaming, Agno for model orchestration,
NiceGUI for the browser page, and Pydantic for data validation.

Components:
    - api: Chat streaming endpoint
    - agent: Composition of the model call (system directive, retries, deadline)
    - client: Composer state machine, attachments, conversation, transport
    - parsing: Data URIs and PDF validation
    - ui: Web interface for chat interactions
    - models: Messages, parts and stream events
"""

__version__ = "0.1.0"
