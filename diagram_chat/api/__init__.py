"""FastAPI endpoints for the diagram chat.

HTTP and streaming routes with async request handling.
Supports Server-Sent Events for real-time chat streaming.

Endpoints:
    - GET /health: Service health status
    - POST /api/chat: Streamed assistant reply for a conversation
"""

from diagram_chat.api.app import app, create_app

__all__ = ["app", "create_app"]
