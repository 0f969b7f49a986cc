"""Integration tests for components working together as a system.

Coverage:
    - /api/chat with real HTTP requests over ASGI
    - Request validation and attachment checks
    - Client conversation streaming from the in-process server

Only the model is scripted; no API key is needed.
"""
