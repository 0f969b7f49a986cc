"""Unit tests for individual components in isolation.

Coverage:
    - models/: Message lifecycle, parts and SSE event framing
    - parsing/: Data URIs and PDF inspection
    - agent/: Configuration, message conversion, retries and deadline
    - client/: Attachment encoding, transport, conversation and composer

The Agno agent and the HTTP transport are replaced by scripted doubles.
"""
