"""Test package for Diagram Chat.

Structure:
    - unit/: Individual function and class tests
    - integration/: The FastAPI app driven over ASGI, with the client stack

Shared doubles live in helpers.py; fixtures in conftest.py.
Leverages pytest with pytest-check for soft assertions.
"""
