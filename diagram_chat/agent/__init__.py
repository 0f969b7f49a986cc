"""Agno agent logic for the server-side composition step.

Responsibilities:
    - Agent initialization with the OpenAI model and fixed system directive
    - Conversion of UI messages (text, images, PDFs) to model messages
    - Retry and deadline policy for the upstream call
    - Streaming token generation coordination

Maintains clean separation from the HTTP layer.
"""

from diagram_chat.agent.chat_agent import (
    CompositionService,
    CompositionTimeoutError,
    InvalidAttachmentError,
    UpstreamModelError,
    get_composition_service,
    to_model_messages,
)
from diagram_chat.agent.config import AgentConfig, get_agent_config

__all__ = [
    "AgentConfig",
    "CompositionService",
    "CompositionTimeoutError",
    "InvalidAttachmentError",
    "UpstreamModelError",
    "get_agent_config",
    "get_composition_service",
    "to_model_messages",
]
