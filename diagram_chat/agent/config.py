"""Agent configuration with environment variable loading.

Generation parameters are fixed constants; only deployment secrets
(API key, optional OpenAI-compatible base URL) come from the environment.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

MODEL_ID = "gpt-4o"
MAX_OUTPUT_TOKENS = 1024
TEMPERATURE = 0.3
MAX_RETRIES = 3
REQUEST_TIMEOUT_SECONDS = 30.0
RETRY_BACKOFF_SECONDS = 0.5

SYSTEM_DIRECTIVE = (
    "You are an expert in understanding and analyzing diagrams. You have a great "
    "in-depth understanding of how systems work and you are expert in system design. "
    "You can easily understand any concept related to it and provide insights "
    "accordingly."
)


class AgentConfig(BaseModel):
    """Configuration for the composition agent.

    Attributes:
        api_key: API key for model access.
        base_url: API base URL (None for OpenAI default).
        model_name: Model identifier to use.
        temperature: Sampling temperature, kept low for analytical output.
        max_tokens: Hard ceiling on generated tokens.
        max_retries: Upstream retries allowed before any output is streamed.
        request_timeout: Wall-clock budget for one whole request, in seconds.
        retry_backoff: Base delay between retries, doubled per attempt.
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", "")),
        description="API key for LLM provider",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="API base URL (None for OpenAI default)",
    )
    model_name: str = Field(default=MODEL_ID, description="Model to use")
    temperature: float = Field(
        default=TEMPERATURE,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for response generation",
    )
    max_tokens: int = Field(
        default=MAX_OUTPUT_TOKENS,
        ge=1,
        le=MAX_OUTPUT_TOKENS,
        description="Maximum tokens in generated response",
    )
    max_retries: int = Field(default=MAX_RETRIES, ge=0, le=5)
    request_timeout: float = Field(default=REQUEST_TIMEOUT_SECONDS, gt=0.0)
    retry_backoff: float = Field(default=RETRY_BACKOFF_SECONDS, ge=0.0)

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env"
            )
        return v.strip()


def get_agent_config() -> AgentConfig:
    """Create agent configuration from environment.

    Returns:
        Configured AgentConfig instance.

    Raises:
        ValueError: If no API key is set.
    """
    return AgentConfig()
