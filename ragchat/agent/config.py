"""Generation backend settings.

Every field reads from the environment (``.env`` is loaded on import), so
pointing the service at OpenAI or at a local Ollama ``/v1`` endpoint is a
configuration change only:

    LLM_API_KEY=ollama
    LLM_BASE_URL=http://localhost:11434/v1
    LLM_MODEL=phi3:mini
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ragchat.errors import ConfigurationError

load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    return value if value not in (None, "") else default


class AgentConfig(BaseModel):
    """Settings for the OpenAI-compatible chat model.

    Attributes:
        api_key: Key sent to the provider; any non-empty value for Ollama.
        base_url: Provider endpoint, None for api.openai.com.
        model_name: Model identifier.
        temperature: Sampling temperature.
        max_tokens: Upper bound on generated tokens per answer.
        timeout: Seconds to wait on the provider before failing the request.
    """

    model_config = ConfigDict(validate_default=True, protected_namespaces=())

    api_key: str = Field(
        default_factory=lambda: _env("LLM_API_KEY") or _env("OPENAI_API_KEY", ""),
    )
    base_url: str | None = Field(default_factory=lambda: _env("LLM_BASE_URL"))
    model_name: str = Field(default_factory=lambda: _env("LLM_MODEL", "gpt-4o-mini"))
    temperature: float = Field(
        default_factory=lambda: _env("LLM_TEMPERATURE", "0.2"), ge=0.0, le=2.0
    )
    max_tokens: int = Field(
        default_factory=lambda: _env("LLM_MAX_TOKENS", "2000"), ge=1, le=128000
    )
    timeout: float = Field(default_factory=lambda: _env("LLM_TIMEOUT", "60"), gt=0)

    @field_validator("api_key")
    @classmethod
    def require_api_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env")
        return v.strip()

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str | None:
        """Blank means the provider default; a trailing slash is dropped."""
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/")

    @field_validator("model_name")
    @classmethod
    def require_model(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("LLM_MODEL must not be blank")
        return v.strip()


def get_agent_config() -> AgentConfig:
    """Load the generation settings from the environment.

    Raises:
        ConfigurationError: If no API key is set or a value is out of range.
    """
    try:
        return AgentConfig()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid LLM config: {e}") from e
