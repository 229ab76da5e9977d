"""Agno agent service used as the generation backend.

Wraps an Agno ``Agent`` over an OpenAI-compatible chat model. The agent is
stateless: every prompt is built by the caller with its retrieved context and
any conversation history, so no session storage or knowledge base is attached.

Architecture Decisions:

1. **Singleton** - Model client setup is done once and reused across requests.
   Since the agent keeps no history, sharing it between concurrent requests
   leaks nothing from one conversation into another.

2. **Service Wrapper** - Decouples the HTTP layer from Agno's interface and
   maps backend failures onto ``GenerationError``.

3. **Streaming Generator** - Agno yields run events with metadata. Only text
   deltas are passed through, giving the streaming endpoints a plain
   ``AsyncIterator[str]``.
"""

import logging
from collections.abc import AsyncIterator
from typing import Protocol

from agno.agent import Agent
from agno.models.openai import OpenAIChat

from ragchat.agent.config import AgentConfig, get_agent_config
from ragchat.errors import GenerationError

logger = logging.getLogger(__name__)

# Run events that repeat the whole answer instead of a delta
_SUMMARY_EVENTS = frozenset({"RunCompleted", "RunResponseCompleted"})


class TextGenerator(Protocol):
    """Anything that turns a prompt into text."""

    def stream_response(self, prompt: str) -> AsyncIterator[str]: ...

    async def get_response(self, prompt: str) -> str: ...


class AgentService:
    """Generation backend over Agno's Agent.

    Wraps Agno's Agent with:
    - An OpenAI-compatible model (OpenAI, Ollama ``/v1``, vLLM)
    - A clean token iterator for the streaming endpoints
    - Centralized error mapping
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        """Initialize the agent service.

        Args:
            config: Optional agent configuration.
                    Loads from environment if not provided.
        """
        self._config = config or get_agent_config()
        self._agent = self._create_agent()

    @property
    def model_name(self) -> str:
        return self._config.model_name

    def _create_agent(self) -> Agent:
        """Create the Agno agent instance.

        Returns:
            Configured Agent with an OpenAI-compatible model.
        """
        model = OpenAIChat(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
            timeout=self._config.timeout,
        )

        return Agent(
            model=model,
            description="An assistant answering questions from retrieved document context.",
            instructions=[
                "Follow the instructions contained in the prompt.",
                "Answer in plain text.",
            ],
            markdown=False,
        )

    async def stream_response(self, prompt: str) -> AsyncIterator[str]:
        """Stream generated text for a prompt.

        Args:
            prompt: Fully assembled prompt.

        Yields:
            Text deltas as they arrive.

        Raises:
            GenerationError: If the backend fails before or during streaming.
        """
        try:
            response_stream = self._agent.arun(prompt, stream=True)

            async for chunk in response_stream:
                if getattr(chunk, "event", None) in _SUMMARY_EVENTS:
                    continue
                content = getattr(chunk, "content", None)
                if isinstance(content, str) and content:
                    yield content

        except Exception as e:
            logger.error(f"Streaming generation failed: {e}")
            raise GenerationError(str(e)) from e

    async def get_response(self, prompt: str) -> str:
        """Get the complete generated text for a prompt.

        Raises:
            GenerationError: If the backend fails.
        """
        try:
            response = await self._agent.arun(prompt)
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            raise GenerationError(str(e)) from e
        return response.content or ""


# Module-level singleton instance
_agent_service: AgentService | None = None


def get_agent_service() -> AgentService:
    """Get or create the global agent service.

    Returns:
        The AgentService instance.

    Raises:
        ConfigurationError: If the model configuration is incomplete.
    """
    global _agent_service
    if _agent_service is None:
        _agent_service = AgentService()
        logger.info(f"Generation backend ready: model={_agent_service.model_name}")
    return _agent_service
