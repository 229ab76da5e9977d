"""Agno agent logic for answer generation.

Responsibilities:
    - Agent initialization with OpenAI-compatible models
    - Prompt assembly from retrieved context and conversation turns
    - Streaming token generation

Maintains clean separation from the HTTP layer.
"""

from ragchat.agent.chat_agent import AgentService, TextGenerator, get_agent_service
from ragchat.agent.config import AgentConfig, get_agent_config
from ragchat.agent.prompts import (
    build_answer_prompt,
    build_conversation_prompt,
    build_rag_prompt,
)

__all__ = [
    "AgentConfig",
    "AgentService",
    "TextGenerator",
    "build_answer_prompt",
    "build_conversation_prompt",
    "build_rag_prompt",
    "get_agent_config",
    "get_agent_service",
]
