"""Prompt templates for grounded answers."""

from ragchat.models.schemas import ChatTurn
from ragchat.retrieval.engine import NO_CONTEXT

RAG_INSTRUCTION = """You are an assistant answering questions using the supplied document context.
- Use only the provided context; if the answer is not there, say you don't know.
- Respond in 1-2 sentences, natural wording, no bullet lists.

Context:
{context}"""

ANSWER_PROMPT = """You are an assistant for question-answering tasks.
Use the following pieces of retrieved context to answer the question.
If you don't know the answer, just say that you don't know.
Use three sentences maximum and keep the answer concise.
Question: {question}
Context: {context}
Answer:"""


def _transcript(turns: list[ChatTurn]) -> str:
    lines = []
    for turn in turns:
        speaker = "Assistant" if turn.role == "assistant" else "User"
        lines.append(f"{speaker}: {turn.content}")
    return "\n".join(lines)


def build_rag_prompt(question: str, context: str, history: list[ChatTurn] | None = None) -> str:
    """Single-question prompt grounded on ``context``.

    Earlier turns of the same conversation, when given, are placed between
    the context and the question.
    """
    parts = [RAG_INSTRUCTION.format(context=context or NO_CONTEXT)]
    if history:
        parts.append(f"Conversation so far:\n{_transcript(history)}")
    parts.append(f"Question: {question}\nAnswer:")
    return "\n\n".join(parts)


def build_conversation_prompt(messages: list[ChatTurn], context: str) -> str:
    """Transcript prompt ending on an open assistant turn."""
    header = RAG_INSTRUCTION.format(context=context or NO_CONTEXT)
    return f"{header}\n\n{_transcript(messages)}\nAssistant:"


def build_answer_prompt(question: str, context: str) -> str:
    """Prompt for the non-streaming answer flow."""
    return ANSWER_PROMPT.format(question=question, context=context or NO_CONTEXT)
