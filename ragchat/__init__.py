"""ragchat - retrieval-augmented chat over a private document corpus.

Combines FastAPI for HTTP streaming, Agno for generation, LanceDB for
vector storage, NiceGUI for the chat page, and Pydantic for validation.

Components:
    - ingestion: extraction, chunking, embedding and upsert of sources
    - retrieval: cosine ranking and context assembly
    - streaming: word-safe coalescing and NDJSON/SSE framing
    - agent: LLM generation backend and prompts
    - api: HTTP endpoints and streaming responses
    - parsing: PDF/HTML extraction and text preparation
    - ui: Web interface typing out streamed answers
    - models: Request/response schemas
"""

__version__ = "0.1.0"
