"""FastAPI endpoints for ragchat.

HTTP and streaming routes with async request handling.

Endpoints:
    - GET /health: Service health status
    - POST /embed: File ingestion (multipart or base64 JSON)
    - POST /embed/url: Web page ingestion
    - DELETE /embed/{namespace}: Namespace removal
    - POST /chat: NDJSON answer stream
    - POST /chat/stream: SSE answer stream
    - POST /rag: Non-streaming answer with retrieved chunks
"""
