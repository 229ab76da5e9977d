"""NiceGUI interface - thin presentation layer over the streaming API.

Responsibilities:
    - Chat message display with a typewriter effect
    - Incremental parsing of SSE and NDJSON answer streams
    - Repair of the repeated-word overlap between NDJSON envelopes

Contains no retrieval or generation logic. Delegates all operations to the API.
"""
