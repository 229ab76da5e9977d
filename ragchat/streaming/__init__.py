"""Server side of generation streaming.

Coalesces backend tokens into word-safe segments and frames them as
NDJSON envelopes or server-sent events.
"""

from ragchat.streaming.coalescer import StreamCoalescer, StreamSegment, StreamState
from ragchat.streaming.transports import (
    GenerationTransport,
    NdjsonTransport,
    SseTransport,
    StreamPolicy,
    get_chat_policy,
    get_stream_policy,
    stream_generation,
)

__all__ = [
    "GenerationTransport",
    "NdjsonTransport",
    "SseTransport",
    "StreamCoalescer",
    "StreamPolicy",
    "StreamSegment",
    "StreamState",
    "get_chat_policy",
    "get_stream_policy",
    "stream_generation",
]
