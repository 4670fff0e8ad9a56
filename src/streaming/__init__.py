"""Streaming transport for the completion endpoint.

Opens one Server-Sent Events connection per turn and reports fragments,
completion and failures through callbacks.

Responsibilities:
    - Endpoint and credential configuration from the environment
    - Request construction with bearer credentials
    - DONE marker, chunk decoding and transport failure handling
    - Enforcing a single live session

Carries no conversation state. The conversation controller drives it.
"""

from src.streaming.config import StreamConfig, get_stream_config
from src.streaming.session import (
    DONE_SENTINEL,
    MalformedPayloadError,
    StreamError,
    StreamSession,
    StreamSessionController,
    TransportError,
)

__all__ = [
    "DONE_SENTINEL",
    "MalformedPayloadError",
    "StreamConfig",
    "StreamError",
    "StreamSession",
    "StreamSessionController",
    "TransportError",
    "get_stream_config",
]
