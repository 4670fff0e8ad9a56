"""Unit tests for individual components in isolation.

Ensures fast execution with minimal dependencies.

Coverage:
    - conversation/: Turn store and state machine transitions
    - streaming/: SSE line handling, chunk decoding, session lifecycle
    - main: Console status and rendering

Stream events are scripted by hand or through httpx.MockTransport. Leverages
pytest-check for multiple assertions per test.
"""
