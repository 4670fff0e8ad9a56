"""Integration tests for components working together as a system.

No mocks for core functionality - tests real interactions.

Coverage:
    - Conversation controller driving real streaming sessions
    - SSE responses from an in-process FastAPI completion endpoint
    - Credential headers, failures, refusals and resets end to end

Runs entirely in-process through httpx.ASGITransport.
"""
