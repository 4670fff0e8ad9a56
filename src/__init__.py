"""Doc Search Stream - incrementally streamed answers for a search widget.

Combines httpx for Server-Sent Events streaming and Pydantic for data
validation behind a small conversation state machine.

Components:
    - conversation: Turn store and the state machine exposed to the UI
    - streaming: Completion endpoint sessions and configuration
    - models: Turn, request, chunk and snapshot schemas
"""

__version__ = "0.1.0"
