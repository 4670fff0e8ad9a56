"""Conversation state machine for incrementally streamed answers.

Turns asynchronous stream events into an ordered turn history.

Responsibilities:
    - Turn storage with contiguous indices
    - Answer accumulation in arrival order
    - Loading, streaming and failure state tracking
    - Cancellation, reset and stale-session filtering

Exposes snapshots to the UI and never renders anything itself.
"""

from src.conversation.controller import ConversationController, InvalidTransitionError
from src.conversation.store import TurnStore

__all__ = ["ConversationController", "InvalidTransitionError", "TurnStore"]
