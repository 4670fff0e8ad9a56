"""Pydantic models shared by the conversation and streaming layers.

Provides type safety and validation for turns, requests and stream chunks.

Models:
    - TurnRecord: One question/answer exchange
    - SearchRequest: Outgoing completion request payload
    - CompletionChunk: Incoming streamed completion chunk
    - ConversationSnapshot: Read-only state handed to the UI
"""

from src.models.schemas import (
    REFUSAL_SENTINEL,
    CompletionChunk,
    ConversationSnapshot,
    ErrorKind,
    MachineState,
    SearchRequest,
    TurnOutcome,
    TurnRecord,
    TurnStatus,
)

__all__ = [
    "REFUSAL_SENTINEL",
    "CompletionChunk",
    "ConversationSnapshot",
    "ErrorKind",
    "MachineState",
    "SearchRequest",
    "TurnOutcome",
    "TurnRecord",
    "TurnStatus",
]
