from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Answer the completion service sends when it found nothing relevant
REFUSAL_SENTINEL = "Sorry, I don't know how to help with that."


class TurnStatus(str, Enum):
    """Status of a single conversation turn."""

    PENDING = "pending"
    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (TurnStatus.DONE, TurnStatus.ERRORED)


class MachineState(str, Enum):
    """States of the conversation state machine."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    TURN_COMPLETE = "turn_complete"
    TURN_ERRORED = "turn_errored"


class TurnOutcome(str, Enum):
    """How a turn is presented once classified."""

    PENDING = "pending"
    ANSWERED = "answered"
    REFUSED = "refused"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Cause of a failed turn."""

    TRANSPORT = "transport"
    MALFORMED_PAYLOAD = "malformed_payload"


class TurnRecord(BaseModel):
    """One question/answer exchange.

    Records are frozen; the store replaces them on every update.

    Attributes:
        index: Position in the conversation (0-based).
        query: The user's question.
        answer: Accumulated answer text.
        status: Status of this turn only.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    query: str = ""
    answer: str = ""
    status: TurnStatus = TurnStatus.PENDING


class SearchRequest(BaseModel):
    """Request payload for the completion endpoint.

    Attributes:
        query: User's question.
    """

    query: str = Field(..., min_length=1)

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, v: str) -> str:
        """Strip whitespace from query before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class CompletionDelta(BaseModel):
    content: str | None = None


class CompletionChoice(BaseModel):
    """A single choice of a streamed completion chunk.

    Legacy completion streams carry ``text``; chat completion streams
    carry ``delta.content``.
    """

    text: str | None = None
    delta: CompletionDelta | None = None


class CompletionChunk(BaseModel):
    """One JSON-encoded chunk pushed by the completion endpoint."""

    choices: list[CompletionChoice] = Field(..., min_length=1)

    @property
    def fragment(self) -> str:
        """Text fragment carried by the first choice."""
        choice = self.choices[0]
        if choice.text is not None:
            return choice.text
        if choice.delta is not None and choice.delta.content is not None:
            return choice.delta.content
        return ""


class ConversationSnapshot(BaseModel):
    """Read-only view of the conversation handed to the UI.

    Attributes:
        turns: Turns in conversation order.
        current_index: Index of the turn currently being written.
        state: Current machine state.
        question: Last submitted question, if any.
        answer: Answer accumulated for the live turn, if any.
        can_help: False when the last finished turn was a refusal.
        has_error: True when the last turn failed.
    """

    model_config = ConfigDict(frozen=True)

    turns: tuple[TurnRecord, ...] = ()
    current_index: int = Field(default=0, ge=0)
    state: MachineState = MachineState.IDLE
    question: str | None = None
    answer: str | None = None
    can_help: bool = True
    has_error: bool = False
