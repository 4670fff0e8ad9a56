"""Conversation state machine driving streamed answers.

Core module exposed to the UI: ``submit``, ``reset`` and read-only snapshots.

Every mutation goes through ``dispatch`` with one of the tagged events from
``src.conversation.events``, checked against ``_TRANSITIONS``:

    ==============  ==========================  ==============
    Event           Allowed from                Leads to
    ==============  ==========================  ==============
    Submit          any state                   SUBMITTING
    Fragment        SUBMITTING, STREAMING       STREAMING
    Done            SUBMITTING, STREAMING       TURN_COMPLETE
    Error           SUBMITTING, STREAMING       TURN_ERRORED
    Reset           any state                   IDLE
    ==============  ==========================  ==============

Stream callbacks carry the token of the session they were bound to. A
callback whose token is not the live one is dropped before dispatch, since
``current_index`` is reused after a reset or a failed turn.
"""

import itertools
import logging
from collections.abc import Callable
from functools import partial

from src.conversation.events import Done, Error, Event, Fragment, Reset, Submit
from src.conversation.store import TurnStore
from src.models.schemas import (
    REFUSAL_SENTINEL,
    ConversationSnapshot,
    MachineState,
    SearchRequest,
    TurnOutcome,
    TurnRecord,
    TurnStatus,
)
from src.streaming.session import StreamError, StreamSessionController

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[ConversationSnapshot], None]

_ACTIVE = frozenset({MachineState.SUBMITTING, MachineState.STREAMING})

# Machine states each event may be dispatched from
_TRANSITIONS: dict[type, frozenset[MachineState]] = {
    Submit: frozenset(MachineState),
    Fragment: _ACTIVE,
    Done: _ACTIVE,
    Error: _ACTIVE,
    Reset: frozenset(MachineState),
}


class InvalidTransitionError(Exception):
    """Raised when an event is not allowed in the current state."""

    pass


def is_refusal(answer: str) -> bool:
    """Check whether a final answer is the service's refusal text."""
    return answer.strip() == REFUSAL_SENTINEL


def classify(turn: TurnRecord) -> TurnOutcome:
    """Classify a turn for presentation.

    Refusals are only recognised on finished turns; a partial answer that
    happens to be a prefix of the refusal text means nothing yet.
    """
    if turn.status is TurnStatus.ERRORED:
        return TurnOutcome.FAILED
    if turn.status is TurnStatus.DONE:
        return TurnOutcome.REFUSED if is_refusal(turn.answer) else TurnOutcome.ANSWERED
    return TurnOutcome.PENDING


class ConversationController:
    """State machine turning stream events into an ordered turn history.

    Owns the turn store, the current index and the single live session.
    All methods must be called from the event loop thread.

    Args:
        sessions: Session controller. Built from environment config if not provided.
        store: Turn store. A fresh empty store if not provided.
    """

    def __init__(
        self,
        sessions: StreamSessionController | None = None,
        store: TurnStore | None = None,
    ) -> None:
        self._sessions = sessions if sessions is not None else StreamSessionController()
        self._store = store if store is not None else TurnStore()
        self._state = MachineState.IDLE
        self._current_index = len(self._store)
        self._question: str | None = None
        self._answer: str | None = None
        self._tokens = itertools.count(1)
        self._session_token: int | None = None
        self._listeners: list[SnapshotListener] = []
        self._handlers: dict[type, Callable] = {
            Submit: self._apply_submit,
            Fragment: self._apply_fragment,
            Done: self._apply_done,
            Error: self._apply_error,
            Reset: self._apply_reset,
        }

    @property
    def state(self) -> MachineState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def turns(self) -> tuple[TurnRecord, ...]:
        return self._store.turns

    @property
    def question(self) -> str | None:
        return self._question

    @property
    def answer(self) -> str | None:
        return self._answer

    def submit(self, query: str) -> None:
        """Ask a question, cancelling any answer still in flight.

        Raises:
            ValidationError: If the query is blank.
        """
        request = SearchRequest(query=query)
        self.dispatch(Submit(query=request.query))

    def reset(self) -> None:
        """Cancel the live session and discard an unfinished last turn."""
        self.dispatch(Reset())

    def dispatch(self, event: Event) -> None:
        """Apply one event and notify listeners.

        Raises:
            InvalidTransitionError: If the event is not allowed in the current state.
        """
        if self._state not in _TRANSITIONS[type(event)]:
            raise InvalidTransitionError(
                f"Cannot apply {event.kind} in state {self._state.value}"
            )
        self._handlers[type(event)](event)
        self._notify()

    def outcome(self, index: int) -> TurnOutcome:
        return classify(self._store[index])

    def snapshot(self) -> ConversationSnapshot:
        last = self._store.last
        refused = (
            self._state is MachineState.TURN_COMPLETE
            and last is not None
            and classify(last) is TurnOutcome.REFUSED
        )
        return ConversationSnapshot(
            turns=self._store.turns,
            current_index=self._current_index,
            state=self._state,
            question=self._question,
            answer=self._answer,
            can_help=not refused,
            has_error=self._state is MachineState.TURN_ERRORED,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener called with a snapshot after every change.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait(self) -> None:
        """Wait until the live session has finished."""
        await self._sessions.wait()

    async def aclose(self) -> None:
        """Reset and wait for the session teardown to finish."""
        self.reset()
        await self._sessions.wait()

    def _apply_submit(self, event: Submit) -> None:
        if self._state in _ACTIVE or self._sessions.is_open:
            self._apply_reset(Reset())

        index = self._current_index
        self._store.upsert(index, query=event.query, answer="", status=TurnStatus.PENDING)
        self._question = event.query
        self._answer = None
        self._state = MachineState.SUBMITTING

        token = next(self._tokens)
        self._session_token = token
        self._sessions.open(
            event.query,
            index,
            on_fragment=partial(self._on_session_fragment, token),
            on_complete=partial(self._on_session_complete, token),
            on_error=partial(self._on_session_error, token),
        )
        logger.info(f"Submitted turn {index}: {event.query!r}")

    def _apply_fragment(self, event: Fragment) -> None:
        self._answer = (self._answer or "") + event.text
        self._store.upsert(
            self._current_index, answer=self._answer, status=TurnStatus.STREAMING
        )
        self._state = MachineState.STREAMING

    def _apply_done(self, event: Done) -> None:
        turn = self._store.upsert(self._current_index, status=TurnStatus.DONE)
        self._end_session()
        self._current_index += 1
        self._state = MachineState.TURN_COMPLETE
        if is_refusal(turn.answer):
            logger.info(f"Turn {turn.index} completed without an answer")
        else:
            logger.info(f"Turn {turn.index} completed ({len(turn.answer)} chars)")

    def _apply_error(self, event: Error) -> None:
        self._store.upsert(self._current_index, status=TurnStatus.ERRORED)
        self._end_session()
        self._state = MachineState.TURN_ERRORED
        logger.warning(
            f"Turn {self._current_index} failed ({event.error_kind.value}): {event.message}"
        )

    def _apply_reset(self, event: Reset) -> None:
        self._end_session()
        last = self._store.last
        if last is not None and not last.status.is_terminal:
            self._store.drop_last()
        self._question = None
        self._answer = None
        self._state = MachineState.IDLE

    def _end_session(self) -> None:
        self._session_token = None
        self._sessions.close()

    def _is_stale(self, token: int) -> bool:
        if token != self._session_token:
            logger.debug(f"Discarding event from stale session {token}")
            return True
        return False

    def _on_session_fragment(self, token: int, text: str) -> None:
        if not self._is_stale(token):
            self.dispatch(Fragment(text=text))

    def _on_session_complete(self, token: int) -> None:
        if not self._is_stale(token):
            self.dispatch(Done())

    def _on_session_error(self, token: int, error: StreamError) -> None:
        if not self._is_stale(token):
            self.dispatch(Error(error_kind=error.kind, message=str(error)))

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Snapshot listener {listener!r} failed")
