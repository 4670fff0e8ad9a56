"""Ordered store of conversation turns.

Holds the append-mostly turn sequence behind a single mutation primitive.
Answer accumulation happens in the controller; the store only replaces.
"""

import logging

from src.models.schemas import TurnRecord, TurnStatus

logger = logging.getLogger(__name__)


class TurnStore:
    """Ordered, contiguous sequence of TurnRecords indexed from 0."""

    def __init__(self) -> None:
        self._turns: list[TurnRecord] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __getitem__(self, index: int) -> TurnRecord:
        return self._turns[index]

    @property
    def turns(self) -> tuple[TurnRecord, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> TurnRecord | None:
        return self._turns[-1] if self._turns else None

    def upsert(
        self,
        index: int,
        *,
        query: str | None = None,
        answer: str | None = None,
        status: TurnStatus | None = None,
    ) -> TurnRecord:
        """Create or update the turn at ``index``.

        A missing record is created empty with status pending before the
        patch is applied. ``answer`` replaces the stored text.

        Args:
            index: Target turn position.
            query: New question text.
            answer: Full accumulated answer text.
            status: New turn status.

        Returns:
            The stored record after the patch.

        Raises:
            ValueError: If index is negative or would leave a gap.
        """
        if index < 0:
            raise ValueError(f"Turn index must be >= 0, got {index}")
        if index > len(self._turns):
            raise ValueError(
                f"Turn index {index} would leave a gap (store holds {len(self._turns)})"
            )

        if index == len(self._turns):
            self._turns.append(TurnRecord(index=index))

        patch: dict[str, object] = {}
        if query is not None:
            patch["query"] = query
        if answer is not None:
            patch["answer"] = answer
        if status is not None:
            patch["status"] = status

        record = self._turns[index].model_copy(update=patch)
        self._turns[index] = record
        return record

    def drop_last(self) -> TurnRecord | None:
        """Remove the highest-index record, if any."""
        if not self._turns:
            return None
        dropped = self._turns.pop()
        logger.debug(f"Dropped turn {dropped.index} ({dropped.status.value})")
        return dropped
