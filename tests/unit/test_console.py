"""Unit tests for the console consumer's status and rendering."""

from unittest.mock import patch

import pytest

from src.main import FAILURE_TEXT, REFUSAL_TEXT, ConsoleRenderer, main, status_text
from src.models.schemas import ConversationSnapshot, MachineState


class TestStatusText:
    """Tests for status line derivation."""

    @pytest.mark.parametrize(
        ("snapshot", "expected"),
        [
            (ConversationSnapshot(), None),
            (ConversationSnapshot(state=MachineState.SUBMITTING), "Searching..."),
            (ConversationSnapshot(state=MachineState.STREAMING), "Responding..."),
            (ConversationSnapshot(state=MachineState.TURN_COMPLETE), None),
            (
                ConversationSnapshot(state=MachineState.TURN_COMPLETE, can_help=False),
                "Search has failed you",
            ),
            (
                ConversationSnapshot(state=MachineState.TURN_ERRORED, has_error=True),
                "Search has failed you",
            ),
        ],
    )
    def test_status_text(self, snapshot: ConversationSnapshot, expected: str | None) -> None:
        """Status follows the machine state and failure flags."""
        assert status_text(snapshot) == expected


class TestConsoleRenderer:
    """Tests for incremental answer printing."""

    def test_prints_only_new_text(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Each streaming snapshot prints the unseen suffix."""
        render = ConsoleRenderer()

        render(ConversationSnapshot(state=MachineState.SUBMITTING, question="q"))
        render(ConversationSnapshot(state=MachineState.STREAMING, answer="Hel"))
        render(ConversationSnapshot(state=MachineState.STREAMING, answer="Hello"))
        render(ConversationSnapshot(state=MachineState.TURN_COMPLETE, answer="Hello"))

        assert capsys.readouterr().out == "Searching...\nAnswer: Hello\n"

    def test_prints_failure_and_refusal(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Failed and refused turns print their notice."""
        render = ConsoleRenderer()

        render(ConversationSnapshot(state=MachineState.TURN_ERRORED, has_error=True))
        render(ConversationSnapshot(state=MachineState.TURN_COMPLETE, can_help=False))

        out = capsys.readouterr().out
        assert FAILURE_TEXT in out
        assert REFUSAL_TEXT in out


class TestMain:
    """Tests for the console entry point."""

    def test_missing_configuration_exits_cleanly(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Without endpoint settings the console logs the problem and exits 1."""
        with patch.dict("os.environ", {}, clear=True), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "Invalid configuration" in caplog.text
        assert "SUPABASE_ANON_KEY" in caplog.text
