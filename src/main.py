"""Main application entry point.

Runs an interactive console search against the completion endpoint.
Environment variables are loaded from .env file.

Commands:
    - any text: ask a question
    - :reset: discard the answer in progress
    - :quit: exit (EOF works too)
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from src.models.schemas import ConversationSnapshot, MachineState

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

FAILURE_TEXT = "Bad news, the search has failed. Try again later."
REFUSAL_TEXT = "Sorry, no answer is available for that question."


def status_text(snapshot: ConversationSnapshot) -> str | None:
    """Derive the human-readable status line for a snapshot."""
    if snapshot.state is MachineState.SUBMITTING:
        return "Searching..."
    if snapshot.state is MachineState.STREAMING:
        return "Responding..."
    if snapshot.has_error or not snapshot.can_help:
        return "Search has failed you"
    return None


class ConsoleRenderer:
    """Prints streamed answers as snapshots arrive."""

    def __init__(self) -> None:
        self._printed = 0
        self._state: MachineState | None = None

    def __call__(self, snapshot: ConversationSnapshot) -> None:
        entered = snapshot.state is not self._state
        self._state = snapshot.state

        if snapshot.state is MachineState.SUBMITTING and entered:
            self._printed = 0
            print(status_text(snapshot), flush=True)
        elif snapshot.state is MachineState.STREAMING:
            answer = snapshot.answer or ""
            if entered:
                print("Answer: ", end="", flush=True)
            print(answer[self._printed :], end="", flush=True)
            self._printed = len(answer)
        elif snapshot.state is MachineState.TURN_COMPLETE:
            print(flush=True)
            if not snapshot.can_help:
                print(REFUSAL_TEXT, flush=True)
        elif snapshot.state is MachineState.TURN_ERRORED:
            print(flush=True)
            print(FAILURE_TEXT, flush=True)


async def run_console() -> None:
    """Read questions from stdin until :quit or EOF."""
    from src.conversation import ConversationController

    controller = ConversationController()
    controller.subscribe(ConsoleRenderer())

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break

            command = line.strip()
            if not command:
                continue
            if command == ":quit":
                break
            if command == ":reset":
                controller.reset()
                continue

            controller.submit(command)
            await controller.wait()
    finally:
        await controller.aclose()


def main() -> None:
    """Application entry point."""
    logger.info("Starting console search")
    try:
        asyncio.run(run_console())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
