"""Streaming completion sessions over Server-Sent Events.

A session owns one HTTP connection to the completion endpoint and turns its
event stream into three mutually exclusive outcomes:

1. **Fragment** - a JSON completion chunk; its text is handed to ``on_fragment``.
2. **Done** - the literal ``[DONE]`` marker; ``on_complete`` fires and the
   session closes.
3. **Error** - a transport failure (connection, non-2xx, timeout, early end of
   stream) or a chunk that cannot be decoded; ``on_error`` fires and the
   session closes.

At most one session is live per ``StreamSessionController``. Opening a new one
closes the previous one, and the new connection is not made until the old
task has finished tearing down its connection.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable

import httpx
from pydantic import ValidationError

from src.models.schemas import CompletionChunk, ErrorKind, SearchRequest
from src.streaming.config import StreamConfig, get_stream_config

logger = logging.getLogger(__name__)

# End-of-stream marker sent by the completion endpoint
DONE_SENTINEL = "[DONE]"

FragmentCallback = Callable[[str], None]
CompleteCallback = Callable[[], None]
ErrorCallback = Callable[["StreamError"], None]


class StreamError(Exception):
    """Raised when a streaming session fails."""

    kind: ErrorKind = ErrorKind.TRANSPORT


class TransportError(StreamError):
    """Connection failure, non-2xx response, timeout or dropped stream."""

    kind = ErrorKind.TRANSPORT


class MalformedPayloadError(StreamError):
    """A stream event could not be decoded into a completion chunk."""

    kind = ErrorKind.MALFORMED_PAYLOAD


def event_data(line: str) -> str | None:
    """Return the payload of an SSE ``data:`` line, or None for other lines."""
    if not line.startswith("data:"):
        return None
    return line[5:].removeprefix(" ")


def parse_fragment(data: str) -> str:
    """Decode a completion chunk and extract its text fragment.

    Args:
        data: JSON payload of one stream event.

    Returns:
        The chunk's text fragment (may be empty).

    Raises:
        MalformedPayloadError: If the payload is not a valid completion chunk.
    """
    try:
        chunk = CompletionChunk.model_validate_json(data)
    except ValidationError as e:
        raise MalformedPayloadError(
            f"Malformed completion chunk ({e.error_count()} error(s)): {data[:80]!r}"
        ) from e
    return chunk.fragment


class StreamSession:
    """One streaming request serving exactly one turn."""

    def __init__(
        self,
        query: str,
        config: StreamConfig,
        *,
        on_fragment: FragmentCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.query = query
        self._config = config
        self._on_fragment = on_fragment
        self._on_complete = on_complete
        self._on_error = on_error
        self._transport = transport
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._task is not None and not self._closed

    def open(self, after: "StreamSession | None" = None) -> None:
        """Start streaming in a background task.

        Args:
            after: Previous session whose teardown must finish first.

        Raises:
            RuntimeError: If the session was already opened.
        """
        if self._task is not None:
            raise RuntimeError(f"Session {self.id} already opened")
        previous = after._task if after is not None else None
        self._task = asyncio.create_task(
            self._run(previous), name=f"stream-session-{self.id}"
        )

    def close(self) -> None:
        """Close the session. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        task = self._task
        # Inside its own task the stream loop returns on its own
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        logger.debug(f"Closed session {self.id}")

    async def wait(self) -> None:
        """Wait for the session task to finish, without raising."""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def _run(self, previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        if self._closed:
            return

        try:
            await self._stream()
        except httpx.HTTPStatusError as e:
            self._fail(TransportError(f"HTTP {e.response.status_code}"))
        except httpx.HTTPError as e:
            self._fail(TransportError(f"Connection failed: {e}"))
        except Exception:
            # A callback raised; report nothing further through it
            logger.exception(f"Session {self.id} aborted by a failing callback")
            self.close()

    async def _stream(self) -> None:
        request = SearchRequest(query=self.query)

        async with httpx.AsyncClient(
            timeout=self._config.timeout, transport=self._transport
        ) as client:
            async with client.stream(
                "POST",
                self._config.completion_url,
                json=request.model_dump(),
                headers=self._config.headers(),
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if self._closed:
                        return
                    data = event_data(line)
                    if data is None:
                        continue
                    if data == DONE_SENTINEL:
                        self._complete()
                        return
                    try:
                        fragment = parse_fragment(data)
                    except MalformedPayloadError as e:
                        self._fail(e)
                        return
                    logger.debug(f"Session {self.id} fragment ({len(fragment)} chars)")
                    self._on_fragment(fragment)

        self._fail(TransportError("Stream ended before completion"))

    def _complete(self) -> None:
        if self._closed:
            return
        logger.info(f"Session {self.id} completed")
        self._on_complete()
        self.close()

    def _fail(self, error: StreamError) -> None:
        if self._closed:
            return
        logger.warning(f"Session {self.id} failed: {error}")
        self._on_error(error)
        self.close()


class StreamSessionController:
    """Owns the single live streaming session.

    Args:
        config: Endpoint configuration. Loads from environment if not provided.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        config: StreamConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or get_stream_config()
        self._transport = transport
        self._session: StreamSession | None = None

    @property
    def active(self) -> StreamSession | None:
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session is not None and self._session.is_open

    def open(
        self,
        query: str,
        index: int,
        *,
        on_fragment: FragmentCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> StreamSession:
        """Open a session for the turn at ``index``, closing any live one.

        Args:
            query: Question sent as the request payload.
            index: Turn the session serves.
            on_fragment: Called with each text fragment, in arrival order.
            on_complete: Called once when ``[DONE]`` arrives.
            on_error: Called once with the failure cause.

        Returns:
            The newly opened session.
        """
        previous = self._session
        self.close()

        session = StreamSession(
            query,
            self._config,
            on_fragment=on_fragment,
            on_complete=on_complete,
            on_error=on_error,
            transport=self._transport,
        )
        self._session = session
        session.open(after=previous)
        logger.info(f"Opened session {session.id} for turn {index}")
        return session

    def close(self) -> None:
        """Close the live session, if any."""
        if self._session is not None:
            self._session.close()

    async def wait(self) -> None:
        """Wait for the most recent session to finish."""
        if self._session is not None:
            await self._session.wait()
