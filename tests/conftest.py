"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - stream_config: Endpoint config pointing at the in-process test host
    - fake_sessions: Scripted session controller for state machine tests
    - completion_app_factory: Builds a FastAPI completion endpoint replaying scripted events
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse

from src.streaming.config import StreamConfig
from src.streaming.session import StreamError

TEST_API_KEY = "test-anon-key"


@dataclass
class FakeSession:
    """Session stand-in whose callbacks are fired by the test."""

    query: str
    index: int
    on_fragment: Callable[[str], None]
    on_complete: Callable[[], None]
    on_error: Callable[[StreamError], None]
    closed: bool = False

    def fragment(self, text: str) -> None:
        self.on_fragment(text)

    def done(self) -> None:
        self.on_complete()

    def fail(self, error: StreamError) -> None:
        self.on_error(error)


@dataclass
class FakeSessionController:
    """Records opened sessions instead of touching the network."""

    opened: list[FakeSession] = field(default_factory=list)

    @property
    def last(self) -> FakeSession:
        return self.opened[-1]

    @property
    def is_open(self) -> bool:
        return bool(self.opened) and not self.opened[-1].closed

    def open(
        self,
        query: str,
        index: int,
        *,
        on_fragment: Callable[[str], None],
        on_complete: Callable[[], None],
        on_error: Callable[[StreamError], None],
    ) -> FakeSession:
        self.close()
        session = FakeSession(query, index, on_fragment, on_complete, on_error)
        self.opened.append(session)
        return session

    def close(self) -> None:
        if self.opened:
            self.opened[-1].closed = True

    async def wait(self) -> None:
        return None


@pytest.fixture
def stream_config() -> StreamConfig:
    """Return config pointing at the in-process test host.

    Returns:
        StreamConfig with a fixed API key.
    """
    return StreamConfig(
        function_url="http://test/functions/v1",
        api_key=TEST_API_KEY,
        endpoint="clippy-search",
        timeout=5.0,
    )


@pytest.fixture
def fake_sessions() -> FakeSessionController:
    """Return a scripted session controller.

    Returns:
        FakeSessionController with no sessions opened.
    """
    return FakeSessionController()


@pytest.fixture
def completion_app_factory() -> Callable[..., FastAPI]:
    """Return a builder for scripted completion endpoints.

    The built app records each request in ``app.state.requests`` and replays
    the given SSE data payloads in order. Requests without the test bearer
    token get a 401.

    Returns:
        Factory taking the list of data payloads.
    """

    def build(events: list[str]) -> FastAPI:
        app = FastAPI()
        app.state.requests = []

        @app.post("/functions/v1/clippy-search")
        async def clippy_search(request: Request) -> StreamingResponse:
            body: dict[str, Any] = await request.json()
            app.state.requests.append({"headers": dict(request.headers), "body": body})

            if request.headers.get("authorization") != f"Bearer {TEST_API_KEY}":
                raise HTTPException(status_code=401, detail="Invalid credentials")

            async def event_stream():
                for data in events:
                    yield f"data: {data}\n\n"

            return StreamingResponse(event_stream(), media_type="text/event-stream")

        return app

    return build
