"""Shared test fixtures."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import anyio
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_DB_PATH = Path(tempfile.gettempdir()) / "quickqr_notify_test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["NOTIFICATION_RETENTION"] = "100"

from quickqr_notify.config import get_settings  # noqa: E402

get_settings.cache_clear()

from quickqr_notify.infrastructure.database import (  # noqa: E402
    Base,
    SessionLocal,
    engine,
    initialize_database,
)
from quickqr_notify.infrastructure.notifications import ConnectionRegistry  # noqa: E402


class RecordingTransport:
    """In-memory stand-in for a websocket."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail
        self.closed_with: int | None = None
        self._inbox_tx, self._inbox_rx = anyio.create_memory_object_stream(100)

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("connection reset by peer")
        self.sent.append(data)

    async def receive_json(self) -> Any:
        item = await self._inbox_rx.receive()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def feed(self, message: Any) -> None:
        self._inbox_tx.send_nowait(message)

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [message for message in self.sent if name is None or message["type"] == name]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_database():
    """Ensure the test database starts from a clean state for each test."""

    Base.metadata.drop_all(bind=engine)
    initialize_database()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry(send_timeout=1.0)


@pytest.fixture
def transport_factory():
    return RecordingTransport
