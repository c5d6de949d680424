"""Shared test fixtures and configuration for backend tests."""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from apcollector.config import AppConfig, RoomSettings, StorageSettings, SweeperSettings
from apcollector.main import create_app
from apcollector.state import CollectorState

START = datetime(2026, 1, 1, 12, 0, 0)

CREATOR = {"X-Forwarded-For": "10.0.0.1"}
ALICE = {"X-Forwarded-For": "10.0.0.2"}
BOB = {"X-Forwarded-For": "10.0.0.3"}


class FakeClock:
    """Controllable replacement for ``utcnow``."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    """Settings pointing every storage path into a temp directory."""
    return AppConfig(
        storage=StorageSettings(data_dir=str(tmp_path / "storage")),
        rooms=RoomSettings(max_file_size_mb=1, max_files_per_upload=10),
        sweeper=SweeperSettings(enabled=False),
    )


@pytest.fixture
def state(config, clock):
    """An opened CollectorState; closed after the test."""
    collector = CollectorState.open(config, clock=clock)
    yield collector
    collector.close()


@pytest.fixture
def api_client(config, clock):
    """TestClient driven through the application lifespan."""
    app = create_app(config, clock=clock)
    with TestClient(app) as client:
        yield client
