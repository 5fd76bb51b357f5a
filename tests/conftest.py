"""Shared fixtures: a store and service on tmp_path with a deterministic clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from agentmem.service import TaskService
from agentmem.store.filesystem import FileSystemStore

START = datetime(2024, 12, 4, 11, 33, 20, tzinfo=timezone.utc)


class TickingClock:
    """Returns ``start``, then ``start + step``, ... one value per call."""

    def __init__(self, start: datetime = START, step: float = 1.0) -> None:
        self.current = start
        self.step = timedelta(seconds=step)

    def __call__(self) -> datetime:
        now = self.current
        self.current += self.step
        return now


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(tmp_path: Path, clock: TickingClock) -> FileSystemStore:
    return FileSystemStore(tmp_path / "tasks", clock=clock)


@pytest.fixture
def service(store: FileSystemStore) -> TaskService:
    return TaskService(store)
