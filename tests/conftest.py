from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pytest

from costtrack.cache import LocalCache
from costtrack.errors import AuthFailed
from costtrack.models import ProjectRecord
from costtrack.remote import DocumentStore
from costtrack.sync import SyncStore


class FakeDocumentStore(DocumentStore):
    """In-process remote store; the test drives snapshots and errors by hand."""

    def __init__(self, app_id: str = "test-app") -> None:
        super().__init__(app_id)
        self.auth_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.writes: List[tuple] = []
        self.on_data = None
        self.on_error = None
        self.unsubscribed = False

    def authenticate(self) -> None:
        if self.auth_error is not None:
            raise self.auth_error

    def write(self, projects: Sequence[ProjectRecord], updated_at: str) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((tuple(projects), updated_at))

    def subscribe(self, on_data, on_error):
        self.on_data = on_data
        self.on_error = on_error

        def _unsubscribe() -> None:
            self.unsubscribed = True

        return _unsubscribe

    def push(self, payload: list) -> None:
        self.on_data(payload)

    def fail(self, error: Exception) -> None:
        self.on_error(error)


class DeferredRunner:
    """Holds remote writes until the test releases them."""

    def __init__(self) -> None:
        self.pending: List[Callable[[], None]] = []

    def __call__(self, task: Callable[[], None]) -> None:
        self.pending.append(task)

    def run_all(self) -> None:
        tasks, self.pending = self.pending, []
        for task in tasks:
            task()


def run_inline(task: Callable[[], None]) -> None:
    task()


@pytest.fixture
def cache(tmp_path: Path) -> LocalCache:
    return LocalCache(tmp_path / "cache")


@pytest.fixture
def remote() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def auth_rejecting_remote() -> FakeDocumentStore:
    store = FakeDocumentStore()
    store.auth_error = AuthFailed("anonymous sign-in disabled")
    return store


@pytest.fixture
def project_factory() -> Callable[..., ProjectRecord]:
    counter = {"n": 0}

    def _create(name: str = "A", **values: float) -> ProjectRecord:
        counter["n"] += 1
        return ProjectRecord(project_id=f"p-{counter['n']}", name=name, **values)

    return _create


@pytest.fixture
def deferred_runner() -> DeferredRunner:
    return DeferredRunner()


@pytest.fixture
def store_factory(cache: LocalCache) -> Callable[..., SyncStore]:
    def _create(remote: Optional[DocumentStore] = None, runner=run_inline) -> SyncStore:
        return SyncStore(cache, remote, runner=runner)

    return _create
