"""
Reconciliation of the optimistic local project list with the shared remote document.

:class:`SyncStore` owns the authoritative list. Local imports are applied and
cached immediately, then pushed to the remote store in the background. Remote
snapshots arrive through a subscription and replace the list. Background work
never touches store state directly: remote callbacks and write completions are
queued and applied by :meth:`SyncStore.process_events` on the owner's thread,
in arrival order. Whichever change is applied last wins; there is no
versioning between a local import and a remote snapshot.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .cache import LocalCache
from .errors import MalformedCache, RemoteUnavailable, RemoteWriteFailed
from .metrics import aggregate, filter_by_name
from .models import PortfolioSummary, ProjectRecord, projects_from_list
from .remote import DocumentStore

LOGGER = logging.getLogger(__name__)

Runner = Callable[[Callable[[], None]], None]
Listener = Callable[["SyncStore"], None]


class SyncStatus(Enum):
    """Synchronisation state; each value is the label shown to users."""

    UNINITIALIZED = "初始化中..."
    LOCAL_LOADED = "載入本地存檔"
    OFFLINE = "離線模式"
    OFFLINE_CACHED = "本地存檔 (離線)"
    REMOTE_CONNECTING = "雲端連線中..."
    REMOTE_SYNCED = "雲端同步中"
    REMOTE_ERROR = "雲端連線失敗"
    AUTH_FAILED = "驗證錯誤"
    SAVING = "正在存檔..."
    SAVED_REMOTE = "已完成自動存檔"
    SAVED_LOCAL = "已儲存至本地"
    SAVE_FAILED = "存檔失敗"

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class _RemoteSnapshot:
    payload: list


@dataclass(frozen=True)
class _RemoteFeedError:
    error: Exception


@dataclass(frozen=True)
class _WriteCompleted:
    error: Optional[Exception] = None


_Event = Union[_RemoteSnapshot, _RemoteFeedError, _WriteCompleted]


def run_in_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, name="costtrack-remote-write", daemon=True).start()


class SyncStore:
    """Owns the authoritative project list and its synchronisation state.

    Construct one per process and pass it to consumers. ``runner`` executes
    remote writes off the caller's path; the default starts a daemon thread.
    """

    def __init__(
        self,
        cache: LocalCache,
        remote: Optional[DocumentStore] = None,
        *,
        runner: Runner = run_in_thread,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._runner = runner
        self._projects: Tuple[ProjectRecord, ...] = ()
        self._status = SyncStatus.UNINITIALIZED
        self._writes_in_flight = 0
        self._remote_active = False
        self._closed = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._events: "queue.Queue[_Event]" = queue.Queue()
        self._listeners: List[Listener] = []
        self.last_error: Optional[Exception] = None

    # -- read side -----------------------------------------------------

    @property
    def projects(self) -> Tuple[ProjectRecord, ...]:
        return self._projects

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def status_label(self) -> str:
        return self._status.label

    @property
    def is_syncing(self) -> bool:
        return self._writes_in_flight > 0

    @property
    def remote_active(self) -> bool:
        return self._remote_active

    @property
    def summary(self) -> PortfolioSummary:
        return aggregate(self._projects)

    def search(self, term: str) -> List[ProjectRecord]:
        return filter_by_name(self._projects, term)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every applied list or status change."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # -- lifecycle -----------------------------------------------------

    def start(self) -> SyncStatus:
        """Publish the cached list, then connect to the remote feed if configured."""

        cached = self._load_cache()
        if cached is not None:
            self._replace(cached)
            self._set_status(SyncStatus.LOCAL_LOADED)

        if self._remote is None:
            self._set_status(SyncStatus.OFFLINE_CACHED if cached is not None else SyncStatus.OFFLINE)
            return self._status

        try:
            self._remote.authenticate()
            self._set_status(SyncStatus.REMOTE_CONNECTING)
            self._unsubscribe = self._remote.subscribe(self._on_remote_data, self._on_remote_error)
        except (RemoteUnavailable, OSError) as exc:
            LOGGER.error("Remote handshake failed: %s", exc)
            self.last_error = exc
            self._set_status(SyncStatus.AUTH_FAILED)
            return self._status

        self._remote_active = True
        self.process_events()
        return self._status

    def close(self) -> None:
        """Dispose the remote subscription; later feed events are ignored."""

        self._closed = True
        self._remote_active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            LOGGER.debug("Remote subscription disposed")

    def __enter__(self) -> "SyncStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- write side ----------------------------------------------------

    def import_batch(self, projects: Sequence[ProjectRecord]) -> None:
        """
        Replace the list with ``projects`` and cache it, then push it remotely.

        The local replacement is never rolled back. A failed remote write
        only changes the status to :attr:`SyncStatus.SAVE_FAILED`; it is
        retried on the next import, not automatically.
        """

        batch = tuple(projects)
        self._writes_in_flight += 1
        self._set_status(SyncStatus.SAVING)
        self._replace(batch)

        try:
            self._cache.save_projects(batch)
        except OSError as exc:
            LOGGER.error("Auto-save failed: unable to write local cache: %s", exc)
            self.last_error = exc
            self._writes_in_flight -= 1
            self._set_status(SyncStatus.SAVE_FAILED)
            return

        if not self._remote_active or self._remote is None:
            self._writes_in_flight -= 1
            self._set_status(SyncStatus.SAVED_LOCAL)
            return

        remote = self._remote
        updated_at = datetime.now(timezone.utc).isoformat()
        events = self._events

        def _write() -> None:
            try:
                remote.write(batch, updated_at)
            except Exception as exc:  # any backend failure counts as RemoteWriteFailed
                events.put(_WriteCompleted(error=exc))
            else:
                events.put(_WriteCompleted())

        LOGGER.info("Saving %d project(s) to remote store", len(batch))
        self._runner(_write)

    # -- event loop ----------------------------------------------------

    def process_events(self, timeout: float = 0.0) -> int:
        """Apply queued remote events and write completions; return how many.

        With a positive ``timeout`` the first event is awaited for up to that
        many seconds; anything already queued is applied without waiting.
        """

        applied = 0
        wait = timeout > 0
        while True:
            try:
                event = self._events.get(timeout=timeout) if wait else self._events.get_nowait()
            except queue.Empty:
                return applied
            wait = False
            self._apply(event)
            applied += 1

    def wait_until_idle(self, timeout: float = 30.0) -> bool:
        """Process events until no remote write is in flight or ``timeout`` passes."""

        deadline = time.monotonic() + timeout
        while self.is_syncing:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            self.process_events(timeout=min(remaining, 0.1))
        return not self.is_syncing

    def _on_remote_data(self, payload: list) -> None:
        if not self._closed:
            self._events.put(_RemoteSnapshot(list(payload or [])))

    def _on_remote_error(self, error: Exception) -> None:
        if not self._closed:
            self._events.put(_RemoteFeedError(error))

    def _apply(self, event: _Event) -> None:
        if isinstance(event, _WriteCompleted):
            self._writes_in_flight = max(0, self._writes_in_flight - 1)
            if event.error is None:
                self._set_status(SyncStatus.SAVED_REMOTE)
                return
            failure = RemoteWriteFailed(str(event.error))
            failure.__cause__ = event.error
            self.last_error = failure
            LOGGER.warning("Auto-save failed: %s", event.error)
            self._set_status(SyncStatus.SAVE_FAILED)
            return

        if self._closed:
            LOGGER.debug("Ignoring remote event after close")
            return

        if isinstance(event, _RemoteFeedError):
            LOGGER.warning("Remote sync error: %s", event.error)
            self.last_error = event.error
            self._set_status(SyncStatus.REMOTE_ERROR)
            return

        try:
            projects = projects_from_list(event.payload)
        except TypeError as exc:
            LOGGER.warning("Ignoring malformed remote snapshot: %s", exc)
            self.last_error = exc
            self._set_status(SyncStatus.REMOTE_ERROR)
            return
        if projects:
            self._replace(tuple(projects))
            try:
                self._cache.save_projects(projects)
            except OSError as exc:
                LOGGER.warning("Unable to refresh local cache from remote snapshot: %s", exc)
        self._set_status(SyncStatus.REMOTE_SYNCED)

    # -- internals -----------------------------------------------------

    def _load_cache(self) -> Optional[List[ProjectRecord]]:
        try:
            return self._cache.load_projects()
        except (MalformedCache, OSError) as exc:
            LOGGER.warning("Failed to parse local cache %s; discarding it: %s", self._cache.path, exc)
            return None

    def _replace(self, projects: Tuple[ProjectRecord, ...]) -> None:
        self._projects = projects
        self._notify()

    def _set_status(self, status: SyncStatus) -> None:
        if status is not self._status:
            LOGGER.info("Sync status: %s", status.label)
        self._status = status
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


__all__ = ["SyncStore", "SyncStatus", "run_in_thread"]
