"""Remote document store used to share the project list between machines."""
from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from .errors import AuthFailed
from .models import ProjectRecord

if TYPE_CHECKING:
    from .config import Config

LOGGER = logging.getLogger(__name__)

DOCUMENT_PATH = ("artifacts", "{app_id}", "public", "data", "projects", "main")

DataCallback = Callable[[List[dict]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


def document_path(app_id: str) -> str:
    """Return ``artifacts/<app_id>/public/data/projects/main``."""

    return "/".join(part.format(app_id=app_id) for part in DOCUMENT_PATH)


def build_document(projects: Sequence[ProjectRecord], updated_at: str) -> Dict[str, object]:
    return {"list": [project.to_dict() for project in projects], "updatedAt": updated_at}


def parse_document(text: str) -> dict:
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError(f"Remote document must be an object, got {type(document).__name__}")
    return document


class DocumentStore(ABC):
    """Backend-agnostic write + subscribe interface for the shared project document."""

    def __init__(self, app_id: str) -> None:
        self.app_id = app_id
        self.path = document_path(app_id)

    @abstractmethod
    def authenticate(self) -> None:
        """Acquire credentials; raise :class:`AuthFailed` when rejected."""

    @abstractmethod
    def write(self, projects: Sequence[ProjectRecord], updated_at: str) -> None:
        """Replace the shared document with ``projects``."""

    @abstractmethod
    def subscribe(self, on_data: DataCallback, on_error: ErrorCallback) -> Unsubscribe:
        """Deliver the document's project list on every change until unsubscribed.

        Callbacks may run on any thread.
        """


class _DocumentChangeHandler(FileSystemEventHandler):
    """Re-reads the shared document when watchdog reports a change to it.

    The sha256 of the last delivered text suppresses duplicate deliveries,
    since one atomic replace can raise several filesystem events.
    """

    def __init__(self, store: "DirectoryDocumentStore", on_data: DataCallback, on_error: ErrorCallback) -> None:
        super().__init__()
        self.store = store
        self.on_data = on_data
        self.on_error = on_error
        self.observer: Optional[BaseObserver] = None
        self._last_seen: Optional[str] = None
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()

    def _concerns_document(self, path: object) -> bool:
        return bool(path) and Path(os.fsdecode(path)) == self.store.document_file

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._concerns_document(event.src_path):
            self.check()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._concerns_document(event.src_path):
            self.check()

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._concerns_document(getattr(event, "dest_path", "")):
            self.check()

    def check(self) -> None:
        with self._lock:
            if not self.active:
                return
            try:
                text = self.store.read_text()
                if text is None:
                    return
                checksum = hashlib.sha256(text.encode("utf-8")).hexdigest()
                if checksum == self._last_seen:
                    return
                document = parse_document(text)
            except (OSError, ValueError, RecursionError) as exc:
                self.on_error(exc)
                return
            self._last_seen = checksum
            self.on_data(list(document.get("list") or []))

    def start(self, interval: Optional[float]) -> None:
        """Watch the document's directory; ``interval`` > 0 selects a polling observer."""

        folder = self.store.document_file.parent
        folder.mkdir(parents=True, exist_ok=True)
        observer = PollingObserver(timeout=interval) if interval else Observer()
        observer.schedule(self, str(folder), recursive=False)
        observer.start()
        self.observer = observer
        LOGGER.debug("Watching %s with %s", folder, type(observer).__name__)

    def cancel(self) -> None:
        self._stopped.set()
        observer, self.observer = self.observer, None
        if observer is not None:
            observer.stop()
            if observer is not threading.current_thread():
                observer.join()


class DirectoryDocumentStore(DocumentStore):
    """
    Shared document kept as a JSON file beneath a common root directory.

    The root is typically a network share every workstation can reach. The
    document lives at ``<root>/<document path>.json``. When the root holds an
    ``access_key`` file, the configured key must match it.

    Subscriptions deliver the current document immediately, then follow it
    with a watchdog observer. A positive ``poll_interval`` uses
    :class:`~watchdog.observers.polling.PollingObserver` with that timeout,
    which also works on network shares that raise no native events; ``0``
    uses the platform's native observer. With ``None`` nothing is watched
    and :meth:`check_for_changes` must be called to pick up changes.
    """

    def __init__(
        self,
        root: Path,
        app_id: str,
        access_key: str,
        poll_interval: Optional[float] = 2.0,
    ) -> None:
        super().__init__(app_id)
        self.root = Path(root)
        self.access_key = access_key
        self.poll_interval = poll_interval
        self._subscriptions: List[_DocumentChangeHandler] = []

    @property
    def document_file(self) -> Path:
        return self.root.joinpath(*self.path.split("/")).with_suffix(".json")

    def authenticate(self) -> None:
        if not self.access_key or self.access_key == "undefined":
            raise AuthFailed("Remote access key is not configured")
        if not self.root.is_dir():
            raise AuthFailed(f"Remote root {self.root} is not reachable")
        key_file = self.root / "access_key"
        if key_file.exists():
            try:
                expected = key_file.read_text(encoding="utf-8").strip()
            except OSError as exc:
                raise AuthFailed(f"Unable to read {key_file}: {exc}") from exc
            if expected and expected != self.access_key:
                raise AuthFailed("Remote access key was rejected")
        LOGGER.debug("Authenticated against %s", self.root)

    def write(self, projects: Sequence[ProjectRecord], updated_at: str) -> None:
        target = self.document_file
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(build_document(projects, updated_at), ensure_ascii=False, indent=2)
        tmp_path = target.with_suffix(".json.tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(target)
        LOGGER.info("Wrote %d project(s) to %s", len(projects), target)

    def read_text(self) -> Optional[str]:
        try:
            return self.document_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def read_document(self) -> Optional[dict]:
        """Return the decoded document, ``None`` when it does not exist yet."""

        text = self.read_text()
        if text is None:
            return None
        return parse_document(text)

    def subscribe(self, on_data: DataCallback, on_error: ErrorCallback) -> Unsubscribe:
        subscription = _DocumentChangeHandler(self, on_data, on_error)
        self._subscriptions.append(subscription)
        subscription.check()
        if self.poll_interval is not None:
            subscription.start(self.poll_interval)

        def _unsubscribe() -> None:
            subscription.cancel()
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return _unsubscribe

    def check_for_changes(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.check()


def build_document_store(config: "Config") -> Optional[DocumentStore]:
    """Return the configured remote store, or ``None`` to run offline."""

    remote = config.remote
    if remote is None:
        return None
    return DirectoryDocumentStore(
        root=remote.root,
        app_id=config.app_id,
        access_key=remote.access_key,
        poll_interval=remote.poll_interval,
    )


__all__ = [
    "DocumentStore",
    "DirectoryDocumentStore",
    "build_document",
    "build_document_store",
    "document_path",
    "parse_document",
    "DOCUMENT_PATH",
]
