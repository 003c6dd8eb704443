from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

from .cache import LocalCache
from .config import Config
from .ingest import ingest_file
from .models import ProjectRecord
from .remote import build_document_store
from .sync import Runner, SyncStore, run_in_thread


def open_store(config: Config, *, runner: Runner = run_in_thread) -> SyncStore:
    """Build and start the process-wide :class:`SyncStore` for ``config``."""

    store = SyncStore(
        LocalCache(config.cache_dir, config.cache_key),
        build_document_store(config),
        runner=runner,
    )
    store.start()
    return store


def import_workbook(
    store: SyncStore,
    path: Path,
    sheet: Union[int, str] = 0,
    *,
    wait_seconds: Optional[float] = 30.0,
) -> List[ProjectRecord]:
    """Ingest ``path`` and hand the result to ``store``.

    Ingestion errors propagate before the store is touched, so a failed import
    never clears existing data. With ``wait_seconds`` set, waits for the
    remote write to finish.
    """

    projects = ingest_file(path, sheet)
    store.import_batch(projects)
    if wait_seconds:
        store.wait_until_idle(wait_seconds)
    return projects


__all__ = ["open_store", "import_workbook"]
