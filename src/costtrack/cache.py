"""Durable local cache for the project list."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import MalformedCache
from .models import ProjectRecord, dumps_projects, loads_projects

DEFAULT_CACHE_KEY = "construction_projects_cache"


@dataclass
class LocalCache:
    """A single keyed slot holding the JSON-serialised project list.

    The slot lives at ``<directory>/<key>.json``. It is read once at startup
    and overwritten on every successful import or remote snapshot.
    """

    directory: Path
    key: str = DEFAULT_CACHE_KEY

    @property
    def path(self) -> Path:
        return Path(self.directory) / f"{self.key}.json"

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedCache(f"Cache {self.path} is not UTF-8 text: {exc}") from exc

    def write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(self.path)

    def load_projects(self) -> Optional[List[ProjectRecord]]:
        """Return cached projects, ``None`` when the slot is empty.

        Raises :class:`~costtrack.errors.MalformedCache` when the slot holds
        something that is not a project list.
        """

        text = self.read()
        if text is None:
            return None
        return loads_projects(text)

    def save_projects(self, projects: Sequence[ProjectRecord]) -> None:
        self.write(dumps_projects(projects))


__all__ = ["LocalCache", "DEFAULT_CACHE_KEY"]
