from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

from .errors import MalformedCache
from .numeric import normalize


@dataclass(frozen=True)
class ProjectRecord:
    """One tracked construction project's budget and billing figures."""

    project_id: str
    name: str
    area: float = 0.0
    original_budget: float = 0.0
    exec_budget: float = 0.0
    paid: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        """Serialise using the camelCase keys shared by the cache and remote document."""

        return {
            "id": self.project_id,
            "name": self.name,
            "area": self.area,
            "originalBudget": self.original_budget,
            "execBudget": self.exec_budget,
            "paid": self.paid,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "ProjectRecord":
        return cls(
            project_id=str(data.get("id", "")),
            name=str(data.get("name") or "").strip(),
            area=normalize(data.get("area")),
            original_budget=normalize(data.get("originalBudget")),
            exec_budget=normalize(data.get("execBudget")),
            paid=normalize(data.get("paid")),
        )


@dataclass(frozen=True)
class ProjectMetrics:
    """Derived per-project figures shown in the table and export."""

    original_unit_cost: float
    exec_unit_cost: float
    paid_unit_cost: float
    variance: float
    variance_unit_cost: float
    variance_rate: float
    bill_ratio: float


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals over the current project list; recomputed, never stored."""

    total_exec: float
    total_paid: float
    total_area: float
    total_original: float
    overall_progress: float


def projects_from_list(items: Iterable[object]) -> List[ProjectRecord]:
    """Convert a decoded JSON list into records, rejecting non-object entries."""

    records: List[ProjectRecord] = []
    for item in items:
        if not isinstance(item, Mapping):
            raise TypeError(f"Project entry must be an object, got {type(item).__name__}")
        records.append(ProjectRecord.from_dict(item))
    return records


def dumps_projects(projects: Sequence[ProjectRecord]) -> str:
    return json.dumps([project.to_dict() for project in projects], ensure_ascii=False)


def loads_projects(text: str) -> List[ProjectRecord]:
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise MalformedCache(f"Cache is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise MalformedCache(f"Cache must hold a list, got {type(raw).__name__}")
    try:
        return projects_from_list(raw)
    except TypeError as exc:
        raise MalformedCache(str(exc)) from exc


__all__ = [
    "ProjectRecord",
    "ProjectMetrics",
    "PortfolioSummary",
    "projects_from_list",
    "dumps_projects",
    "loads_projects",
]
