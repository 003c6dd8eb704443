from __future__ import annotations

from dataclasses import asdict
from typing import List, Sequence

import pandas as pd

from .models import PortfolioSummary, ProjectMetrics, ProjectRecord


def per_project_metrics(project: ProjectRecord) -> ProjectMetrics:
    """Unit costs, variance and billing ratio for a single project.

    A zero area is treated as 1 for division only; the stored area is untouched.
    """

    divisor = project.area or 1.0
    variance = project.exec_budget - project.original_budget
    variance_rate = variance / project.original_budget * 100 if project.original_budget > 0 else 0.0
    bill_ratio = project.paid / project.exec_budget * 100 if project.exec_budget > 0 else 0.0
    return ProjectMetrics(
        original_unit_cost=project.original_budget / divisor,
        exec_unit_cost=project.exec_budget / divisor,
        paid_unit_cost=project.paid / divisor,
        variance=variance,
        variance_unit_cost=variance / divisor,
        variance_rate=variance_rate,
        bill_ratio=bill_ratio,
    )


def aggregate(projects: Sequence[ProjectRecord]) -> PortfolioSummary:
    """Fold a project list into portfolio totals and overall billing progress."""

    total_exec = sum(p.exec_budget for p in projects)
    total_paid = sum(p.paid for p in projects)
    total_area = sum(p.area for p in projects)
    total_original = sum(p.original_budget for p in projects)
    overall_progress = total_paid / total_exec * 100 if total_exec > 0 else 0.0
    return PortfolioSummary(
        total_exec=float(total_exec),
        total_paid=float(total_paid),
        total_area=float(total_area),
        total_original=float(total_original),
        overall_progress=float(overall_progress),
    )


def filter_by_name(projects: Sequence[ProjectRecord], term: str) -> List[ProjectRecord]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(projects)
    return [p for p in projects if needle in p.name.lower()]


def metrics_frame(projects: Sequence[ProjectRecord]) -> pd.DataFrame:
    """One row per project with its stored fields followed by derived metrics."""

    records = []
    for project in projects:
        row = asdict(project)
        row.update(asdict(per_project_metrics(project)))
        records.append(row)
    frame = pd.DataFrame.from_records(records)
    if frame.empty:
        return frame
    return frame.set_index("project_id")


__all__ = ["per_project_metrics", "aggregate", "filter_by_name", "metrics_frame"]
