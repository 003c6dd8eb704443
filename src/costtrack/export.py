"""Flat, localized export rows and the budget-monitoring workbook."""
from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .metrics import per_project_metrics
from .models import PortfolioSummary, ProjectRecord

LOGGER = logging.getLogger(__name__)

SHEET_NAME = "預算執行監控報表"
FILENAME_TEMPLATE = "工程預算監控_{date}.xlsx"

EXPORT_COLUMNS = (
    "專案名稱",
    "總建坪面積",
    "原編預算(萬)",
    "原編預算造價",
    "差異金額(萬)",
    "差異造價",
    "差異率(%)",
    "執行預算(萬)",
    "執行預算造價",
    "請款累計(萬)",
    "已請款造價",
    "請款佔比(%)",
)


def _plain(value: float) -> str:
    """Render a stored figure without float noise: ``1100.0`` -> ``"1100"``."""

    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _one_decimal(value: float) -> str:
    return f"{value:.1f}"


def format_amount(value: float) -> str:
    """Group thousands and keep at most one decimal: ``12345.67`` -> ``"12,345.7"``."""

    text = f"{value:,.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return "0" if text == "-0" else text


def export_rows(projects: Sequence[ProjectRecord]) -> List[Dict[str, str]]:
    """One flat mapping per project keyed by the localized column label."""

    rows: List[Dict[str, str]] = []
    for project in projects:
        m = per_project_metrics(project)
        values = (
            project.name,
            _plain(project.area),
            _plain(project.original_budget),
            _one_decimal(m.original_unit_cost),
            _plain(m.variance),
            _one_decimal(m.variance_unit_cost),
            _one_decimal(m.variance_rate),
            _plain(project.exec_budget),
            _one_decimal(m.exec_unit_cost),
            _plain(project.paid),
            _one_decimal(m.paid_unit_cost),
            _one_decimal(m.bill_ratio),
        )
        rows.append(dict(zip(EXPORT_COLUMNS, values)))
    return rows


def write_export(
    projects: Sequence[ProjectRecord],
    output_dir: Path,
    *,
    today: Optional[date] = None,
) -> Optional[Path]:
    """Write the monitoring workbook; returns ``None`` when there is nothing to export."""

    if not projects:
        LOGGER.info("No projects to export")
        return None
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = (today or date.today()).isoformat()
    path = output_dir / FILENAME_TEMPLATE.format(date=stamp)
    frame = pd.DataFrame(export_rows(projects), columns=list(EXPORT_COLUMNS))
    frame.to_excel(path, sheet_name=SHEET_NAME, index=False)
    LOGGER.info("Exported %d project(s) to %s", len(projects), path)
    return path


def make_summary_text(summary: PortfolioSummary) -> str:
    return (
        f"總執行預算: {format_amount(summary.total_exec)} 萬\n"
        f"累計請款額: {format_amount(summary.total_paid)} 萬\n"
        f"整體進度: {summary.overall_progress:.1f} %\n"
        f"總建坪: {format_amount(summary.total_area)} 坪\n"
    )


__all__ = [
    "EXPORT_COLUMNS",
    "SHEET_NAME",
    "export_rows",
    "write_export",
    "format_amount",
    "make_summary_text",
]
