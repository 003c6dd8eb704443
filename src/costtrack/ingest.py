"""Conversion of raw spreadsheet rows into validated project records."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from .columns import FIELD_CANDIDATES, expected_fragments, resolve
from .errors import NoRecognizedColumns, TabularReadError
from .models import ProjectRecord
from .numeric import normalize

LOGGER = logging.getLogger(__name__)

# Names containing any of these mark spreadsheet subtotal rows, not projects.
SUMMARY_MARKERS = ("合計", "小計", "總計", "total")

NUMERIC_FIELDS = ("area", "original_budget", "exec_budget", "paid")


def is_summary_row(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in SUMMARY_MARKERS)


def ingest(rows: Iterable[Mapping[object, object]], *, batch_ts: Optional[int] = None) -> List[ProjectRecord]:
    """
    Build project records from decoded spreadsheet rows.

    Parameters
    ----------
    rows:
        Raw rows in sheet order; each maps a column label to a cell value.
    batch_ts:
        Epoch milliseconds identifying this import. Defaults to now. Record
        ids combine it with the row's ordinal so ids never collide within a
        batch, even for identical rows.

    Returns
    -------
    list[ProjectRecord]
        Surviving rows in input order. Rows with a blank name or a subtotal
        marker in the name are dropped.

    Raises
    ------
    NoRecognizedColumns
        When no row survives, so callers never replace existing data with an
        empty list by accident.
    """

    stamp = batch_ts if batch_ts is not None else int(time.time() * 1000)
    records: List[ProjectRecord] = []
    row_count = 0
    for index, row in enumerate(rows):
        row_count += 1
        name = str(resolve(row, FIELD_CANDIDATES["name"])).strip()
        if not name or is_summary_row(name):
            LOGGER.debug("Skipping row %d (%r): not a project row", index, name)
            continue
        values = {field: normalize(resolve(row, FIELD_CANDIDATES[field])) for field in NUMERIC_FIELDS}
        records.append(ProjectRecord(project_id=f"{stamp}-{index}", name=name, **values))

    if not records:
        raise NoRecognizedColumns(row_count, expected_fragments())
    LOGGER.info("Ingested %d project(s) from %d row(s)", len(records), row_count)
    return records


def read_rows(path: Path, sheet: Union[int, str] = 0) -> List[Dict[str, object]]:
    """
    Decode a spreadsheet into raw rows, first sheet by default.

    ``.csv`` files go through :func:`pandas.read_csv`; anything else through
    :func:`pandas.read_excel` (openpyxl for ``.xlsx``, xlrd for ``.xls``).
    Blank cells become ``""`` and column order follows the header row.
    """

    path = Path(path)
    try:
        if path.suffix.lower() == ".csv":
            frame = pd.read_csv(path, dtype=object)
        else:
            frame = pd.read_excel(path, sheet_name=sheet, dtype=object)
    except Exception as exc:
        raise TabularReadError(f"Excel 讀取失敗: {path.name}: {exc}") from exc

    frame = frame.astype(object).where(frame.notna(), "")
    return frame.to_dict(orient="records")


def ingest_file(path: Path, sheet: Union[int, str] = 0, *, batch_ts: Optional[int] = None) -> List[ProjectRecord]:
    rows = read_rows(path, sheet)
    LOGGER.debug("Read %d row(s) from %s", len(rows), path)
    return ingest(rows, batch_ts=batch_ts)


__all__ = ["ingest", "ingest_file", "read_rows", "is_summary_row", "SUMMARY_MARKERS"]
