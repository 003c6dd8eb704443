from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from costtrack.errors import NoRecognizedColumns, TabularReadError
from costtrack.ingest import ingest, ingest_file, read_rows


def _row(name, area="100", original="1,000", execution="1,100", paid="550"):
    return {
        "專案名稱": name,
        "總建坪面積": area,
        "原編預算(萬)": original,
        "執行預算(萬)": execution,
        "請款累計(萬)": paid,
    }


def test_ingest_builds_normalized_records() -> None:
    records = ingest([_row("  A  ")], batch_ts=1700000000000)

    assert len(records) == 1
    record = records[0]
    assert record.name == "A"
    assert record.area == 100.0
    assert record.original_budget == 1000.0
    assert record.exec_budget == 1100.0
    assert record.paid == 550.0
    assert record.project_id == "1700000000000-0"


def test_ingest_ids_unique_for_identical_rows() -> None:
    records = ingest([_row("Same"), _row("Same"), _row("Same")], batch_ts=5)
    ids = [r.project_id for r in records]
    assert len(set(ids)) == 3


def test_ingest_drops_blank_and_total_rows_preserving_order() -> None:
    rows = [
        _row("North Tower"),
        _row(""),
        _row("   "),
        _row("合計"),
        _row("Grand Total"),
        _row("小計 A區"),
        _row("South Wing"),
    ]
    records = ingest(rows, batch_ts=1)

    assert [r.name for r in records] == ["North Tower", "South Wing"]
    # ids keep the original row ordinal
    assert [r.project_id for r in records] == ["1-0", "1-6"]


def test_ingest_falls_back_to_zero_for_dirty_numbers() -> None:
    records = ingest([_row("A", area="", original="n/a", execution=None, paid="-")], batch_ts=1)
    record = records[0]
    assert (record.area, record.original_budget, record.exec_budget, record.paid) == (0.0, 0.0, 0.0, 0.0)


def test_ingest_accepts_english_figure_headers() -> None:
    rows = [{"工程名稱": "Depot", "Area": 50, "Original Budget": 200, "Execution Budget": 180, "Paid": 90}]
    record = ingest(rows, batch_ts=1)[0]
    assert record.name == "Depot"
    assert record.exec_budget == 180.0
    assert record.paid == 90.0


def test_project_number_column_is_not_taken_as_name() -> None:
    rows = [{"Project No.": "P-001", "專案名稱": "North Tower", "建坪": 10, "執行預算": 100}]
    record = ingest(rows, batch_ts=1)[0]
    assert record.name == "North Tower"
    assert record.exec_budget == 100.0


def test_ingest_without_recognized_columns_raises() -> None:
    with pytest.raises(NoRecognizedColumns) as excinfo:
        ingest([{"foo": "bar", "baz": 1}])
    assert excinfo.value.row_count == 1
    assert "專案" in str(excinfo.value)
    assert "請款" in str(excinfo.value)


def test_ingest_empty_input_is_distinguishable() -> None:
    with pytest.raises(NoRecognizedColumns) as excinfo:
        ingest([])
    assert excinfo.value.row_count == 0


def test_read_rows_from_excel(tmp_path: Path) -> None:
    df = pd.DataFrame(
        {
            "專案名稱": ["North Tower", "合計"],
            "總建坪面積": [1200.5, None],
            "原編預算(萬)": ["12,000", 12000],
            "執行預算(萬)": [13000, 13000],
            "請款累計(萬)": [6500, 6500],
        }
    )
    path = tmp_path / "projects.xlsx"
    df.to_excel(path, index=False)

    rows = read_rows(path)
    assert list(rows[0].keys()) == list(df.columns)
    assert rows[1]["總建坪面積"] == ""

    records = ingest_file(path, batch_ts=7)
    assert [r.name for r in records] == ["North Tower"]
    assert records[0].original_budget == 12000.0
    assert records[0].area == 1200.5


def test_read_rows_from_csv(tmp_path: Path) -> None:
    path = tmp_path / "projects.csv"
    path.write_text("案名,面積,原編,執行,已請\nDepot,10,\"1,000\",900,450\n", encoding="utf-8")

    records = ingest_file(path, batch_ts=1)
    assert records[0].name == "Depot"
    assert records[0].original_budget == 1000.0
    assert records[0].paid == 450.0


def test_read_rows_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a workbook")
    with pytest.raises(TabularReadError):
        read_rows(path)
