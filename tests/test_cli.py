from __future__ import annotations

import json
import logging
from pathlib import Path

import pandas as pd
import pytest

from costtrack import cli
from costtrack.analysis import AnalysisResult
from costtrack.cache import LocalCache


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for name in ("COSTTRACK_REMOTE_CONFIG", "COSTTRACK_CACHE_KEY", "COSTTRACK_APP_ID", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("COSTTRACK_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("COSTTRACK_OUTPUT_DIR", str(tmp_path / "out"))
    return tmp_path


def _workbook(path: Path) -> Path:
    pd.DataFrame(
        [
            {"專案名稱": "North Tower", "建坪": 100, "原編預算": 1000, "執行預算": 1100, "請款累計": 550},
            {"專案名稱": "合計", "建坪": 100, "原編預算": 1000, "執行預算": 1100, "請款累計": 550},
        ]
    ).to_excel(path, index=False)
    return path


def test_import_then_show_and_export(workspace: Path, caplog) -> None:
    caplog.set_level(logging.INFO)
    source = _workbook(workspace / "projects.xlsx")

    assert cli.main(["import", str(source)]) == 0
    cached = LocalCache(workspace / "cache").load_projects()
    assert [p.name for p in cached] == ["North Tower"]

    caplog.clear()
    assert cli.main(["show", "--search", "north"]) == 0
    assert "總執行預算: 1,100 萬" in caplog.text
    assert "North Tower" in caplog.text

    assert cli.main(["export"]) == 0
    exported = list((workspace / "out").glob("*.xlsx"))
    assert len(exported) == 1


def test_unrecognized_workbook_leaves_cache_alone(workspace: Path, caplog) -> None:
    good = _workbook(workspace / "good.xlsx")
    assert cli.main(["import", str(good)]) == 0

    bad = workspace / "bad.csv"
    bad.write_text("foo,bar\n1,2\n", encoding="utf-8")

    assert cli.main(["import", str(bad)]) == 1
    assert "未能讀取有效數據" in caplog.text
    assert [p.name for p in LocalCache(workspace / "cache").load_projects()] == ["North Tower"]


def test_import_to_shared_directory(workspace: Path) -> None:
    share = workspace / "share"
    share.mkdir()
    remote = json.dumps({"api_key": "secret", "root": str(share), "poll_interval": 0})
    source = _workbook(workspace / "projects.xlsx")

    assert cli.main(["--remote-config", remote, "--app-id", "site-a", "import", str(source)]) == 0

    document_file = share / "artifacts" / "site-a" / "public" / "data" / "projects" / "main.json"
    document = json.loads(document_file.read_text(encoding="utf-8"))
    assert [item["name"] for item in document["list"]] == ["North Tower"]
    assert document["updatedAt"]


def test_analyze_without_projects_is_skipped(workspace: Path) -> None:
    assert cli.main(["--disable-ai", "analyze"]) == 0


def test_sheet_index_is_parsed_as_int() -> None:
    args = cli.parse_args(["import", "book.xlsx", "--sheet", "2"])
    assert args.sheet == 2
    args = cli.parse_args(["import", "book.xlsx", "--sheet", "Summary"])
    assert args.sheet == "Summary"


def test_analyze_reports_truncated_context(workspace: Path, monkeypatch: pytest.MonkeyPatch, caplog) -> None:
    caplog.set_level(logging.INFO)

    class _Analyst:
        def __init__(self, config) -> None:
            self.config = config

        def analyze(self, projects):
            return AnalysisResult(status="ok", text="健康度良好", truncated_context=True)

    monkeypatch.setattr(cli, "BudgetAnalyst", _Analyst)

    assert cli.main(["analyze"]) == 0
    assert "truncated to 15000 characters" in caplog.text
    assert "健康度良好" in caplog.text
    assert "_Context" not in caplog.text
