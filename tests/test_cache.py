from __future__ import annotations

import json

import pytest

from costtrack.cache import LocalCache
from costtrack.errors import MalformedCache
from costtrack.models import ProjectRecord


def test_empty_slot_reads_as_none(cache: LocalCache) -> None:
    assert cache.read() is None
    assert cache.load_projects() is None


def test_save_then_load_uses_camel_case_keys(cache: LocalCache, project_factory) -> None:
    project = project_factory("台北廠房", area=120, original_budget=3000, exec_budget=3100, paid=900)
    cache.save_projects([project])

    raw = json.loads(cache.path.read_text(encoding="utf-8"))
    assert raw[0]["originalBudget"] == 3000
    assert raw[0]["name"] == "台北廠房"
    assert cache.load_projects() == [project]


def test_legacy_numeric_ids_and_strings_are_normalized(cache: LocalCache) -> None:
    cache.write(json.dumps([{"id": 1712345678901, "name": " A ", "area": "1,200", "execBudget": None}]))
    (record,) = cache.load_projects()
    assert record == ProjectRecord(project_id="1712345678901", name="A", area=1200.0)


@pytest.mark.parametrize("payload", ["{not json", '{"list": []}', "[1, 2]"])
def test_malformed_slot_raises(cache: LocalCache, payload: str) -> None:
    cache.write(payload)
    with pytest.raises(MalformedCache):
        cache.load_projects()


def test_non_utf8_slot_raises_malformed(cache: LocalCache) -> None:
    cache.path.parent.mkdir(parents=True, exist_ok=True)
    cache.path.write_bytes(b"\xff\xfe[]")
    with pytest.raises(MalformedCache):
        cache.load_projects()


def test_cache_key_names_the_slot(tmp_path) -> None:
    cache = LocalCache(tmp_path, key="other_slot")
    cache.write("[]")
    assert (tmp_path / "other_slot.json").exists()
