import json
from datetime import datetime, timezone

import pytest
from structlog.testing import capture_logs

from llm_game_gen.cache import ArtifactCache, CacheIndex
from llm_game_gen.errors import IOFailure, MissingData, NotFound
from llm_game_gen.schema import CacheEntry

from conftest import GAME_HTML


def _entry(location="x.html", size=1, model="m"):
    ts = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return CacheEntry(
        storage_location=location,
        size_bytes=size,
        created_at=ts,
        last_accessed_at=ts,
        produced_by=model,
    )


def test_save_then_load_advances_last_accessed(cache):
    entry = cache.save("g-42", GAME_HTML, produced_by="gemini/gemini-2.5-pro", label="Iron Tide")
    assert cache.load("g-42") == GAME_HTML
    touched = cache.index.get("g-42")
    assert touched.last_accessed_at > entry.last_accessed_at
    assert touched.created_at == entry.created_at
    assert touched.size_bytes == len(GAME_HTML.encode("utf-8"))


def test_index_document_is_pretty_and_reloadable(cache):
    cache.save("g-1", GAME_HTML, produced_by="a", label="One")
    cache.save("g-2", GAME_HTML)
    text = cache.index.path.read_text(encoding="utf-8")
    doc = json.loads(text)
    assert set(doc) == {"g-1", "g-2"}
    assert doc["g-1"]["storage_location"] == "g-1.html"
    assert doc["g-2"]["label"] == "unknown"
    assert doc["g-2"]["produced_by"] == "unknown"
    assert '\n  "g-1": {' in text

    reloaded = ArtifactCache(cache.directory)
    assert reloaded.load("g-1") == GAME_HTML
    assert reloaded.index.get("g-1").label == "One"


def test_corrupt_index_starts_empty(tmp_path):
    path = tmp_path / "games-index.json"
    path.write_text("{not json", encoding="utf-8")
    with capture_logs() as logs:
        index = CacheIndex(path)
    assert len(index) == 0
    assert any(e["event"] == "index_load_failed" for e in logs)


def test_non_object_index_starts_empty(tmp_path):
    path = tmp_path / "games-index.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert len(CacheIndex(path)) == 0


def test_invalid_entries_are_skipped(tmp_path):
    path = tmp_path / "games-index.json"
    good = _entry("good.html").model_dump(mode="json")
    path.write_text(json.dumps({"good": good, "bad": {"size_bytes": "lots"}}), encoding="utf-8")
    index = CacheIndex(path)
    assert [k for k, _ in index.list_all()] == ["good"]


def test_list_after_two_upserts_and_one_remove(tmp_path):
    index = CacheIndex(tmp_path / "games-index.json")
    index.upsert("a", _entry("a.html"))
    index.upsert("b", _entry("b.html"))
    assert index.remove("a") is True
    assert index.remove("a") is False
    assert [k for k, _ in index.list_all()] == ["b"]
    assert [k for k, _ in CacheIndex(index.path).list_all()] == ["b"]


def test_touch_unknown_returns_none(tmp_path):
    index = CacheIndex(tmp_path / "games-index.json")
    assert index.touch("missing") is None
    assert not index.path.exists()


def test_missing_blob_self_heals(cache):
    cache.save("g-7", GAME_HTML)
    (cache.directory / "g-7.html").unlink()
    with pytest.raises(NotFound):
        cache.load("g-7")
    assert not cache.is_cached("g-7")
    assert "g-7" not in json.loads(cache.index.path.read_text(encoding="utf-8"))


def test_delete_unknown_raises_not_found(cache):
    with pytest.raises(NotFound):
        cache.delete_one("ghost")


def test_delete_one_removes_blob_and_entry(cache):
    cache.save("g-1", GAME_HTML)
    cache.delete_one("g-1")
    assert not (cache.directory / "g-1.html").exists()
    with pytest.raises(NotFound):
        cache.load("g-1")


def test_delete_one_tolerates_missing_blob(cache):
    cache.save("g-1", GAME_HTML)
    (cache.directory / "g-1.html").unlink()
    cache.delete_one("g-1")
    assert not cache.is_cached("g-1")


def test_delete_all_returns_prior_count(cache):
    for i in range(3):
        cache.save(f"g-{i}", GAME_HTML)
    assert cache.delete_all() == 3
    assert cache.index.list_all() == []
    assert cache.list_entries() == []
    assert cache.delete_all() == 0


def test_list_entries_hides_storage_location(cache):
    cache.save("g-1", "<html>" + "x" * 2048 + "</html>", produced_by="m", label="Big")
    [summary] = cache.list_entries()
    dumped = summary.model_dump()
    assert "storage_location" not in dumped
    assert summary.id == "g-1"
    assert summary.label == "Big"
    assert summary.size_kb == "2.0"


def test_stats(cache):
    cache.save("g-1", "abc")
    cache.save("g-2", "defg")
    s = cache.stats()
    assert s.cached_games == 2
    assert s.total_size_bytes == 7
    assert s.total_size_mb == "0.00"


def test_blob_write_failure_leaves_index_untouched(cache, monkeypatch):
    def boom(path, data):
        raise OSError("disk full")

    monkeypatch.setattr("llm_game_gen.store.atomic_write_bytes", boom)
    with pytest.raises(IOFailure):
        cache.save("g-1", GAME_HTML)
    assert not cache.is_cached("g-1")


def test_index_write_failure_keeps_blob_retrievable(cache, monkeypatch):
    def boom(game_id, entry):
        raise IOFailure("index is read-only")

    monkeypatch.setattr(cache.index, "upsert", boom)
    with capture_logs() as logs:
        cache.save("g-1", GAME_HTML)
    assert not cache.is_cached("g-1")
    assert any(e["event"] == "blob_untracked" for e in logs)
    location = cache.store.location_for("g-1")
    assert cache.store.get(location) == GAME_HTML.encode("utf-8")


def test_save_external_overwrites_metadata(cache):
    cache.save("g-1", GAME_HTML, produced_by="model-a", label="Old")
    entry = cache.save_external("g-1", "<html>new</html>", label="Uploaded")
    assert entry.produced_by == "unknown"
    assert cache.load("g-1") == "<html>new</html>"
    assert cache.index.get("g-1").label == "Uploaded"


@pytest.mark.parametrize("game_id,html", [("", GAME_HTML), ("g-1", ""), ("", "")])
def test_save_external_rejects_missing_data(cache, game_id, html):
    with pytest.raises(MissingData):
        cache.save_external(game_id, html)
    assert len(cache.index) == 0
    assert list(cache.directory.glob("*.html")) == []
