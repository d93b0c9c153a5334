from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

import cache_store
from cache_store import CacheCorrupt, PersistenceFailure, load_document, save_bootstrap, save_document
from models import CacheDocument, PublicationRecord


def _record(record_id: str, year: int = 2020, citations: int = 0, doi: str | None = None) -> PublicationRecord:
    return PublicationRecord(
        id=record_id,
        title=f"Paper {record_id}",
        year=year,
        venue="Journal of Testing",
        doi=doi,
        authors=["P. Shrestha"],
        citations=citations,
        url=f"https://example.org/{record_id}",
    )


@pytest.fixture(autouse=True)
def patch_cache_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point CACHE_PATH at a temp file for every test."""
    monkeypatch.setattr(cache_store, "CACHE_PATH", str(tmp_path / "content" / "publications-cache.json"))


def test_load_document_returns_none_when_absent() -> None:
    assert load_document() is None


def test_save_then_load_preserves_records_and_order() -> None:
    document = CacheDocument(
        fetched_at="2026-10-19T08:00:00.000Z",
        publications=[_record("a", 2021, 3, doi="10.1/a"), _record("b", 2019)],
    )

    save_document(document)
    loaded = load_document()

    assert loaded == document
    assert [r.id for r in loaded.publications] == ["a", "b"]


def test_saved_file_matches_published_shape() -> None:
    save_document(CacheDocument(fetched_at="2026-10-19T08:00:00.000Z", publications=[_record("a")]))

    raw = json.loads(Path(cache_store.CACHE_PATH).read_text(encoding="utf-8"))

    assert set(raw) == {"fetchedAt", "count", "publications"}
    assert raw["count"] == len(raw["publications"]) == 1
    assert set(raw["publications"][0]) == {"id", "title", "year", "venue", "doi", "authors", "citations", "url"}


def test_count_tracks_publications_on_every_save() -> None:
    document = CacheDocument(fetched_at=None, publications=[_record("a")])
    save_document(document)
    document.publications.append(_record("b"))
    save_document(document)

    raw = json.loads(Path(cache_store.CACHE_PATH).read_text(encoding="utf-8"))
    assert raw["count"] == 2


def test_save_bootstrap_writes_empty_document() -> None:
    document = save_bootstrap()

    raw = json.loads(Path(cache_store.CACHE_PATH).read_text(encoding="utf-8"))
    assert raw == {"fetchedAt": None, "count": 0, "publications": []}
    assert document.count == 0


def test_save_document_leaves_no_temp_files() -> None:
    save_document(CacheDocument(fetched_at=None))

    parent = Path(cache_store.CACHE_PATH).parent
    assert [p.name for p in parent.iterdir()] == ["publications-cache.json"]


def test_failed_replace_keeps_previous_document() -> None:
    save_document(CacheDocument(fetched_at="old", publications=[_record("a")]))

    with patch("cache_store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(PersistenceFailure):
            save_document(CacheDocument(fetched_at="new"))

    loaded = load_document()
    assert loaded.fetched_at == "old"
    assert loaded.count == 1
    parent = Path(cache_store.CACHE_PATH).parent
    assert [p.name for p in parent.iterdir()] == ["publications-cache.json"]


def test_load_document_raises_on_invalid_json() -> None:
    path = Path(cache_store.CACHE_PATH)
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CacheCorrupt):
        load_document()


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"fetchedAt": None, "count": 0},
        {"fetchedAt": 5, "count": 0, "publications": []},
        {"fetchedAt": None, "count": 1, "publications": [{"title": "No id", "year": 2020}]},
        {"fetchedAt": None, "count": 1, "publications": [{"id": "x", "title": "No year"}]},
    ],
)
def test_load_document_raises_on_wrong_shape(payload) -> None:
    path = Path(cache_store.CACHE_PATH)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(CacheCorrupt):
        load_document()


def test_load_document_recomputes_mismatched_count() -> None:
    path = Path(cache_store.CACHE_PATH)
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps({"fetchedAt": None, "count": 7, "publications": [_record("a").to_dict()]}),
        encoding="utf-8",
    )

    assert load_document().count == 1


def test_explicit_path_overrides_default(tmp_path: Path) -> None:
    target = tmp_path / "elsewhere.json"
    save_bootstrap(target)

    assert target.exists()
    assert load_document(target).fetched_at is None
    assert load_document() is None


def test_saved_file_is_world_readable() -> None:
    save_document(CacheDocument(fetched_at=None))
    save_document(CacheDocument(fetched_at="again"))

    assert Path(cache_store.CACHE_PATH).stat().st_mode & 0o777 == 0o644


@pytest.mark.parametrize(
    "overrides",
    [
        {"doi": 5},
        {"venue": ["Journal"]},
        {"url": 42},
        {"authors": "P. Shrestha"},
        {"authors": ["P. Shrestha", 7]},
        {"citations": "12"},
    ],
)
def test_load_document_rejects_mistyped_optional_fields(overrides: dict) -> None:
    record = _record("a").to_dict()
    record.update(overrides)
    path = Path(cache_store.CACHE_PATH)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"fetchedAt": None, "count": 1, "publications": [record]}), encoding="utf-8")

    with pytest.raises(CacheCorrupt):
        load_document()


def test_load_document_accepts_null_optional_fields() -> None:
    record = {"id": "a", "title": "Paper a", "year": 2020, "venue": None, "doi": None, "authors": None,
              "citations": None, "url": None}
    path = Path(cache_store.CACHE_PATH)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"fetchedAt": None, "count": 1, "publications": [record]}), encoding="utf-8")

    loaded = load_document().publications[0]

    assert loaded.venue == ""
    assert loaded.authors == []
    assert loaded.citations == 0
