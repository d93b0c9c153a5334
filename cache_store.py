"""JSON file store for the publication cache document."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from models import CacheDocument, PublicationRecord

CACHE_PATH = os.getenv("PUBLICATIONS_CACHE_PATH", "src/content/publications-cache.json")
# Readable by the rendering layer.
CACHE_FILE_MODE = 0o644

LOGGER = logging.getLogger(__name__)


class CacheCorrupt(RuntimeError):
    """The stored document exists but cannot be parsed into a CacheDocument."""


class PersistenceFailure(RuntimeError):
    """The document could not be written."""


def load_document(path: str | Path | None = None) -> CacheDocument | None:
    """Return the stored document, or None if nothing has been written yet.

    Raises:
        CacheCorrupt: if the file is not valid JSON or does not match the
            expected ``{fetchedAt, count, publications}`` shape.
    """
    target = Path(path or CACHE_PATH)
    if not target.exists():
        return None

    try:
        with target.open(encoding="utf-8") as fh:
            raw = json.load(fh)
    except ValueError as exc:
        raise CacheCorrupt(f"Cache at {target} is not valid JSON: {exc}") from exc

    document = _parse_document(raw, target)
    stored_count = raw.get("count")
    if stored_count != document.count:
        LOGGER.warning(
            "Cache at %s has count=%s but %s publications; using %s",
            target,
            stored_count,
            document.count,
            document.count,
        )
    return document


def save_document(document: CacheDocument, path: str | Path | None = None) -> None:
    """Atomically replace the stored document.

    The payload goes to a temporary file next to the destination which is
    flushed, fsynced and then renamed over it, so readers only ever see the old
    or the new document.
    """
    target = Path(path or CACHE_PATH)
    text = json.dumps(document.to_dict(), indent=2, ensure_ascii=False) + "\n"

    tmp_name: str | None = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, CACHE_FILE_MODE)
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as exc:
        raise PersistenceFailure(f"Could not write cache to {target}: {exc}") from exc
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    LOGGER.info("Wrote %s publications to %s", document.count, target)


def save_bootstrap(path: str | Path | None = None) -> CacheDocument:
    """Write and return the empty document used when no data has ever been fetched."""
    document = CacheDocument(fetched_at=None, publications=[])
    save_document(document, path)
    return document


def _parse_document(raw: Any, target: Path) -> CacheDocument:
    if not isinstance(raw, dict):
        raise CacheCorrupt(f"Cache at {target} is not a JSON object")

    fetched_at = raw.get("fetchedAt")
    if fetched_at is not None and not isinstance(fetched_at, str):
        raise CacheCorrupt(f"Cache at {target} has a non-string fetchedAt")

    publications = raw.get("publications")
    if not isinstance(publications, list):
        raise CacheCorrupt(f"Cache at {target} has no publications list")

    records = [_parse_record(item, index, target) for index, item in enumerate(publications)]
    return CacheDocument(fetched_at=fetched_at, publications=records)


def _parse_record(item: Any, index: int, target: Path) -> PublicationRecord:
    if not isinstance(item, dict):
        raise CacheCorrupt(f"Cache at {target}: publication #{index} is not an object")

    record_id = item.get("id")
    title = item.get("title")
    year = item.get("year")
    if not isinstance(record_id, str) or not record_id:
        raise CacheCorrupt(f"Cache at {target}: publication #{index} has no id")
    if not isinstance(title, str) or not title:
        raise CacheCorrupt(f"Cache at {target}: publication #{index} has no title")
    if not isinstance(year, int) or isinstance(year, bool):
        raise CacheCorrupt(f"Cache at {target}: publication #{index} has no year")

    authors = item.get("authors") if item.get("authors") is not None else []
    citations = item.get("citations", 0)
    for key in ("venue", "doi", "url"):
        value = item.get(key)
        if value is not None and not isinstance(value, str):
            raise CacheCorrupt(f"Cache at {target}: publication #{index} has a non-string {key}")
    if not isinstance(authors, list) or not all(isinstance(name, str) for name in authors):
        raise CacheCorrupt(f"Cache at {target}: publication #{index} has malformed authors")
    if citations is not None and (not isinstance(citations, int) or isinstance(citations, bool)):
        raise CacheCorrupt(f"Cache at {target}: publication #{index} has non-integer citations")

    return PublicationRecord(
        id=record_id,
        title=title,
        year=year,
        venue=item.get("venue") or "",
        doi=item.get("doi") or None,
        authors=list(authors),
        citations=citations if citations and citations > 0 else 0,
        url=item.get("url"),
    )
