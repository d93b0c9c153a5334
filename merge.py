"""Curated entries and canonical ordering for the final publication list."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from models import CacheDocument, PublicationRecord

CURATED_PATH = os.getenv("CURATED_PUBLICATIONS_PATH", "curated_publications.json")

LOGGER = logging.getLogger(__name__)


class CuratedInvalid(RuntimeError):
    """The curated publications file cannot be read as a JSON list."""


def load_curated(path: str | Path | None = None) -> list[PublicationRecord]:
    """Load hand-maintained entries (patents, non-indexed works) from a JSON list.

    A missing file means there are no curated entries. Entries without a title,
    year or venue label are skipped with a warning.

    Raises:
        CuratedInvalid: if the file is not valid JSON or not a list.
    """
    target = Path(path or CURATED_PATH)
    if not target.exists():
        return []

    try:
        with target.open(encoding="utf-8") as fh:
            raw = json.load(fh)
    except ValueError as exc:
        raise CuratedInvalid(f"Curated publications at {target} are not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise CuratedInvalid(f"Curated publications at {target} must be a JSON list")

    records: list[PublicationRecord] = []
    for index, item in enumerate(raw, start=1):
        record = _curated_record(item, index)
        if record is None:
            LOGGER.warning("Skipping curated entry #%s in %s: needs title, year and venue", index, target)
            continue
        records.append(record)
    return records


def _curated_record(item: Any, index: int) -> PublicationRecord | None:
    if not isinstance(item, dict):
        return None
    title = item.get("title")
    year = item.get("year")
    venue = item.get("venue")
    if not isinstance(title, str) or not title.strip():
        return None
    if not isinstance(year, int) or isinstance(year, bool):
        return None
    if not isinstance(venue, str) or not venue.strip():
        return None

    authors = item.get("authors")
    return PublicationRecord(
        id=str(item.get("id") or f"curated-{index}"),
        title=title.strip(),
        year=year,
        venue=venue.strip(),
        doi=None,
        authors=[str(name) for name in authors] if isinstance(authors, list) else [],
        citations=0,
        url=item.get("url") or "",
    )


def carry_forward_dois(
    records: list[PublicationRecord],
    previous: CacheDocument | None,
) -> int:
    """Copy DOIs resolved in an earlier pass onto freshly fetched records with the same id."""
    if previous is None:
        return 0

    known = {record.id: record.doi for record in previous.publications if record.doi}
    carried = 0
    for record in records:
        if not record.doi and record.id in known:
            record.doi = known[record.id]
            carried += 1
    return carried


def sort_canonical(records: list[PublicationRecord]) -> list[PublicationRecord]:
    """Newest first; within a year, most cited first. Stable for full ties."""
    return sorted(records, key=lambda r: (-r.year, -r.citations))


def merge_publications(
    api_records: list[PublicationRecord],
    curated: list[PublicationRecord],
) -> list[PublicationRecord]:
    """Append curated entries after the API records and apply the canonical order."""
    seen = {record.id for record in api_records}
    merged = list(api_records)
    for record in curated:
        if record.id in seen:
            LOGGER.warning("Curated entry id=%s collides with a fetched record; dropping it", record.id)
            continue
        seen.add(record.id)
        merged.append(record)

    LOGGER.info(
        "Merged publications: api=%s curated=%s total=%s",
        len(api_records),
        len(merged) - len(api_records),
        len(merged),
    )
    return sort_canonical(merged)
