"""Crossref title search used to fill in missing DOIs on cached publications."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Collection, NamedTuple

import requests

from models import CacheDocument
from title_match import match_titles

CROSSREF_WORKS_URL = "https://api.crossref.org/works"
REQUEST_TIMEOUT_SECONDS = 15
DEFAULT_DELAY_SECONDS = 0.5
# Surname sent as query.author to narrow the title search.
DEFAULT_AUTHOR_HINT = "Shrestha"

LOGGER = logging.getLogger(__name__)


class LookupFailure(RuntimeError):
    """No usable Crossref candidate could be retrieved for a title."""


class ResolutionSummary(NamedTuple):
    found: int       # records holding a DOI after the pass
    not_found: int   # records looked up without an accepted DOI
    looked_up: int   # Crossref requests issued
    total: int       # records eligible for a DOI (curated entries excluded)


class RateGate:
    """Fixed pause after every Crossref request, shared by a whole resolution pass.

    The pause applies after every attempt regardless of its outcome. The
    interval can be raised but never drops below DEFAULT_DELAY_SECONDS.
    """

    def __init__(self, interval_seconds: float | None = None, sleep: Callable[[float], None] | None = None):
        if interval_seconds is None:
            interval_seconds = float(os.getenv("DOI_LOOKUP_DELAY_SECONDS", DEFAULT_DELAY_SECONDS))
        self.interval_seconds = max(interval_seconds, DEFAULT_DELAY_SECONDS)
        self.pauses = 0
        self._sleep = sleep or time.sleep

    def pause(self) -> None:
        self.pauses += 1
        self._sleep(self.interval_seconds)


def lookup_doi(
    title: str,
    *,
    author_hint: str | None = None,
    mailto: str | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> tuple[str, str]:
    """Return ``(doi, candidate_title)`` for Crossref's best-ranked match of ``title``.

    Raises:
        LookupFailure: on timeouts, transport errors, non-2xx statuses, a
            malformed body or when Crossref returns no candidate with a DOI.
    """
    params: dict[str, Any] = {"query.title": title, "rows": 1}
    if author_hint:
        params["query.author"] = author_hint
    if mailto:
        params["mailto"] = mailto

    try:
        response = requests.get(CROSSREF_WORKS_URL, params=params, timeout=timeout)
        response.raise_for_status()
        body = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise LookupFailure(f"Crossref request failed: {exc}") from exc

    try:
        item = body["message"]["items"][0]
    except (KeyError, IndexError, TypeError) as exc:
        raise LookupFailure("Crossref returned no candidate") from exc

    doi = item.get("DOI") if isinstance(item, dict) else None
    if not isinstance(doi, str) or not doi:
        raise LookupFailure("Crossref candidate has no DOI")

    titles = item.get("title")
    candidate_title = titles[0] if isinstance(titles, list) and titles and isinstance(titles[0], str) else ""
    return doi, candidate_title


def resolve_dois(
    document: CacheDocument,
    *,
    gate: RateGate,
    lookup: Callable[..., tuple[str, str]] = lookup_doi,
    author_hint: str | None = None,
    mailto: str | None = None,
    skip_ids: Collection[str] = (),
) -> ResolutionSummary:
    """Fill in missing DOIs on ``document`` in place, one record at a time.

    Records that already carry a DOI are never touched, so repeated passes are
    idempotent. Lookup failures and rejected candidates leave the record as is.
    """
    eligible = [record for record in document.publications if record.id not in skip_ids]
    total = len(eligible)
    found = 0
    not_found = 0
    looked_up = 0

    for index, record in enumerate(eligible, start=1):
        if record.doi:
            found += 1
            continue

        LOGGER.info("[%s/%s] %s", index, total, record.title[:70])
        looked_up += 1
        try:
            doi, candidate_title = lookup(record.title, author_hint=author_hint, mailto=mailto)
        except LookupFailure as exc:
            LOGGER.warning("  lookup failed for id=%s: %s", record.id, exc)
            doi = None
        else:
            result = match_titles(record.title, candidate_title)
            if not result.accepted:
                LOGGER.info("  SKIP mismatch for id=%s: %s", record.id, result.reason)
                doi = None
        finally:
            gate.pause()

        if doi:
            record.doi = doi
            found += 1
            LOGGER.info("  -> %s", doi)
        else:
            not_found += 1
            LOGGER.info("  -> not found")

    LOGGER.info(
        "DOI pass complete: found=%s/%s not_found=%s looked_up=%s",
        found,
        total,
        not_found,
        looked_up,
    )
    return ResolutionSummary(found=found, not_found=not_found, looked_up=looked_up, total=total)
