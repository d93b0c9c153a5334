"""Semantic Scholar ingestion helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

import requests

from models import PublicationRecord

SEMANTIC_SCHOLAR_API_URL = "https://api.semanticscholar.org/graph/v1"
REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_AUTHOR_ID = "66470460"

PAPER_FIELDS = (
    "papers.title",
    "papers.year",
    "papers.venue",
    "papers.publicationVenue",
    "papers.externalIds",
    "papers.authors",
    "papers.citationCount",
    "papers.url",
)

LOGGER = logging.getLogger(__name__)


class FetchFailure(RuntimeError):
    """The author's papers could not be fetched; no partial results are kept."""


@dataclass(frozen=True, slots=True)
class AuthorRef:
    """How to locate the author: a native Semantic Scholar id or an ORCID."""

    value: str
    kind: str = "s2"

    def path_segment(self) -> str:
        if self.kind == "orcid":
            return f"ORCID:{self.value}"
        if self.kind == "s2":
            return self.value
        raise ValueError(f"Unknown author reference kind: {self.kind!r}")


def author_from_env() -> AuthorRef:
    """Build the author reference from S2_ORCID, else S2_AUTHOR_ID."""
    orcid = os.getenv("S2_ORCID", "").strip()
    if orcid:
        return AuthorRef(value=orcid, kind="orcid")
    return AuthorRef(value=os.getenv("S2_AUTHOR_ID", DEFAULT_AUTHOR_ID).strip())


def fetch_publications(author: AuthorRef, api_key: str | None = None) -> list[PublicationRecord]:
    """Fetch and normalize every paper of ``author`` in a single request.

    Args:
        author: Author reference (native id or ORCID lookup).
        api_key: Optional Semantic Scholar API key. Reads S2_API_KEY if not supplied.

    Raises:
        FetchFailure: on transport errors, non-2xx statuses or a malformed body.
    """
    if api_key is None:
        api_key = os.getenv("S2_API_KEY") or None

    url = f"{SEMANTIC_SCHOLAR_API_URL}/author/{author.path_segment()}"
    headers = {"x-api-key": api_key} if api_key else {}

    try:
        response = requests.get(
            url,
            params={"fields": ",".join(PAPER_FIELDS)},
            headers=headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise FetchFailure(f"Semantic Scholar request failed for {author.path_segment()}: {exc}") from exc

    records = _parse_author_payload(payload)
    LOGGER.info(
        "S2 fetch: author=%s raw_count=%s kept=%s",
        author.path_segment(),
        len(payload.get("papers") or []),
        len(records),
    )
    return records


def _parse_author_payload(payload: Any) -> list[PublicationRecord]:
    """Parse an author payload into PublicationRecord objects."""
    if not isinstance(payload, dict):
        raise FetchFailure("Unexpected Semantic Scholar payload shape: expected an object")

    papers = payload.get("papers") or []
    if not isinstance(papers, list):
        raise FetchFailure("Unexpected Semantic Scholar payload shape: 'papers' is not a list")

    parsed: list[PublicationRecord] = []
    for item in papers:
        if not isinstance(item, dict):
            continue

        paper_id = _as_str(item.get("paperId"))
        title = _as_str(item.get("title"))
        year = item.get("year")
        if not paper_id or not title or not isinstance(year, int) or isinstance(year, bool):
            continue

        parsed.append(
            PublicationRecord(
                id=paper_id,
                title=title,
                year=year,
                venue=_venue(item),
                doi=_as_str(_nested(item, "externalIds", "DOI")),
                authors=_author_names(item.get("authors")),
                citations=_as_count(item.get("citationCount")),
                url=_as_str(item.get("url")),
            )
        )

    return parsed


def _venue(item: dict[str, Any]) -> str:
    # Structured venue name wins over the free-text field.
    return _as_str(_nested(item, "publicationVenue", "name")) or _as_str(item.get("venue")) or ""


def _author_names(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    names: list[str] = []
    for author in value:
        name = _as_str(author.get("name")) if isinstance(author, dict) else None
        if name:
            names.append(name)
    return names


def _nested(item: dict[str, Any], key: str, inner: str) -> Any:
    block = item.get(key)
    return block.get(inner) if isinstance(block, dict) else None


def _as_count(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return 0


def _as_str(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None
