"""Shared typed models for the publication cache pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(slots=True)
class PublicationRecord:
    """Normalized publication record used across fetching, merging and DOI lookup."""

    id: str
    title: str
    year: int
    venue: str = ""
    doi: str | None = None
    authors: list[str] = field(default_factory=list)
    citations: int = 0
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "year": self.year,
            "venue": self.venue,
            "doi": self.doi,
            "authors": list(self.authors),
            "citations": self.citations,
            "url": self.url,
        }


@dataclass(slots=True)
class CacheDocument:
    """The persisted dataset. ``fetched_at`` is None until a fetch has succeeded."""

    fetched_at: str | None
    publications: list[PublicationRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.publications)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fetchedAt": self.fetched_at,
            "count": self.count,
            "publications": [record.to_dict() for record in self.publications],
        }


# Outcomes of one fetch cycle. Each carries the document that stands afterwards.


@dataclass(frozen=True, slots=True)
class Success:
    document: CacheDocument


@dataclass(frozen=True, slots=True)
class StaleFallback:
    document: CacheDocument


@dataclass(frozen=True, slots=True)
class Bootstrap:
    document: CacheDocument


FetchOutcome = Union[Success, StaleFallback, Bootstrap]
