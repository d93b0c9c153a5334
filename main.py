"""CLI entrypoint for the publication cache pipeline."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv

from cache_store import CacheCorrupt, PersistenceFailure, load_document, save_bootstrap, save_document
from doi_resolver import DEFAULT_AUTHOR_HINT, RateGate, ResolutionSummary, resolve_dois
from merge import CuratedInvalid, carry_forward_dois, load_curated, merge_publications
from models import Bootstrap, CacheDocument, FetchOutcome, PublicationRecord, StaleFallback, Success
from scholar_feed import AuthorRef, FetchFailure, author_from_env, fetch_publications


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Refresh the cached publication list")
    parser.add_argument(
        "--mode",
        choices=["fetch", "resolve-dois"],
        default="fetch",
        help=(
            "'fetch' (default): pull the author's papers from Semantic Scholar and rewrite the cache, "
            "keeping the existing cache if the API is unavailable. "
            "'resolve-dois': look up missing DOIs on Crossref for the cached publications."
        ),
    )
    parser.add_argument(
        "--cache-path",
        default=None,
        help="Cache document location (default: PUBLICATIONS_CACHE_PATH or src/content/publications-cache.json)",
    )
    return parser.parse_args(argv)


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def run_fetch(
    author: AuthorRef,
    *,
    cache_path: str | Path | None = None,
    curated: list[PublicationRecord] | None = None,
    now: Callable[[], str] = _utc_timestamp,
) -> FetchOutcome:
    """Run one fetch cycle and return which of the three outcomes happened.

    Only a fully merged dataset is ever written. On fetch failure an existing
    document is left untouched; without one the empty bootstrap document is written.
    """
    logging.info("Fetching publications from Semantic Scholar for author=%s", author.path_segment())
    try:
        records = fetch_publications(author)
    except FetchFailure as exc:
        logging.warning("Failed to fetch publications: %s", exc)
        existing = load_document(cache_path)
        if existing is not None:
            logging.info("Using existing cache (fetchedAt=%s, count=%s)", existing.fetched_at, existing.count)
            return StaleFallback(existing)
        logging.info("No existing cache; writing empty cache")
        return Bootstrap(save_bootstrap(cache_path))

    try:
        previous = load_document(cache_path)
    except CacheCorrupt as exc:
        # Replaced wholesale below, so only resolved DOIs are lost.
        logging.error("Existing cache is corrupt and will be replaced: %s", exc)
        previous = None

    carried = carry_forward_dois(records, previous)
    if carried:
        logging.info("Carried forward %s DOIs from the previous cache", carried)

    if curated is None:
        curated = load_curated()

    document = CacheDocument(fetched_at=now(), publications=merge_publications(records, curated))
    save_document(document, cache_path)
    return Success(document)


def run_resolve(
    *,
    cache_path: str | Path | None = None,
    gate: RateGate | None = None,
    curated: list[PublicationRecord] | None = None,
    author_hint: str | None = None,
    mailto: str | None = None,
) -> ResolutionSummary | None:
    """Fill in missing DOIs on the stored document and rewrite it."""
    document = load_document(cache_path)
    if document is None:
        logging.warning("No cache document found; run the fetch mode first")
        return None

    if curated is None:
        curated = load_curated()

    summary = resolve_dois(
        document,
        gate=gate or RateGate(),
        author_hint=author_hint,
        mailto=mailto,
        skip_ids={record.id for record in curated},
    )
    save_document(document, cache_path)
    logging.info(
        "Done. Found %s/%s DOIs. Total entries: %s",
        summary.found,
        summary.total,
        document.count,
    )
    return summary


def _load_curated_or_empty() -> list[PublicationRecord]:
    try:
        return load_curated(os.getenv("CURATED_PUBLICATIONS_PATH") or None)
    except CuratedInvalid as exc:
        logging.error("Ignoring curated publications: %s", exc)
        return []


def main(argv: list[str] | None = None) -> int:
    """Initialize config, execute the selected mode and return the exit status."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    # Read after load_dotenv() so values from .env apply.
    cache_path = args.cache_path or os.getenv("PUBLICATIONS_CACHE_PATH") or None
    curated = _load_curated_or_empty()

    try:
        if args.mode == "resolve-dois":
            run_resolve(
                cache_path=cache_path,
                curated=curated,
                author_hint=os.getenv("CROSSREF_AUTHOR_HINT", DEFAULT_AUTHOR_HINT) or None,
                mailto=os.getenv("CROSSREF_MAILTO") or None,
            )
        else:
            outcome = run_fetch(author_from_env(), cache_path=cache_path, curated=curated)
            logging.info("Fetch cycle finished: %s (count=%s)", type(outcome).__name__, outcome.document.count)
    except (CacheCorrupt, PersistenceFailure) as exc:
        logging.error("Cache persistence failed: %s", exc)
        return 1
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
