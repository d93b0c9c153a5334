"""Title similarity heuristic used to accept or reject DOI candidates (no network)."""

from __future__ import annotations

from typing import NamedTuple

# Leading characters that must be identical for a prefix match.
TITLE_PREFIX_CHARS = 40
# How many leading query tokens are checked against the candidate title.
TOKEN_WINDOW = 6
# Minimum number of those tokens that must occur in the candidate.
MIN_TOKEN_MATCHES = 4


class MatchResult(NamedTuple):
    accepted: bool
    rule: str | None  # "prefix", "tokens" or None when rejected
    reason: str


def match_titles(
    query_title: str,
    candidate_title: str,
    *,
    prefix_chars: int = TITLE_PREFIX_CHARS,
    token_window: int = TOKEN_WINDOW,
    min_token_matches: int = MIN_TOKEN_MATCHES,
) -> MatchResult:
    """Decide whether ``candidate_title`` names the same work as ``query_title``.

    Rules, first match wins:
    - prefix: the lower-cased titles share their first ``prefix_chars`` characters.
    - tokens: at least ``min_token_matches`` of the first ``token_window``
      whitespace tokens of the query occur as substrings of the candidate.
    - reject: anything else.
    """
    query = query_title.lower()
    candidate = (candidate_title or "").lower()

    if query[:prefix_chars] == candidate[:prefix_chars]:
        return MatchResult(True, "prefix", f"first {prefix_chars} characters identical")

    words = query.split()[:token_window]
    hits = sum(1 for word in words if word in candidate)
    if hits >= min_token_matches:
        return MatchResult(True, "tokens", f"{hits}/{len(words)} leading tokens found")

    return MatchResult(
        False,
        None,
        f"only {hits}/{len(words)} leading tokens found in {candidate[:60]!r}",
    )
