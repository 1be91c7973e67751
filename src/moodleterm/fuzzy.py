"""Subsequence fuzzy matching in the style of terminal fuzzy finders.

A query matches a candidate when every query character occurs in the
candidate in order. The score rewards contiguous runs, matches at the start
of a word and matches near the start of the candidate, and slightly
penalizes long candidates. There is no tolerance for typos.
"""

BOUNDARY_CHARS = frozenset(" -_/.")

BASE_POINTS = 1.0
CONTIGUOUS_BONUS = 6.0
BOUNDARY_BONUS = 4.0
EARLY_POSITION_LIMIT = 6
EARLY_POSITION_WEIGHT = 0.25
LENGTH_PENALTY = 0.01


def fuzzy_score(query: str, candidate: str) -> float | None:
    """Score `candidate` against `query`, case-insensitively.

    Args:
        query: Characters to find, in order.
        candidate: Text to search in.

    Returns:
        The match score (higher is better), 0 for an empty query, or None
        when the candidate does not contain the query as a subsequence.
    """
    query = query.lower()
    candidate = candidate.lower()
    if not query:
        return 0.0
    if not candidate:
        return None

    query_idx = 0
    previous_match = -1
    score = 0.0

    for idx, char in enumerate(candidate):
        if query_idx == len(query):
            break
        if char != query[query_idx]:
            continue

        score += BASE_POINTS
        if previous_match == idx - 1:
            score += CONTIGUOUS_BONUS
        if idx == 0 or candidate[idx - 1] in BOUNDARY_CHARS:
            score += BOUNDARY_BONUS
        if idx < EARLY_POSITION_LIMIT:
            score += (EARLY_POSITION_LIMIT - idx) * EARLY_POSITION_WEIGHT

        previous_match = idx
        query_idx += 1

    if query_idx != len(query):
        return None

    return score - len(candidate) * LENGTH_PENALTY
