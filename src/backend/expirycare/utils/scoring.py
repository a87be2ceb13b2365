"""
Scoring functions for expiry candidates.

Scores are integers from 0 (worst) to 100 (best) and map directly onto the
High / Medium / Low confidence levels. The highest-scoring candidate wins;
ties go to the date closest to its keyword, then to the earliest one.
"""

from typing import List, Optional, Tuple

from .candidates import ExpiryCandidate

__all__ = [
    'score_expiry_candidate', 'select_best_expiry', 'select_top_expiries',
    'NEAR_DISTANCE',
]

# Keyword and date within this many characters count as "adjacent"
NEAR_DISTANCE = 25

# Scores for dates farther from their keyword stay inside the Medium band
MEDIUM_CEILING = 84
MEDIUM_FLOOR = 60
DISTANCE_PENALTY_STEP = 4  # -1 point per 4 characters beyond NEAR_DISTANCE

# Coarse dates are never High
PRECISION_CAPS = {
    'day': 100,
    'month': 80,
    'year': 70,
}

# Dates found with no keyword at all
FALLBACK_SCORES = {
    'day': 50,
    'month': 42,
    'year': 30,
}


def score_expiry_candidate(candidate: ExpiryCandidate) -> int:
    """
    Score an expiry candidate.

    Scoring factors:
    - Fallback candidates: fixed Low score by precision (50 / 42 / 30)
    - Keyword base score (85-95) when the date is adjacent to the keyword
    - Farther dates: capped at 84, minus 1 point per 4 chars, floor 60
    - Precision cap: month-only ≤ 80, year-only ≤ 70

    Args:
        candidate: ExpiryCandidate to score

    Returns:
        Score from 0 to 100
    """
    if candidate.from_fallback:
        return FALLBACK_SCORES.get(candidate.precision, 30)

    score = candidate.base_score
    if candidate.distance > NEAR_DISTANCE:
        penalty = (candidate.distance - NEAR_DISTANCE) // DISTANCE_PENALTY_STEP
        score = max(MEDIUM_FLOOR, min(score, MEDIUM_CEILING) - penalty)

    score = min(score, PRECISION_CAPS.get(candidate.precision, 100))
    return max(0, min(100, score))


def _ranking_key(scored: Tuple[ExpiryCandidate, int]):
    candidate, score = scored
    return (-score, candidate.distance, candidate.match_span[0])


def select_top_expiries(
    candidates: List[ExpiryCandidate],
    top_n: int = 3
) -> List[Tuple[ExpiryCandidate, int]]:
    """
    Select top N expiry candidates for debug/review output.

    Returns:
        List of (candidate, score) tuples, best first
    """
    if not candidates:
        return []
    scored = [(candidate, score_expiry_candidate(candidate)) for candidate in candidates]
    scored.sort(key=_ranking_key)
    return scored[:top_n]


def select_best_expiry(
    candidates: List[ExpiryCandidate]
) -> Optional[Tuple[ExpiryCandidate, int]]:
    """
    Select best expiry candidate.

    Returns:
        (candidate, score) tuple, or None if there are no candidates
    """
    top = select_top_expiries(candidates, top_n=1)
    return top[0] if top else None
