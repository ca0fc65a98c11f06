"""Weighted fuzzy similarity between two postings.

Components, each in [0, 1] before weighting:

* company: 1 if the suffix-stripped company names are equal
* title: token Jaccard of the normalized titles
* date: linear decay from 1 (same instant) to 0 at DATE_WINDOW_DAYS apart
* description: token Jaccard of the first DESCRIPTION_PREFIX_CHARS chars

Date and description only count when both postings carry them; the total
is divided by the weight actually used, so a missing posting date neither
helps nor hurts.
"""

from typing import Iterable, Optional

from job_ingestion.jobs.models import CanonicalJob
from job_ingestion.normalize.text import (
    jaccard,
    normalize_company_for_match,
    normalize_title,
    parse_timestamp,
    tokenize,
)

WEIGHT_COMPANY = 0.30
WEIGHT_TITLE = 0.40
WEIGHT_DATE = 0.15
WEIGHT_DESCRIPTION = 0.15

DUPLICATE_THRESHOLD = 0.85
DATE_WINDOW_DAYS = 7
DESCRIPTION_PREFIX_CHARS = 500

SECONDS_PER_DAY = 86400.0


def company_match(a: CanonicalJob, b: CanonicalJob) -> bool:
    ca = normalize_company_for_match(a.company_name)
    return bool(ca) and ca == normalize_company_for_match(b.company_name)


def title_similarity(a: CanonicalJob, b: CanonicalJob) -> float:
    return jaccard(tokenize(normalize_title(a.title)), tokenize(normalize_title(b.title)))


def days_apart(a: CanonicalJob, b: CanonicalJob) -> Optional[float]:
    """Absolute distance in days between posting dates, None if either is missing."""
    da = parse_timestamp(a.posted_at)
    db = parse_timestamp(b.posted_at)
    if da is None or db is None:
        return None
    return abs((da - db).total_seconds()) / SECONDS_PER_DAY


def date_proximity(a: CanonicalJob, b: CanonicalJob) -> Optional[float]:
    diff = days_apart(a, b)
    if diff is None:
        return None
    if diff >= DATE_WINDOW_DAYS:
        return 0.0
    return 1.0 - diff / DATE_WINDOW_DAYS


def description_similarity(a: CanonicalJob, b: CanonicalJob) -> Optional[float]:
    if not a.description_text or not b.description_text:
        return None
    return jaccard(
        tokenize(a.description_text[:DESCRIPTION_PREFIX_CHARS]),
        tokenize(b.description_text[:DESCRIPTION_PREFIX_CHARS]),
    )


def similarity_score(a: CanonicalJob, b: CanonicalJob) -> float:
    """Combined similarity in [0, 1]."""
    score = WEIGHT_COMPANY * (1.0 if company_match(a, b) else 0.0)
    score += WEIGHT_TITLE * title_similarity(a, b)
    weights = WEIGHT_COMPANY + WEIGHT_TITLE

    proximity = date_proximity(a, b)
    if proximity is not None:
        score += WEIGHT_DATE * proximity
        weights += WEIGHT_DATE

    desc = description_similarity(a, b)
    if desc is not None:
        score += WEIGHT_DESCRIPTION * desc
        weights += WEIGHT_DESCRIPTION

    return score / weights


def similarity_reason(a: CanonicalJob, b: CanonicalJob, score: float) -> str:
    """Human-readable summary of why two postings were judged the same."""
    reasons = []
    if company_match(a, b):
        reasons.append("same_company")

    title_sim = title_similarity(a, b)
    if title_sim >= 0.9:
        reasons.append("identical_title")
    elif title_sim >= 0.7:
        reasons.append("similar_title")

    diff = days_apart(a, b)
    if diff is not None:
        if diff <= 1:
            reasons.append("posted_same_day")
        elif diff <= DATE_WINDOW_DAYS:
            reasons.append("posted_within_week")

    return ", ".join(reasons) or f"fuzzy_match_{round(score * 100)}"


def best_fuzzy_match(
    job: CanonicalJob,
    candidates: Iterable[CanonicalJob],
    threshold: float = DUPLICATE_THRESHOLD,
) -> Optional[tuple[CanonicalJob, float]]:
    """Highest-scoring candidate at or above ``threshold``.

    Candidates are scanned in order and only a strictly higher score replaces
    the current best, so equal scores resolve to the earliest candidate.
    """
    best = None
    best_score = 0.0
    for candidate in candidates:
        score = similarity_score(job, candidate)
        if score >= threshold and (best is None or score > best_score):
            best, best_score = candidate, score
    if best is None:
        return None
    return best, best_score
