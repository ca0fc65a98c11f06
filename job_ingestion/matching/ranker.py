"""Deterministic ranking of canonical jobs against a user profile."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from job_ingestion.jobs.models import CanonicalJob
from job_ingestion.normalize.remote import region_codes
from job_ingestion.normalize.text import ensure_utc, jaccard
from job_ingestion.profile.models import UserJobProfile

logger = logging.getLogger("job_ingestion.matching.ranker")

# Scoring weights
WEIGHT_SKILLS = 0.5
TITLE_BOOST_PER_KEYWORD = 0.15
TITLE_BOOST_CAP = 0.5
RECENCY_BOOST_MAX = 0.3
RECENCY_WINDOW_DAYS = 14
REGION_PENALTY = 0.2
QUALITY_PENALTY = 0.15
MIN_DESCRIPTION_CHARS = 100
DEFAULT_LIMIT = 20

WORLDWIDE = "Worldwide"


@dataclass
class MatchResult:
    job: CanonicalJob
    score: float
    breakdown: dict[str, float] = field(default_factory=dict)


def skills_jaccard(user_skills: set[str], job_skills: Iterable[str]) -> float:
    """Jaccard of the two skill sets; 1.0 when both are empty."""
    a = {s.lower() for s in user_skills}
    b = {s.lower() for s in job_skills}
    if not a and not b:
        return 1.0
    return jaccard(a, b)


def title_boost(title: str, keywords: Iterable[str]) -> float:
    title_lower = (title or "").lower()
    terms = [kw.strip().lower() for kw in keywords if kw and kw.strip()]
    hits = sum(1 for term in terms if term in title_lower)
    return min(hits * TITLE_BOOST_PER_KEYWORD, TITLE_BOOST_CAP)


def recency_boost(job: CanonicalJob, now: datetime) -> float:
    """Linear decay from 0.3 when posted now to 0 at 14 days old."""
    reference = job.posted_at or job.last_seen_at
    if reference is None:
        return 0.0
    age_days = max(0.0, (ensure_utc(now) - ensure_utc(reference)).total_seconds() / 86400.0)
    return RECENCY_BOOST_MAX * max(0.0, 1.0 - age_days / RECENCY_WINDOW_DAYS)


def region_penalty(job: CanonicalJob, preferred_regions: Iterable[str]) -> float:
    """0.2 when the job restricts regions and none of them suit the user.

    A job open Worldwide suits any preference.
    """
    job_regions = set(region_codes(job.remote_region_eligibility))
    wanted = set(region_codes(", ".join(r for r in preferred_regions if r)))
    if not job_regions or not wanted:
        return 0.0
    if WORLDWIDE in job_regions or job_regions & wanted:
        return 0.0
    return REGION_PENALTY


def quality_penalty(job: CanonicalJob) -> float:
    return QUALITY_PENALTY if len(job.description_text or "") < MIN_DESCRIPTION_CHARS else 0.0


def score_job(
    job: CanonicalJob,
    profile: UserJobProfile,
    role_keywords: Iterable[str],
    regions: Iterable[str],
    now: datetime,
) -> MatchResult:
    breakdown = {
        "skills": WEIGHT_SKILLS * skills_jaccard(profile.skills, job.skills),
        "title_boost": title_boost(job.title, role_keywords),
        "recency_boost": recency_boost(job, now),
        "region_penalty": region_penalty(job, regions),
        "quality_penalty": quality_penalty(job),
    }
    raw = (
        breakdown["skills"]
        + breakdown["title_boost"]
        + breakdown["recency_boost"]
        - breakdown["region_penalty"]
        - breakdown["quality_penalty"]
    )
    return MatchResult(job=job, score=min(1.0, max(0.0, raw)), breakdown=breakdown)


def rank_jobs(
    jobs: list[CanonicalJob],
    profile: UserJobProfile,
    role_keywords: Optional[list[str]] = None,
    regions: Optional[list[str]] = None,
    exclude_companies: Optional[list[str]] = None,
    limit: int = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
) -> list[MatchResult]:
    """Score, sort (descending, stable) and truncate ``jobs`` for ``profile``.

    Options fall back to the profile's own role keywords, regions and
    exclusions. Pass ``now`` for reproducible recency scores.
    """
    now = now or datetime.now(timezone.utc)
    keywords = role_keywords if role_keywords is not None else profile.role_keywords
    preferred = regions if regions is not None else profile.preferred_regions
    excluded = exclude_companies if exclude_companies is not None else profile.exclude_companies
    excluded_lower = {c.strip().lower() for c in excluded if c}

    results = [
        score_job(job, profile, keywords, preferred, now)
        for job in jobs
        if (job.company_name or "").strip().lower() not in excluded_lower
    ]
    # sorted() is stable, so equal scores keep input order
    results = sorted(results, key=lambda r: r.score, reverse=True)

    logger.debug("Ranked %d of %d jobs", len(results), len(jobs))
    return results[:max(0, limit)]
