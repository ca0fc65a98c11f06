"""Shared provider-to-canonical mapping used by every connector."""

import hashlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import requests

from job_ingestion.dedupe.keys import build_dedupe_key
from job_ingestion.jobs.models import CanonicalJob, FetchResult, RemoteType
from job_ingestion.normalize.fields import (
    extract_domain,
    extract_requirements,
    infer_seniority,
    normalize_employment_type,
)
from job_ingestion.normalize.remote import detect_remote_type, parse_region_eligibility
from job_ingestion.normalize.skills import extract_skills_for_job, merge_skills, tag_skills
from job_ingestion.normalize.text import parse_timestamp, strip_html
from job_ingestion.utils.http_client import RateLimiter, create_session

logger = logging.getLogger("job_ingestion.jobs")

MAX_DESCRIPTION_CHARS = 100_000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConnectorContext:
    """Shared resources handed to every connector by the orchestrator."""

    session: requests.Session = field(default_factory=create_session)
    limiter: RateLimiter = field(default_factory=RateLimiter)
    enricher: Any = None
    clock: Callable[[], datetime] = _utcnow
    sleep: Callable[[float], None] = time.sleep


def as_text(value: Any) -> str:
    """Provider scalar as stripped text; None and containers become ""."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def source_job_id_for(raw_id: Any, apply_url: str) -> str:
    """Provider id, or a stable hash of the apply URL when the provider has none."""
    sid = as_text(raw_id)
    if sid:
        return sid
    return hashlib.sha256(apply_url.encode("utf-8")).hexdigest()[:32]


def parse_or_skip(
    result: FetchResult,
    parse: Callable[..., Optional[CanonicalJob]],
    item: Any,
    *args: Any,
) -> Optional[CanonicalJob]:
    """Run ``parse(item, *args)``. A None result or an exception counts as skipped.

    One malformed provider item must not abort the rest of the batch.
    """
    try:
        job = parse(item, *args)
    except Exception as e:
        logger.warning("%s: skipping malformed item: %s: %s", result.source, type(e).__name__, e)
        job = None
    if job is None:
        result.skipped += 1
    return job


def build_canonical_job(
    ctx: ConnectorContext,
    *,
    source: str,
    title: Any,
    company: Any,
    apply_url: Any = None,
    fallback_url: Optional[str] = None,
    description: Any = None,
    requirements: Any = None,
    location: Any = None,
    country: Optional[str] = None,
    remote_flag: Any = None,
    region_eligibility: Optional[str] = None,
    employment_type: Any = None,
    seniority: Optional[str] = None,
    salary_min: Optional[float] = None,
    salary_max: Optional[float] = None,
    salary_currency: Optional[str] = None,
    posted_at: Any = None,
    company_domain: Optional[str] = None,
    tags: Any = None,
) -> Optional[CanonicalJob]:
    """Map provider fields onto a CanonicalJob with dedupe key and skills filled in.

    Returns None when the item has no title or no addressable URL, which
    callers count as a skipped item.
    """
    title_text = strip_html(as_text(title))
    if not title_text:
        return None
    url = as_text(apply_url) or (fallback_url or "")
    if not url:
        return None

    description_text = strip_html(as_text(description))[:MAX_DESCRIPTION_CHARS]
    requirements_text = strip_html(as_text(requirements)) or extract_requirements(as_text(description))
    location_text = as_text(location) or None
    company_text = strip_html(as_text(company))

    remote_type = detect_remote_type(title_text, description_text, location_text, explicit=remote_flag)
    if region_eligibility is None:
        region_eligibility = parse_region_eligibility(description_text, location_text)

    has_salary = salary_min is not None or salary_max is not None
    now = ctx.clock()

    job = CanonicalJob(
        title=title_text,
        company_name=company_text,
        company_domain=company_domain or extract_domain(company_text),
        apply_url=url,
        source_primary=source,
        first_seen_at=now,
        last_seen_at=now,
        description_text=description_text,
        requirements_text=requirements_text,
        location_raw=location_text,
        country=country,
        is_remote=remote_type == RemoteType.REMOTE,
        remote_type=remote_type,
        remote_region_eligibility=region_eligibility,
        employment_type=normalize_employment_type(as_text(employment_type)),
        seniority=seniority or infer_seniority(title_text, description_text),
        salary_min=salary_min,
        salary_max=salary_max,
        salary_currency=salary_currency if has_salary else None,
        posted_at=parse_timestamp(posted_at),
    )
    job.dedupe_key = build_dedupe_key(job)
    job.skills = merge_skills(
        extract_skills_for_job(description_text, requirements_text, ctx.enricher),
        tag_skills(tags),
    )
    return job
