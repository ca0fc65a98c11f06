"""Dedupe key generation and exact-match rules."""

import hashlib

from job_ingestion.jobs.models import CanonicalJob
from job_ingestion.normalize.text import (
    normalize_apply_url,
    normalize_company,
    normalize_title,
    posted_day,
)


def build_dedupe_key(job: CanonicalJob) -> str:
    """SHA-256 of ``company|title|url|day`` over normalized fields.

    The day is the posting day, or the first-seen day when the provider gave
    no posting date.
    """
    payload = "|".join([
        normalize_company(job.company_name),
        normalize_title(job.title),
        normalize_apply_url(job.apply_url),
        posted_day(job.posted_at, job.first_seen_at),
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def exact_match(a: CanonicalJob, b: CanonicalJob) -> bool:
    """Same normalized apply URL, or same (company, title, posted day)."""
    url_a = normalize_apply_url(a.apply_url)
    url_b = normalize_apply_url(b.apply_url)
    if url_a and url_a == url_b:
        return True
    return (
        normalize_company(a.company_name) == normalize_company(b.company_name)
        and normalize_title(a.title) == normalize_title(b.title)
        and posted_day(a.posted_at, a.first_seen_at) == posted_day(b.posted_at, b.first_seen_at)
    )
