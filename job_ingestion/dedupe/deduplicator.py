"""Duplicate detection and merge policy.

Lookup precedence for an incoming posting, stopping at the first hit:

1. an active job with the same normalized apply URL (``same_url``)
2. a job with the same dedupe key (``dedupe_key``)
3. an active job with the same company, title and posting day
   (``same_company_title_day``)
4. the best fuzzy candidate scoring >= DUPLICATE_THRESHOLD
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from job_ingestion.dedupe.keys import exact_match
from job_ingestion.dedupe.similarity import best_fuzzy_match, similarity_reason
from job_ingestion.jobs.models import CanonicalJob, JobStatus, SourceRecord, UpsertResult
from job_ingestion.normalize.text import ensure_utc, normalize_apply_url

logger = logging.getLogger("job_ingestion.dedupe")

REASON_SAME_URL = "same_url"
REASON_DEDUPE_KEY = "dedupe_key"
REASON_SAME_COMPANY_TITLE_DAY = "same_company_title_day"


@dataclass
class DuplicateMatch:
    job: CanonicalJob
    similarity: float
    reason: str


def richness(job: CanonicalJob) -> int:
    """Feature count: has description + has salary + has posting date."""
    return int(bool(job.description_text)) + int(job.has_salary) + int(job.posted_at is not None)


def is_richer(incoming: CanonicalJob, current: CanonicalJob) -> bool:
    """True when ``incoming`` should become the source primary.

    More features wins; on equal feature count the longer description wins.
    """
    ri, rc = richness(incoming), richness(current)
    if ri != rc:
        return ri > rc
    return len(incoming.description_text or "") > len(current.description_text or "")


def merge_jobs(existing: CanonicalJob, incoming: CanonicalJob) -> tuple[CanonicalJob, bool]:
    """Fold a re-observation into the stored job. Returns (merged, promoted).

    Identity (id, dedupe_key, first_seen_at) never changes. An expired job
    seen again becomes active; a removed job stays removed.
    """
    merged = replace(existing, skills=list(existing.skills))
    merged.last_seen_at = max(ensure_utc(existing.last_seen_at), ensure_utc(incoming.last_seen_at))
    if merged.status == JobStatus.EXPIRED:
        merged.status = JobStatus.ACTIVE

    promoted = is_richer(incoming, existing)
    if promoted:
        merged.source_primary = incoming.source_primary
        if incoming.description_text:
            merged.description_text = incoming.description_text
        if incoming.requirements_text:
            merged.requirements_text = incoming.requirements_text
        if incoming.has_salary:
            merged.salary_min = incoming.salary_min
            merged.salary_max = incoming.salary_max
            merged.salary_currency = incoming.salary_currency
        if incoming.posted_at is not None:
            merged.posted_at = incoming.posted_at
        if incoming.remote_region_eligibility:
            merged.remote_region_eligibility = incoming.remote_region_eligibility
        if incoming.skills:
            merged.skills = sorted(set(incoming.skills))
    return merged, promoted


class Deduplicator:
    """Finds the canonical row for incoming postings and writes through ``store``.

    One instance is shared by all source tasks; the lookup-then-write
    section is serialized so two sources reporting the same job in the same
    run cannot both insert it.
    """

    def __init__(self, store):
        self.store = store
        self._lock = threading.Lock()

    def find_duplicate(self, job: CanonicalJob) -> Optional[DuplicateMatch]:
        url_key = normalize_apply_url(job.apply_url)
        if url_key:
            existing = self.store.find_active_by_apply_url(job.apply_url)
            if existing is not None:
                return DuplicateMatch(existing, 1.0, REASON_SAME_URL)

        if job.dedupe_key:
            existing = self.store.find_by_dedupe_key(job.dedupe_key)
            if existing is not None:
                return DuplicateMatch(existing, 1.0, REASON_DEDUPE_KEY)

        for candidate in self.store.find_active_by_company_title(job):
            if exact_match(job, candidate):
                return DuplicateMatch(candidate, 1.0, REASON_SAME_COMPANY_TITLE_DAY)

        candidates = self.store.find_fuzzy_candidates(job)
        best = best_fuzzy_match(job, candidates)
        if best is None:
            return None
        candidate, score = best
        return DuplicateMatch(candidate, score, similarity_reason(job, candidate, score))

    def process(
        self,
        job: CanonicalJob,
        source: str,
        source_job_id: str,
        source_url: Optional[str] = None,
        raw_payload: Optional[dict] = None,
        fetched_at: Optional[datetime] = None,
    ) -> UpsertResult:
        """Merge or insert ``job``, then record the provider payload against it."""
        with self._lock:
            match = self.find_duplicate(job)
            result = self.store.upsert(job, match.job if match else None)
            if match is not None and result.duplicate:
                result.reason = match.reason
                result.similarity = match.similarity

        self.store.record_source(SourceRecord(
            source=source,
            source_job_id=source_job_id,
            job_id=result.job_id,
            source_url=source_url,
            raw_payload=raw_payload or {},
            fetched_at=fetched_at,
        ))

        if result.duplicate:
            logger.debug(
                "Merged %s:%s into job %d (%s, %.2f%s)",
                source, source_job_id, result.job_id, result.reason, result.similarity,
                ", promoted" if result.promoted else "",
            )
        return result
