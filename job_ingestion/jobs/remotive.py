"""Remotive public API source."""

import logging
from typing import Optional

from job_ingestion.config import AppConfig
from job_ingestion.jobs.mapping import (
    ConnectorContext,
    as_text,
    build_canonical_job,
    parse_or_skip,
    source_job_id_for,
)
from job_ingestion.jobs.models import CanonicalJob, FetchResult, SourceKind
from job_ingestion.normalize.fields import parse_salary
from job_ingestion.normalize.remote import parse_region_eligibility
from job_ingestion.normalize.text import strip_html
from job_ingestion.utils.http_client import FetchError, fetch_json

logger = logging.getLogger("job_ingestion.jobs.remotive")

SOURCE = SourceKind.REMOTIVE.value
API_URL = "https://remotive.com/api/remote-jobs"
CANONICAL_URL = "https://remotive.com/remote-jobs/listing/{id}"
RATE_LIMIT_WINDOW_SECONDS = 2.0
RATE_LIMIT_MAX = 1


class RemotiveConnector:
    def __init__(self, config: AppConfig, ctx: ConnectorContext):
        self.enabled = config.sources.remotive_enabled
        self.default_region = config.ingestion.default_remote_region
        self.ctx = ctx

    def fetch_recent_jobs(self) -> FetchResult:
        """Fetch the current Remotive listing."""
        if not self.enabled:
            logger.info("Remotive disabled, skipping")
            return FetchResult.disabled(SOURCE)

        self.ctx.limiter.acquire(SOURCE, RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX)
        data = fetch_json(API_URL, session=self.ctx.session, sleep=self.ctx.sleep)
        if not isinstance(data, dict):
            raise FetchError(API_URL, f"Expected a JSON object, got {type(data).__name__}")

        result = FetchResult(source=SOURCE)
        for item in data.get("jobs") or []:
            if not isinstance(item, dict):
                result.skipped += 1
                continue
            job = parse_or_skip(result, _parse_remotive_job, item, self.ctx, self.default_region)
            if job is None:
                continue
            result.add(job, item, source_job_id_for(item.get("id"), job.apply_url))

        logger.info("Fetched %d jobs from Remotive (%d skipped)", len(result.jobs), result.skipped)
        return result

    def fetch_job_by_source_id(self, source_id: str) -> FetchResult:
        return self.fetch_recent_jobs().only(str(source_id))


def _parse_remotive_job(item: dict, ctx: ConnectorContext, default_region: str) -> Optional[CanonicalJob]:
    """Parse a single Remotive item into a CanonicalJob."""
    job_id = as_text(item.get("id"))
    location = as_text(item.get("candidate_required_location"))

    # Remotive states eligibility in candidate_required_location ("USA Only", "Europe")
    region = parse_region_eligibility(strip_html(as_text(item.get("description"))), location)
    if region is None and location:
        region = location

    salary_min, salary_max, currency = parse_salary(as_text(item.get("salary")))

    return build_canonical_job(
        ctx,
        source=SOURCE,
        title=item.get("title"),
        company=item.get("company_name"),
        apply_url=item.get("url"),
        fallback_url=CANONICAL_URL.format(id=job_id) if job_id else None,
        description=item.get("description"),
        location=location or default_region,
        remote_flag=True,
        region_eligibility=region or parse_region_eligibility(default_region),
        employment_type=item.get("job_type"),
        salary_min=salary_min,
        salary_max=salary_max,
        salary_currency=currency or "USD",
        posted_at=item.get("publication_date"),
    )
