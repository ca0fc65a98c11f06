"""RemoteOK public API source."""

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
from job_ingestion.normalize.fields import parse_amount
from job_ingestion.normalize.remote import parse_region_eligibility
from job_ingestion.normalize.text import strip_html
from job_ingestion.utils.http_client import FetchError, fetch_json

logger = logging.getLogger("job_ingestion.jobs.remoteok")

SOURCE = SourceKind.REMOTEOK.value
API_URL = "https://remoteok.com/api"
CANONICAL_URL = "https://remoteok.com/remote-jobs/{id}"
RATE_LIMIT_WINDOW_SECONDS = 2.0
RATE_LIMIT_MAX = 1


class RemoteOKConnector:
    def __init__(self, config: AppConfig, ctx: ConnectorContext):
        self.enabled = config.sources.remoteok_enabled
        self.default_region = config.ingestion.default_remote_region
        self.ctx = ctx

    def fetch_recent_jobs(self) -> FetchResult:
        """Fetch the current RemoteOK feed."""
        if not self.enabled:
            logger.info("RemoteOK disabled, skipping")
            return FetchResult.disabled(SOURCE)

        self.ctx.limiter.acquire(SOURCE, RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX)
        data = fetch_json(API_URL, session=self.ctx.session, sleep=self.ctx.sleep)
        if not isinstance(data, list):
            raise FetchError(API_URL, f"Expected a JSON array, got {type(data).__name__}")

        result = FetchResult(source=SOURCE)
        for item in data:
            # The first element is a legal/metadata notice, not a job
            if not isinstance(item, dict) or "legal" in item or "last_updated" in item:
                continue
            if "id" not in item:
                result.skipped += 1
                continue
            job = parse_or_skip(result, _parse_remoteok_job, item, self.ctx, self.default_region)
            if job is None:
                continue
            result.add(job, item, source_job_id_for(item.get("id"), job.apply_url))

        logger.info("Fetched %d jobs from RemoteOK (%d skipped)", len(result.jobs), result.skipped)
        return result

    def fetch_job_by_source_id(self, source_id: str) -> FetchResult:
        # The API has no single-job endpoint
        return self.fetch_recent_jobs().only(str(source_id))


def _parse_remoteok_job(item: dict, ctx: ConnectorContext, default_region: str) -> Optional[CanonicalJob]:
    """Parse a single RemoteOK item into a CanonicalJob."""
    job_id = as_text(item.get("id"))
    salary_min = parse_amount(item.get("salary_min"))
    salary_max = parse_amount(item.get("salary_max"))
    location = as_text(item.get("location"))
    region = parse_region_eligibility(strip_html(as_text(item.get("description"))), location)

    return build_canonical_job(
        ctx,
        source=SOURCE,
        title=item.get("position") or item.get("title"),
        company=item.get("company"),
        apply_url=item.get("apply_url") or item.get("url"),
        fallback_url=CANONICAL_URL.format(id=job_id) if job_id else None,
        description=item.get("description"),
        location=location or default_region,
        # Every RemoteOK listing is remote
        remote_flag=True,
        region_eligibility=region or parse_region_eligibility(default_region),
        salary_min=salary_min,
        salary_max=salary_max,
        salary_currency="USD",
        posted_at=item.get("date") or item.get("epoch"),
        tags=item.get("tags"),
    )
