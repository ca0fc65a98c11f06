"""Get on Board API source (LATAM tech jobs, paginated)."""

import logging
from typing import Any, Optional

from job_ingestion.config import AppConfig
from job_ingestion.jobs.mapping import (
    ConnectorContext,
    as_text,
    build_canonical_job,
    parse_or_skip,
    source_job_id_for,
)
from job_ingestion.jobs.models import CanonicalJob, FetchResult, RemoteType, SourceKind
from job_ingestion.normalize.fields import normalize_seniority, parse_amount
from job_ingestion.normalize.remote import parse_region_eligibility
from job_ingestion.utils.http_client import FetchError, fetch_json

logger = logging.getLogger("job_ingestion.jobs.getonboard")

SOURCE = SourceKind.GETONBOARD.value
API_URL = "https://www.getonbrd.com/api/v0/jobs"
CANONICAL_URL = "https://www.getonbrd.com/jobs/{id}"
DEFAULT_REGION = "LATAM"
RATE_LIMIT_WINDOW_SECONDS = 1.5
RATE_LIMIT_MAX = 1


class GetOnBoardConnector:
    def __init__(self, config: AppConfig, ctx: ConnectorContext):
        self.settings = config.sources.getonboard
        self.page_delay = config.ingestion.page_delay_seconds
        self.ctx = ctx

    def fetch_recent_jobs(self) -> FetchResult:
        """Walk result pages until empty, the last page, or ``max_pages``.

        A failure on the first page fails the fetch; a later failure keeps
        what was already collected and records the error.
        """
        if not self.settings.enabled:
            logger.info("GetOnBoard disabled, skipping")
            return FetchResult.disabled(SOURCE)

        result = FetchResult(source=SOURCE)
        max_pages = max(1, self.settings.max_pages)

        for page in range(1, max_pages + 1):
            try:
                data = self._fetch_page(page)
            except FetchError as e:
                if page == 1:
                    raise
                logger.warning("GetOnBoard page %d failed, stopping: %s", page, e)
                result.errors.append(f"page {page}: {e}")
                break

            items = data.get("data")
            if not isinstance(items, list) or not items:
                logger.debug("GetOnBoard page %d is empty", page)
                break

            for item in items:
                if not isinstance(item, dict) or not isinstance(item.get("attributes"), dict):
                    result.skipped += 1
                    continue
                # The remote=true filter is not always honoured upstream
                if item["attributes"].get("remote") is not True:
                    continue
                job = parse_or_skip(result, _parse_getonboard_job, item, self.ctx)
                if job is None:
                    continue
                result.add(job, item, source_job_id_for(item.get("id"), job.apply_url))

            meta = data.get("meta") or {}
            total_pages = meta.get("total-pages") or meta.get("total_pages")
            if isinstance(total_pages, int) and page >= total_pages:
                break
            if page < max_pages:
                self.ctx.sleep(self.page_delay)

        logger.info("Fetched %d jobs from GetOnBoard (%d skipped)", len(result.jobs), result.skipped)
        return result

    def fetch_job_by_source_id(self, source_id: str) -> FetchResult:
        return self.fetch_recent_jobs().only(str(source_id))

    def _fetch_page(self, page: int) -> dict:
        self.ctx.limiter.acquire(SOURCE, RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX)
        params = {
            "page": page,
            "per_page": self.settings.per_page,
            "expand": "company",
            "remote": "true",
            "sort": "-published_at",
        }
        headers = {"Accept": "application/json"}
        # Optional; a key only raises the rate limit
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        data = fetch_json(API_URL, session=self.ctx.session, params=params, headers=headers, sleep=self.ctx.sleep)
        if not isinstance(data, dict):
            raise FetchError(API_URL, f"Expected a JSON object, got {type(data).__name__}")
        return data


def _nested_name(value: Any) -> str:
    """Name out of a JSON:API relationship: ``{"data": {"attributes": {"name": ...}}}``."""
    if isinstance(value, dict):
        data = value.get("data")
        if isinstance(data, dict):
            attrs = data.get("attributes")
            if isinstance(attrs, dict):
                return as_text(attrs.get("name"))
        return as_text(value.get("name"))
    return as_text(value)


def _parse_getonboard_job(item: dict, ctx: ConnectorContext) -> Optional[CanonicalJob]:
    """Parse a single Get on Board job resource into a CanonicalJob."""
    attrs = item["attributes"]
    job_id = as_text(item.get("id"))
    links = item.get("links") if isinstance(item.get("links"), dict) else {}

    modality = as_text(attrs.get("remote-modality")).lower()
    remote_type = RemoteType.HYBRID if "hybrid" in modality else RemoteType.REMOTE

    remote_zone = as_text(attrs.get("remote-zone"))
    region = parse_region_eligibility(remote_zone) if remote_zone else None

    countries = attrs.get("countries")
    location = ", ".join(str(c) for c in countries if c) if isinstance(countries, list) else as_text(countries)

    salary_min = parse_amount(attrs.get("min-salary"))
    salary_max = parse_amount(attrs.get("max-salary"))

    return build_canonical_job(
        ctx,
        source=SOURCE,
        title=attrs.get("title"),
        company=_nested_name(attrs.get("company")),
        apply_url=links.get("public-url"),
        fallback_url=CANONICAL_URL.format(id=job_id) if job_id else None,
        description=attrs.get("description"),
        requirements=attrs.get("functions") if isinstance(attrs.get("functions"), str) else None,
        location=location or remote_zone or None,
        remote_flag=remote_type.value,
        region_eligibility=region or DEFAULT_REGION,
        employment_type=_nested_name(attrs.get("modality")),
        seniority=normalize_seniority(_nested_name(attrs.get("seniority"))),
        salary_min=salary_min,
        salary_max=salary_max,
        # Salaries are monthly and left unconverted
        salary_currency=as_text(attrs.get("currency")) or "USD",
        posted_at=attrs.get("published-at") or attrs.get("published_at"),
    )
