"""Adzuna search API source (credentialed, one request per country)."""

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
from job_ingestion.utils.http_client import FetchError, fetch_json

logger = logging.getLogger("job_ingestion.jobs.adzuna")

SOURCE = SourceKind.ADZUNA.value
BASE_URL = "https://api.adzuna.com/v1/api/jobs"
CANONICAL_URL = "https://www.adzuna.com/details/{id}"
RATE_LIMIT_WINDOW_SECONDS = 1.5
RATE_LIMIT_MAX = 1

# Adzuna reports salaries in the local currency of the country searched
COUNTRY_CURRENCY = {
    "us": "USD", "gb": "GBP", "ca": "CAD", "au": "AUD", "nz": "NZD",
    "de": "EUR", "fr": "EUR", "es": "EUR", "it": "EUR", "nl": "EUR", "at": "EUR", "be": "EUR",
    "br": "BRL", "mx": "MXN", "in": "INR", "pl": "PLN", "sg": "SGD", "za": "ZAR", "ch": "CHF",
}


class AdzunaConnector:
    def __init__(self, config: AppConfig, ctx: ConnectorContext):
        self.settings = config.sources.adzuna
        self.ctx = ctx

    @property
    def enabled(self) -> bool:
        return bool(self.settings.enabled and self.settings.app_id and self.settings.app_key)

    def fetch_recent_jobs(self) -> FetchResult:
        """Search every configured country. A failing country is recorded, not fatal."""
        if not self.enabled:
            if self.settings.enabled:
                logger.warning("Adzuna enabled but credentials missing, skipping")
            else:
                logger.info("Adzuna disabled, skipping")
            return FetchResult.disabled(SOURCE)

        result = FetchResult(source=SOURCE)
        for country in self.settings.countries or ["us", "gb"]:
            country = country.lower()
            try:
                results = self._search(country)
            except FetchError as e:
                logger.warning("Adzuna %s failed: %s", country, e)
                result.errors.append(f"{country}: {e}")
                continue

            for item in results:
                if not isinstance(item, dict):
                    result.skipped += 1
                    continue
                job = parse_or_skip(result, _parse_adzuna_job, item, country, self.ctx)
                if job is None:
                    continue
                raw = dict(item, _country=country)
                result.add(job, raw, source_job_id_for(item.get("id"), job.apply_url))

        logger.info("Fetched %d jobs from Adzuna (%d skipped)", len(result.jobs), result.skipped)
        return result

    def fetch_job_by_source_id(self, source_id: str) -> FetchResult:
        return self.fetch_recent_jobs().only(str(source_id))

    def _search(self, country: str) -> list:
        self.ctx.limiter.acquire(f"{SOURCE}:{country}", RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX)
        url = f"{BASE_URL}/{country}/search/1"
        params = {
            "app_id": self.settings.app_id,
            "app_key": self.settings.app_key,
            "what": self.settings.what,
            "results_per_page": self.settings.results_per_page,
            "content-type": "application/json",
        }
        data = fetch_json(url, session=self.ctx.session, params=params, sleep=self.ctx.sleep)
        if not isinstance(data, dict):
            raise FetchError(url, f"Expected a JSON object, got {type(data).__name__}")
        return data.get("results") or []


def _parse_adzuna_job(item: dict, country: str, ctx: ConnectorContext) -> Optional[CanonicalJob]:
    """Parse a single Adzuna result into a CanonicalJob."""
    job_id = as_text(item.get("id"))

    company = item.get("company")
    if isinstance(company, dict):
        company = company.get("display_name")

    location_obj = item.get("location") if isinstance(item.get("location"), dict) else {}
    area = location_obj.get("area")
    if isinstance(area, list):
        area = ", ".join(str(a) for a in area if a)
    location = ", ".join(p for p in (as_text(location_obj.get("display_name")), as_text(area)) if p)

    salary_min = parse_amount(item.get("salary_min"))
    salary_max = parse_amount(item.get("salary_max"))

    return build_canonical_job(
        ctx,
        source=SOURCE,
        title=item.get("title"),
        company=company,
        apply_url=item.get("redirect_url"),
        fallback_url=CANONICAL_URL.format(id=job_id) if job_id else None,
        description=item.get("description"),
        location=location or None,
        country=country.upper(),
        employment_type=item.get("contract_time") or item.get("contract_type"),
        salary_min=salary_min,
        salary_max=salary_max,
        salary_currency=as_text(item.get("salary_currency")) or COUNTRY_CURRENCY.get(country),
        posted_at=item.get("created"),
    )
