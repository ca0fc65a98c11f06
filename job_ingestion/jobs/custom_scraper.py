"""Generic scraper for user-defined sources: RSS/Atom feeds, HTML lists and JSON APIs."""

import logging
from typing import Any, Callable, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from job_ingestion.config import ConfigError, CustomSourceConfig
from job_ingestion.jobs.mapping import ConnectorContext, as_text, build_canonical_job, source_job_id_for
from job_ingestion.jobs.models import CanonicalJob, FetchResult
from job_ingestion.normalize.fields import extract_company_from_title
from job_ingestion.utils.http_client import FetchError, fetch_json, fetch_ok

logger = logging.getLogger("job_ingestion.jobs.custom")

RATE_LIMIT_WINDOW_SECONDS = 2.0
RATE_LIMIT_MAX = 1
MIN_FEED_BYTES = 100

HTML_DEFAULTS = {
    "job_selector": ".job-listing",
    "title_selector": "h2, .title",
    "company_selector": ".company",
    "location_selector": ".location",
    "description_selector": ".description, p",
    "url_selector": "a",
    "date_selector": ".date, time",
}

RSS_DEFAULTS = {
    "item_tag": "item",
    "title_tag": "title",
    "description_tag": "description",
    "link_tag": "link",
    "date_tag": "pubDate",
}

JSON_DEFAULTS = {
    "jobs_path": "jobs",
    "title_path": "title",
    "company_path": "company",
    "description_path": "description",
    "url_path": "url",
    "date_path": "date",
    "location_path": "location",
}


def get_path(data: Any, path: str) -> Any:
    """Resolve a dot path like ``data.results.0.title``. Missing steps give None."""
    current = data
    for key in path.split("."):
        if current is None:
            return None
        if isinstance(current, list):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return None
        elif isinstance(current, dict):
            current = current.get(key)
        else:
            return None
    return current


class CustomScraperConnector:
    """Scrapes one configured custom source. ``source_primary`` is the source key."""

    def __init__(self, custom: CustomSourceConfig, ctx: ConnectorContext, page_delay: float = 1.5):
        self.custom = custom
        self.source = custom.key
        self.ctx = ctx
        self.page_delay = page_delay

    def fetch_recent_jobs(self) -> FetchResult:
        if not self.custom.enabled:
            logger.info("Custom source %s disabled, skipping", self.source)
            return FetchResult.disabled(self.source)

        scrapers = {
            "rss": self._scrape_rss,
            "html": self._scrape_html,
            "json": self._scrape_json,
        }
        scrape = scrapers.get(self.custom.source_type)
        if scrape is None:
            raise ConfigError(f"Unsupported source type for {self.source}: {self.custom.source_type}")

        result = FetchResult(source=self.source)
        scrape(result)
        logger.info(
            "Fetched %d jobs from custom source %s (%d skipped)",
            len(result.jobs), self.custom.name, result.skipped,
        )
        return result

    def fetch_job_by_source_id(self, source_id: str) -> FetchResult:
        return self.fetch_recent_jobs().only(str(source_id))

    def _get(self, url: str):
        self.ctx.limiter.acquire(f"custom:{self.source}", RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX)
        return fetch_ok(url, session=self.ctx.session, sleep=self.ctx.sleep)

    def _option(self, defaults: dict, name: str) -> str:
        return self.custom.options.get(name) or defaults[name]

    def _add_item(
        self,
        result: FetchResult,
        extract: Callable[..., tuple[dict, dict]],
        item: Any,
        *args: Any,
    ) -> None:
        """Turn one feed entry, card or JSON object into a job.

        ``extract`` returns ``(raw_payload, job_fields)``. A failure on one
        item skips it and leaves the rest of the page alone.
        """
        try:
            raw, fields = extract(item, *args)
            job = self._build(**fields)
        except Exception as e:
            logger.warning("Custom source %s: skipping malformed item: %s: %s", self.source, type(e).__name__, e)
            job = None
        if job is None:
            result.skipped += 1
            return
        result.add(job, raw, source_job_id_for(None, job.apply_url))

    def _build(self, title: str, url: str, company: str = "", **fields) -> Optional[CanonicalJob]:
        if not title or not url:
            return None
        company = company or extract_company_from_title(title) or self.custom.name
        return build_canonical_job(
            self.ctx,
            source=self.source,
            title=title,
            company=company,
            apply_url=url,
            **fields,
        )

    # RSS / Atom

    def _scrape_rss(self, result: FetchResult) -> None:
        response = self._get(self.custom.url)
        xml = response.text or ""
        if len(xml.strip()) < MIN_FEED_BYTES:
            raise FetchError(self.custom.url, "Invalid RSS feed: response too short")

        soup = BeautifulSoup(xml, "xml")
        item_tag = self._option(RSS_DEFAULTS, "item_tag")
        items = soup.find_all(item_tag)
        if not items and item_tag == "item":
            items = soup.find_all("entry")
        if not items:
            logger.warning("No <%s> items found in %s", item_tag, self.custom.url)
            return

        for item in items:
            self._add_item(result, self._rss_fields, item)

    def _rss_fields(self, item) -> tuple[dict, dict]:
        title = _child_text(item, self._option(RSS_DEFAULTS, "title_tag"))
        link = _feed_link(item, self._option(RSS_DEFAULTS, "link_tag"))
        description = (
            _child_text(item, self._option(RSS_DEFAULTS, "description_tag"))
            or _child_text(item, "summary")
            or _child_text(item, "content")
        )
        date = (
            _child_text(item, self._option(RSS_DEFAULTS, "date_tag"))
            or _child_text(item, "published")
            or _child_text(item, "updated")
        )
        raw = {"title": title, "description": description, "url": link, "date": date, "source_name": self.custom.name}
        return raw, dict(title=title, url=link, description=description, posted_at=date)

    # HTML list

    def _scrape_html(self, result: FetchResult) -> None:
        url: Optional[str] = self.custom.url
        next_selector = self.custom.options.get("next_page_selector")
        max_pages = max(1, self.custom.max_pages)
        seen_pages = set()

        for page in range(1, max_pages + 1):
            if not url or url in seen_pages:
                break
            seen_pages.add(url)
            try:
                response = self._get(url)
            except FetchError as e:
                if page == 1:
                    raise
                logger.warning("Custom source %s page %d failed, stopping: %s", self.source, page, e)
                result.errors.append(f"page {page}: {e}")
                break

            soup = BeautifulSoup(response.text, "lxml")
            for card in soup.select(self._option(HTML_DEFAULTS, "job_selector")):
                self._add_item(result, self._html_fields, card, url)

            if not next_selector:
                break
            next_link = soup.select_one(next_selector)
            if next_link is None or not next_link.get("href"):
                break
            url = urljoin(url, next_link["href"])
            if page < max_pages:
                self.ctx.sleep(self.page_delay)

    def _html_fields(self, card, page_url: str) -> tuple[dict, dict]:
        title = _select_text(card, self._option(HTML_DEFAULTS, "title_selector"))
        company = _select_text(card, self._option(HTML_DEFAULTS, "company_selector"))
        location = _select_text(card, self._option(HTML_DEFAULTS, "location_selector"))
        description = _select_text(card, self._option(HTML_DEFAULTS, "description_selector"))
        date = _select_text(card, self._option(HTML_DEFAULTS, "date_selector"))

        link = card.select_one(self._option(HTML_DEFAULTS, "url_selector"))
        href = link.get("href") if link is not None else None
        if href is None and card.name == "a":
            href = card.get("href")
        url = urljoin(page_url, href) if href else ""

        raw = {
            "title": title,
            "company": company,
            "location": location,
            "description": description,
            "url": url,
            "date": date,
            "source_name": self.custom.name,
        }
        return raw, dict(
            title=title, url=url, company=company,
            description=description, location=location, posted_at=date,
        )

    # JSON API

    def _scrape_json(self, result: FetchResult) -> None:
        self.ctx.limiter.acquire(f"custom:{self.source}", RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX)
        data = fetch_json(
            self.custom.url,
            session=self.ctx.session,
            headers={"Accept": "application/json"},
            sleep=self.ctx.sleep,
        )
        jobs_path = self._option(JSON_DEFAULTS, "jobs_path")
        items = data if jobs_path == "." else get_path(data, jobs_path)
        if not isinstance(items, list):
            raise FetchError(self.custom.url, f"Jobs data at '{jobs_path}' is not an array")

        for item in items:
            if not isinstance(item, dict):
                result.skipped += 1
                continue
            self._add_item(result, self._json_fields, item)

    def _json_fields(self, item: dict) -> tuple[dict, dict]:
        title = as_text(get_path(item, self._option(JSON_DEFAULTS, "title_path")))
        url = as_text(get_path(item, self._option(JSON_DEFAULTS, "url_path")))
        company = get_path(item, self._option(JSON_DEFAULTS, "company_path"))
        if isinstance(company, dict):
            company = company.get("name") or company.get("display_name")
        return item, dict(
            title=title,
            url=url,
            company=as_text(company),
            description=get_path(item, self._option(JSON_DEFAULTS, "description_path")),
            location=get_path(item, self._option(JSON_DEFAULTS, "location_path")),
            posted_at=get_path(item, self._option(JSON_DEFAULTS, "date_path")),
        )


def _child_text(item, tag: str) -> str:
    child = item.find(tag)
    return child.get_text(strip=True) if child is not None else ""


def _feed_link(item, tag: str) -> str:
    """RSS puts the URL in the element text, Atom in its ``href``."""
    child = item.find(tag)
    if child is None:
        return ""
    return (child.get("href") or child.get_text(strip=True) or "").strip()


def _select_text(card, selector: str) -> str:
    elem = card.select_one(selector)
    return elem.get_text(" ", strip=True) if elem is not None else ""
