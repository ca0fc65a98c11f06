"""Ingestion orchestrator: fetch every source concurrently, dedupe, persist, expire."""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import requests

from job_ingestion.config import AppConfig, CustomSourceConfig
from job_ingestion.dedupe.deduplicator import Deduplicator
from job_ingestion.jobs.mapping import ConnectorContext
from job_ingestion.jobs.models import SourceKind, SyncMetrics
from job_ingestion.jobs.registry import BUILT_IN_SOURCES, create_connector
from job_ingestion.normalize.llm_skills import build_skill_enricher
from job_ingestion.storage.database import JobStore
from job_ingestion.utils.http_client import RateLimiter, create_session

logger = logging.getLogger("job_ingestion.pipeline")

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SourceSpec:
    key: str
    kind: SourceKind
    custom: Optional[CustomSourceConfig] = None


@dataclass
class SourceSyncResult:
    source: str
    status: str = STATUS_SUCCESS
    enabled: bool = True
    fetched: int = 0
    upserted: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def last_error(self) -> Optional[str]:
        return self.errors[-1] if self.errors else None


@dataclass
class OrchestrationResult:
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    sources: list[SourceSyncResult] = field(default_factory=list)
    expired: int = 0

    @property
    def total_fetched(self) -> int:
        return sum(s.fetched for s in self.sources)

    @property
    def total_upserted(self) -> int:
        return sum(s.upserted for s in self.sources)

    @property
    def total_duplicates(self) -> int:
        return sum(s.duplicates for s in self.sources)

    @property
    def failed_sources(self) -> list[str]:
        return [s.source for s in self.sources if s.status == STATUS_ERROR]


class Orchestrator:
    """Runs the configured sources against one store.

    Owns the shared HTTP session, rate limiter and deduplicator that every
    source task uses. A failure inside one source is recorded in that
    source's result and metrics and never reaches the other sources.
    """

    def __init__(
        self,
        config: AppConfig,
        store: JobStore,
        session: Optional[requests.Session] = None,
        limiter: Optional[RateLimiter] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
        enricher=None,
    ):
        self.config = config
        self.store = store
        self.clock = clock or _utcnow
        self.ctx = ConnectorContext(
            session=session if session is not None else create_session(),
            limiter=limiter if limiter is not None else RateLimiter(),
            enricher=enricher if enricher is not None else build_skill_enricher(config.llm),
            clock=self.clock,
            sleep=sleep,
        )
        self.deduplicator = Deduplicator(store)

    # --- source discovery -------------------------------------------------

    def _custom_sources(self, enabled_only: bool) -> list[CustomSourceConfig]:
        by_key: dict[str, CustomSourceConfig] = {}
        for custom in self.config.custom_sources:
            if custom.enabled or not enabled_only:
                by_key.setdefault(custom.key, custom)
        # Config file entries win over stored ones with the same key
        for custom in self.store.list_custom_sources(enabled_only=enabled_only):
            by_key.setdefault(custom.key, custom)
        return list(by_key.values())

    def source_specs(self) -> list[SourceSpec]:
        """Every source a full run visits: all built-ins plus enabled custom sources.

        Built-ins are visited even when switched off so that their metrics
        show a successful no-op sync.
        """
        specs = [SourceSpec(kind.value, kind) for kind in BUILT_IN_SOURCES]
        specs.extend(SourceSpec(c.key, SourceKind.CUSTOM, c) for c in self._custom_sources(enabled_only=True))
        return specs

    def enabled_sources(self) -> list[str]:
        """Keys of the sources that will actually fetch."""
        sources = self.config.sources
        enabled = {
            SourceKind.REMOTEOK: sources.remoteok_enabled,
            SourceKind.REMOTIVE: sources.remotive_enabled,
            SourceKind.ADZUNA: bool(sources.adzuna.enabled and sources.adzuna.app_id and sources.adzuna.app_key),
            SourceKind.GETONBOARD: sources.getonboard.enabled,
        }
        keys = [kind.value for kind in BUILT_IN_SOURCES if enabled[kind]]
        keys.extend(c.key for c in self._custom_sources(enabled_only=True))
        return keys

    # --- runs ---------------------------------------------------------------

    def run_all(self) -> OrchestrationResult:
        """Sync every source in parallel and wait for all of them."""
        run = OrchestrationResult(run_id=uuid.uuid4().hex[:8], started_at=self.clock())
        specs = self.source_specs()
        logger.info("[run:%s] Starting sync of %d sources", run.run_id, len(specs))

        # One worker per source: no source waits for another to finish
        with ThreadPoolExecutor(max_workers=max(1, len(specs)), thread_name_prefix="source") as pool:
            futures = [pool.submit(self._sync_source, spec, run.run_id) for spec in specs]
            # Results stay in source order regardless of completion order
            run.sources = [f.result() for f in futures]

        run.finished_at = self.clock()
        logger.info(
            "[run:%s] Sync done: %d fetched, %d upserted, %d duplicates, failed=%s",
            run.run_id, run.total_fetched, run.total_upserted, run.total_duplicates,
            run.failed_sources or "none",
        )
        return run

    def run_source(self, key: str) -> OrchestrationResult:
        """Sync a single source by key (a built-in name or a custom source key)."""
        spec = self._find_spec(key)
        run = OrchestrationResult(run_id=uuid.uuid4().hex[:8], started_at=self.clock())
        run.sources = [self._sync_source(spec, run.run_id)]
        run.finished_at = self.clock()
        return run

    def run_sync(self) -> OrchestrationResult:
        """Full sync followed by the expiry sweep."""
        run = self.run_all()
        run.expired = self.expire_stale_jobs()
        return run

    def expire_stale_jobs(self) -> int:
        """Mark active jobs not seen within ``expire_days`` as expired."""
        days = self.config.ingestion.expire_days
        if days <= 0:
            logger.info("Expiry sweep disabled (expire_days=%d)", days)
            return 0
        cutoff = self.clock() - timedelta(days=days)
        count = self.store.mark_expired(cutoff)
        logger.info("Expired %d jobs last seen before %s", count, cutoff.isoformat())
        return count

    def _find_spec(self, key: str) -> SourceSpec:
        for kind in BUILT_IN_SOURCES:
            if kind.value == key:
                return SourceSpec(key, kind)
        for custom in self._custom_sources(enabled_only=False):
            if custom.key == key:
                return SourceSpec(key, SourceKind.CUSTOM, custom)
        raise ValueError(f"Unknown source: {key}")

    def _sync_source(self, spec: SourceSpec, run_id: str) -> SourceSyncResult:
        start = time.monotonic()
        result = SourceSyncResult(source=spec.key)
        logger.info("[run:%s] Syncing %s", run_id, spec.key)

        try:
            connector = create_connector(spec.kind, self.config, self.ctx, spec.custom)
            fetched = connector.fetch_recent_jobs()
        except Exception as e:
            logger.error("[run:%s] %s fetch failed: %s", run_id, spec.key, e, exc_info=True)
            result.status = STATUS_ERROR
            result.errors.append(f"{type(e).__name__}: {e}")
            result.duration_seconds = round(time.monotonic() - start, 2)
            self._record_metrics(result)
            return result

        result.enabled = fetched.enabled
        result.fetched = len(fetched.jobs)
        result.skipped = fetched.skipped
        result.errors.extend(fetched.errors)

        fetched_at = self.clock()
        for job, raw, source_job_id in zip(fetched.jobs, fetched.raw_items, fetched.source_job_ids):
            try:
                upsert = self.deduplicator.process(
                    job,
                    source=spec.key,
                    source_job_id=source_job_id,
                    source_url=job.apply_url,
                    raw_payload=raw,
                    fetched_at=fetched_at,
                )
            except Exception as e:
                logger.warning("[run:%s] %s: failed to store %s: %s", run_id, spec.key, source_job_id, e)
                result.errors.append(f"{source_job_id}: {type(e).__name__}: {e}")
                continue
            result.upserted += 1
            if upsert.inserted:
                result.inserted += 1
            if upsert.duplicate:
                result.duplicates += 1

        if result.errors and result.upserted == 0:
            result.status = STATUS_ERROR
        result.duration_seconds = round(time.monotonic() - start, 2)
        self._record_metrics(result)

        logger.info(
            "[run:%s] %s: %d fetched, %d new, %d duplicates, %d skipped, %d errors (%.1fs)",
            run_id, spec.key, result.fetched, result.inserted, result.duplicates,
            result.skipped, len(result.errors), result.duration_seconds,
        )
        return result

    def _record_metrics(self, result: SourceSyncResult) -> None:
        self.store.record_sync_metrics(SyncMetrics(
            source=result.source,
            last_sync_at=self.clock(),
            last_sync_status=result.status,
            jobs_fetched=result.fetched,
            jobs_upserted=result.upserted,
            duplicates_found=result.duplicates,
            errors_count=len(result.errors),
            last_error=result.last_error,
        ))
