"""SQLAlchemy storage for canonical jobs, source audit rows and sync metrics."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from job_ingestion.config import CustomSourceConfig
from job_ingestion.dedupe.deduplicator import REASON_DEDUPE_KEY, merge_jobs
from job_ingestion.jobs.models import CanonicalJob, JobStatus, SourceRecord, SyncMetrics, UpsertResult
from job_ingestion.models import (
    Base,
    CustomSource,
    Job,
    JobSource,
    JobSyncMetrics,
    create_db_engine,
    create_session_factory,
)
from job_ingestion.normalize.text import (
    ensure_utc,
    normalize_apply_url,
    normalize_company_for_match,
    normalize_title,
)

logger = logging.getLogger("job_ingestion.storage")

FUZZY_CANDIDATE_LIMIT = 100
TITLE_PREFIX_CHARS = 30


class JobStore:
    """Persistence for the deduplicated job corpus.

    Every method opens its own short session, so one store can be shared by
    the source worker threads.
    """

    def __init__(self, database_url: Optional[str] = None, engine=None):
        self.engine = engine if engine is not None else create_db_engine(database_url)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = create_session_factory(self.engine)

    # --- canonical jobs -------------------------------------------------

    def get_job(self, job_id: int) -> Optional[CanonicalJob]:
        with self.SessionLocal() as db:
            row = db.get(Job, job_id)
            return row.to_canonical() if row else None

    def find_by_dedupe_key(self, dedupe_key: str) -> Optional[CanonicalJob]:
        """Job with this key in any status."""
        if not dedupe_key:
            return None
        with self.SessionLocal() as db:
            row = db.scalars(select(Job).where(Job.dedupe_key == dedupe_key)).first()
            return row.to_canonical() if row else None

    def find_active_by_apply_url(self, apply_url: str) -> Optional[CanonicalJob]:
        """Oldest active job whose normalized apply URL matches."""
        url_key = normalize_apply_url(apply_url)
        if not url_key:
            return None
        with self.SessionLocal() as db:
            row = db.scalars(
                select(Job)
                .where(Job.apply_url_key == url_key, Job.status == JobStatus.ACTIVE.value)
                .order_by(Job.first_seen_at, Job.id)
            ).first()
            return row.to_canonical() if row else None

    def find_active_by_company_title(self, job: CanonicalJob) -> list[CanonicalJob]:
        """Active jobs whose company and normalized title equal ``job``'s, oldest first."""
        company_key = normalize_company_for_match(job.company_name)
        title_key = normalize_title(job.title)
        if not company_key or not title_key:
            return []
        with self.SessionLocal() as db:
            rows = db.scalars(
                select(Job)
                .where(
                    Job.status == JobStatus.ACTIVE.value,
                    Job.company_key == company_key,
                    Job.title_key == title_key,
                )
                .order_by(Job.first_seen_at, Job.id)
            ).all()
            return [row.to_canonical() for row in rows]

    def find_fuzzy_candidates(self, job: CanonicalJob, limit: int = FUZZY_CANDIDATE_LIMIT) -> list[CanonicalJob]:
        """Active jobs from the same company, or from the same source with a similar title."""
        clauses = []
        company_key = normalize_company_for_match(job.company_name)
        if company_key:
            clauses.append(Job.company_key == company_key)
        title_prefix = normalize_title(job.title)[:TITLE_PREFIX_CHARS].strip()
        if title_prefix and job.source_primary:
            clauses.append(and_(
                Job.source_primary == job.source_primary,
                Job.title_key.contains(title_prefix, autoescape=True),
            ))
        if not clauses:
            return []

        with self.SessionLocal() as db:
            rows = db.scalars(
                select(Job)
                .where(Job.status == JobStatus.ACTIVE.value, or_(*clauses))
                .order_by(Job.first_seen_at, Job.id)
                .limit(limit)
            ).all()
            return [row.to_canonical() for row in rows]

    def insert_job(self, job: CanonicalJob) -> int:
        """Insert a new canonical job. Raises IntegrityError on a duplicate dedupe key."""
        with self.SessionLocal() as db:
            row = Job.from_canonical(job)
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise
            return row.id

    def update_job(self, job: CanonicalJob) -> None:
        """Write content, freshness and status. dedupe_key and first_seen_at are left alone."""
        if job.id is None:
            raise ValueError("Cannot update a job without an id")
        with self.SessionLocal() as db:
            row = db.get(Job, job.id)
            if row is None:
                raise LookupError(f"Job {job.id} not found")
            row.apply_canonical(job)
            row.last_seen_at = job.last_seen_at
            row.status = job.status.value
            db.commit()

    def upsert(self, job: CanonicalJob, existing: Optional[CanonicalJob]) -> UpsertResult:
        """Insert ``job`` or merge it into ``existing``.

        A unique-key violation on insert means another writer stored the same
        job first; it is re-fetched and merged instead.
        """
        if existing is None:
            try:
                job_id = self.insert_job(job)
                return UpsertResult(job_id=job_id, inserted=True, duplicate=False)
            except IntegrityError:
                existing = self.find_by_dedupe_key(job.dedupe_key)
                if existing is None:
                    raise
                logger.info("Insert race on dedupe key %s, merging into job %d", job.dedupe_key[:12], existing.id)
                merged, promoted = merge_jobs(existing, job)
                self.update_job(merged)
                return UpsertResult(
                    job_id=existing.id, inserted=False, duplicate=True,
                    promoted=promoted, reason=REASON_DEDUPE_KEY, similarity=1.0,
                )

        merged, promoted = merge_jobs(existing, job)
        self.update_job(merged)
        return UpsertResult(job_id=existing.id, inserted=False, duplicate=True, promoted=promoted)

    def mark_expired(self, cutoff: datetime) -> int:
        """Expire active jobs last seen before ``cutoff``. Returns the number changed."""
        with self.SessionLocal() as db:
            result = db.execute(
                update(Job)
                .where(Job.status == JobStatus.ACTIVE.value, Job.last_seen_at < ensure_utc(cutoff))
                .values(status=JobStatus.EXPIRED.value, updated_at=datetime.now(timezone.utc))
            )
            db.commit()
            return result.rowcount or 0

    def list_active_jobs(self, limit: Optional[int] = None) -> list[CanonicalJob]:
        with self.SessionLocal() as db:
            stmt = select(Job).where(Job.status == JobStatus.ACTIVE.value).order_by(Job.id)
            if limit:
                stmt = stmt.limit(limit)
            return [row.to_canonical() for row in db.scalars(stmt).all()]

    # --- source audit trail ---------------------------------------------

    def record_source(self, record: SourceRecord) -> None:
        """Upsert the (source, source_job_id) row and point it at ``record.job_id``."""
        source, source_job_id = record.source, record.source_job_id
        values = {
            "source_url": record.source_url,
            "raw_payload": record.raw_payload or {},
            "job_id": record.job_id,
            "fetched_at": ensure_utc(record.fetched_at) if record.fetched_at else datetime.now(timezone.utc),
        }
        for attempt in range(2):
            with self.SessionLocal() as db:
                row = db.scalars(
                    select(JobSource).where(
                        JobSource.source == source, JobSource.source_job_id == source_job_id
                    )
                ).first()
                if row is None:
                    db.add(JobSource(source=source, source_job_id=source_job_id, **values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                try:
                    db.commit()
                    return
                except IntegrityError:
                    db.rollback()
                    if attempt:
                        raise

    def get_sources_for_job(self, job_id: int) -> list[dict]:
        with self.SessionLocal() as db:
            rows = db.scalars(
                select(JobSource).where(JobSource.job_id == job_id).order_by(JobSource.id)
            ).all()
            return [
                {
                    "source": r.source,
                    "source_job_id": r.source_job_id,
                    "source_url": r.source_url,
                    "fetched_at": ensure_utc(r.fetched_at).isoformat(),
                }
                for r in rows
            ]

    # --- sync metrics -----------------------------------------------------

    def record_sync_metrics(self, metrics: SyncMetrics) -> None:
        with self.SessionLocal() as db:
            db.merge(JobSyncMetrics(
                source=metrics.source,
                last_sync_at=ensure_utc(metrics.last_sync_at),
                last_sync_status=metrics.last_sync_status,
                jobs_fetched=metrics.jobs_fetched,
                jobs_upserted=metrics.jobs_upserted,
                duplicates_found=metrics.duplicates_found,
                errors_count=metrics.errors_count,
                last_error=metrics.last_error,
            ))
            db.commit()

    def get_sync_metrics(self) -> list[SyncMetrics]:
        with self.SessionLocal() as db:
            rows = db.scalars(select(JobSyncMetrics).order_by(JobSyncMetrics.source)).all()
            return [row.to_metrics() for row in rows]

    # --- custom sources ---------------------------------------------------

    def add_custom_source(self, source: CustomSourceConfig) -> None:
        """Register a scraper definition. Raises ValueError if the key is taken."""
        with self.SessionLocal() as db:
            db.add(CustomSource(
                source_key=source.key,
                name=source.name,
                url=source.url,
                source_type=source.source_type,
                options=dict(source.options),
                max_pages=source.max_pages,
                enabled=source.enabled,
            ))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ValueError(f"Custom source '{source.key}' already exists")

    def list_custom_sources(self, enabled_only: bool = False) -> list[CustomSourceConfig]:
        with self.SessionLocal() as db:
            stmt = select(CustomSource).order_by(CustomSource.name)
            if enabled_only:
                stmt = stmt.where(CustomSource.enabled.is_(True))
            return [row.to_config() for row in db.scalars(stmt).all()]

    def set_custom_source_enabled(self, key: str, enabled: bool) -> bool:
        with self.SessionLocal() as db:
            row = db.scalars(select(CustomSource).where(CustomSource.source_key == key)).first()
            if row is None:
                return False
            row.enabled = enabled
            db.commit()
            return True

    def delete_custom_source(self, key: str) -> bool:
        with self.SessionLocal() as db:
            row = db.scalars(select(CustomSource).where(CustomSource.source_key == key)).first()
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    # --- stats ------------------------------------------------------------

    def get_stats(self) -> dict:
        """Get database statistics."""
        stats = {}
        with self.SessionLocal() as db:
            stats["total_jobs"] = db.scalar(select(func.count(Job.id))) or 0

            rows = db.execute(select(Job.status, func.count(Job.id)).group_by(Job.status)).all()
            stats["by_status"] = {status: count for status, count in rows}

            rows = db.execute(
                select(Job.source_primary, func.count(Job.id))
                .where(Job.status == JobStatus.ACTIVE.value)
                .group_by(Job.source_primary)
            ).all()
            stats["active_by_source"] = {source: count for source, count in rows}

            stats["total_source_records"] = db.scalar(select(func.count(JobSource.id))) or 0
        stats["sync_metrics"] = self.get_sync_metrics()
        return stats

    def close(self):
        self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
