"""Sync metrics model: last sync outcome per source."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from job_ingestion.jobs.models import SyncMetrics
from job_ingestion.normalize.text import ensure_utc

from .base import Base


class JobSyncMetrics(Base):
    __tablename__ = "job_sync_metrics"

    source: Mapped[str] = mapped_column(String(100), primary_key=True)
    last_sync_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    last_sync_status: Mapped[str] = mapped_column(String(20), default="success")
    jobs_fetched: Mapped[int] = mapped_column(Integer, default=0)
    jobs_upserted: Mapped[int] = mapped_column(Integer, default=0)
    duplicates_found: Mapped[int] = mapped_column(Integer, default=0)
    errors_count: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_metrics(self) -> SyncMetrics:
        return SyncMetrics(
            source=self.source,
            last_sync_at=ensure_utc(self.last_sync_at),
            last_sync_status=self.last_sync_status,
            jobs_fetched=self.jobs_fetched or 0,
            jobs_upserted=self.jobs_upserted or 0,
            duplicates_found=self.duplicates_found or 0,
            errors_count=self.errors_count or 0,
            last_error=self.last_error,
        )
