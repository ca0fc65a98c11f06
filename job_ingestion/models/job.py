"""Canonical job model: one row per deduplicated posting."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from job_ingestion.jobs.models import CanonicalJob, JobStatus, RemoteType
from job_ingestion.normalize.text import (
    ensure_utc,
    normalize_apply_url,
    normalize_company_for_match,
    normalize_title,
)

from .base import Base


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_status_last_seen", "status", "last_seen_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dedupe_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    title: Mapped[str] = mapped_column(String(500), default="")
    company_name: Mapped[str] = mapped_column(String(255), default="")
    company_domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location_raw: Mapped[str | None] = mapped_column(String(500), nullable=True)
    country: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_remote: Mapped[bool] = mapped_column(Boolean, default=False)
    remote_type: Mapped[str] = mapped_column(String(20), default=RemoteType.UNKNOWN.value)
    remote_region_eligibility: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employment_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    seniority: Mapped[str | None] = mapped_column(String(50), nullable=True)

    salary_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    salary_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    salary_currency: Mapped[str | None] = mapped_column(String(10), nullable=True)

    description_text: Mapped[str] = mapped_column(Text, default="")
    requirements_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    skills_json: Mapped[list] = mapped_column(JSON, default=list)

    apply_url: Mapped[str] = mapped_column(String(2048), default="")
    source_primary: Mapped[str] = mapped_column(String(100), default="")

    # Lookup columns for same-URL and fuzzy candidate queries
    apply_url_key: Mapped[str] = mapped_column(String(2048), default="", index=True)
    company_key: Mapped[str] = mapped_column(String(255), default="", index=True)
    title_key: Mapped[str] = mapped_column(String(500), default="")

    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.ACTIVE.value, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def from_canonical(cls, job: CanonicalJob) -> "Job":
        row = cls(dedupe_key=job.dedupe_key)
        row.apply_canonical(job)
        row.first_seen_at = job.first_seen_at
        row.last_seen_at = job.last_seen_at
        row.status = job.status.value
        return row

    def apply_canonical(self, job: CanonicalJob) -> None:
        """Copy content fields (not identity or lifecycle) from ``job``."""
        self.title = job.title
        self.company_name = job.company_name
        self.company_domain = job.company_domain
        self.location_raw = job.location_raw
        self.country = job.country
        self.is_remote = job.is_remote
        self.remote_type = job.remote_type.value
        self.remote_region_eligibility = job.remote_region_eligibility
        self.employment_type = job.employment_type
        self.seniority = job.seniority
        self.salary_min = job.salary_min
        self.salary_max = job.salary_max
        self.salary_currency = job.salary_currency
        self.description_text = job.description_text or ""
        self.requirements_text = job.requirements_text
        self.skills_json = list(job.skills)
        self.apply_url = job.apply_url
        self.source_primary = job.source_primary
        self.posted_at = job.posted_at
        self.apply_url_key = normalize_apply_url(job.apply_url)
        self.company_key = normalize_company_for_match(job.company_name)
        self.title_key = normalize_title(job.title)

    def to_canonical(self) -> CanonicalJob:
        """Convert DB row to the CanonicalJob dataclass."""
        return CanonicalJob(
            id=self.id,
            dedupe_key=self.dedupe_key,
            title=self.title or "",
            company_name=self.company_name or "",
            company_domain=self.company_domain,
            location_raw=self.location_raw,
            country=self.country,
            is_remote=bool(self.is_remote),
            remote_type=RemoteType(self.remote_type or RemoteType.UNKNOWN.value),
            remote_region_eligibility=self.remote_region_eligibility,
            employment_type=self.employment_type,
            seniority=self.seniority,
            salary_min=self.salary_min,
            salary_max=self.salary_max,
            salary_currency=self.salary_currency,
            description_text=self.description_text or "",
            requirements_text=self.requirements_text,
            skills=sorted(self.skills_json or []),
            apply_url=self.apply_url or "",
            source_primary=self.source_primary or "",
            # SQLite hands datetimes back naive
            posted_at=ensure_utc(self.posted_at) if self.posted_at else None,
            first_seen_at=ensure_utc(self.first_seen_at),
            last_seen_at=ensure_utc(self.last_seen_at),
            status=JobStatus(self.status),
        )
