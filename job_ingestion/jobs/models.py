"""Canonical job data model shared by connectors, dedupe, storage and ranking."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class RemoteType(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"
    UNKNOWN = "unknown"


class SourceKind(str, Enum):
    REMOTEOK = "remoteok"
    REMOTIVE = "remotive"
    ADZUNA = "adzuna"
    GETONBOARD = "getonboard"
    CUSTOM = "custom"


class JobStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    # Set only by external collaborators, never by this pipeline
    REMOVED = "removed"


@dataclass
class CanonicalJob:
    """The single deduplicated representation of a job posting."""

    title: str
    company_name: str
    apply_url: str
    source_primary: str
    first_seen_at: datetime
    last_seen_at: datetime
    dedupe_key: str = ""
    description_text: str = ""
    requirements_text: Optional[str] = None
    company_domain: Optional[str] = None
    location_raw: Optional[str] = None
    country: Optional[str] = None
    is_remote: bool = False
    remote_type: RemoteType = RemoteType.UNKNOWN
    remote_region_eligibility: Optional[str] = None
    employment_type: Optional[str] = None
    seniority: Optional[str] = None
    # None means "not stated", never zero
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    posted_at: Optional[datetime] = None
    status: JobStatus = JobStatus.ACTIVE
    id: Optional[int] = None

    @property
    def has_salary(self) -> bool:
        return self.salary_min is not None or self.salary_max is not None

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["remote_type"] = self.remote_type.value
        data["status"] = self.status.value
        for key in ("first_seen_at", "last_seen_at", "posted_at"):
            value = data[key]
            data[key] = value.isoformat() if value else None
        return data


@dataclass
class SourceRecord:
    """Audit row linking one provider payload to the canonical job it fed."""

    source: str
    source_job_id: str
    job_id: int
    source_url: Optional[str] = None
    raw_payload: dict = field(default_factory=dict)
    fetched_at: Optional[datetime] = None


@dataclass
class FetchResult:
    """What a connector returns.

    ``jobs``, ``raw_items`` and ``source_job_ids`` are aligned index for
    index. ``errors`` holds per-request failures that did not stop the
    fetch; ``skipped`` counts malformed items.
    """

    source: str
    jobs: list[CanonicalJob] = field(default_factory=list)
    raw_items: list[dict[str, Any]] = field(default_factory=list)
    source_job_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    skipped: int = 0
    enabled: bool = True

    @classmethod
    def disabled(cls, source: str) -> "FetchResult":
        return cls(source=source, enabled=False)

    def add(self, job: CanonicalJob, raw: dict[str, Any], source_job_id: str) -> None:
        self.jobs.append(job)
        self.raw_items.append(raw)
        self.source_job_ids.append(source_job_id)

    def only(self, source_job_id: str) -> "FetchResult":
        """Subset holding just the item with ``source_job_id`` (possibly empty)."""
        subset = FetchResult(source=self.source, enabled=self.enabled)
        for job, raw, sid in zip(self.jobs, self.raw_items, self.source_job_ids):
            if sid == source_job_id:
                subset.add(job, raw, sid)
                break
        return subset


@dataclass
class UpsertResult:
    job_id: int
    inserted: bool
    duplicate: bool
    promoted: bool = False
    reason: str = ""
    similarity: float = 0.0


@dataclass
class SyncMetrics:
    source: str
    last_sync_at: datetime
    last_sync_status: str
    jobs_fetched: int = 0
    jobs_upserted: int = 0
    duplicates_found: int = 0
    errors_count: int = 0
    last_error: Optional[str] = None
