"""ORM models for the job ingestion store."""

from .base import Base, create_db_engine, create_session_factory, get_database_url
from .custom_source import CustomSource
from .job import Job
from .job_source import JobSource
from .sync_metrics import JobSyncMetrics

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "get_database_url",
    "Job",
    "JobSource",
    "JobSyncMetrics",
    "CustomSource",
]
