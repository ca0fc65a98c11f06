"""Shared fixtures: temporary store, fake HTTP session and job factory."""

import os
import tempfile

import pytest

from job_ingestion.dedupe.keys import build_dedupe_key
from job_ingestion.jobs.mapping import ConnectorContext
from job_ingestion.jobs.models import CanonicalJob
from job_ingestion.storage.database import JobStore
from job_ingestion.utils.http_client import RateLimiter

from fakes import NOW, FakeClock, FakeSession


@pytest.fixture
def store():
    """Create a temporary SQLite store for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "test.db")
        job_store = JobStore(f"sqlite:///{db_path}")
        yield job_store
        job_store.close()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_ctx(fake_clock):
    """Connector context with a fake session, fake clock and no real sleeps."""

    def _make(routes=None, now=NOW, enricher=None):
        return ConnectorContext(
            session=FakeSession(routes),
            limiter=RateLimiter(clock=fake_clock, sleep=fake_clock.sleep),
            enricher=enricher,
            clock=lambda: now,
            sleep=fake_clock.sleep,
        )

    return _make


@pytest.fixture
def make_job():
    def _make(**overrides):
        fields = dict(
            title="Senior Engineer",
            company_name="Acme",
            apply_url="https://jobs.acme.com/123",
            source_primary="remoteok",
            first_seen_at=NOW,
            last_seen_at=NOW,
            description_text="Build APIs in Python on AWS. " * 5,
            posted_at=NOW,
        )
        fields.update(overrides)
        job = CanonicalJob(**fields)
        if not job.dedupe_key:
            job.dedupe_key = build_dedupe_key(job)
        return job

    return _make
