"""Tests for the SQLAlchemy job store."""

from datetime import timedelta

import pytest

from job_ingestion.config import CustomSourceConfig
from job_ingestion.jobs.models import JobStatus, SourceRecord, SyncMetrics

from fakes import NOW


class TestJobStore:
    def test_insert_and_get(self, store, make_job):
        job = make_job(skills=["python", "aws"], salary_min=100000.0, salary_currency="USD")
        result = store.upsert(job, None)
        assert result.inserted and not result.duplicate

        stored = store.get_job(result.job_id)
        assert stored.id == result.job_id
        assert stored.title == "Senior Engineer"
        assert stored.skills == ["aws", "python"]
        assert stored.salary_min == 100000.0
        assert stored.salary_max is None
        assert stored.first_seen_at == NOW
        assert stored.first_seen_at.tzinfo is not None

    def test_get_missing_job(self, store):
        assert store.get_job(999) is None

    def test_find_by_dedupe_key(self, store, make_job):
        job = make_job()
        job_id = store.insert_job(job)
        assert store.find_by_dedupe_key(job.dedupe_key).id == job_id
        assert store.find_by_dedupe_key("missing") is None
        assert store.find_by_dedupe_key("") is None

    def test_find_active_by_apply_url_normalizes(self, store, make_job):
        job_id = store.insert_job(make_job())
        assert store.find_active_by_apply_url("http://JOBS.acme.com/123/?utm_source=x").id == job_id

        store.mark_expired(NOW + timedelta(days=1))
        assert store.find_active_by_apply_url("https://jobs.acme.com/123") is None

    def test_insert_race_is_merged(self, store, make_job):
        first = store.upsert(make_job(description_text="Short"), None)
        # A second writer that missed the lookup inserts the same key
        result = store.upsert(make_job(description_text="A longer description"), None)
        assert result.duplicate
        assert not result.inserted
        assert result.job_id == first.job_id
        assert result.reason == "dedupe_key"
        assert store.get_job(first.job_id).description_text == "A longer description"
        assert store.get_stats()["total_jobs"] == 1

    def test_update_requires_id(self, store, make_job):
        with pytest.raises(ValueError):
            store.update_job(make_job())

    def test_update_keeps_identity(self, store, make_job):
        job_id = store.insert_job(make_job())
        changed = store.get_job(job_id)
        changed.first_seen_at = NOW + timedelta(days=5)
        changed.dedupe_key = "other"
        changed.last_seen_at = NOW + timedelta(days=5)
        store.update_job(changed)

        stored = store.get_job(job_id)
        assert stored.first_seen_at == NOW
        assert stored.dedupe_key != "other"
        assert stored.last_seen_at == NOW + timedelta(days=5)


class TestExpiry:
    def test_mark_expired_uses_cutoff(self, store, make_job):
        stale = store.insert_job(make_job(apply_url="https://a.com/1", last_seen_at=NOW - timedelta(days=15)))
        fresh = store.insert_job(make_job(apply_url="https://a.com/2", last_seen_at=NOW - timedelta(days=10)))

        assert store.mark_expired(NOW - timedelta(days=14)) == 1
        assert store.get_job(stale).status == JobStatus.EXPIRED
        assert store.get_job(fresh).status == JobStatus.ACTIVE

    def test_removed_jobs_untouched(self, store, make_job):
        job_id = store.insert_job(make_job(status=JobStatus.REMOVED, last_seen_at=NOW - timedelta(days=30)))
        assert store.mark_expired(NOW) == 0
        assert store.get_job(job_id).status == JobStatus.REMOVED

    def test_list_active_jobs(self, store, make_job):
        store.insert_job(make_job(apply_url="https://a.com/1"))
        store.insert_job(make_job(apply_url="https://a.com/2", status=JobStatus.EXPIRED))
        assert [j.apply_url for j in store.list_active_jobs()] == ["https://a.com/1"]


class TestFuzzyCandidates:
    def test_same_company_candidates(self, store, make_job):
        store.insert_job(make_job(apply_url="https://a.com/1", company_name="Acme Inc"))
        store.insert_job(make_job(apply_url="https://a.com/2", company_name="Globex", source_primary="adzuna"))
        candidates = store.find_fuzzy_candidates(make_job(apply_url="https://b.com/1", source_primary="remotive"))
        assert [c.company_name for c in candidates] == ["Acme Inc"]

    def test_same_source_similar_title(self, store, make_job):
        store.insert_job(make_job(apply_url="https://a.com/1", company_name="Globex"))
        candidates = store.find_fuzzy_candidates(make_job(apply_url="https://b.com/1", company_name="Initech"))
        assert [c.company_name for c in candidates] == ["Globex"]

    def test_inactive_jobs_excluded(self, store, make_job):
        store.insert_job(make_job(status=JobStatus.EXPIRED))
        assert store.find_fuzzy_candidates(make_job(apply_url="https://b.com/1")) == []

    def test_company_title_lookup(self, store, make_job):
        store.insert_job(make_job(apply_url="https://a.com/1", title="Sr. Engineer"))
        store.insert_job(make_job(apply_url="https://a.com/2", title="Staff Engineer"))
        store.insert_job(make_job(apply_url="https://a.com/3", status=JobStatus.EXPIRED))
        matches = store.find_active_by_company_title(make_job(apply_url="https://b.com/1"))
        assert [m.apply_url for m in matches] == ["https://a.com/1"]
        assert store.find_active_by_company_title(make_job(company_name="")) == []


class TestSourceRecords:
    def test_record_source_upserts(self, store, make_job):
        a = store.insert_job(make_job(apply_url="https://a.com/1"))
        b = store.insert_job(make_job(apply_url="https://a.com/2"))
        store.record_source(
            SourceRecord("remoteok", "1", a, source_url="https://a.com/1", raw_payload={"id": 1}, fetched_at=NOW)
        )
        store.record_source(SourceRecord("remoteok", "1", b, fetched_at=NOW + timedelta(hours=1)))

        assert store.get_sources_for_job(a) == []
        rows = store.get_sources_for_job(b)
        assert len(rows) == 1
        assert rows[0]["fetched_at"] == (NOW + timedelta(hours=1)).isoformat()
        assert store.get_stats()["total_source_records"] == 1


class TestSyncMetrics:
    def test_latest_metrics_per_source(self, store):
        store.record_sync_metrics(SyncMetrics("remoteok", NOW, "success", jobs_fetched=10, jobs_upserted=10))
        store.record_sync_metrics(
            SyncMetrics("remoteok", NOW + timedelta(hours=6), "error", errors_count=1, last_error="HTTP 503")
        )
        store.record_sync_metrics(SyncMetrics("adzuna", NOW, "success"))

        metrics = store.get_sync_metrics()
        assert [m.source for m in metrics] == ["adzuna", "remoteok"]
        remoteok = metrics[1]
        assert remoteok.last_sync_status == "error"
        assert remoteok.jobs_fetched == 0
        assert remoteok.last_error == "HTTP 503"
        assert remoteok.last_sync_at == NOW + timedelta(hours=6)


class TestCustomSources:
    def test_crud(self, store):
        source = CustomSourceConfig(
            key="wwr", name="We Work Remotely", url="https://weworkremotely.com/remote-jobs.rss",
            options={"item_tag": "item"},
        )
        store.add_custom_source(source)
        assert store.list_custom_sources() == [source]

        assert store.set_custom_source_enabled("wwr", False)
        assert store.list_custom_sources(enabled_only=True) == []
        assert not store.set_custom_source_enabled("missing", True)

        assert store.delete_custom_source("wwr")
        assert not store.delete_custom_source("wwr")
        assert store.list_custom_sources() == []

    def test_duplicate_key_raises(self, store):
        source = CustomSourceConfig(key="wwr", name="WWR", url="https://x.com/rss")
        store.add_custom_source(source)
        with pytest.raises(ValueError, match="already exists"):
            store.add_custom_source(source)


class TestStats:
    def test_stats(self, store, make_job):
        store.insert_job(make_job(apply_url="https://a.com/1"))
        store.insert_job(make_job(apply_url="https://a.com/2", source_primary="remotive"))
        store.insert_job(make_job(apply_url="https://a.com/3", status=JobStatus.EXPIRED))

        stats = store.get_stats()
        assert stats["total_jobs"] == 3
        assert stats["by_status"] == {"active": 2, "expired": 1}
        assert stats["active_by_source"] == {"remoteok": 1, "remotive": 1}
        assert stats["sync_metrics"] == []
