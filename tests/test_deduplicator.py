"""Tests for duplicate detection, merge policy and the write path."""

from dataclasses import replace
from datetime import timedelta

from job_ingestion.dedupe.deduplicator import (
    REASON_DEDUPE_KEY,
    REASON_SAME_COMPANY_TITLE_DAY,
    REASON_SAME_URL,
    Deduplicator,
    is_richer,
    merge_jobs,
    richness,
)
from job_ingestion.jobs.models import JobStatus

from fakes import NOW


class TestRichness:
    def test_feature_count(self, make_job):
        assert richness(make_job(description_text="", posted_at=None)) == 0
        assert richness(make_job(salary_min=100000.0, posted_at=None)) == 2
        assert richness(make_job(salary_max=150000.0)) == 3

    def test_more_features_wins(self, make_job):
        rich = make_job(salary_min=100000.0)
        plain = make_job(description_text="x" * 5000)
        assert is_richer(rich, plain)
        assert not is_richer(plain, rich)

    def test_longer_description_breaks_ties(self, make_job):
        short = make_job(description_text="Short")
        long = make_job(description_text="A much longer description of the role")
        assert is_richer(long, short)
        assert not is_richer(short, long)
        assert not is_richer(short, short)


class TestMergeJobs:
    def test_last_seen_takes_the_later_value(self, make_job):
        existing = make_job(id=1, last_seen_at=NOW)
        incoming = make_job(last_seen_at=NOW + timedelta(days=1))
        merged, _ = merge_jobs(existing, incoming)
        assert merged.last_seen_at == NOW + timedelta(days=1)

        merged, _ = merge_jobs(replace(existing, last_seen_at=NOW + timedelta(days=2)), incoming)
        assert merged.last_seen_at == NOW + timedelta(days=2)

    def test_identity_is_preserved(self, make_job):
        existing = make_job(id=7, first_seen_at=NOW - timedelta(days=3))
        incoming = make_job(title="Senior Engineer II", description_text="x" * 2000, salary_min=1000.0)
        merged, promoted = merge_jobs(existing, incoming)
        assert promoted
        assert merged.id == 7
        assert merged.dedupe_key == existing.dedupe_key
        assert merged.first_seen_at == existing.first_seen_at
        assert merged.title == existing.title

    def test_promotion_copies_content(self, make_job):
        existing = make_job(id=1, description_text="", salary_min=None, skills=["python"])
        incoming = make_job(
            source_primary="remotive",
            description_text="Full description",
            requirements_text="5 years",
            salary_min=90000.0,
            salary_max=120000.0,
            salary_currency="USD",
            remote_region_eligibility="US",
            skills=["aws", "python"],
        )
        merged, promoted = merge_jobs(existing, incoming)
        assert promoted
        assert merged.source_primary == "remotive"
        assert merged.description_text == "Full description"
        assert merged.requirements_text == "5 years"
        assert (merged.salary_min, merged.salary_max, merged.salary_currency) == (90000.0, 120000.0, "USD")
        assert merged.remote_region_eligibility == "US"
        assert merged.skills == ["aws", "python"]

    def test_poorer_copy_does_not_overwrite(self, make_job):
        existing = make_job(id=1, description_text="Detailed description", salary_min=100000.0)
        incoming = make_job(source_primary="remotive", description_text="")
        merged, promoted = merge_jobs(existing, incoming)
        assert not promoted
        assert merged.source_primary == "remoteok"
        assert merged.description_text == "Detailed description"

    def test_expired_job_is_reactivated(self, make_job):
        merged, _ = merge_jobs(make_job(id=1, status=JobStatus.EXPIRED), make_job())
        assert merged.status == JobStatus.ACTIVE

    def test_removed_job_stays_removed(self, make_job):
        merged, _ = merge_jobs(make_job(id=1, status=JobStatus.REMOVED), make_job())
        assert merged.status == JobStatus.REMOVED


class TestDeduplicator:
    def test_new_job_is_inserted_and_source_recorded(self, store, make_job):
        dedup = Deduplicator(store)
        result = dedup.process(make_job(), "remoteok", "rok-1", source_url="https://jobs.acme.com/123")
        assert result.inserted and not result.duplicate
        sources = store.get_sources_for_job(result.job_id)
        assert [(s["source"], s["source_job_id"]) for s in sources] == [("remoteok", "rok-1")]

    def test_same_url_from_second_source(self, store, make_job):
        dedup = Deduplicator(store)
        first = dedup.process(make_job(description_text="Short"), "remoteok", "rok-1")
        second = dedup.process(
            make_job(source_primary="remotive", description_text="A longer and richer description"),
            "remotive", "rem-9",
        )
        assert second.duplicate
        assert second.job_id == first.job_id
        assert second.reason == REASON_SAME_URL
        assert second.promoted
        stored = store.get_job(first.job_id)
        assert stored.description_text == "A longer and richer description"
        assert stored.source_primary == "remotive"
        assert len(store.get_sources_for_job(first.job_id)) == 2

    def test_expired_job_found_by_dedupe_key(self, store, make_job):
        dedup = Deduplicator(store)
        first = dedup.process(make_job(), "remoteok", "rok-1")
        store.mark_expired(NOW + timedelta(days=1))

        again = dedup.process(make_job(last_seen_at=NOW + timedelta(days=2)), "remoteok", "rok-1")
        assert again.duplicate
        assert again.job_id == first.job_id
        assert again.reason == REASON_DEDUPE_KEY
        assert store.get_job(first.job_id).status == JobStatus.ACTIVE

    def test_fuzzy_match_across_urls(self, store, make_job):
        dedup = Deduplicator(store)
        first = dedup.process(make_job(apply_url="https://remoteok.com/jobs/1"), "remoteok", "rok-1")
        other = make_job(
            apply_url="https://remotive.com/jobs/abc",
            company_name="Acme Inc.",
            posted_at=NOW - timedelta(days=1),
            source_primary="remotive",
        )
        result = dedup.process(other, "remotive", "rem-1")
        assert result.duplicate
        assert result.job_id == first.job_id
        assert result.similarity >= 0.85
        assert "same_company" in result.reason

    def test_different_job_is_not_merged(self, store, make_job):
        dedup = Deduplicator(store)
        a = dedup.process(make_job(), "remoteok", "rok-1")
        b = dedup.process(
            make_job(title="Product Designer", apply_url="https://jobs.acme.com/999", description_text="Figma"),
            "remoteok", "rok-2",
        )
        assert b.inserted
        assert a.job_id != b.job_id

    def test_refetch_updates_last_seen_only(self, store, make_job):
        dedup = Deduplicator(store)
        first = dedup.process(make_job(), "remoteok", "rok-1")
        second = dedup.process(make_job(last_seen_at=NOW + timedelta(days=1)), "remoteok", "rok-1")
        assert second.job_id == first.job_id
        stored = store.get_job(first.job_id)
        assert stored.first_seen_at == NOW
        assert stored.last_seen_at == NOW + timedelta(days=1)
        assert store.get_stats()["total_jobs"] == 1
        assert store.get_stats()["total_source_records"] == 1

    def test_same_company_title_and_day_across_urls(self, store, make_job):
        dedup = Deduplicator(store)
        first = dedup.process(
            make_job(apply_url="https://remoteok.com/jobs/1", posted_at=None, description_text="Short"),
            "remoteok", "rok-1",
        )
        second = dedup.process(
            make_job(
                apply_url="https://board.example/acme/9",
                posted_at=None,
                source_primary="board",
                description_text="Entirely different wording about the team, the stack and the hiring process",
            ),
            "board", "b-9",
        )
        assert second.duplicate
        assert second.job_id == first.job_id
        assert second.reason == REASON_SAME_COMPANY_TITLE_DAY
        assert second.similarity == 1.0
        assert store.get_stats()["total_jobs"] == 1

    def test_posting_times_hours_apart_on_the_same_day(self, store, make_job):
        dedup = Deduplicator(store)
        first = dedup.process(
            make_job(apply_url="https://a.com/1", posted_at=NOW.replace(hour=1), description_text="Go and gRPC"),
            "remoteok", "rok-1",
        )
        second = dedup.process(
            make_job(apply_url="https://b.com/2", posted_at=NOW.replace(hour=23), description_text="Figma research"),
            "remotive", "rem-2",
        )
        assert second.job_id == first.job_id
        assert second.reason == REASON_SAME_COMPANY_TITLE_DAY

    def test_same_title_on_a_different_day_is_a_new_job(self, store, make_job):
        dedup = Deduplicator(store)
        first = dedup.process(
            make_job(apply_url="https://a.com/1", posted_at=NOW - timedelta(days=10), description_text="Go and gRPC"),
            "remoteok", "rok-1",
        )
        second = dedup.process(
            make_job(apply_url="https://b.com/2", posted_at=NOW, description_text="Figma research"),
            "remotive", "rem-2",
        )
        assert second.inserted
        assert second.job_id != first.job_id
