"""Tests for profile loading and deterministic job ranking."""

import os
import tempfile
from datetime import timedelta

import pytest
import yaml

from job_ingestion.config import ConfigError
from job_ingestion.matching.ranker import (
    QUALITY_PENALTY,
    RECENCY_BOOST_MAX,
    REGION_PENALTY,
    quality_penalty,
    rank_jobs,
    recency_boost,
    region_penalty,
    score_job,
    skills_jaccard,
    title_boost,
)
from job_ingestion.profile.models import UserJobProfile, load_profile

from fakes import NOW


@pytest.fixture
def profile():
    return UserJobProfile(
        name="Ana",
        skills={"React", "typescript", "node.js"},
        role_keywords=["frontend"],
        preferred_regions=["LATAM"],
    )


class TestComponents:
    def test_skills_jaccard(self):
        assert skills_jaccard({"react"}, ["react", "typescript"]) == pytest.approx(0.5)
        assert skills_jaccard(set(), []) == 1.0
        assert skills_jaccard({"react"}, []) == 0.0

    def test_title_boost_capped(self):
        assert title_boost("Senior Frontend Engineer", ["frontend"]) == pytest.approx(0.15)
        assert title_boost("Frontend React TypeScript Node Web Engineer",
                           ["frontend", "react", "typescript", "node", "engineer"]) == pytest.approx(0.5)
        assert title_boost("Designer", ["frontend"]) == 0.0

    def test_blank_keywords_do_not_match(self):
        assert title_boost("Designer", ["   ", "", "\t"]) == 0.0
        assert title_boost("Senior Frontend Engineer", [" ", "frontend "]) == pytest.approx(0.15)

    def test_recency_decay(self, make_job):
        assert recency_boost(make_job(posted_at=NOW), NOW) == pytest.approx(RECENCY_BOOST_MAX)
        assert recency_boost(make_job(posted_at=NOW - timedelta(days=7)), NOW) == pytest.approx(0.15)
        assert recency_boost(make_job(posted_at=NOW - timedelta(days=30)), NOW) == 0.0

    def test_recency_falls_back_to_last_seen(self, make_job):
        job = make_job(posted_at=None, last_seen_at=NOW - timedelta(days=7))
        assert recency_boost(job, NOW) == pytest.approx(0.15)

    def test_region_penalty(self, make_job):
        assert region_penalty(make_job(remote_region_eligibility="US"), ["LATAM"]) == REGION_PENALTY
        assert region_penalty(make_job(remote_region_eligibility="US, LATAM"), ["latam"]) == 0.0
        assert region_penalty(make_job(remote_region_eligibility="Worldwide"), ["Europe"]) == 0.0
        assert region_penalty(make_job(remote_region_eligibility=None), ["Europe"]) == 0.0
        assert region_penalty(make_job(remote_region_eligibility="US"), []) == 0.0

    def test_quality_penalty(self, make_job):
        assert quality_penalty(make_job(description_text="Short")) == QUALITY_PENALTY
        assert quality_penalty(make_job(description_text="x" * 100)) == 0.0

    def test_score_is_clamped(self, make_job, profile):
        job = make_job(
            title="Frontend React TypeScript Node", skills=["react", "typescript", "node.js"], posted_at=NOW,
        )
        result = score_job(job, profile, ["frontend", "react", "typescript", "node"], [], NOW)
        assert result.score == 1.0

        poor = make_job(title="Accountant", skills=["excel"], description_text="", posted_at=None,
                        last_seen_at=NOW - timedelta(days=60), remote_region_eligibility="US")
        result = score_job(poor, profile, ["frontend"], ["LATAM"], NOW)
        assert result.score == 0.0
        assert result.breakdown["region_penalty"] == REGION_PENALTY


class TestRankJobs:
    def test_full_skill_match_ranks_higher(self, make_job, profile):
        partial = make_job(title="Web Developer", apply_url="https://a.com/1", skills=["react"])
        full = make_job(title="Web Developer", apply_url="https://a.com/2", skills=["react", "typescript", "node.js"])

        results = rank_jobs([partial, full], profile, now=NOW)
        assert [r.job for r in results] == [full, partial]
        assert results[0].score > results[1].score

    def test_deterministic(self, make_job, profile):
        jobs = [
            make_job(apply_url=f"https://a.com/{i}", skills=["react"] if i % 2 else [], posted_at=NOW - timedelta(days=i))
            for i in range(8)
        ]
        first = rank_jobs(jobs, profile, now=NOW)
        second = rank_jobs(jobs, profile, now=NOW)
        assert [r.job.apply_url for r in first] == [r.job.apply_url for r in second]

    def test_equal_scores_keep_input_order(self, make_job, profile):
        a = make_job(apply_url="https://a.com/1")
        b = make_job(apply_url="https://a.com/2")
        assert [r.job for r in rank_jobs([a, b], profile, now=NOW)] == [a, b]
        assert [r.job for r in rank_jobs([b, a], profile, now=NOW)] == [b, a]

    def test_excluded_companies_never_appear(self, make_job, profile):
        jobs = [make_job(company_name="Acme"), make_job(company_name="Globex", apply_url="https://g.com/1")]
        results = rank_jobs(jobs, profile, exclude_companies=[" acme "], now=NOW)
        assert [r.job.company_name for r in results] == ["Globex"]

    def test_profile_exclusions_used_by_default(self, make_job):
        profile = UserJobProfile(exclude_companies=["Globex"])
        jobs = [make_job(company_name="Globex")]
        assert rank_jobs(jobs, profile, now=NOW) == []

    def test_limit(self, make_job, profile):
        jobs = [make_job(apply_url=f"https://a.com/{i}") for i in range(5)]
        assert len(rank_jobs(jobs, profile, limit=3, now=NOW)) == 3
        assert rank_jobs(jobs, profile, limit=0, now=NOW) == []

    def test_explicit_options_override_profile(self, make_job, profile):
        job = make_job(title="Backend Engineer", remote_region_eligibility="US")
        default = rank_jobs([job], profile, now=NOW)[0]
        overridden = rank_jobs([job], profile, role_keywords=["backend"], regions=["US"], now=NOW)[0]
        assert default.breakdown["region_penalty"] == REGION_PENALTY
        assert overridden.breakdown["region_penalty"] == 0.0
        assert overridden.breakdown["title_boost"] == pytest.approx(0.15)


class TestProfile:
    def test_skills_normalized(self):
        profile = UserJobProfile(skills={" Python ", "REACT", ""})
        assert profile.skills == {"python", "react"}

    def test_summary(self, profile):
        summary = profile.to_summary_string()
        assert "Name: Ana" in summary
        assert "Skills: node.js, react, typescript" in summary

    def test_load_profile(self):
        data = {
            "name": "Ana",
            "skills": ["Python", "dbt"],
            "role_keywords": "data, analytics",
            "regions": ["LATAM"],
        }
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(data, f)
            path = f.name
        try:
            profile = load_profile(path)
        finally:
            os.unlink(path)
        assert profile.skills == {"python", "dbt"}
        assert profile.role_keywords == ["data", "analytics"]
        assert profile.preferred_regions == ["LATAM"]
        assert profile.exclude_companies == []

    def test_missing_profile_raises(self):
        with pytest.raises(FileNotFoundError):
            load_profile("no-such-profile.yaml")

    def test_non_mapping_raises(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("- just\n- a list\n")
            path = f.name
        try:
            with pytest.raises(ConfigError):
                load_profile(path)
        finally:
            os.unlink(path)
