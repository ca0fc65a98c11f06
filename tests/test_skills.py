"""Tests for dictionary skill extraction and enrichment merging."""

from job_ingestion.normalize.skills import (
    MAX_TAG_SKILLS,
    extract_skills,
    extract_skills_for_job,
    merge_skills,
    tag_skills,
)


class StaticEnricher:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def extract(self, text):
        self.calls.append(text)
        return self.result


class BrokenEnricher:
    def extract(self, text):
        raise RuntimeError("provider down")


class TestExtractSkills:
    def test_case_insensitive_single_match(self):
        assert extract_skills("JavaScript and javascript and JAVASCRIPT") == ["javascript"]

    def test_html_is_stripped(self):
        assert extract_skills("<strong>JavaScript</strong>") == ["javascript"]

    def test_output_is_sorted_and_order_independent(self):
        assert extract_skills("Python, AWS, React") == ["aws", "python", "react"]
        assert extract_skills("Python, AWS, React") == extract_skills("React, AWS, Python")

    def test_word_bounded(self):
        # "java" inside "javascript" and "go" inside "google" are not separate skills
        assert extract_skills("JavaScript at Google") == ["javascript"]

    def test_symbols_in_skill_names(self):
        skills = extract_skills("We use C++, C# and Node.js with CI/CD")
        assert {"c++", "c#", "node.js", "ci/cd"} <= set(skills)
        assert "c" not in skills

    def test_multi_word_skills(self):
        assert "machine learning" in extract_skills("Experience with Machine Learning pipelines")

    def test_empty(self):
        assert extract_skills("") == []
        assert extract_skills(None) == []


class TestMergeSkills:
    def test_lowercases_dedupes_and_sorts(self):
        assert merge_skills(["Python", "aws"], [" AWS ", "dbt"], None) == ["aws", "dbt", "python"]


class TestTagSkills:
    def test_cleans_and_lowercases(self):
        assert tag_skills(["Golang", " Kubernetes ", "<b>DevOps</b>", "golang"]) == ["devops", "golang", "kubernetes"]

    def test_drops_odd_tags(self):
        assert tag_skills(["x", "a" * 30, 42, None, "sql"]) == ["sql"]

    def test_non_list_input(self):
        assert tag_skills("python") == []
        assert tag_skills(None) == []
        assert tag_skills({"python": 1}) == []

    def test_capped(self):
        tags = [f"skill{i:02d}" for i in range(MAX_TAG_SKILLS + 5)]
        assert len(tag_skills(tags)) == MAX_TAG_SKILLS


class TestSkillsForJob:
    def test_description_and_requirements_combined(self):
        assert extract_skills_for_job("Python backend", "Docker required") == ["docker", "python"]

    def test_enricher_results_are_merged(self):
        enricher = StaticEnricher(["dbt", "Snowflake"])
        skills = extract_skills_for_job("<p>Python and SQL</p>", enricher=enricher)
        assert skills == ["dbt", "python", "snowflake", "sql"]
        assert enricher.calls == ["Python and SQL"]

    def test_unavailable_enricher_keeps_dictionary_result(self):
        assert extract_skills_for_job("Python", enricher=StaticEnricher(None)) == ["python"]

    def test_failing_enricher_keeps_dictionary_result(self):
        assert extract_skills_for_job("Python", enricher=BrokenEnricher()) == ["python"]

    def test_enricher_not_called_without_text(self):
        enricher = StaticEnricher(["x"])
        assert extract_skills_for_job("", enricher=enricher) == []
        assert enricher.calls == []
