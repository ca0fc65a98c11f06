"""Tests for the optional LLM skill enrichment side channel."""

from types import SimpleNamespace

import pytest

from job_ingestion.config import LlmConfig
from job_ingestion.normalize.llm_skills import (
    AnthropicSkillEnricher,
    OpenAISkillEnricher,
    build_skill_enricher,
    parse_skills_json,
)
from fakes import FakeResponse


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_openai_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class FakePostSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class TestParseSkillsJson:
    def test_plain_array(self):
        assert parse_skills_json('["Python", "dbt", "python"]') == ["python", "dbt"]

    def test_fenced_block(self):
        assert parse_skills_json('```json\n["React", "GraphQL"]\n```') == ["react", "graphql"]

    def test_non_array(self):
        assert parse_skills_json('{"skills": ["x"]}') == []

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError):
            parse_skills_json("python, react")


class TestOpenAIEnricher:
    def test_returns_parsed_skills(self):
        completions = FakeCompletions(content='["dbt", "Airflow"]')
        enricher = OpenAISkillEnricher("key", model="gpt-test", client=fake_openai_client(completions))
        assert enricher.extract("We use dbt and Airflow") == ["dbt", "airflow"]
        assert completions.kwargs["model"] == "gpt-test"
        assert "We use dbt and Airflow" in completions.kwargs["messages"][0]["content"]

    def test_failure_is_unavailable(self):
        completions = FakeCompletions(error=RuntimeError("rate limited"))
        enricher = OpenAISkillEnricher("key", client=fake_openai_client(completions))
        assert enricher.extract("text") is None

    def test_garbage_output_is_unavailable(self):
        completions = FakeCompletions(content="Sure! Here are the skills: python")
        enricher = OpenAISkillEnricher("key", client=fake_openai_client(completions))
        assert enricher.extract("text") is None

    def test_empty_text_skips_call(self):
        completions = FakeCompletions(content="[]")
        enricher = OpenAISkillEnricher("key", client=fake_openai_client(completions))
        assert enricher.extract("") is None
        assert completions.kwargs is None


class TestAnthropicEnricher:
    def test_returns_parsed_skills(self):
        session = FakePostSession(FakeResponse(200, {"content": [{"type": "text", "text": '["terraform"]'}]}))
        enricher = AnthropicSkillEnricher("secret", session=session)
        assert enricher.extract("Terraform on AWS") == ["terraform"]
        call = session.calls[0]
        assert call["headers"]["x-api-key"] == "secret"
        assert call["json"]["messages"][0]["role"] == "user"

    def test_http_error_is_unavailable(self):
        session = FakePostSession(FakeResponse(500, text="overloaded"))
        assert AnthropicSkillEnricher("secret", session=session).extract("text") is None

    def test_network_error_is_unavailable(self):
        session = FakePostSession(ConnectionError("boom"))
        assert AnthropicSkillEnricher("secret", session=session).extract("text") is None


class TestBuildSkillEnricher:
    def test_disabled(self):
        assert build_skill_enricher(LlmConfig(enabled=False, api_key="k")) is None
        assert build_skill_enricher(None) is None

    def test_missing_key(self):
        assert build_skill_enricher(LlmConfig(enabled=True, api_key="")) is None

    def test_unknown_provider(self):
        assert build_skill_enricher(LlmConfig(enabled=True, provider="mystery", api_key="k")) is None

    def test_anthropic(self):
        enricher = build_skill_enricher(LlmConfig(enabled=True, provider="anthropic", api_key="k"))
        assert isinstance(enricher, AnthropicSkillEnricher)
        assert enricher.model.startswith("claude")

    def test_openai_with_custom_model(self):
        enricher = build_skill_enricher(LlmConfig(enabled=True, provider="openai", api_key="k", model="my-model"))
        assert isinstance(enricher, OpenAISkillEnricher)
        assert enricher.model == "my-model"
