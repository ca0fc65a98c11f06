"""Tests for the command line entry point."""

import logging
import os
from types import SimpleNamespace

import pytest
import yaml

from job_ingestion import main as main_module, scheduler
from job_ingestion.main import main, parse_args, resolve_config
from job_ingestion.storage.database import JobStore

from fakes import NOW


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("REMOTEOK_ENABLED", "REMOTIVE_ENABLED", "ADZUNA_ENABLED", "GETONBOARD_ENABLED",
                 "DATABASE_URL", "OPTIONAL_LLM_SKILLS_ENABLED"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("job_ingestion")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def workspace(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'jobs.db'}"
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump({
        "database_url": db_url,
        "log_dir": str(tmp_path / "logs"),
        "custom_sources": [
            {"key": "wwr", "name": "WWR", "url": "https://example.com/rss", "enabled": False},
        ],
    }))
    return {"config": str(config_path), "db_url": db_url, "tmp": tmp_path}


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.config is None
        assert args.limit == 20
        assert not args.stats

    def test_flags(self):
        args = parse_args(["--source", "remotive", "--rank", "me.yaml", "--limit", "5", "-v"])
        assert args.source == "remotive"
        assert args.rank == "me.yaml"
        assert args.limit == 5
        assert args.verbose


class TestResolveConfig:
    def test_missing_default_uses_environment(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("REMOTIVE_ENABLED", "true")
        assert resolve_config(None).sources.remotive_enabled

    def test_missing_explicit_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            resolve_config(str(tmp_path / "nope.yaml"))


class TestMain:
    def test_sync_with_everything_disabled(self, workspace, capsys):
        main(["--config", workspace["config"]])
        out = capsys.readouterr().out
        assert "=== Sync run" in out
        assert "remoteok" in out and "disabled" in out

        with JobStore(workspace["db_url"]) as store:
            assert len(store.get_sync_metrics()) == 4
        assert os.path.exists(workspace["tmp"] / "logs" / "job_ingestion.log")

    def test_list_sources(self, workspace, capsys):
        main(["--config", workspace["config"], "--list-sources"])
        lines = capsys.readouterr().out.splitlines()
        assert any(line.startswith("remoteok") and line.endswith("disabled") for line in lines)
        assert not any(line.startswith("wwr") for line in lines)

    def test_stats(self, workspace, capsys):
        main(["--config", workspace["config"], "--stats"])
        assert "Total jobs: 0" in capsys.readouterr().out

    def test_rank(self, workspace, capsys, make_job):
        with JobStore(workspace["db_url"]) as store:
            store.insert_job(make_job(skills=["python", "aws"], posted_at=NOW))
        profile = workspace["tmp"] / "profile.yaml"
        profile.write_text(yaml.dump({"skills": ["python"], "role_keywords": ["engineer"]}))

        main(["--config", workspace["config"], "--rank", str(profile)])
        out = capsys.readouterr().out
        assert "=== Profile ===" in out
        assert "Skills: python" in out
        assert "Roles: engineer" in out
        assert "Senior Engineer @ Acme" in out
        assert "https://jobs.acme.com/123" in out

    def test_schedule_prints_jobs_and_stops(self, workspace, capsys, monkeypatch):
        def interrupt(seconds):
            raise KeyboardInterrupt

        monkeypatch.setattr(main_module, "time", SimpleNamespace(sleep=interrupt))
        main(["--config", workspace["config"], "--schedule"])
        out = capsys.readouterr().out
        assert "=== Scheduled jobs ===" in out
        assert "Job ingestion sync" in out
        assert "Job expiry sweep" in out
        assert scheduler._scheduler is None

    def test_unknown_source_exits(self, workspace):
        with pytest.raises(SystemExit) as exc:
            main(["--config", workspace["config"], "--source", "monster"])
        assert exc.value.code == 1

    def test_missing_config_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(tmp_path / "missing.yaml")])
        assert exc.value.code == 1
