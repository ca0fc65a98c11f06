"""YAML config loading and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import soupsieve
import yaml

DEFAULT_DATABASE_URL = "sqlite:///data/job_ingestion.db"

CUSTOM_SOURCE_TYPES = ("rss", "html", "json")
# Accepted spellings from older source definitions
SOURCE_TYPE_ALIASES = {"html_list": "html", "json_api": "json"}


class ConfigError(Exception):
    """Raised for configuration the pipeline cannot run with."""


@dataclass
class AdzunaConfig:
    enabled: bool = False
    app_id: str = ""
    app_key: str = ""
    countries: list[str] = field(default_factory=lambda: ["us", "gb"])
    what: str = "remote"
    results_per_page: int = 50


@dataclass
class GetOnBoardConfig:
    enabled: bool = False
    api_key: str = ""
    max_pages: int = 3
    per_page: int = 30


@dataclass
class SourcesConfig:
    remoteok_enabled: bool = False
    remotive_enabled: bool = False
    adzuna: AdzunaConfig = field(default_factory=AdzunaConfig)
    getonboard: GetOnBoardConfig = field(default_factory=GetOnBoardConfig)


@dataclass
class IngestionConfig:
    expire_days: int = 14
    default_remote_region: str = "Worldwide"
    page_delay_seconds: float = 1.5
    sync_interval_hours: int = 6
    expire_hour: int = 3


@dataclass
class LlmConfig:
    enabled: bool = False
    provider: str = "openai"
    api_key: str = ""
    model: str = ""
    base_url: str = ""


@dataclass
class CustomSourceConfig:
    """A user-defined RSS / HTML / JSON scraper source.

    ``options`` holds the per-type mapping: RSS tag names
    (``item_tag``, ``title_tag``...), HTML CSS selectors (``job_selector``,
    ``title_selector``, ``next_page_selector``...) or JSON dot-paths
    (``jobs_path``, ``title_path``...).
    """

    key: str
    name: str
    url: str
    source_type: str = "rss"
    options: dict = field(default_factory=dict)
    enabled: bool = True
    max_pages: int = 1


@dataclass
class AppConfig:
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    llm: LlmConfig = field(default_factory=LlmConfig)
    custom_sources: list[CustomSourceConfig] = field(default_factory=list)
    database_url: str = DEFAULT_DATABASE_URL
    log_dir: str = "logs"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return bool(default)
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return int(default)
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _split_list(value) -> list[str]:
    if isinstance(value, str):
        return [v.strip().lower() for v in value.split(",") if v.strip()]
    return [str(v).strip().lower() for v in (value or []) if str(v).strip()]


def _check_selectors(key: str, options: dict) -> None:
    for name, selector in options.items():
        if not name.endswith("_selector") or not selector:
            continue
        try:
            soupsieve.compile(str(selector))
        except soupsieve.SelectorSyntaxError as e:
            raise ConfigError(f"Invalid CSS selector {name}={selector!r} for custom source {key}: {e}")


def parse_custom_source(raw: dict) -> CustomSourceConfig:
    """Build a CustomSourceConfig from a mapping, validating the required keys."""
    missing = [k for k in ("key", "name", "url") if not raw.get(k)]
    if missing:
        raise ConfigError(f"Custom source is missing {', '.join(missing)}: {raw!r}")

    source_type = str(raw.get("source_type", "rss")).lower()
    source_type = SOURCE_TYPE_ALIASES.get(source_type, source_type)
    if source_type not in CUSTOM_SOURCE_TYPES:
        raise ConfigError(f"Unsupported source type '{source_type}' for custom source {raw['key']}")

    options = dict(raw.get("options") or {})
    if source_type == "html":
        _check_selectors(str(raw["key"]), options)

    return CustomSourceConfig(
        key=str(raw["key"]),
        name=str(raw["name"]),
        url=str(raw["url"]),
        source_type=source_type,
        options=options,
        enabled=bool(raw.get("enabled", True)),
        max_pages=max(1, int(raw.get("max_pages", 1))),
    )


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load configuration from YAML; environment variables take precedence."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Copy config.example.yaml to config.yaml and fill in your settings."
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return build_config(raw)


def build_config(raw: Optional[dict] = None) -> AppConfig:
    """Build AppConfig from an already-parsed mapping plus the environment."""
    raw = raw or {}
    config = AppConfig()

    # Sources (env vars take precedence)
    sources_raw = raw.get("sources", {}) or {}
    adzuna_raw = sources_raw.get("adzuna", {}) or {}
    getonboard_raw = sources_raw.get("getonboard", {}) or {}

    countries = os.environ.get("ADZUNA_COUNTRIES") or adzuna_raw.get("countries") or ["us", "gb"]

    config.sources = SourcesConfig(
        remoteok_enabled=_env_flag("REMOTEOK_ENABLED", sources_raw.get("remoteok_enabled", False)),
        remotive_enabled=_env_flag("REMOTIVE_ENABLED", sources_raw.get("remotive_enabled", False)),
        adzuna=AdzunaConfig(
            enabled=_env_flag("ADZUNA_ENABLED", adzuna_raw.get("enabled", False)),
            app_id=os.environ.get("ADZUNA_APP_ID", adzuna_raw.get("app_id", "")),
            app_key=os.environ.get("ADZUNA_APP_KEY", adzuna_raw.get("app_key", "")),
            countries=_split_list(countries) or ["us", "gb"],
            what=adzuna_raw.get("what", "remote"),
            results_per_page=adzuna_raw.get("results_per_page", 50),
        ),
        getonboard=GetOnBoardConfig(
            enabled=_env_flag("GETONBOARD_ENABLED", getonboard_raw.get("enabled", False)),
            api_key=os.environ.get("GETONBOARD_API_KEY", getonboard_raw.get("api_key", "")),
            max_pages=getonboard_raw.get("max_pages", 3),
            per_page=getonboard_raw.get("per_page", 30),
        ),
    )

    # Ingestion
    ingestion_raw = raw.get("ingestion", {}) or {}
    config.ingestion = IngestionConfig(
        expire_days=_env_int("JOB_EXPIRE_DAYS", ingestion_raw.get("expire_days", 14)),
        default_remote_region=os.environ.get(
            "DEFAULT_REMOTE_REGION", ingestion_raw.get("default_remote_region", "Worldwide")
        ),
        page_delay_seconds=ingestion_raw.get("page_delay_seconds", 1.5),
        sync_interval_hours=ingestion_raw.get("sync_interval_hours", 6),
        expire_hour=ingestion_raw.get("expire_hour", 3),
    )
    if config.ingestion.expire_days < 0:
        raise ConfigError("expire_days must be >= 0")

    # Optional LLM skill enrichment
    llm_raw = raw.get("llm", {}) or {}
    config.llm = LlmConfig(
        enabled=_env_flag("OPTIONAL_LLM_SKILLS_ENABLED", llm_raw.get("enabled", False)),
        provider=os.environ.get("OPTIONAL_LLM_PROVIDER", llm_raw.get("provider", "openai")).lower(),
        api_key=os.environ.get("OPTIONAL_LLM_API_KEY", llm_raw.get("api_key", "")),
        model=os.environ.get("OPTIONAL_LLM_MODEL", llm_raw.get("model", "")),
        base_url=os.environ.get("OPTIONAL_LLM_BASE_URL", llm_raw.get("base_url", "")).strip(),
    )

    config.custom_sources = [parse_custom_source(s) for s in raw.get("custom_sources", []) or []]

    config.database_url = os.environ.get("DATABASE_URL", raw.get("database_url", DEFAULT_DATABASE_URL))
    config.log_dir = raw.get("log_dir", "logs")

    return config


def validate_config(config: AppConfig) -> list[str]:
    """Return list of validation warnings (empty = OK)."""
    warnings = []

    sources = config.sources
    any_enabled = (
        sources.remoteok_enabled
        or sources.remotive_enabled
        or sources.adzuna.enabled
        or sources.getonboard.enabled
        or any(s.enabled for s in config.custom_sources)
    )
    if not any_enabled:
        warnings.append("No job sources enabled - sync will fetch nothing")

    if sources.adzuna.enabled and (not sources.adzuna.app_id or not sources.adzuna.app_key):
        warnings.append("Adzuna enabled but ADZUNA_APP_ID / ADZUNA_APP_KEY missing - source will be skipped")

    if sources.getonboard.enabled and not sources.getonboard.api_key:
        warnings.append("GetOnBoard enabled without an API key - lower rate limits apply")

    if config.llm.enabled and not config.llm.api_key:
        warnings.append("LLM skills enabled but no API key configured - using dictionary skills only")

    if config.llm.enabled and config.llm.provider not in ("openai", "anthropic"):
        warnings.append(f"Unknown LLM provider '{config.llm.provider}' - using dictionary skills only")

    if config.ingestion.expire_days == 0:
        warnings.append("expire_days is 0 - stale jobs will never expire")

    keys = [s.key for s in config.custom_sources]
    duplicates = sorted({k for k in keys if keys.count(k) > 1})
    if duplicates:
        warnings.append(f"Duplicate custom source keys: {', '.join(duplicates)}")

    return warnings
