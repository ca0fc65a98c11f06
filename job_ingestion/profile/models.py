"""User job-search profile used by the ranker."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from job_ingestion.config import ConfigError


@dataclass
class UserJobProfile:
    """What a user is looking for: skills, roles, regions and companies to skip."""

    name: str = ""
    skills: set[str] = field(default_factory=set)
    role_keywords: list[str] = field(default_factory=list)
    preferred_regions: list[str] = field(default_factory=list)
    exclude_companies: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.skills = {s.strip().lower() for s in self.skills if s and s.strip()}

    def to_summary_string(self) -> str:
        parts = []
        if self.name:
            parts.append(f"Name: {self.name}")
        if self.role_keywords:
            parts.append(f"Roles: {', '.join(self.role_keywords)}")
        if self.skills:
            parts.append(f"Skills: {', '.join(sorted(self.skills))}")
        if self.preferred_regions:
            parts.append(f"Regions: {', '.join(self.preferred_regions)}")
        return "\n".join(parts)


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    raise ConfigError(f"Expected a list, got {type(value).__name__}")


def load_profile(path: str) -> UserJobProfile:
    """Load a profile from YAML:

        name: Ana
        skills: [python, react]
        role_keywords: [backend, engineer]
        preferred_regions: [LATAM, Worldwide]
        exclude_companies: [Acme]
    """
    profile_path = Path(path)
    if not profile_path.exists():
        raise FileNotFoundError(f"Profile file not found: {path}")

    with open(profile_path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Profile {path} must be a mapping")

    return UserJobProfile(
        name=str(raw.get("name") or ""),
        skills=set(_as_list(raw.get("skills"))),
        role_keywords=_as_list(raw.get("role_keywords")),
        preferred_regions=_as_list(raw.get("preferred_regions") or raw.get("regions")),
        exclude_companies=_as_list(raw.get("exclude_companies")),
    )
