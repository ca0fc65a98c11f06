"""Deterministic skills extraction against a curated vocabulary."""

import logging
import re
from typing import Iterable, Optional

from job_ingestion.normalize.text import strip_html

logger = logging.getLogger("job_ingestion.normalize.skills")

# Lowercase; matched case-insensitively on word boundaries
SKILLS_DICTIONARY = {
    # Languages
    "python", "java", "javascript", "typescript", "c++", "c#", "go", "golang",
    "rust", "ruby", "php", "swift", "kotlin", "scala", "sql", "html", "css",
    "bash",
    # Frameworks & libraries
    "react", "angular", "vue", "next.js", "node.js", "nodejs", "django",
    "flask", "fastapi", "spring", "express", "rails", "laravel", "svelte",
    "tailwind", "sass",
    # Cloud & infra
    "aws", "azure", "gcp", "docker", "kubernetes", "terraform", "ansible",
    "ci/cd", "devops", "linux", "git", "github",
    # Data & ML
    "machine learning", "deep learning", "nlp", "llm", "ai", "data analysis",
    "pandas", "spark", "airflow", "kafka",
    # Databases
    "postgresql", "mysql", "mongodb", "redis", "elasticsearch", "dynamodb",
    # APIs & practices
    "api", "rest", "graphql", "grpc", "microservices", "agile", "scrum",
    "testing", "jest", "cypress",
    # Product & design
    "product management", "product manager", "user research", "roadmapping",
    "discovery", "figma", "jira", "confluence",
    # Business roles & domains
    "sales", "marketing", "customer success", "support", "communication",
    "leadership", "edtech", "fintech", "saas", "b2b", "b2c",
}


def _skill_pattern(skill: str) -> re.Pattern:
    # \b fails next to non-word chars such as "c++" or ".net", so use lookarounds
    return re.compile(rf"(?<![\w]){re.escape(skill)}(?![\w+#])", re.IGNORECASE)


_SKILL_PATTERNS = [(skill, _skill_pattern(skill)) for skill in sorted(SKILLS_DICTIONARY)]


def extract_skills(text: Optional[str]) -> list[str]:
    """Return the sorted, unique dictionary skills mentioned in ``text``.

    HTML is stripped first, so ``<b>Python</b>`` still counts.
    """
    cleaned = strip_html(text)
    if not cleaned:
        return []
    return sorted({skill for skill, pattern in _SKILL_PATTERNS if pattern.search(cleaned)})


def merge_skills(*groups: Optional[Iterable[str]]) -> list[str]:
    """Lowercase, trim, dedupe and sort several skill lists."""
    merged = set()
    for group in groups:
        for skill in group or ():
            if isinstance(skill, str) and skill.strip():
                merged.add(skill.strip().lower())
    return sorted(merged)


MAX_TAG_SKILLS = 20


def tag_skills(tags: Optional[Iterable]) -> list[str]:
    """Provider tags as skills: cleaned, lowercased, 2-29 characters, at most 20."""
    if not isinstance(tags, (list, tuple, set)):
        return []
    cleaned = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        text = strip_html(tag).lower()
        if 1 < len(text) < 30:
            cleaned.append(text)
    return merge_skills(cleaned[:MAX_TAG_SKILLS])


def extract_skills_for_job(
    description: Optional[str],
    requirements: Optional[str] = None,
    enricher=None,
) -> list[str]:
    """Dictionary skills for description + requirements, plus optional enrichment.

    ``enricher`` is anything with ``extract(text) -> list[str] | None``. Its
    result is merged when available; any failure leaves the dictionary
    result untouched.
    """
    combined = "\n".join(part for part in (description, requirements) if part)
    skills = extract_skills(combined)
    if enricher is None or not combined:
        return skills

    try:
        extra = enricher.extract(strip_html(combined))
    except Exception as e:
        logger.warning("Skill enrichment failed, using dictionary skills only: %s", e)
        return skills
    if not extra:
        return skills
    return merge_skills(skills, extra)
