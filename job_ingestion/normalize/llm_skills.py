"""Optional LLM skill enrichment (OpenAI-compatible or Anthropic).

Enrichment is a side channel: every failure is logged and reported as
"unavailable" (None) so callers fall back to dictionary skills.
"""

import json
import logging
import re
from typing import Optional, Protocol

import requests
from openai import OpenAI

logger = logging.getLogger("job_ingestion.normalize.llm")

SKILLS_PROMPT = (
    "From the following job description, extract a list of technical and professional "
    "skills (technologies, tools, methodologies, job titles). Return ONLY a JSON array "
    "of strings, one skill per item, lowercase. No explanation.\n\n"
    "Job description:\n\n"
)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_ANTHROPIC_MODEL = "claude-3-5-haiku-20241022"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
MAX_PROMPT_CHARS = 12000
MAX_TOKENS = 512

_CODE_BLOCK_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)```$", re.I)


class SkillEnricher(Protocol):
    def extract(self, text: str) -> Optional[list[str]]:
        """Return extra lowercase skills, or None when enrichment is unavailable."""
        ...


def parse_skills_json(content: str) -> list[str]:
    """Parse a JSON array of strings, tolerating a fenced ```json block."""
    s = content.strip()
    m = _CODE_BLOCK_RE.match(s)
    if m:
        s = m.group(1).strip()
    parsed = json.loads(s)
    if not isinstance(parsed, list):
        return []
    skills = []
    for item in parsed:
        if isinstance(item, str) and item.strip():
            skill = item.strip().lower()
            if skill not in skills:
                skills.append(skill)
    return skills


def _build_prompt(text: str) -> str:
    if len(text) > MAX_PROMPT_CHARS:
        text = text[:MAX_PROMPT_CHARS] + "…"
    return SKILLS_PROMPT + text


class OpenAISkillEnricher:
    """OpenAI chat completions; ``base_url`` allows OpenRouter, Azure and similar."""

    def __init__(self, api_key: str, model: str = DEFAULT_OPENAI_MODEL, base_url: Optional[str] = None,
                 client=None):
        self.model = model
        self.client = client or OpenAI(api_key=api_key, base_url=base_url or None, timeout=30)

    def extract(self, text: str) -> Optional[list[str]]:
        if not text:
            return None
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": _build_prompt(text)}],
                max_tokens=MAX_TOKENS,
                temperature=0,
            )
            content = response.choices[0].message.content or ""
            return parse_skills_json(content)
        except Exception as e:
            logger.warning("LLM skills (openai) failed: %s", e)
            return None


class AnthropicSkillEnricher:
    """Anthropic Messages API over plain HTTP."""

    def __init__(self, api_key: str, model: str = DEFAULT_ANTHROPIC_MODEL, base_url: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model = model
        self.url = base_url or ANTHROPIC_URL
        self.session = session or requests.Session()

    def extract(self, text: str) -> Optional[list[str]]:
        if not text:
            return None
        try:
            response = self.session.post(
                self.url,
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                },
                json={
                    "model": self.model,
                    "max_tokens": MAX_TOKENS,
                    "messages": [{"role": "user", "content": _build_prompt(text)}],
                },
                timeout=30,
            )
            if not response.ok:
                logger.warning("LLM skills (anthropic) HTTP %s: %s", response.status_code, response.text[:200])
                return None
            blocks = response.json().get("content") or []
            content = blocks[0].get("text", "") if blocks else ""
            return parse_skills_json(content)
        except Exception as e:
            logger.warning("LLM skills (anthropic) failed: %s", e)
            return None


def build_skill_enricher(llm_config) -> Optional[SkillEnricher]:
    """Create the configured enricher, or None when enrichment is off or incomplete."""
    if llm_config is None or not llm_config.enabled:
        return None
    if not llm_config.api_key:
        logger.warning("LLM skills enabled but no API key configured - using dictionary only")
        return None

    provider = (llm_config.provider or "openai").lower()
    if provider == "openai":
        return OpenAISkillEnricher(
            api_key=llm_config.api_key,
            model=llm_config.model or DEFAULT_OPENAI_MODEL,
            base_url=llm_config.base_url,
        )
    if provider == "anthropic":
        return AnthropicSkillEnricher(
            api_key=llm_config.api_key,
            model=llm_config.model or DEFAULT_ANTHROPIC_MODEL,
            base_url=llm_config.base_url,
        )
    logger.warning("Unknown LLM provider '%s' - using dictionary only", llm_config.provider)
    return None
