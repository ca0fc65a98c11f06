"""Best-effort field inference: seniority, employment type, salary, requirements, domain, company."""

import re
from typing import Optional
from urllib.parse import urlsplit

from job_ingestion.normalize.text import text_lines

SENIORITY_RULES = [
    (re.compile(r"\b(senior|sr\.?|lead|principal|staff)(?!\w)", re.I), "Senior"),
    (re.compile(r"\b(mid|mid-level|intermediate)\b", re.I), "Mid"),
    (re.compile(r"\b(junior|jr\.?|entry|associate)(?!\w)", re.I), "Junior"),
    (re.compile(r"\b(intern|internship)\b", re.I), "Intern"),
    (re.compile(r"\b(director|head of|vp|vice president|chief|cto|ceo)\b", re.I), "Executive"),
]

EMPLOYMENT_TYPES = [
    (("full", "tiempo completo", "permanent"), "Full-time"),
    (("part", "medio tiempo"), "Part-time"),
    (("contract", "contrato", "freelance"), "Contract"),
    (("intern", "pasantía"), "Internship"),
]

CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP"}
_CURRENCY_RE = re.compile(r"(\b(?:USD|EUR|GBP|BRL|CAD|AUD|MXN|CLP|ARS|COP)\b|\$|€|£)", re.I)
_AMOUNT_RE = re.compile(r"(\d+(?:[,.]\d+)*)\s*([kK])?")

_COMPANY_PATTERNS = [
    re.compile(r"\s+at\s+(.+?)(?:\s*[-|•]\s*|$)", re.I),
    re.compile(r"\s+-\s+(.+?)(?:\s*[-|•]\s*|$)"),
    re.compile(r"^(.+?):\s+"),
    re.compile(r"\s+\|\s+(.+?)$"),
]
_NOT_A_COMPANY_RE = re.compile(r"^(remote|hybrid|full.?time|part.?time)", re.I)

MAX_REQUIREMENTS_CHARS = 2000

# A requirements heading on its own line, or followed by a colon and inline content
_REQUIREMENTS_HEADING_RE = re.compile(
    r"(?:(?:minimum|basic|key|technical|preferred)\s+)?"
    r"(?:requirements|qualifications|you have|what you(?:['’]ll| will)? need|"
    r"what we(?:['’]re| are) looking for|must[- ]haves?)\s*(?::|$)",
    re.I,
)
_SECTION_END_RE = re.compile(
    r"(?:benefits|compensation|perks|what we offer|nice[- ]to[- ]haves?|bonus points|"
    r"about us|about the company|how to apply|responsibilities|salary)\b",
    re.I,
)
MAX_HEADING_CHARS = 60


def infer_seniority(title: Optional[str], description: Optional[str] = None) -> Optional[str]:
    """Guess seniority from the title first, then the description."""
    for text in (title, description):
        if not text:
            continue
        for pattern, label in SENIORITY_RULES:
            if pattern.search(text):
                return label
    return None


def normalize_seniority(value: Optional[str]) -> Optional[str]:
    """Map a provider-supplied seniority label onto our labels."""
    if not value:
        return None
    v = value.lower()
    # "Semi Senior" is the usual LATAM label for mid-level
    if "mid" in v or "intermediate" in v or "semi" in v:
        return "Mid"
    if "director" in v or "executive" in v or "head" in v or "chief" in v:
        return "Executive"
    if "senior" in v or "sr" in v or "lead" in v or "principal" in v:
        return "Senior"
    if "junior" in v or "jr" in v or "entry" in v:
        return "Junior"
    if "intern" in v:
        return "Intern"
    return value.strip()


def normalize_employment_type(value: Optional[str]) -> Optional[str]:
    """Map free-form contract types ("full_time", "Contrato") onto a fixed set.

    Unknown non-empty values are returned as-is; empty input gives None.
    """
    if not value or not isinstance(value, str):
        return None
    v = value.strip().lower()
    if not v:
        return None
    for needles, label in EMPLOYMENT_TYPES:
        if any(n in v for n in needles):
            return label
    return value.strip()


def parse_salary(text: Optional[str]) -> tuple[Optional[float], Optional[float], Optional[str]]:
    """Extract (min, max, currency) from text like "$80k - $120k" or "EUR 50,000".

    Amounts below 1000 without a ``k`` suffix are ignored so that stray
    numbers ("3 days a week") do not become salaries.
    """
    if not text or not isinstance(text, str):
        return None, None, None

    currency = None
    m = _CURRENCY_RE.search(text)
    if m:
        symbol = m.group(1)
        currency = CURRENCY_SYMBOLS.get(symbol, symbol.upper())

    amounts = []
    for number, k in _AMOUNT_RE.findall(text):
        try:
            value = float(number.replace(",", ""))
        except ValueError:
            continue
        if k:
            value *= 1000
        if value >= 1000:
            amounts.append(value)

    if not amounts:
        return None, None, currency
    return min(amounts), max(amounts), currency


def parse_amount(value: object) -> Optional[float]:
    """Positive finite number or None. Zero means "not stated"."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if n != n or n in (float("inf"), float("-inf")) or n <= 0:
        return None
    return n


def extract_domain(value: Optional[str]) -> Optional[str]:
    """Domain from an email address or URL, without ``www.``."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if "@" in value:
        domain = value.rsplit("@", 1)[1].lower()
        return domain or None
    if " " in value:
        return None
    candidate = value if value.startswith(("http://", "https://")) else f"https://{value}"
    try:
        host = urlsplit(candidate).hostname
    except ValueError:
        return None
    if not host or "." not in host:
        return None
    return host.lower().removeprefix("www.")


def extract_company_from_title(title: Optional[str]) -> Optional[str]:
    """Pull a company out of feed titles like "Engineer at Acme" or "Acme: Engineer"."""
    if not title:
        return None
    for i, pattern in enumerate(_COMPANY_PATTERNS):
        m = pattern.search(title)
        if not m or not m.group(1):
            continue
        company = m.group(1).strip()
        if i == 1 and _NOT_A_COMPANY_RE.match(company):
            continue
        if i == 2 and len(company) >= 50:
            continue
        return company
    return None


def extract_requirements(description: Optional[str]) -> Optional[str]:
    """The "Requirements:" / "Qualifications:" / "You have:" section of a description.

    The section runs until the next benefits/compensation style heading, a
    blank line in plain text, or the end of the text. Returns None when no
    section is found.
    """
    collected: list[str] = []
    capturing = False
    for line in text_lines(description):
        if not capturing:
            m = _REQUIREMENTS_HEADING_RE.match(line)
            if m:
                capturing = True
                rest = line[m.end():].strip()
                if rest:
                    collected.append(rest)
            continue
        if not line:
            if collected:
                break
            continue
        if len(line) <= MAX_HEADING_CHARS and _SECTION_END_RE.match(line):
            break
        collected.append(line)

    text = " ".join(collected).strip()
    return text[:MAX_REQUIREMENTS_CHARS] or None
