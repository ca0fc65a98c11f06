"""Remote-type detection and region-eligibility parsing.

Connectors call these on title + description + location so that "US only"
or "in person" postings are labelled the same way regardless of provider.
"""

import re
from typing import Optional

from job_ingestion.jobs.models import RemoteType

# Ordered rules; each label is emitted at most once, in first-match order
REGION_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(global|worldwide|anywhere|work from anywhere)\b", re.I), "Worldwide"),
    # "we're a US company" must not become US-only
    (re.compile(r"\b(us only|usa only|united states only|u\.?s\.? only|us-based only|usa-based only)\b", re.I), "US"),
    (re.compile(r"\bmust be (based |located |residing )?in (the )?(u\.?s\.?a?\.?|united states)(?!\w)", re.I), "US"),
    (re.compile(r"\bauthorized to work (in|within) (the )?(united states|u\.?s\.?a\.?)(?!\w)", re.I), "US"),
    (re.compile(r"\bcandidates? (must be )?(in|located in|based in|residing in) (the )?u\.?s\.?(?!\w)", re.I), "US"),
    (re.compile(r"\b(north america|n\.?a\.?) only\b", re.I), "US"),
    (re.compile(r"\b(uk only|united kingdom only|uk-based)\b", re.I), "GB"),
    (re.compile(r"\bmust be (based |located )?in the u\.?k\.?(?!\w)", re.I), "GB"),
    (re.compile(r"\b(great britain|britain)\b", re.I), "GB"),
    (re.compile(r"\b(eu only|europe only|european union|eea|europe|european)\b", re.I), "Europe"),
    (re.compile(r"\bemea\b", re.I), "Europe"),
    (re.compile(r"\bmust be (based |located )?in (the )?eu\b", re.I), "Europe"),
    (re.compile(r"\b(latam|latin america|south america)\b", re.I), "LATAM"),
    (re.compile(r"\b(brazil|brasil)\b", re.I), "BR"),
    (re.compile(r"\bcanada\b", re.I), "CA"),
    (re.compile(r"\b(mexico|méxico)\b", re.I), "MX"),
    (re.compile(r"\bargentina\b", re.I), "AR"),
    (re.compile(r"\bcolombia\b", re.I), "CO"),
    (re.compile(r"\bchile\b", re.I), "CL"),
    (re.compile(r"\b(germany|deutschland)\b", re.I), "DE"),
    (re.compile(r"\bfrance\b", re.I), "FR"),
    (re.compile(r"\b(spain|españa)\b", re.I), "ES"),
    (re.compile(r"\b(australia|apac|asia)\b", re.I), "APAC"),
]

# Legacy or display labels -> standard codes
REGION_LABEL_TO_CODE = {
    "global": "Worldwide",
    "worldwide": "Worldwide",
    "anywhere": "Worldwide",
    "us": "US",
    "usa": "US",
    "united states": "US",
    "north america": "US",
    "uk": "GB",
    "gb": "GB",
    "united kingdom": "GB",
    "europe": "Europe",
    "eu": "Europe",
    "emea": "Europe",
    "latam": "LATAM",
    "brazil": "BR",
    "canada": "CA",
    "germany": "DE",
    "france": "FR",
    "spain": "ES",
    "australia": "APAC",
    "asia": "APAC",
}

ONSITE_NEGATION_PHRASES = [
    re.compile(r"\bno (remote|work from home)\b", re.I),
    re.compile(r"\bnot (remote|eligible for remote)\b", re.I),
]

HYBRID_PHRASES = [
    re.compile(r"\bhybrid\b", re.I),
    re.compile(r"\bsome (days )?in (the )?office\b", re.I),
]

REMOTE_PHRASES = [
    re.compile(r"\bremote\b", re.I),
    re.compile(r"\bwork from home\b", re.I),
    re.compile(r"\bwfh\b", re.I),
    re.compile(r"\bwork from anywhere\b", re.I),
    re.compile(r"\bdistributed team\b", re.I),
]

ONSITE_PHRASES = [
    re.compile(r"\bon[-\s]?site\b", re.I),
    re.compile(r"\bin[-\s]?office\b", re.I),
    re.compile(r"\bin[-\s]?person\b", re.I),
    re.compile(r"\boffice[-\s]based\b", re.I),
    re.compile(r"\brelocat(e|ion) (to|required)\b", re.I),
]


def _join(*parts: Optional[str]) -> str:
    return " ".join(p for p in parts if p and isinstance(p, str))


def remote_type_from_flag(flag: object) -> Optional[RemoteType]:
    """Map an explicit provider value (bool or label) to a RemoteType."""
    if isinstance(flag, bool):
        return RemoteType.REMOTE if flag else None
    if not isinstance(flag, str) or not flag.strip():
        return None
    hint = flag.strip().lower()
    if "hybrid" in hint:
        return RemoteType.HYBRID
    if "remote" in hint or hint in ("full", "fully_remote", "remote_local"):
        return RemoteType.REMOTE
    if "onsite" in hint or "on-site" in hint or "office" in hint:
        return RemoteType.ONSITE
    return None


def detect_remote_type(
    title: Optional[str] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
    explicit: object = None,
) -> RemoteType:
    """Infer remote type: explicit provider flag first, then keyword heuristics.

    Heuristic precedence: explicit negations ("no remote") -> onsite,
    hybrid, remote/wfh, onsite/in-office, otherwise unknown.
    """
    flagged = remote_type_from_flag(explicit)
    if flagged is not None:
        return flagged

    text = _join(title, description, location)
    if not text:
        return RemoteType.UNKNOWN
    for phrases, result in (
        (ONSITE_NEGATION_PHRASES, RemoteType.ONSITE),
        (HYBRID_PHRASES, RemoteType.HYBRID),
        (REMOTE_PHRASES, RemoteType.REMOTE),
        (ONSITE_PHRASES, RemoteType.ONSITE),
    ):
        if any(p.search(text) for p in phrases):
            return result
    return RemoteType.UNKNOWN


def parse_region_eligibility(description: Optional[str], location: Optional[str] = None) -> Optional[str]:
    """Parse free text into a comma-joined list of standard region codes.

    Returns None when no region phrase is present.
    """
    text = _join(description, location)
    if not text:
        return None
    found: list[str] = []
    for pattern, label in REGION_PATTERNS:
        if label not in found and pattern.search(text):
            found.append(label)
    return ", ".join(found) if found else None


def region_codes(eligibility: Optional[str]) -> list[str]:
    """Split stored eligibility text into codes, mapping legacy labels."""
    if not eligibility or not isinstance(eligibility, str):
        return []
    codes: list[str] = []
    for part in re.split(r"[,;]", eligibility):
        part = part.strip()
        if not part:
            continue
        code = REGION_LABEL_TO_CODE.get(part.lower(), part)
        if code not in codes:
            codes.append(code)
    return codes
