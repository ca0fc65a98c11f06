"""Text canonicalization shared by connectors, dedupe and ranking.

Every function here is pure and total: empty, None or malformed input maps
to a well-defined value instead of raising.
"""

import re
import warnings
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

# Word-boundary abbreviation expansions applied after punctuation is stripped
TITLE_ABBREVIATIONS = {
    "sr": "senior",
    "jr": "junior",
    "pm": "product manager",
    "se": "software engineer",
    "swe": "software engineer",
    "dev": "developer",
    "eng": "engineer",
    "mgr": "manager",
    "dir": "director",
    "vp": "vice president",
    "ft": "full time",
    "pt": "part time",
    "wfh": "remote",
    "remote ok": "remote",
}

LEGAL_SUFFIX_RE = re.compile(
    r"\b(inc|llc|ltd|limited|corp|corporation|gmbh|sa|srl|co)\b\.?",
    re.IGNORECASE,
)

MAX_RAW_URL_KEY = 200

_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s-]")
_ABBREV_RES = [
    (re.compile(rf"\b{re.escape(abbr)}\b"), full)
    for abbr, full in TITLE_ABBREVIATIONS.items()
]

DateLike = Union[str, datetime, None]

# Short descriptions that look like URLs are still parsed as markup
warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)


def strip_html(text: Optional[str]) -> str:
    """Text content of an HTML fragment with entities decoded and whitespace collapsed.

    Script and style contents are dropped.
    """
    if not text or not isinstance(text, str):
        return ""
    if "<" in text or "&" in text:
        soup = BeautifulSoup(text, "lxml")
        for tag in soup(["script", "style"]):
            tag.decompose()
        text = soup.get_text(" ", strip=True)
    return _WS_RE.sub(" ", text).strip()


def text_lines(text: Optional[str]) -> list[str]:
    """Stripped lines of an HTML fragment or plain text.

    Markup yields only non-empty lines; plain text keeps blank lines as ""
    so paragraph breaks survive.
    """
    if not text or not isinstance(text, str):
        return []
    if "<" not in text:
        return [_WS_RE.sub(" ", line).strip() for line in text.splitlines()]
    soup = BeautifulSoup(text, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    lines = (_WS_RE.sub(" ", line).strip() for line in soup.get_text("\n").splitlines())
    return [line for line in lines if line]


def normalize_title(title: Optional[str]) -> str:
    """Lowercase, strip punctuation, collapse whitespace, expand abbreviations."""
    if not title or not isinstance(title, str):
        return ""
    t = _PUNCT_RE.sub(" ", title.lower())
    t = _WS_RE.sub(" ", t).strip()
    for pattern, full in _ABBREV_RES:
        t = pattern.sub(full, t)
    return t


def normalize_company(company: Optional[str]) -> str:
    """Lowercase and trim. This is the form used in the dedupe key."""
    if not company or not isinstance(company, str):
        return ""
    return company.lower().strip()


def normalize_company_for_match(company: Optional[str]) -> str:
    """Aggressive company form for fuzzy comparison only (legal suffixes dropped).

    Never store this value as the company name.
    """
    c = normalize_company(company)
    if not c:
        return ""
    c = LEGAL_SUFFIX_RE.sub("", c)
    c = re.sub(r"[^\w\s]", "", c)
    return _WS_RE.sub(" ", c).strip()


def normalize_apply_url(url: Optional[str]) -> str:
    """Return lowercase ``host + path`` without trailing slash.

    Query string and fragment are dropped. Unparseable input falls back to
    the lowercased raw string capped at 200 characters.
    """
    if not url or not isinstance(url, str):
        return ""
    raw = url.strip()
    try:
        parts = urlsplit(raw)
        host = parts.hostname
    except ValueError:
        host = None
    if not host:
        return raw.lower()[:MAX_RAW_URL_KEY]
    return f"{host}{parts.path}".lower().rstrip("/")


def parse_timestamp(value: DateLike) -> Optional[datetime]:
    """Parse ISO strings, epoch numbers and datetimes into aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        # Some providers send epoch milliseconds
        if ts > 1e12:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.isdigit():
            return parse_timestamp(int(s))
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            dt = _parse_rfc2822(s)
            if dt is None:
                return None
    else:
        return None
    try:
        return ensure_utc(dt)
    except (OverflowError, ValueError):
        # e.g. year 1 with a positive offset falls before datetime.min in UTC
        return None


def _parse_rfc2822(value: str) -> Optional[datetime]:
    # RSS pubDate, e.g. "Tue, 03 Feb 2026 10:00:00 GMT"
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (as read back from SQLite) or convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def posted_day(posted_at: DateLike, first_seen_at: DateLike) -> str:
    """``YYYY-MM-DD`` (UTC) of the posting date, falling back to the first-seen day."""
    dt = parse_timestamp(posted_at)
    if dt is None:
        dt = parse_timestamp(first_seen_at)
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%d")


def tokenize(text: Optional[str]) -> set[str]:
    """Lowercase word tokens with punctuation removed."""
    if not text:
        return set()
    cleaned = re.sub(r"[^\w\s]", " ", text.lower())
    return {tok for tok in cleaned.split() if tok}


def jaccard(a: set, b: set) -> float:
    """Jaccard index; 0.0 when either side is empty."""
    if not a or not b:
        return 0.0
    union = a | b
    return len(a & b) / len(union)
