"""
Normalization utilities for US grant data.

Handles:
- Deadline text to calendar dates (the Date Normalizer)
- Dollar amounts ($10,000, $1.5 million, up to $250k)
- Default close-date horizons and deadline urgency
- Text cleanup
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

import structlog
from dateutil import parser as dateparser

logger = structlog.get_logger(__name__)


# Deadlines older than this are stale postings, not deadlines
STALE_AFTER_DAYS = 30

# Text that is known to never hold a date
NON_DATE_PHRASES = ("varies", "rolling", "ongoing", "check website")

MONTH_NAME = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|"
    r"Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)

# Ordered; first match wins
DATE_PATTERNS = [
    re.compile(r"\b\d{1,2}[-/]\d{1,2}[-/]\d{4}\b"),  # 01/15/2026
    re.compile(r"\b\d{4}[-/]\d{1,2}[-/]\d{1,2}\b"),  # 2026-01-15
    re.compile(rf"\b{MONTH_NAME}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b", re.IGNORECASE),  # January 15, 2026
    re.compile(rf"\b\d{{1,2}}(?:st|nd|rd|th)?\s+{MONTH_NAME}\.?,?\s+\d{{4}}\b", re.IGNORECASE),  # 15 January 2026
]

# US zone abbreviations found in feed pubDates
US_TZINFOS = {
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}

AMOUNT_PATTERN = re.compile(
    r"\$\s*(\d[\d,]*(?:\.\d+)?)\s*(million|thousand|billion|mil|[kmb])?\b",
    re.IGNORECASE,
)

_MAGNITUDES = {
    "k": 1_000,
    "thousand": 1_000,
    "m": 1_000_000,
    "mil": 1_000_000,
    "million": 1_000_000,
    "b": 1_000_000_000,
    "billion": 1_000_000_000,
}

DateLike = Union[date, datetime]


def _today(now: Optional[DateLike] = None) -> date:
    if now is None:
        return datetime.now(timezone.utc).date()
    if isinstance(now, datetime):
        return now.date()
    return now


def parse_calendar_date(text: str) -> Optional[date]:
    """
    Parse a date-shaped string with the calendar parser.

    Args:
        text: A string already known to look like a date

    Returns:
        date or None if the calendar parser rejects it
    """
    try:
        return dateparser.parse(text).date()
    except (ValueError, OverflowError):
        return None


def find_date_text(text: str) -> Optional[str]:
    """Return the first date-shaped substring of text, trying DATE_PATTERNS in order."""
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def normalize_deadline(
    text: Optional[str],
    now: Optional[DateLike] = None,
    stale_after_days: Optional[int] = STALE_AFTER_DAYS,
) -> Optional[str]:
    """
    Normalize free-text deadline into an ISO date.

    Supported formats:
    - "01/15/2026", "1-15-2026"
    - "2026/01/15", "2026-01-15"
    - "January 15, 2026", "Jan 15 2026"
    - "15 January 2026"

    Args:
        text: Text believed to contain a deadline
        now: Reference time for the staleness check (defaults to today, UTC)
        stale_after_days: Reject dates further in the past than this;
                          None disables the check

    Returns:
        "YYYY-MM-DD" or None when the deadline is unknown
    """
    if not text:
        return None

    cleaned = text.strip()
    lowered = cleaned.lower()
    if len(cleaned) < 4 or any(phrase in lowered for phrase in NON_DATE_PHRASES):
        return None

    date_text = find_date_text(cleaned)
    if not date_text:
        return None

    parsed = parse_calendar_date(date_text)
    if parsed is None:
        logger.debug("deadline_unparseable", text=cleaned[:80])
        return None

    if stale_after_days is not None:
        cutoff = _today(now) - timedelta(days=stale_after_days)
        if parsed < cutoff:
            logger.debug("deadline_stale", text=cleaned[:80], date=parsed.isoformat())
            return None

    return parsed.isoformat()


def default_close_date(days: int, now: Optional[DateLike] = None) -> str:
    """Synthesized close-date horizon, `days` from now."""
    return (_today(now) + timedelta(days=days)).isoformat()


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp."""
    return (now or datetime.now(timezone.utc)).isoformat()


def parse_timestamp(text: Optional[str]) -> Optional[str]:
    """
    Parse a feed timestamp (RFC 822 pubDate or ISO) into ISO-8601 UTC.

    Naive values are taken as UTC.
    """
    if not text or not text.strip():
        return None

    try:
        parsed = dateparser.parse(text.strip(), tzinfos=US_TZINFOS)
    except (ValueError, OverflowError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def parse_amount(text: Optional[str]) -> Optional[int]:
    """
    Parse the first dollar amount in text.

    Examples:
        "$10,000" -> 10000
        "up to $1.5 million" -> 1500000
        "$250k" -> 250000

    Returns:
        Positive integer amount or None
    """
    if not text:
        return None

    match = AMOUNT_PATTERN.search(text)
    if not match:
        return None
    return _amount_from_match(match)


def _amount_from_match(match: re.Match) -> Optional[int]:
    number_str = match.group(1).replace(",", "")
    magnitude = (match.group(2) or "").lower()

    try:
        amount = float(number_str)
    except ValueError:
        return None

    amount = int(round(amount * _MAGNITUDES.get(magnitude, 1)))
    return amount if amount > 0 else None


def extract_award_range(text: Optional[str]) -> tuple[Optional[int], Optional[int]]:
    """
    Extract (floor, ceiling) from a "$X - $Y" award pattern.

    A labeled "Award:" value is preferred; otherwise the first dollar range
    in the text is used. Either side is None when absent.

    Args:
        text: Description or other free text

    Returns:
        Tuple of (award_floor, award_ceiling)
    """
    if not text:
        return None, None

    patterns = [
        r"Award:\s*\$?\s*([\d,]+)(?:\s*(?:-|–|to)\s*\$?\s*([\d,]+))?",
        r"\$\s*([\d,]+)\s*(?:-|–|to)\s*\$?\s*([\d,]+)",
    ]

    for pattern in patterns:
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return _to_int(match.group(1)), _to_int(match.group(2))

    return None, None


def extract_funding_range(text: Optional[str]) -> tuple[Optional[int], Optional[int]]:
    """
    Extract (floor, ceiling) from loose funding text.

    "$50,000 - $250,000" gives both sides, "up to $2 million" only a
    ceiling, a single bare amount only a floor.
    """
    if not text:
        return None, None

    amounts = [a for a in (_amount_from_match(m) for m in AMOUNT_PATTERN.finditer(text)) if a]
    if not amounts:
        return None, None
    if len(amounts) >= 2:
        return amounts[0], amounts[1]
    if re.search(r"\b(?:up to|maximum|max\.?|not to exceed)\b", text, re.IGNORECASE):
        return None, amounts[0]
    return amounts[0], None


def _to_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    digits = re.sub(r"[^\d]", "", value)
    if not digits:
        return None
    amount = int(digits)
    return amount if amount > 0 else None


def deadline_urgency(close_date: str, now: Optional[DateLike] = None) -> str:
    """
    Classify how close a deadline is.

    Returns:
        "urgent" (under 7 days), "warning" (under 14 days) or "normal"
    """
    parsed = parse_calendar_date(close_date)
    if parsed is None:
        return "normal"

    days_until = (parsed - _today(now)).days
    if days_until < 7:
        return "urgent"
    if days_until < 14:
        return "warning"
    return "normal"


def deadline_text(close_date: str, now: Optional[DateLike] = None) -> str:
    """Human-readable deadline, e.g. "Closes Jan 5, 2030 (12 days)"."""
    parsed = parse_calendar_date(close_date)
    if parsed is None:
        return "Deadline unknown"

    days_until = (parsed - _today(now)).days
    formatted = f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"

    if days_until < 0:
        return f"Closed {formatted}"
    if days_until == 0:
        return "Closes today"
    if days_until == 1:
        return "Closes tomorrow"
    return f"Closes {formatted} ({days_until} days)"


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def strip_tags(text: Optional[str]) -> str:
    """Remove markup tags and decode the handful of common entities."""
    if not text:
        return ""

    cleaned = re.sub(r"<[^>]*>", " ", text)
    cleaned = cleaned.replace("&nbsp;", " ").replace("&amp;", "&")
    cleaned = cleaned.replace("&lt;", "<").replace("&gt;", ">").replace("&quot;", '"')
    return cleaned


def truncate(text: str, limit: int, ellipsis: str = "...") -> str:
    """Cut text to `limit` characters, appending an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + ellipsis
