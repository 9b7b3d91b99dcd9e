"""
Data models for grant extraction and requirement matching.

All parsers end in one of these shapes; none of them is ever returned
half-populated.
"""

import time
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional

from .normalizer import default_close_date, extract_funding_range, normalize_deadline


DEFAULT_TITLE = "Grant Opportunity"
DEFAULT_AGENCY = "Federal Agency"
DEFAULT_DESCRIPTION = "Grant opportunity description"
DEFAULT_DETAILS_URL = "https://grants.gov"
VISIT_SOURCE_ELIGIBILITY = "Please visit the grant URL for full eligibility requirements"
VISIT_SOURCE_REQUIREMENTS = "Please visit the grant URL for full document requirements"
UNKNOWN = "Unknown"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    """Opaque identifier for records whose source carries none."""
    return str(uuid.uuid4())


def synthesize_opportunity_number(prefix: str = "OPP", suffix: Optional[int] = None) -> str:
    """
    Generate an opportunity number for records without one.

    Args:
        prefix: Leading token ("OPP" for feed items, "GRANT" for listings,
            "AI" for promoted search results)
        suffix: Deterministic tail (row index); random when omitted

    Returns:
        e.g. "OPP-1767225600000-9f2c41d07" or "GRANT-1767225600000-3"
    """
    tail = suffix if suffix is not None else uuid.uuid4().hex[:9]
    return f"{prefix}-{int(time.time() * 1000)}-{tail}"


@dataclass
class GrantRecord:
    """
    Canonical structured representation of one funding opportunity.

    `opportunity_number` is the natural key: the same value from two
    sources refers to the same grant.
    """

    id: str
    opportunity_number: str
    title: str
    agency: str
    description: str
    posted_date: str  # ISO-8601 datetime
    close_date: str  # ISO-8601 date (YYYY-MM-DD)

    award_floor: Optional[int] = None
    award_ceiling: Optional[int] = None
    category: Optional[str] = None
    status: Optional[str] = None
    details_url: str = DEFAULT_DETAILS_URL

    def to_dict(self) -> dict:
        """Serialize to the camelCase JSON shape consumed by the application."""
        return {
            "id": self.id,
            "opportunityNumber": self.opportunity_number,
            "title": self.title,
            "agency": self.agency,
            "postedDate": self.posted_date,
            "closeDate": self.close_date,
            "awardCeiling": self.award_ceiling,
            "awardFloor": self.award_floor,
            "category": self.category,
            "description": self.description,
            "detailsUrl": self.details_url,
            "status": self.status,
        }

    def filled_fields(self) -> int:
        """Number of optional fields carrying a value."""
        optional = (self.award_floor, self.award_ceiling, self.category, self.status)
        return sum(1 for value in optional if value is not None)


@dataclass
class LabeledGrant:
    """
    Loose grant record recovered from labeled free text.

    Only `title` and `agency` are guaranteed; everything else is whatever
    the text happened to label.
    """

    title: str
    agency: str
    opportunity_number: Optional[str] = None
    deadline: Optional[str] = None  # raw text as written
    deadline_date: Optional[str] = None  # normalized YYYY-MM-DD or None
    funding_amount: Optional[str] = None
    description: Optional[str] = None
    eligibility: Optional[str] = None
    grant_url: Optional[str] = None
    categories: list[str] = field(default_factory=lambda: ["general"])
    source: str = "AI Search"

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_grant_record(
        self,
        now: Optional[datetime] = None,
        horizon_days: int = 30,
    ) -> GrantRecord:
        """
        Promote to a fully populated GrantRecord for storage.

        Missing opportunity numbers become "AI-<millis>-<random>". The raw deadline
        goes through the date normalizer when no normalized date is set,
        falling back to the default horizon; funding text is split into
        floor and ceiling.

        Args:
            now: Reference time (defaults to current UTC time)
            horizon_days: Close-date horizon when the deadline is unknown

        Returns:
            GrantRecord
        """
        now = now or utc_now()
        opportunity_number = self.opportunity_number or synthesize_opportunity_number("AI")
        close_date = (
            self.deadline_date
            or normalize_deadline(self.deadline, now=now)
            or default_close_date(horizon_days, now)
        )
        award_floor, award_ceiling = extract_funding_range(self.funding_amount)

        return GrantRecord(
            id=new_record_id(),
            opportunity_number=opportunity_number,
            title=self.title,
            agency=self.agency,
            description=self.description or DEFAULT_DESCRIPTION,
            posted_date=now.isoformat(),
            close_date=close_date,
            award_floor=award_floor,
            award_ceiling=award_ceiling,
            category=self.categories[0] if self.categories else None,
            status="Open",
            details_url=self.grant_url or DEFAULT_DETAILS_URL,
        )


@dataclass
class GrantDetails:
    """Detailed record extracted from a single grant's detail page."""

    title: str
    agency: str
    opportunity_number: str
    description: str
    eligibility: list[str]
    requirements: list[str]
    deadline: str
    funding_amount: str
    source_url: str
    scraped: bool = True
    scraped_at: str = field(default_factory=lambda: utc_now().isoformat())

    deadline_date: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None

    @classmethod
    def unavailable(
        cls,
        source_url: str,
        opportunity_number: Optional[str] = None,
        reason: str = "Grant opportunity details are not available.",
    ) -> "GrantDetails":
        """Placeholder record used when the page could not be scraped."""
        return cls(
            title=DEFAULT_TITLE,
            agency=DEFAULT_AGENCY,
            opportunity_number=opportunity_number or UNKNOWN,
            description=f"{reason} Please visit the grant URL for full information.",
            eligibility=["Please visit the grant URL for full details"],
            requirements=["Please visit the grant URL for full details"],
            deadline=UNKNOWN,
            funding_amount=UNKNOWN,
            source_url=source_url,
            scraped=False,
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "agency": self.agency,
            "opportunityNumber": self.opportunity_number,
            "description": self.description,
            "eligibility": self.eligibility,
            "requirements": self.requirements,
            "deadline": self.deadline,
            "deadlineDate": self.deadline_date,
            "fundingAmount": self.funding_amount,
            "contactEmail": self.contact_email,
            "contactPhone": self.contact_phone,
            "sourceUrl": self.source_url,
            "scraped": self.scraped,
            "scrapedAt": self.scraped_at,
        }


@dataclass
class ChecklistRequirement:
    """
    One application-readiness item.

    `completed`, `confidence` and `matched_content` are always the output
    of the matcher; `keywords` is a cache computed once from `text`.
    """

    id: str
    text: str
    category: str = "general"
    required: bool = True
    completed: bool = False
    confidence: int = 0
    matched_content: Optional[str] = None
    keywords: Optional[list[str]] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ChecklistRequirement":
        """Create from a persisted/JSON requirement."""
        return cls(
            id=str(data["id"]),
            text=data["text"],
            category=data.get("category", "general"),
            required=data.get("required", True),
            completed=data.get("completed", False),
            confidence=data.get("confidence", 0),
            matched_content=data.get("matchedContent", data.get("matched_content")),
            keywords=data.get("keywords"),
        )


@dataclass(frozen=True)
class RequirementMatch:
    """Score of one requirement against the current narrative."""

    id: str
    completed: bool
    confidence: int
    matched_content: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "completed": self.completed,
            "confidence": self.confidence,
        }
        if self.matched_content:
            data["matchedContent"] = self.matched_content
        return data


@dataclass
class ExtractionResult:
    """
    Records produced by one parser run.

    `strategy` names the fallback-chain step that produced the records,
    so callers can tell "no table, anchors used" from "nothing at all".
    """

    records: list = field(default_factory=list)
    strategy: Optional[str] = None
    skipped: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.records

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)
