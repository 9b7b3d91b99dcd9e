"""Tests for data models."""

import re

import pytest
from datetime import datetime, timezone

from grants_extractor.core.models import (
    GrantRecord,
    LabeledGrant,
    GrantDetails,
    ChecklistRequirement,
    RequirementMatch,
    ExtractionResult,
    DEFAULT_AGENCY,
    DEFAULT_DESCRIPTION,
    DEFAULT_DETAILS_URL,
    DEFAULT_TITLE,
    UNKNOWN,
    synthesize_opportunity_number,
)


NOW = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def record():
    """Minimal grant record."""
    return GrantRecord(
        id="rec-1",
        opportunity_number="NSF-24-542",
        title="Research Grant",
        agency="NSF",
        description="Supports research.",
        posted_date="2025-12-01T12:00:00+00:00",
        close_date="2026-01-15",
    )


class TestGrantRecord:
    """Tests for GrantRecord model."""

    def test_defaults(self, record):
        """Test optional fields default to unknown."""
        assert record.award_floor is None
        assert record.award_ceiling is None
        assert record.category is None
        assert record.status is None
        assert record.details_url == DEFAULT_DETAILS_URL

    def test_to_dict_uses_camel_case(self, record):
        """Test serialization keys."""
        data = record.to_dict()

        assert data["opportunityNumber"] == "NSF-24-542"
        assert data["closeDate"] == "2026-01-15"
        assert data["postedDate"] == "2025-12-01T12:00:00+00:00"
        assert data["detailsUrl"] == DEFAULT_DETAILS_URL
        assert data["awardFloor"] is None
        assert "opportunity_number" not in data

    def test_filled_fields(self, record):
        """Test counting of populated optional fields."""
        assert record.filled_fields() == 0

        record.award_ceiling = 50_000
        record.status = "Open"
        assert record.filled_fields() == 2


class TestLabeledGrant:
    """Tests for LabeledGrant model."""

    def test_to_dict_drops_unset(self):
        """Test unset fields are omitted."""
        grant = LabeledGrant(title="Grant", agency="EPA")
        data = grant.to_dict()

        assert data["title"] == "Grant"
        assert data["categories"] == ["general"]
        assert "deadline" not in data
        assert "grant_url" not in data

    def test_promote_full(self):
        """Test promotion carries parsed fields."""
        grant = LabeledGrant(
            title="Clean Water Grant",
            agency="EPA",
            opportunity_number="EPA-2026-01",
            deadline="March 15, 2026",
            funding_amount="$50,000 - $250,000",
            description="Water quality projects.",
            grant_url="https://grants.gov/search-results-detail/EPA-2026-01",
            categories=["environment", "health"],
        )

        record = grant.to_grant_record(now=NOW)

        assert record.opportunity_number == "EPA-2026-01"
        assert record.close_date == "2026-03-15"
        assert record.award_floor == 50_000
        assert record.award_ceiling == 250_000
        assert record.category == "environment"
        assert record.status == "Open"
        assert record.details_url == "https://grants.gov/search-results-detail/EPA-2026-01"
        assert record.posted_date == NOW.isoformat()

    def test_promote_prefers_normalized_deadline(self):
        """Test an already-normalized date wins over the raw text."""
        grant = LabeledGrant(
            title="Grant",
            agency="DOE",
            deadline="Rolling",
            deadline_date="2026-02-01",
        )
        assert grant.to_grant_record(now=NOW).close_date == "2026-02-01"

    def test_promote_fills_defaults(self):
        """Test missing values get synthesized defaults."""
        grant = LabeledGrant(title="Grant", agency="DOE", deadline="Rolling")

        record = grant.to_grant_record(now=NOW, horizon_days=30)

        assert re.fullmatch(r"AI-\d{13}-[0-9a-f]{9}", record.opportunity_number)
        assert record.close_date == "2025-12-31"
        assert record.description == DEFAULT_DESCRIPTION
        assert record.details_url == DEFAULT_DETAILS_URL
        assert record.award_floor is None
        assert record.award_ceiling is None

    def test_promote_numbers_unique(self):
        """Test unnumbered grants promoted together get distinct numbers."""
        grants = [LabeledGrant(title=f"Grant {i}", agency="NSF") for i in range(50)]

        numbers = {grant.to_grant_record(now=NOW).opportunity_number for grant in grants}

        assert len(numbers) == 50


class TestSynthesizeOpportunityNumber:
    """Tests for synthesize_opportunity_number function."""

    def test_random_suffix(self):
        """Test default prefix and random tail."""
        assert re.fullmatch(r"OPP-\d{13}-[0-9a-f]{9}", synthesize_opportunity_number())

    def test_index_suffix(self):
        """Test deterministic row suffix."""
        assert re.fullmatch(r"GRANT-\d{13}-3", synthesize_opportunity_number("GRANT", 3))

    def test_random_numbers_distinct(self):
        """Test numbers generated in one burst never repeat."""
        numbers = [synthesize_opportunity_number("OPP") for _ in range(2000)]
        assert len(set(numbers)) == len(numbers)


class TestGrantDetails:
    """Tests for GrantDetails model."""

    def test_unavailable_placeholder(self):
        """Test the not-scraped placeholder record."""
        details = GrantDetails.unavailable("https://example.gov/grant", "ABC-1")

        assert details.scraped is False
        assert details.title == DEFAULT_TITLE
        assert details.agency == DEFAULT_AGENCY
        assert details.opportunity_number == "ABC-1"
        assert details.deadline == UNKNOWN
        assert details.funding_amount == UNKNOWN
        assert details.eligibility
        assert details.requirements

    def test_unavailable_without_number(self):
        """Test unknown opportunity number."""
        details = GrantDetails.unavailable("https://example.gov/grant")
        assert details.opportunity_number == UNKNOWN

    def test_to_dict(self):
        """Test camelCase serialization."""
        data = GrantDetails.unavailable("https://example.gov/grant").to_dict()

        assert data["sourceUrl"] == "https://example.gov/grant"
        assert data["scraped"] is False
        assert data["deadlineDate"] is None
        assert "scrapedAt" in data


class TestChecklistRequirement:
    """Tests for ChecklistRequirement model."""

    def test_from_dict_defaults(self):
        """Test creating from minimal dict."""
        req = ChecklistRequirement.from_dict({"id": 7, "text": "Budget justification"})

        assert req.id == "7"
        assert req.required is True
        assert req.completed is False
        assert req.confidence == 0
        assert req.keywords is None

    def test_from_dict_camel_case(self):
        """Test persisted camelCase fields."""
        req = ChecklistRequirement.from_dict({
            "id": "r1",
            "text": "Project narrative",
            "required": False,
            "matchedContent": "Our narrative...",
            "keywords": ["project", "narrative"],
        })

        assert req.required is False
        assert req.matched_content == "Our narrative..."
        assert req.keywords == ["project", "narrative"]


class TestRequirementMatch:
    """Tests for RequirementMatch model."""

    def test_to_dict_without_content(self):
        match = RequirementMatch(id="r1", completed=False, confidence=0)
        assert match.to_dict() == {"id": "r1", "completed": False, "confidence": 0}

    def test_to_dict_with_content(self):
        match = RequirementMatch(id="r1", completed=True, confidence=80, matched_content="text")
        assert match.to_dict()["matchedContent"] == "text"


class TestExtractionResult:
    """Tests for ExtractionResult container."""

    def test_empty(self):
        result = ExtractionResult()
        assert result.is_empty
        assert len(result) == 0

    def test_iteration(self, record):
        result = ExtractionResult(records=[record], strategy="table_rows")
        assert not result.is_empty
        assert list(result) == [record]
