"""Tests for the labeled free-text parser."""

from datetime import datetime, timezone

import pytest

from grants_extractor.parsers.labeled_text import (
    LabeledTextParser,
    infer_categories,
    match_label,
)


NOW = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)

AI_RESPONSE = """Here are some grants that match your search.

1. **Grant Title:** Clean Water Infrastructure Program
**Opportunity Number:** EPA-OW-2026-01
**Funding Agency:** Environmental Protection Agency
**Deadline:** March 15, 2026
**Funding Amount:** $50,000 - $250,000
**Description:** Supports community water quality and climate adaptation projects.
**Eligibility:** States, tribes and nonprofits

2. Title: Rural Health Outreach
Agency: Health Resources and Services Administration
Deadline: Rolling
Website: https://www.hrsa.gov/grants/rural-outreach.

3. Title: Orphan Paragraph Without Agency
Deadline: June 1, 2026
"""


@pytest.fixture
def parser():
    """Labeled-text parser pinned to a fixed clock."""
    return LabeledTextParser(now=NOW)


class TestMatchLabel:
    """Tests for match_label function."""

    def test_plain_label(self):
        assert match_label("Agency: NSF") == ("agency", "NSF")

    def test_markdown_label(self):
        """Test list numbering and bold markers are ignored."""
        assert match_label("1. **Grant Title:** Clean Water") == ("title", "Clean Water")

    def test_alias_order(self):
        """Test multi-word labels resolve to the intended field."""
        assert match_label("Funding Agency: DOE")[0] == "agency"
        assert match_label("Funding Amount: $5,000")[0] == "funding_amount"
        assert match_label("Opportunity Number: X-1")[0] == "opportunity_number"
        assert match_label("Due Date: soon")[0] == "deadline"

    def test_value_after_first_colon(self):
        assert match_label("Description: Phase 1: planning") == ("description", "Phase 1: planning")

    def test_not_a_label(self):
        """Test prose and unknown labels are ignored."""
        assert match_label("No colon here") is None
        assert match_label("Contact: Jane") is None
        assert match_label("The title of this long sentence runs on: yes") is None


class TestInferCategories:
    """Tests for category inference."""

    def test_multiple(self):
        assert infer_categories("Community health research") == ["health", "community", "research"]

    def test_default(self):
        assert infer_categories("Arts and humanities") == ["general"]
        assert infer_categories(None) == ["general"]


class TestLabeledTextParser:
    """Tests for LabeledTextParser class."""

    def test_sections_need_title_and_agency(self, parser):
        """Test only complete sections become records."""
        result = parser.parse(AI_RESPONSE)

        assert [g.title for g in result] == [
            "Clean Water Infrastructure Program",
            "Rural Health Outreach",
        ]

    def test_two_paragraphs_one_missing_agency(self, parser):
        text = "Title: Alpha Grant\nAgency: NSF\n\nTitle: Beta Grant\nDeadline: May 1, 2026"
        result = parser.parse(text)

        assert len(result) == 1
        assert result.records[0].title == "Alpha Grant"

    def test_full_section(self, parser):
        """Test all labeled fields are captured."""
        grant = parser.parse(AI_RESPONSE).records[0]

        assert grant.opportunity_number == "EPA-OW-2026-01"
        assert grant.agency == "Environmental Protection Agency"
        assert grant.deadline == "March 15, 2026"
        assert grant.deadline_date == "2026-03-15"
        assert grant.funding_amount == "$50,000 - $250,000"
        assert grant.eligibility == "States, tribes and nonprofits"
        assert grant.categories == ["environment", "community"]
        assert grant.grant_url == "https://grants.gov/search-results-detail/EPA-OW-2026-01"

    def test_labeled_link(self, parser):
        """Test labeled URLs with trailing punctuation."""
        grant = parser.parse(AI_RESPONSE).records[1]

        assert grant.grant_url == "https://www.hrsa.gov/grants/rural-outreach"
        assert grant.deadline == "Rolling"
        assert grant.deadline_date is None
        assert grant.opportunity_number is None

    def test_fallback_url(self, parser):
        """Test an unlabeled URL literal is used when no link is labeled."""
        text = (
            "Title: STEM Teacher Fellowships\n"
            "Agency: Department of Education\n"
            "More at https://www.ed.gov/fellowships"
        )
        grant = parser.parse(text).records[0]

        assert grant.grant_url == "https://www.ed.gov/fellowships"
        assert grant.categories == ["education"]

    def test_labeled_link_wins_over_literal(self, parser):
        text = (
            "Title: Innovation Grants\n"
            "Agency: NIST\n"
            "Description: see https://example.org/other\n"
            "Link: https://www.nist.gov/innovation"
        )
        assert parser.parse(text).records[0].grant_url == "https://www.nist.gov/innovation"

    def test_no_url_no_number(self, parser):
        grant = parser.parse("Title: Arts Grant\nAgency: NEA").records[0]

        assert grant.grant_url is None
        assert grant.categories == ["general"]

    def test_no_sections(self, parser):
        """Test text without labeled sections is an empty result."""
        assert parser.parse("I could not find any grants.").is_empty
        assert parser.parse("").is_empty
