"""Integration tests for the extraction workflows."""

from datetime import datetime, timezone
from unittest.mock import Mock, AsyncMock, patch

import httpx
import pytest

from grants_extractor.config.loader import ExtractionSettings
from grants_extractor.core.models import ChecklistRequirement, LabeledGrant
from grants_extractor.orchestrator import GrantExtractor, SearchOutcome, save_json
from grants_extractor.plugins.providers import ScrapedPage


NOW = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)

FEED_XML = """<rss version="2.0"><channel>
<item>
    <title>Advanced Research Projects</title>
    <link>https://www.grants.gov/view-opportunity.html?oppId=356789</link>
    <description><![CDATA[Agency: NSF
Close Date: Jan 5, 2030
Award: $10,000 - $50,000]]></description>
    <pubDate>Mon, 01 Dec 2025 10:00:00 EST</pubDate>
</item>
<item>
    <title>Advanced Research Projects (modified)</title>
    <link>https://www.grants.gov/view-opportunity.html?oppId=356789</link>
    <description>Agency: NSF</description>
</item>
</channel></rss>"""


def listing_page(*titles):
    rows = "".join(
        f'<tr><td><a href="/opportunity/{title.lower().replace(" ", "-")}">{title}</a></td>'
        f"<td>National Science Foundation</td><td>Open</td><td>March 15, 2026</td></tr>"
        for title in titles
    )
    return f"<html><body><table><tr><th>Title</th></tr>{rows}</table></body></html>"


@pytest.fixture
def http_client():
    """HTTP client double."""
    client = Mock()
    client.get_text = AsyncMock()
    return client


@pytest.fixture
def search_provider():
    provider = Mock()
    provider.is_available.return_value = True
    provider.search = AsyncMock()
    return provider


@pytest.fixture
def scrape_provider():
    provider = Mock()
    provider.is_available.return_value = True
    provider.scrape = AsyncMock()
    return provider


def make_extractor(http_client, search_provider=None, scrape_provider=None, **settings):
    settings.setdefault("extraction_mode", "live")
    return GrantExtractor(
        settings=ExtractionSettings(**settings),
        http_client=http_client,
        search_provider=search_provider or Mock(),
        scrape_provider=scrape_provider or Mock(),
        now=NOW,
    )


class TestIngestFeed:
    """Tests for the feed workflow."""

    @pytest.mark.asyncio
    async def test_feed_records_deduplicated(self, http_client):
        http_client.get_text.return_value = FEED_XML

        async with make_extractor(http_client) as extractor:
            outcome = await extractor.ingest_feed()

        assert outcome.source == "grants.gov"
        assert len(outcome.records) == 1
        record = outcome.records[0]
        assert record.opportunity_number == "356789"
        assert record.award_ceiling == 50_000

    @pytest.mark.asyncio
    async def test_unnumbered_items_all_kept(self, http_client):
        """Test feed items without numbers survive deduplication."""
        items = "".join(f"<item><title>Program {i}</title></item>" for i in range(40))
        http_client.get_text.return_value = f"<rss><channel>{items}</channel></rss>"

        outcome = await make_extractor(http_client).ingest_feed()

        assert len(outcome.records) == 40
        assert len({r.opportunity_number for r in outcome.records}) == 40

    @pytest.mark.asyncio
    async def test_fetch_failure_uses_catalog(self, http_client):
        http_client.get_text.side_effect = httpx.ConnectError("down")

        outcome = await make_extractor(http_client).ingest_feed()

        assert outcome.is_fallback
        assert outcome.error == "Failed to fetch grants feed"
        assert outcome.records

    @pytest.mark.asyncio
    async def test_empty_feed_uses_catalog(self, http_client):
        http_client.get_text.return_value = "<rss><channel></channel></rss>"

        outcome = await make_extractor(http_client).ingest_feed()

        assert outcome.is_fallback

    @pytest.mark.asyncio
    async def test_fallback_mode_skips_network(self, http_client):
        extractor = make_extractor(http_client, extraction_mode="fallback")

        outcome = await extractor.ingest_feed()

        assert outcome.is_fallback
        http_client.get_text.assert_not_called()
        assert extractor.stats["fallbacks_used"] == 1


class TestSearchListing:
    """Tests for the paginated listing workflow."""

    @pytest.mark.asyncio
    async def test_pages_fetched_in_order_with_delay(self, http_client):
        http_client.get_text.side_effect = [
            listing_page("Ocean Science Program", "Polar Research Program"),
            listing_page("Arctic Systems Program"),
        ]
        extractor = make_extractor(http_client, page_delay_seconds=1.0)

        with patch("grants_extractor.orchestrator.asyncio.sleep", new_callable=AsyncMock) as sleep:
            outcome = await extractor.search_listing("ocean", limit=10, pages=2)

        urls = [call.args[0] for call in http_client.get_text.call_args_list]
        assert urls == [
            "https://simpler.grants.gov/search?query=ocean&page=1",
            "https://simpler.grants.gov/search?query=ocean&page=2",
        ]
        sleep.assert_awaited_once_with(1.0)
        assert [r.title for r in outcome.records] == [
            "Ocean Science Program", "Polar Research Program", "Arctic Systems Program",
        ]
        assert outcome.pages_searched == 2
        assert outcome.strategy == "table_rows"

    @pytest.mark.asyncio
    async def test_failed_page_skipped(self, http_client):
        """Test partial results survive a failed page."""
        http_client.get_text.side_effect = [
            httpx.ConnectError("timeout"),
            listing_page("Coastal Resilience Program"),
        ]
        extractor = make_extractor(http_client, page_delay_seconds=0)

        outcome = await extractor.search_listing("coastal", limit=10, pages=2)

        assert outcome.source == "grants.gov"
        assert [r.title for r in outcome.records] == ["Coastal Resilience Program"]
        assert outcome.pages_searched == 1
        assert extractor.stats["pages_failed"] == 1

    @pytest.mark.asyncio
    async def test_stops_at_limit(self, http_client):
        http_client.get_text.return_value = listing_page("First Research Program", "Second Research Program")
        extractor = make_extractor(http_client, page_delay_seconds=0)

        outcome = await extractor.search_listing("research", limit=2, pages=3)

        assert len(outcome.records) == 2
        assert http_client.get_text.await_count == 1

    @pytest.mark.asyncio
    async def test_all_pages_failed_uses_fallback(self, http_client):
        http_client.get_text.side_effect = httpx.ConnectError("down")
        extractor = make_extractor(http_client, page_delay_seconds=0)

        outcome = await extractor.search_listing("education", limit=5, pages=2)

        assert outcome.is_fallback
        assert outcome.error == "Using fallback data due to grants.gov access issues"
        assert [r.opportunity_number for r in outcome.records] == ["ED-GRANTS-041524-001"]

    @pytest.mark.asyncio
    async def test_no_results_is_empty_not_fallback(self, http_client):
        http_client.get_text.return_value = "<html><body><p>No results</p></body></html>"
        extractor = make_extractor(http_client, page_delay_seconds=0)

        outcome = await extractor.search_listing("nothing", limit=5, pages=1)

        assert outcome.is_empty
        assert not outcome.is_fallback

    @pytest.mark.asyncio
    async def test_negative_limit(self, http_client):
        with pytest.raises(ValueError):
            await make_extractor(http_client).search_listing("x", limit=-1)


class TestAiSearch:
    """Tests for the AI search workflow."""

    @pytest.mark.asyncio
    async def test_labeled_answer_parsed(self, http_client, search_provider):
        search_provider.search.return_value = (
            "Title: Clean Water Grant\nAgency: EPA\nDeadline: March 15, 2026\n\n"
            "Title: Missing Agency Grant\nDeadline: May 1, 2026"
        )
        extractor = make_extractor(http_client, search_provider=search_provider)

        outcome = await extractor.ai_search("water", ["environment"], "nonprofits")

        assert outcome.source == "ai_search"
        assert [g.title for g in outcome.records] == ["Clean Water Grant"]
        search_provider.search.assert_awaited_once_with("water", ["environment"], "nonprofits")

    @pytest.mark.asyncio
    async def test_empty_answer(self, http_client, search_provider):
        search_provider.search.return_value = ""

        outcome = await make_extractor(http_client, search_provider=search_provider).ai_search("water")

        assert outcome.is_empty
        assert outcome.error == "No grants found in AI response"

    @pytest.mark.asyncio
    async def test_unconfigured_provider_uses_fallback(self, http_client, search_provider):
        search_provider.is_available.return_value = False
        extractor = make_extractor(http_client, search_provider=search_provider, extraction_mode="auto")

        outcome = await extractor.ai_search("education")

        assert outcome.is_fallback
        search_provider.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_query(self, http_client, search_provider):
        with pytest.raises(ValueError):
            await make_extractor(http_client, search_provider=search_provider).ai_search("  ")

    def test_promote_deduplicates(self, http_client):
        grants = [
            LabeledGrant(title="A Grant", agency="NSF", opportunity_number="NSF-1"),
            LabeledGrant(title="A Grant again", agency="NSF", opportunity_number="NSF-1",
                         funding_amount="$5,000 - $10,000"),
            LabeledGrant(title="B Grant", agency="EPA", opportunity_number="EPA-2"),
        ]

        records = make_extractor(http_client).promote(grants)

        assert [r.opportunity_number for r in records] == ["NSF-1", "EPA-2"]
        assert records[0].title == "A Grant again"
        assert records[0].award_floor == 5_000
        assert all(r.close_date == "2025-12-31" for r in records)

    def test_promote_keeps_unnumbered_grants(self, http_client):
        """Test grants without numbers are not merged into one another."""
        grants = [LabeledGrant(title=f"Grant {i}", agency="NSF") for i in range(3)]

        records = make_extractor(http_client).promote(grants)

        assert [r.title for r in records] == ["Grant 0", "Grant 1", "Grant 2"]
        assert len({r.opportunity_number for r in records}) == 3
        assert all(r.opportunity_number.startswith("AI-") for r in records)


class TestScrapeDetails:
    """Tests for the detail scrape workflow."""

    @pytest.mark.asyncio
    async def test_scraped_page_parsed(self, http_client, scrape_provider):
        scrape_provider.scrape.return_value = ScrapedPage(
            url="https://grants.gov/x",
            content="# Youth Mentoring Grant\n\nDeadline: April 1, 2026\n\nEligibility: • Local education agencies • Community nonprofits",
            metadata={},
        )
        extractor = make_extractor(http_client, scrape_provider=scrape_provider)

        details = await extractor.scrape_details("https://grants.gov/x", "DOJ-1")

        assert details.scraped is True
        assert details.title == "Youth Mentoring Grant"
        assert details.deadline_date == "2026-04-01"
        assert details.eligibility == ["Local education agencies", "Community nonprofits"]
        assert details.opportunity_number == "DOJ-1"

    @pytest.mark.asyncio
    async def test_scrape_failure_placeholder(self, http_client, scrape_provider):
        scrape_provider.scrape.return_value = None

        details = await make_extractor(http_client, scrape_provider=scrape_provider).scrape_details(
            "https://grants.gov/x"
        )

        assert details.scraped is False
        assert details.source_url == "https://grants.gov/x"

    @pytest.mark.asyncio
    async def test_parse_error_placeholder(self, http_client, scrape_provider):
        scrape_provider.scrape.return_value = ScrapedPage(url="u", content="# Title")
        extractor = make_extractor(http_client, scrape_provider=scrape_provider)

        with patch("grants_extractor.orchestrator.DetailPageParser.parse", side_effect=RuntimeError("boom")):
            details = await extractor.scrape_details("https://grants.gov/x")

        assert details.scraped is False

    @pytest.mark.asyncio
    async def test_no_provider(self, http_client, scrape_provider):
        scrape_provider.is_available.return_value = False
        extractor = make_extractor(http_client, scrape_provider=scrape_provider, extraction_mode="auto")

        details = await extractor.scrape_details("https://grants.gov/x")

        assert details.scraped is False
        scrape_provider.scrape.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_url(self, http_client):
        with pytest.raises(ValueError):
            await make_extractor(http_client).scrape_details("")


class TestRescoreChecklist:
    """Tests for checklist rescoring and readiness."""

    def test_end_to_end(self, http_client):
        requirements = [
            ChecklistRequirement(id="budget", text="Provide budget justification"),
            ChecklistRequirement(id="letters", text="Letters of support from partners"),
        ]

        report = make_extractor(http_client).rescore_checklist(
            requirements,
            title="Regional Health Access Project",
            summary="We provide a complete financial plan for the three-year project.",
            body=(
                "Our budget justification details a $200,000 multi-year implementation "
                "plan with clear milestones."
            ),
        )

        data = report.to_dict()
        assert data["requirements"][0]["id"] == "budget"
        assert data["requirements"][0]["completed"] is True
        assert "matchedContent" in data["requirements"][0]
        assert requirements[0].completed is True
        assert data["progress"] == 50
        assert data["canStartApplication"] is True

    def test_none_checklist(self, http_client):
        with pytest.raises(ValueError):
            make_extractor(http_client).rescore_checklist(None)


class TestOutputs:
    """Tests for serialized workflow output."""

    def test_outcome_to_dict(self):
        outcome = SearchOutcome(records=[], source="fallback", query="x", error="e")
        assert outcome.to_dict() == {
            "success": True,
            "grants": [],
            "source": "fallback",
            "total": 0,
            "query": "x",
            "error": "e",
        }

    def test_save_json(self, tmp_path):
        path = save_json({"a": 1}, str(tmp_path / "out" / "result.json"))
        assert (tmp_path / "out" / "result.json").read_text(encoding="utf-8").strip().startswith("{")
        assert path.endswith("result.json")
