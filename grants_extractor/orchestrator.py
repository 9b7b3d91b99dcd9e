"""
Workflow orchestrator for grant extraction.

Coordinates:
- Feed ingestion (RSS -> GrantRecords)
- Paginated listing search (sequential pages, courtesy delay, per-page isolation)
- AI search (provider text -> LabeledGrants)
- Detail scrape (provider page -> GrantDetails)
- Checklist rescoring and the readiness gate

Every workflow chooses between live extraction and the canned fallback
through ExtractionSettings; none of them raises for bad remote content.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

import httpx
import structlog

from .config.loader import ExtractionSettings, load_settings
from .core.deduplicator import Deduplicator
from .core.http_client import HttpClient
from .core.models import (
    ChecklistRequirement,
    GrantDetails,
    GrantRecord,
    LabeledGrant,
    RequirementMatch,
    utc_now,
)
from .matching.matcher import RequirementMatcher, build_narrative
from .matching.readiness import can_start_application, required_progress
from .parsers.detail_page import DetailPageParser
from .parsers.feed import FeedParser
from .parsers.html_listing import ROW_SLACK, HtmlListingParser
from .parsers.labeled_text import LabeledTextParser
from .plugins.fallback import fallback_catalog, fallback_search
from .plugins.providers import (
    FirecrawlScrapeProvider,
    PerplexitySearchProvider,
    ScrapeProvider,
    SearchProvider,
)

logger = structlog.get_logger(__name__)


@dataclass
class SearchOutcome:
    """
    Records returned by a workflow plus where they came from.

    `source` is "fallback" whenever the canned dataset stood in for live
    extraction, so callers can tell real empties from substitutes.
    """

    records: list = field(default_factory=list)
    source: str = "grants.gov"
    query: Optional[str] = None
    strategy: Optional[str] = None
    pages_searched: int = 0
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"

    def to_dict(self) -> dict:
        data = {
            "success": True,
            "grants": [record.to_dict() for record in self.records],
            "source": self.source,
            "total": len(self.records),
        }
        if self.query is not None:
            data["query"] = self.query
        if self.pages_searched:
            data["pagesSearched"] = self.pages_searched
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ChecklistReport:
    """Result of one rescoring pass over a checklist."""

    matches: list[RequirementMatch]
    progress: int
    can_start: bool

    def to_dict(self) -> dict:
        return {
            "requirements": [match.to_dict() for match in self.matches],
            "progress": self.progress,
            "canStartApplication": self.can_start,
        }


class GrantExtractor:
    """
    Orchestrator for the extraction workflows.

    Usage:
        async with GrantExtractor() as extractor:
            outcome = await extractor.search_listing("climate resilience", limit=20)
            for record in outcome.records:
                print(record.to_dict())
    """

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        http_client: Optional[HttpClient] = None,
        search_provider: Optional[SearchProvider] = None,
        scrape_provider: Optional[ScrapeProvider] = None,
        now: Optional[datetime] = None,
    ):
        """
        Initialize extractor.

        Args:
            settings: Extraction settings (package settings.yml when omitted)
            http_client: Shared HTTP client (creates own if not provided)
            search_provider: AI search provider (Perplexity when omitted)
            scrape_provider: Page scrape provider (Firecrawl when omitted)
            now: Fixed reference time (current UTC time when omitted)
        """
        self.settings = settings or load_settings()
        self.http_client = http_client
        self._owns_client = http_client is None
        self.search_provider = search_provider
        self.scrape_provider = scrape_provider
        self._now = now

        self.matcher = RequirementMatcher(self.settings.completion_threshold)

        self.stats = {
            "pages_fetched": 0,
            "pages_failed": 0,
            "records_extracted": 0,
            "records_deduplicated": 0,
            "fallbacks_used": 0,
        }

    @property
    def now(self) -> datetime:
        return self._now or utc_now()

    async def __aenter__(self) -> "GrantExtractor":
        """Enter async context."""
        if self._owns_client:
            self.http_client = HttpClient(
                requests_per_second=self.settings.requests_per_second,
                timeout=self.settings.timeout,
            )
            await self.http_client.__aenter__()

        if self.search_provider is None:
            self.search_provider = PerplexitySearchProvider(
                self.http_client,
                api_key=self.settings.perplexity_api_key,
                model=self.settings.perplexity_model,
            )
        if self.scrape_provider is None:
            self.scrape_provider = FirecrawlScrapeProvider(
                self.http_client,
                api_key=self.settings.firecrawl_api_key,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        if self._owns_client and self.http_client:
            await self.http_client.__aexit__(exc_type, exc_val, exc_tb)

    def _fallback(self, records: list, query: Optional[str] = None, error: Optional[str] = None) -> SearchOutcome:
        self.stats["fallbacks_used"] += 1
        logger.info("using_fallback_data", query=query, records=len(records), reason=error)
        return SearchOutcome(records=records, source="fallback", query=query, error=error)

    async def ingest_feed(self) -> SearchOutcome:
        """
        Fetch and parse the grants RSS feed.

        Returns:
            SearchOutcome of GrantRecord (canned catalog when the feed
            cannot be read or has no items)
        """
        if not self.settings.use_live():
            return self._fallback(fallback_catalog(self.now))

        try:
            xml_text = await self.http_client.get_text(self.settings.feed_url)
        except httpx.HTTPError as e:
            logger.error("feed_fetch_failed", url=self.settings.feed_url, error=str(e))
            return self._fallback(fallback_catalog(self.now), error="Failed to fetch grants feed")

        parser = FeedParser(
            item_limit=self.settings.feed_item_limit,
            horizon_days=self.settings.feed_default_horizon_days,
            stale_after_days=self.settings.stale_after_days,
            now=self._now,
        )
        result = parser.parse(xml_text)
        if result.is_empty:
            return self._fallback(fallback_catalog(self.now), error="Feed contained no grants")

        records = Deduplicator().process_all(result.records)
        self.stats["records_extracted"] += len(records)
        return SearchOutcome(records=records, source="grants.gov", strategy=result.strategy)

    def _page_url(self, query: str, page: int) -> str:
        return f"{self.settings.listing_search_url}?{urlencode({'query': query, 'page': page})}"

    async def search_listing(
        self,
        query: str,
        limit: Optional[int] = None,
        pages: Optional[int] = None,
    ) -> SearchOutcome:
        """
        Search the listing site page by page.

        Pages are fetched strictly in order with a courtesy delay between
        them. A page that fails to fetch or parse is logged and skipped.

        Args:
            query: Search text
            limit: Maximum records (settings.result_limit when omitted)
            pages: Maximum pages (settings.max_pages when omitted)

        Returns:
            SearchOutcome of GrantRecord, deduplicated by opportunity number
        """
        limit = self.settings.result_limit if limit is None else limit
        pages = self.settings.max_pages if pages is None else pages
        if limit < 0 or pages < 0:
            raise ValueError("limit and pages must not be negative")

        if not self.settings.use_live():
            return self._fallback(fallback_search(query, limit, self.now), query=query)

        parser = HtmlListingParser(
            base_url=self.settings.listing_base_url,
            horizon_days=self.settings.listing_default_horizon_days,
            now=self._now,
        )
        deduplicator = Deduplicator()
        collected = 0
        pages_searched = 0
        failures = 0
        strategy = None

        for page in range(1, pages + 1):
            if collected >= limit:
                break

            if page > 1 and self.settings.page_delay_seconds:
                await asyncio.sleep(self.settings.page_delay_seconds)

            url = self._page_url(query, page)
            logger.info("fetching_page", page=page, url=url)

            try:
                html = await self.http_client.get_text(url)
                result = parser.parse(
                    html,
                    limit=limit - collected,
                    start_index=(page - 1) * (limit + ROW_SLACK),
                )
            except Exception as e:
                failures += 1
                self.stats["pages_failed"] += 1
                logger.error("page_fetch_failed", page=page, url=url, error=str(e))
                continue

            pages_searched += 1
            self.stats["pages_fetched"] += 1
            strategy = strategy or result.strategy

            for record in result.records:
                if deduplicator.process(record) is None:
                    self.stats["records_deduplicated"] += 1
            collected = len(deduplicator)

            logger.info("page_parsed", page=page, records=len(result), total=collected)

        records = deduplicator.get_all()[:limit]
        self.stats["records_extracted"] += len(records)

        if not records and failures:
            fallback = self._fallback(
                fallback_search(query, limit, self.now),
                query=query,
                error="Using fallback data due to grants.gov access issues",
            )
            fallback.pages_searched = pages_searched
            return fallback

        return SearchOutcome(
            records=records,
            source="grants.gov",
            query=query,
            strategy=strategy,
            pages_searched=pages_searched,
        )

    async def ai_search(
        self,
        query: str,
        focus_areas: Optional[list[str]] = None,
        organization_type: Optional[str] = None,
    ) -> SearchOutcome:
        """
        Run an AI grant search and parse its labeled answer.

        Args:
            query: Search text
            focus_areas: Optional focus areas for the prompt
            organization_type: Optional applicant type for the prompt

        Returns:
            SearchOutcome of LabeledGrant (canned GrantRecords when the
            provider is not configured)

        Raises:
            ValueError: If query is empty
        """
        if not query or not query.strip():
            raise ValueError("Search query is required")

        if not self.settings.use_live(self.search_provider.is_available()):
            return self._fallback(
                fallback_search(query, self.settings.result_limit, self.now),
                query=query,
                error="AI search provider not configured",
            )

        answer = await self.search_provider.search(query, focus_areas, organization_type)
        result = LabeledTextParser(now=self._now).parse(answer)

        outcome = SearchOutcome(
            records=result.records,
            source="ai_search",
            query=query,
            strategy=result.strategy,
        )
        if result.is_empty:
            outcome.error = "No grants found in AI response"
            logger.warning("ai_search_empty", query=query, answer_chars=len(answer))
        self.stats["records_extracted"] += len(result)
        return outcome

    def promote(self, grants: list[LabeledGrant]) -> list[GrantRecord]:
        """
        Turn AI-search grants into GrantRecords ready for storage.

        Records are deduplicated by opportunity number.
        """
        deduplicator = Deduplicator()
        for grant in grants:
            deduplicator.process(
                grant.to_grant_record(self.now, self.settings.feed_default_horizon_days)
            )
        return deduplicator.get_all()

    async def scrape_details(
        self,
        url: str,
        opportunity_number: Optional[str] = None,
    ) -> GrantDetails:
        """
        Scrape and parse one grant detail page.

        Args:
            url: Grant page URL
            opportunity_number: Known opportunity number, if any

        Returns:
            GrantDetails (scraped=False placeholder when no provider is
            configured or the scrape fails)

        Raises:
            ValueError: If url is empty
        """
        if not url:
            raise ValueError("Grant URL required")

        if not self.settings.use_live(self.scrape_provider.is_available()):
            logger.info("scrape_provider_unavailable", url=url)
            return GrantDetails.unavailable(
                url,
                opportunity_number,
                reason="Grant opportunity details not available without a scraping provider.",
            )

        page = await self.scrape_provider.scrape(url)
        if page is None:
            return GrantDetails.unavailable(
                url, opportunity_number, reason="Unable to scrape grant details."
            )

        try:
            return DetailPageParser(now=self._now).parse(
                page.content,
                source_url=url,
                opportunity_number=opportunity_number,
                metadata=page.metadata,
            )
        except Exception as e:
            logger.error("detail_parse_failed", url=url, error=str(e))
            return GrantDetails.unavailable(
                url, opportunity_number, reason="Error scraping grant details."
            )

    def rescore_checklist(
        self,
        requirements: Optional[list[ChecklistRequirement]],
        title: Optional[str] = None,
        summary: Optional[str] = None,
        body: Optional[str] = None,
    ) -> ChecklistReport:
        """
        Rescore a whole checklist against the current narrative.

        Args:
            requirements: The checklist (updated in place)
            title: Application title
            summary: Application summary
            body: Application body text

        Returns:
            ChecklistReport with per-requirement matches and readiness

        Raises:
            ValueError: If requirements is None
        """
        narrative = build_narrative(title, summary, body)
        matches = self.matcher.rescore(requirements, narrative)
        return ChecklistReport(
            matches=matches,
            progress=required_progress(requirements),
            can_start=can_start_application(requirements, self.settings.readiness_threshold),
        )


def save_json(data, filepath: str) -> str:
    """
    Save workflow output to a JSON file.

    Args:
        data: JSON-serializable output
        filepath: Destination path

    Returns:
        Path to saved file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    logger.info("saved_json", path=str(path))
    return str(path)
