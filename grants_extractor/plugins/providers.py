"""
External provider plugins for live extraction.

Providers are black boxes returning raw text:
- PerplexitySearchProvider: AI grant search, answers in labeled free text
- FirecrawlScrapeProvider: page scraping, returns markdown/HTML

Both are optional - they require API keys to function. Availability is
decided from configuration, never from global state.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx
import structlog

from grants_extractor.core.http_client import HttpClient
from grants_extractor.core.models import utc_now

logger = structlog.get_logger(__name__)


SEARCH_SYSTEM_PROMPT = (
    "You are a federal grant research assistant. Provide accurate, up-to-date "
    "information about federal grant opportunities. Always include direct links "
    "to grants.gov or agency websites when available. Format your response "
    "clearly with structured information for each grant. Focus on grants that "
    "are currently accepting applications or will open soon."
)

SEARCH_PROMPT = """Today's date is {today}.

Find current and upcoming federal grant opportunities for {organization_type}
focused on {focus_areas}
related to: {query}

IMPORTANT: Only include grants that are:
- Currently accepting applications (deadline is in the future)
- Opening for applications soon (within the next 6 months)
- Have rolling deadlines or ongoing application periods

DO NOT include grants that have already closed or expired.

Please provide for each grant:
1. Grant title
2. Opportunity number (if available)
3. Funding agency
4. Application deadline (must be in the future from {today})
5. Funding amount range
6. Brief description (2-3 sentences)
7. Eligibility requirements
8. Direct link to grants.gov or agency website

Focus on grants from agencies like NSF, NIH, DOE, EPA, USDA, DOD, and other federal agencies.

Format each grant clearly with labels like "Title:", "Agency:", "Deadline:", etc.
Separate grants with a blank line.
Always include the grants.gov opportunity number when available.
Verify that all deadlines are after {today}.
"""


def build_search_prompt(
    query: str,
    focus_areas: Optional[list[str]] = None,
    organization_type: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render the grant-search prompt."""
    today = now or utc_now()
    return SEARCH_PROMPT.format(
        today=f"{today.strftime('%B')} {today.day}, {today.year}",
        organization_type=organization_type or "organizations",
        focus_areas=", ".join(focus_areas) if focus_areas else "general purposes",
        query=query,
    )


@dataclass
class ScrapedPage:
    """Raw page returned by a scrape provider."""
    url: str
    content: str
    metadata: dict = field(default_factory=dict)


class SearchProvider(ABC):
    """Abstract base class for AI search providers."""

    @abstractmethod
    async def search(
        self,
        query: str,
        focus_areas: Optional[list[str]] = None,
        organization_type: Optional[str] = None,
    ) -> str:
        """Run a grant search and return the raw answer text ("" on failure)."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        pass


class ScrapeProvider(ABC):
    """Abstract base class for page scraping providers."""

    @abstractmethod
    async def scrape(self, url: str) -> Optional[ScrapedPage]:
        """Scrape a page; None when the provider could not deliver content."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        pass


class PerplexitySearchProvider(SearchProvider):
    """Perplexity chat-completions provider for AI grant search."""

    ENDPOINT = "https://api.perplexity.ai/chat/completions"

    def __init__(
        self,
        http_client: HttpClient,
        api_key: Optional[str] = None,
        model: str = "sonar",
        max_tokens: int = 3000,
    ):
        self.http_client = http_client
        self.api_key = api_key or os.getenv("PERPLEXITY_API_KEY")
        self.model = model
        self.max_tokens = max_tokens

    def is_available(self) -> bool:
        """Check if Perplexity API key is configured."""
        return bool(self.api_key)

    async def search(
        self,
        query: str,
        focus_areas: Optional[list[str]] = None,
        organization_type: Optional[str] = None,
    ) -> str:
        """Ask the model for labeled grant listings."""
        if not self.is_available():
            logger.warning("perplexity_not_available", reason="No API key")
            return ""

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SEARCH_SYSTEM_PROMPT},
                {"role": "user", "content": build_search_prompt(query, focus_areas, organization_type)},
            ],
            "max_tokens": self.max_tokens,
            "temperature": 0.1,
        }

        try:
            data = await self.http_client.post_json(
                self.ENDPOINT,
                payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("perplexity_search_failed", error=str(e))
            return ""

        choices = data.get("choices") or [{}]
        answer = (choices[0].get("message") or {}).get("content") or ""
        logger.info("perplexity_search_complete", query=query, chars=len(answer))
        return answer


class FirecrawlScrapeProvider(ScrapeProvider):
    """Firecrawl provider for scraping grant detail pages."""

    ENDPOINT = "https://api.firecrawl.dev/v1/scrape"
    INCLUDE_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "ul", "ol", "li", "table", "div", "span"]

    def __init__(
        self,
        http_client: HttpClient,
        api_key: Optional[str] = None,
        wait_for_ms: int = 3000,
        timeout_ms: int = 30000,
    ):
        self.http_client = http_client
        self.api_key = api_key or os.getenv("FIRECRAWL_API_KEY")
        self.wait_for_ms = wait_for_ms
        self.timeout_ms = timeout_ms

    def is_available(self) -> bool:
        """Check if Firecrawl API key is configured."""
        return bool(self.api_key)

    async def scrape(self, url: str) -> Optional[ScrapedPage]:
        """Scrape main page content as markdown (HTML when markdown is missing)."""
        if not self.is_available():
            logger.warning("firecrawl_not_available", reason="No API key")
            return None

        payload = {
            "url": url,
            "formats": ["markdown", "html"],
            "onlyMainContent": True,
            "includeTags": self.INCLUDE_TAGS,
            "waitFor": self.wait_for_ms,
            "timeout": self.timeout_ms,
        }

        try:
            data = await self.http_client.post_json(
                self.ENDPOINT,
                payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout_ms / 1000 + 10,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("firecrawl_scrape_failed", url=url, error=str(e))
            return None

        page = data.get("data") or {}
        content = page.get("markdown") or page.get("html")
        if not data.get("success") or not content:
            logger.warning("firecrawl_no_content", url=url)
            return None

        return ScrapedPage(url=url, content=content, metadata=page.get("metadata") or {})
