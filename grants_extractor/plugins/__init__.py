"""
Optional plugins for live extraction and fallback data.

Plugins provide capabilities that are not part of the core:
- providers: AI search (Perplexity) and page scraping (Firecrawl)
- fallback: canned dataset used when live extraction is off or fails
"""

from .providers import (
    SearchProvider,
    ScrapeProvider,
    ScrapedPage,
    PerplexitySearchProvider,
    FirecrawlScrapeProvider,
    build_search_prompt,
)
from .fallback import fallback_catalog, fallback_search

__all__ = [
    "SearchProvider",
    "ScrapeProvider",
    "ScrapedPage",
    "PerplexitySearchProvider",
    "FirecrawlScrapeProvider",
    "build_search_prompt",
    "fallback_catalog",
    "fallback_search",
]
