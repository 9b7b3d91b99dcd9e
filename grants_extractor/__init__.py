"""
Grants Extractor - heterogeneous-source grant extraction and requirement matching.

Architecture:
- core/: Stable foundation (models, HTTP client, normalizer, selectors, deduplication)
- parsers/: Extraction strategies (RSS feed, HTML listing, labeled text, detail page)
- matching/: Keyword extraction, requirement scoring, readiness gate
- plugins/: External providers (AI search, scraping) and the canned fallback dataset
- config/: YAML-driven settings
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
