"""
Parser strategies for grant content extraction.

Parsers handle the extraction phase - converting fetched text into
structured records. All of them are synchronous and side-effect free.

Strategies:
- FeedParser: RSS/XML feeds
- HtmlListingParser: HTML search-result pages (table rows, then anchors)
- LabeledTextParser: Label: value free text from AI search
- DetailPageParser: Single grant detail pages (markdown or HTML)
"""

from .base import ParserStrategy
from .feed import FeedParser
from .html_listing import HtmlListingParser
from .labeled_text import LabeledTextParser, infer_categories
from .detail_page import DetailPageParser

__all__ = [
    "ParserStrategy",
    "FeedParser",
    "HtmlListingParser",
    "LabeledTextParser",
    "DetailPageParser",
    "infer_categories",
]
