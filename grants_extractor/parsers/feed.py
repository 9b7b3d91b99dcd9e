"""
RSS/XML feed parser.

Converts a grants feed into GrantRecords. Each <item> is expected to
carry title, description, link and pubDate; the description usually
embeds labeled sub-fields ("Agency:", "Close Date:", "Award:",
"Category:").
"""

import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

from grants_extractor.core.models import (
    DEFAULT_AGENCY,
    DEFAULT_DESCRIPTION,
    DEFAULT_DETAILS_URL,
    DEFAULT_TITLE,
    ExtractionResult,
    GrantRecord,
    new_record_id,
    synthesize_opportunity_number,
)
from grants_extractor.core.normalizer import (
    default_close_date,
    extract_award_range,
    iso_timestamp,
    normalize_deadline,
    parse_timestamp,
)
from grants_extractor.core.selectors import FieldChain, label_strategy, regex_strategy

from .base import ParserStrategy

FEED_ITEM_LIMIT = 50
FEED_HORIZON_DAYS = 30

CDATA_PATTERN = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)

LINK_NUMBER_CHAIN = FieldChain("opportunity_number", [
    regex_strategy(r"[?&]oppId=([^&\s]+)", name="link_query"),
])
DESCRIPTION_NUMBER_CHAIN = FieldChain("opportunity_number", [
    regex_strategy(r"Opportunity Number:\s*([^\s<]+)", name="label:Opportunity Number"),
])
AGENCY_CHAIN = FieldChain("agency", [label_strategy("Agency")])
CLOSE_DATE_CHAIN = FieldChain("close_date", [label_strategy("Close Date")])
CATEGORY_CHAIN = FieldChain("category", [label_strategy("Category")])


def _unwrap(text: str) -> str:
    return CDATA_PATTERN.sub(r"\1", text).strip()


def _child_text(item: Tag, name: str) -> str:
    child = item.find(name)
    if child is None:
        return ""
    return _unwrap(child.get_text())


class FeedParser(ParserStrategy):
    """
    Parser for grants RSS feeds.

    Usage:
        parser = FeedParser()
        result = parser.parse(xml_text)
        for record in result:
            print(record.opportunity_number, record.close_date)
    """

    def __init__(
        self,
        item_limit: int = FEED_ITEM_LIMIT,
        horizon_days: int = FEED_HORIZON_DAYS,
        stale_after_days: Optional[int] = 30,
        **kwargs,
    ):
        """
        Initialize feed parser.

        Args:
            item_limit: Maximum items read from the feed, in feed order
            horizon_days: Close-date default when the deadline is unknown
            stale_after_days: Staleness window for the close date
        """
        super().__init__(**kwargs)
        self.item_limit = item_limit
        self.horizon_days = horizon_days
        self.stale_after_days = stale_after_days

    def parse(self, content: str, **kwargs) -> ExtractionResult:
        """
        Parse feed XML into grant records.

        Args:
            content: RSS/XML document text

        Returns:
            ExtractionResult (empty when the document has no items)
        """
        if not content or not content.strip():
            return ExtractionResult(strategy=self.get_strategy_name())

        soup = BeautifulSoup(content, "xml")
        items = soup.find_all("item")[: self.item_limit]

        result = self.extract_batch(items, self.parse_item)
        self.logger.info(
            "feed_parsed",
            items=len(items),
            records=len(result),
            skipped=result.skipped,
        )
        return result

    def parse_item(self, item: Tag, index: int = 0) -> GrantRecord:
        """
        Convert one <item> element into a GrantRecord.

        Args:
            item: Parsed <item> element
            index: Position in the feed

        Returns:
            Fully populated GrantRecord
        """
        title = _child_text(item, "title")
        description = _child_text(item, "description")
        link = _child_text(item, "link")
        pub_date = _child_text(item, "pubDate")

        opportunity_number = (
            LINK_NUMBER_CHAIN.extract(link)
            or DESCRIPTION_NUMBER_CHAIN.extract(description)
            or synthesize_opportunity_number("OPP")
        )

        close_date = normalize_deadline(
            CLOSE_DATE_CHAIN.extract(description),
            now=self.now,
            stale_after_days=self.stale_after_days,
        ) or default_close_date(self.horizon_days, self.now)

        award_floor, award_ceiling = extract_award_range(description)

        return GrantRecord(
            id=new_record_id(),
            opportunity_number=opportunity_number,
            title=title or DEFAULT_TITLE,
            agency=AGENCY_CHAIN.extract(description) or DEFAULT_AGENCY,
            description=description or DEFAULT_DESCRIPTION,
            posted_date=parse_timestamp(pub_date) or iso_timestamp(self.now),
            close_date=close_date,
            award_floor=award_floor,
            award_ceiling=award_ceiling,
            category=CATEGORY_CHAIN.extract(description),
            details_url=link or DEFAULT_DETAILS_URL,
        )
