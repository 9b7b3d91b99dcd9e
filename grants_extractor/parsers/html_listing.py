"""
HTML search-results listing parser.

Converts a rendered grant search page into GrantRecords using an
ordered fallback chain:
1. Results table rows (date, status, title link, number, agency, amounts)
2. Bare opportunity anchors, tried with successively looser patterns

Rows are bounded to `limit + 10` and the output is cut to `limit`.
"""

import re
from typing import Callable, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from grants_extractor.core.models import (
    DEFAULT_AGENCY,
    ExtractionResult,
    GrantRecord,
    new_record_id,
    synthesize_opportunity_number,
)
from grants_extractor.core.normalizer import (
    MONTH_NAME,
    clean_text,
    default_close_date,
    iso_timestamp,
    normalize_deadline,
)
from grants_extractor.core.selectors import FieldChain, regex_strategy

from .base import ParserStrategy

LISTING_BASE_URL = "https://simpler.grants.gov"
LISTING_HORIZON_DAYS = 60
LISTING_CATEGORY = "Federal Grant"
ROW_SLACK = 10
MIN_TITLE_LENGTH = 6

STATUSES = ("Open", "Closed", "Forecasted", "Archived")
STATUS_PATTERN = re.compile(rf"^\s*({'|'.join(STATUSES)})\b", re.IGNORECASE)
CLOSE_DATE_PATTERN = re.compile(rf"{MONTH_NAME}\.?\s+\d{{1,2}},?\s+\d{{4}}", re.IGNORECASE)
DOLLAR_PATTERN = re.compile(r"\$\s*(\d[\d,]*)")
AGENCY_NOUNS = re.compile(r"\b(?:National|Department|Agency|Administration|Foundation|Institute|Office)\b")

OPPORTUNITY_NUMBER_CHAIN = FieldChain("opportunity_number", [
    regex_strategy(r"Number:\s*([^\s<]+)", name="label:Number"),
    regex_strategy(
        re.compile(r"\b((?:FA|DE|ED|NSF|EPA|DOD)[A-Z0-9.]*(?:-[A-Z0-9.]+)*-\d[\w.-]*)"),
        name="agency_prefix",
    ),
])

AnchorMatcher = Callable[[str], bool]

# Successively looser anchor patterns for the fallback strategy
ANCHOR_PATTERNS: list[tuple[str, AnchorMatcher]] = [
    ("opportunity_path", lambda href: href.startswith("/opportunity/")),
    ("opportunity_segment", lambda href: "/opportunity" in href),
    ("opportunity_anywhere", lambda href: "opportunity" in href.lower()),
]


def _parse_dollars(value: str) -> Optional[int]:
    digits = value.replace(",", "")
    if not digits.isdigit():
        return None
    amount = int(digits)
    return amount if amount > 0 else None


class HtmlListingParser(ParserStrategy):
    """
    Parser for grant search-result pages.

    Usage:
        parser = HtmlListingParser()
        result = parser.parse(html, limit=20)
        if result.is_empty:
            ...  # caller decides: empty state or fallback data
    """

    def __init__(
        self,
        base_url: str = LISTING_BASE_URL,
        horizon_days: int = LISTING_HORIZON_DAYS,
        **kwargs,
    ):
        """
        Initialize listing parser.

        Args:
            base_url: Site root used to resolve opportunity links
            horizon_days: Close-date default when the row has no usable date
        """
        super().__init__(**kwargs)
        self.base_url = base_url
        self.horizon_days = horizon_days

    def parse(self, content: str, limit: int = 50, start_index: int = 0, **kwargs) -> ExtractionResult:
        """
        Parse a search-results page.

        Args:
            content: Rendered HTML
            limit: Result cap
            start_index: Row offset for synthesized opportunity numbers

        Returns:
            ExtractionResult; `strategy` names the chain step that produced
            the records ("table_rows" or an anchor pattern name)
        """
        if not content or limit <= 0:
            return ExtractionResult(strategy=None)

        soup = BeautifulSoup(content, "lxml")

        result = self._parse_table(soup, limit, start_index)
        if result.is_empty:
            self.logger.info("table_rows_empty", fallback="anchors")
            result = self._parse_anchors(soup, limit, start_index)

        result.records = result.records[:limit]
        self.logger.info(
            "listing_parsed",
            strategy=result.strategy,
            records=len(result),
            skipped=result.skipped,
        )
        return result

    def _parse_table(self, soup: BeautifulSoup, limit: int, start_index: int = 0) -> ExtractionResult:
        """Primary strategy: one record per results-table row."""
        rows = soup.find_all("tr")[1 : limit + ROW_SLACK]
        result = self.extract_batch(rows, lambda row, i: self.parse_row(row, start_index + i))
        result.strategy = "table_rows"
        return result

    def parse_row(self, row: Tag, index: int = 0) -> Optional[GrantRecord]:
        """
        Convert one table row into a GrantRecord.

        Args:
            row: <tr> element
            index: Row position after the header row

        Returns:
            GrantRecord, or None when the row has no usable title link
        """
        anchor = row.find("a", href=lambda href: bool(href) and "/opportunity/" in href)
        if anchor is None:
            return None

        title = clean_text(anchor.get_text(" "))
        path = anchor.get("href", "").strip()
        if len(title) < MIN_TITLE_LENGTH or not path:
            return None

        cells = [clean_text(td.get_text(" ")) for td in row.find_all("td")]
        row_text = " ".join(cells) or clean_text(row.get_text(" "))

        agency = self._find_agency(cells, title)
        amounts = [a for a in (_parse_dollars(m) for m in DOLLAR_PATTERN.findall(row_text)) if a]

        return GrantRecord(
            id=new_record_id(),
            opportunity_number=(
                OPPORTUNITY_NUMBER_CHAIN.extract(row_text)
                or synthesize_opportunity_number("GRANT", index + 1)
            ),
            title=title,
            agency=agency,
            description=(
                f"{title} - Federal grant opportunity from {agency}. "
                "Visit grants.gov for full details and application requirements."
            ),
            posted_date=iso_timestamp(self.now),
            close_date=self._find_close_date(cells),
            award_floor=amounts[0] if amounts else None,
            award_ceiling=amounts[1] if len(amounts) > 1 else None,
            category=LISTING_CATEGORY,
            status=self._find_status(cells),
            details_url=urljoin(self.base_url, path),
        )

    def _find_close_date(self, cells: list[str]) -> str:
        for cell in cells:
            match = CLOSE_DATE_PATTERN.search(cell)
            if match:
                normalized = normalize_deadline(match.group(0), now=self.now, stale_after_days=None)
                if normalized:
                    return normalized
        return default_close_date(self.horizon_days, self.now)

    def _find_status(self, cells: list[str]) -> str:
        for cell in cells:
            match = STATUS_PATTERN.match(cell)
            if match:
                return match.group(1).capitalize()
        return "Open"

    def _find_agency(self, cells: list[str], title: str) -> str:
        for cell in cells:
            if title in cell:
                continue
            if AGENCY_NOUNS.search(cell):
                return cell
        return DEFAULT_AGENCY

    def _parse_anchors(self, soup: BeautifulSoup, limit: int, start_index: int = 0) -> ExtractionResult:
        """Fallback strategy: bare opportunity links, loosest pattern last."""
        anchors = soup.find_all("a", href=True)

        for name, matches in ANCHOR_PATTERNS:
            candidates = [a for a in anchors if matches(a["href"].strip())][:limit]
            records = []
            for anchor in candidates:
                title = clean_text(anchor.get_text(" "))
                if len(title) < MIN_TITLE_LENGTH:
                    continue
                records.append(self._anchor_record(anchor["href"].strip(), title, start_index + len(records)))

            if records:
                return ExtractionResult(records=records, strategy=name)

        return ExtractionResult(strategy=None)

    def _anchor_record(self, href: str, title: str, index: int) -> GrantRecord:
        return GrantRecord(
            id=new_record_id(),
            opportunity_number=synthesize_opportunity_number("GRANT", index + 1),
            title=title,
            agency=DEFAULT_AGENCY,
            description=f"{title} - Federal grant opportunity. Visit grants.gov for full details.",
            posted_date=iso_timestamp(self.now),
            close_date=default_close_date(self.horizon_days, self.now),
            category=LISTING_CATEGORY,
            status="Open",
            details_url=urljoin(self.base_url, href),
        )
