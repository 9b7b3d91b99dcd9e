"""
Grant detail page extractor.

Converts the scraped content of a single grant page (markdown or HTML)
into GrantDetails. HTML is first flattened into markdown-like lines
(headings as "#", list items as "-") so both formats share one set of
line and paragraph heuristics.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

from grants_extractor.core.models import (
    DEFAULT_AGENCY,
    DEFAULT_DESCRIPTION,
    DEFAULT_TITLE,
    UNKNOWN,
    VISIT_SOURCE_ELIGIBILITY,
    VISIT_SOURCE_REQUIREMENTS,
    GrantDetails,
)
from grants_extractor.core.normalizer import (
    clean_text,
    find_date_text,
    iso_timestamp,
    normalize_deadline,
    strip_tags,
    truncate,
)
from grants_extractor.core.selectors import (
    FieldChain,
    Selector,
    extract_contact_email,
    extract_contact_phone,
    label_strategy,
    regex_strategy,
)

from .base import ParserStrategy

DESCRIPTION_MIN_CHARS = 51
DESCRIPTION_MAX_CHARS = 500
MIN_ITEM_CHARS = 11

HTML_MARKER = re.compile(r"<(?:html|body|div|p|h[1-6]|ul|ol|li|table|section|article)\b", re.IGNORECASE)
BLOCK_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "td", "dt", "dd"]

ELIGIBILITY_TRIGGERS = ("eligibility", "eligible", "qualify", "requirements")
DOCUMENT_TRIGGERS = ("required documents", "application materials", "submission requirements")

# Hyphens inside words ("multi-year") are not bullets
BULLET_SPLIT = re.compile(r"•|\*|(?<!\w)-(?!\w)")
BULLET_LINE = re.compile(r"^\s*(?:[•*\-]|\d+[.)])\s+(.*)$")
HEADING_LINE = re.compile(r"^\s*#+\s*(.+?)\s*#*\s*$")
EMPHASIS = re.compile(r"\*\*|__")

_CONNECTOR = r"(?:of|and|for|the|on|&)"
_PROPER_RUN = rf"(?:[ \t]+(?:[A-Z][\w&'.-]*|{_CONNECTOR}))+"

AGENCY_CHAIN = FieldChain("agency", [
    regex_strategy(
        re.compile(rf"(?:Department|Agency|Administration|Foundation|Institute|Office)\s+of{_PROPER_RUN}"),
        name="institution_of",
    ),
    regex_strategy(
        re.compile(rf"(?:National|Federal|State|Local){_PROPER_RUN}"),
        name="jurisdiction_prefix",
    ),
])

DEADLINE_CHAIN = FieldChain("deadline", [
    regex_strategy(r"\bdeadline[:\s]+([^\n]+)", name="deadline"),
    regex_strategy(r"\bdue[:\s]+([^\n]+)", name="due"),
    regex_strategy(r"\bcloses[:\s]+([^\n]+)", name="closes"),
])

# Most specific first
_MONEY = r"\$[\d,]+(?:\.\d+)?(?:\s*(?:million|thousand|billion))?"
FUNDING_CHAIN = FieldChain("funding_amount", [
    regex_strategy(rf"up to {_MONEY}", name="up_to"),
    regex_strategy(rf"maximum of {_MONEY}", name="maximum_of"),
    regex_strategy(rf"{_MONEY}(?:\s*(?:-|–|to)\s*{_MONEY})?", name="amount"),
])

OPPORTUNITY_NUMBER_CHAIN = FieldChain("opportunity_number", [
    label_strategy("Funding Opportunity Number", "Opportunity Number"),
])


def _trim_connectors(value: str) -> str:
    return re.sub(rf"(?:\s+{_CONNECTOR})+$", "", value.rstrip(".")).strip()


def _strip_markdown(text: str) -> str:
    return clean_text(re.sub(r"[*_`]+", "", text)).strip(" #")


def html_to_lines(soup: BeautifulSoup) -> str:
    """
    Flatten HTML into markdown-like text.

    Headings become "#" lines, list items "-" lines, other blocks plain
    paragraphs separated by blank lines. Blocks nested in other blocks
    are skipped.
    """
    for tag in soup.select("script, style, nav, footer, header, aside"):
        tag.decompose()

    parts = []
    for element in soup.find_all(BLOCK_TAGS):
        if element.find_parent(BLOCK_TAGS):
            continue
        text = element.get_text(" ", strip=True)
        if not text:
            continue
        if element.name.startswith("h"):
            parts.append("#" * int(element.name[1]) + " " + text)
        elif element.name == "li":
            parts.append("- " + text)
        else:
            parts.append(text)
    return "\n\n".join(parts)


def split_bullets(line: str) -> list[str]:
    """
    Split an inline bullet list, keeping items longer than 10 characters.

    The lead-in before the first bullet ("Eligible applicants:") is not
    an item.
    """
    parts = BULLET_SPLIT.split(EMPHASIS.sub("", line))[1:]
    items = [_strip_markdown(item) for item in parts]
    return [item for item in items if len(item) >= MIN_ITEM_CHARS]


def collect_list(lines: list[str], triggers: tuple[str, ...]) -> list[str]:
    """
    Gather list items announced by trigger keywords.

    Two strategies, merged in order:
    - a trigger line holding inline bullets is split into items
    - bullet lines following a trigger line (or carrying a trigger word
      themselves) are collected until the next heading or prose line

    Returns:
        Unique items in document order
    """
    items: list[str] = []
    collecting = False

    for line in lines:
        triggered = any(trigger in line.lower() for trigger in triggers)
        bullet = BULLET_LINE.match(line)

        if bullet:
            if collecting or triggered:
                item = _strip_markdown(bullet.group(1))
                if len(item) >= MIN_ITEM_CHARS:
                    items.append(item)
        elif triggered:
            items.extend(split_bullets(line))
            collecting = True
        else:
            # an intro line ("The following may apply:") keeps the list open
            collecting = collecting and line.rstrip().endswith(":")

    return list(dict.fromkeys(items))


class DetailPageParser(ParserStrategy):
    """
    Parser for a single grant's detail page.

    Usage:
        parser = DetailPageParser()
        details = parser.parse(markdown, source_url=url, opportunity_number="NSF-24-542")
    """

    def parse(
        self,
        content: str,
        source_url: str = "",
        opportunity_number: Optional[str] = None,
        metadata: Optional[dict] = None,
        **kwargs,
    ) -> GrantDetails:
        """
        Extract detailed grant fields from one page.

        Args:
            content: Scraped markdown or HTML
            source_url: Page URL
            opportunity_number: Known opportunity number, if any
            metadata: Scraper metadata (may carry "title")

        Returns:
            GrantDetails; every list field has at least one entry
        """
        metadata = metadata or {}
        if not content or not content.strip():
            self.logger.info("detail_page_empty", url=source_url)
            return GrantDetails.unavailable(source_url, opportunity_number)

        soup = None
        title = None
        if HTML_MARKER.search(content):
            soup = BeautifulSoup(content, "lxml")
            title = Selector(soup).try_selectors(["h1", "h2"]).value
            text = html_to_lines(soup)
        else:
            text = content

        lines = [line.strip() for line in text.splitlines() if line.strip()]
        title = title or self._find_title(lines) or metadata.get("title") or DEFAULT_TITLE

        plain = strip_tags(text)
        deadline = self._find_deadline(plain)
        eligibility = collect_list(lines, ELIGIBILITY_TRIGGERS)
        requirements = collect_list(lines, DOCUMENT_TRIGGERS)

        details = GrantDetails(
            title=_strip_markdown(title),
            agency=self._find_agency(plain),
            opportunity_number=(
                opportunity_number
                or OPPORTUNITY_NUMBER_CHAIN.extract(plain)
                or UNKNOWN
            ),
            description=self._find_description(text),
            eligibility=eligibility or [VISIT_SOURCE_ELIGIBILITY],
            requirements=requirements or [VISIT_SOURCE_REQUIREMENTS],
            deadline=deadline or UNKNOWN,
            funding_amount=FUNDING_CHAIN.extract(plain) or UNKNOWN,
            source_url=source_url,
            scraped_at=iso_timestamp(self.now),
            deadline_date=normalize_deadline(deadline, now=self.now) if deadline else None,
            contact_email=extract_contact_email(plain, soup),
            contact_phone=extract_contact_phone(plain),
        )

        self.logger.info(
            "detail_page_parsed",
            url=source_url,
            eligibility=len(eligibility),
            requirements=len(requirements),
            deadline=details.deadline,
        )
        return details

    def _find_title(self, lines: list[str]) -> Optional[str]:
        for line in lines:
            match = HEADING_LINE.match(line)
            if match:
                return match.group(1)
        return None

    def _find_agency(self, text: str) -> str:
        value = AGENCY_CHAIN.extract(text)
        if value:
            value = _trim_connectors(value)
        return value or DEFAULT_AGENCY

    def _find_description(self, text: str) -> str:
        for paragraph in re.split(r"\n\s*\n", text):
            if HEADING_LINE.match(paragraph.strip().splitlines()[0] if paragraph.strip() else ""):
                continue
            cleaned = _strip_markdown(strip_tags(paragraph))
            if len(cleaned) >= DESCRIPTION_MIN_CHARS:
                return truncate(cleaned, DESCRIPTION_MAX_CHARS)
        return DEFAULT_DESCRIPTION

    def _find_deadline(self, text: str) -> Optional[str]:
        value = DEADLINE_CHAIN.extract(text)
        if not value:
            return None
        value = _strip_markdown(value)
        return find_date_text(value) or value.split(",")[0].strip() or None
