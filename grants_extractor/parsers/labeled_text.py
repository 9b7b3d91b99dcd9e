"""
Labeled free-text parser.

Converts paragraph-delimited `Label: value` text (as returned by an AI
grant search) into LabeledGrant records. Each blank-line separated
section is one candidate grant; it is kept only when it names both a
title and an agency.
"""

import re
from typing import Optional

from grants_extractor.core.models import ExtractionResult, LabeledGrant
from grants_extractor.core.normalizer import clean_text, normalize_deadline
from grants_extractor.core.selectors import find_urls

from .base import ParserStrategy

DETAIL_URL_TEMPLATE = "https://grants.gov/search-results-detail/{opportunity_number}"

SECTION_SPLIT = re.compile(r"\n\s*\n")
MAX_LABEL_WORDS = 4

# Ordered; the first field whose alias appears in the label wins
FIELD_ALIASES = [
    ("title", ("grant title", "title")),
    ("opportunity_number", ("opportunity number", "number")),
    ("agency", ("funding agency", "agency")),
    ("deadline", ("deadline", "due date")),
    ("funding_amount", ("funding", "amount")),
    ("description", ("description",)),
    ("eligibility", ("eligibility",)),
    ("grant_url", ("link", "url", "website")),
]

_ALIAS_PATTERNS = [
    (name, re.compile(r"\b(?:" + "|".join(re.escape(a) for a in aliases) + r")\b"))
    for name, aliases in FIELD_ALIASES
]

CATEGORY_LEXICON = [
    ("education", ("education", "stem")),
    ("environment", ("environment", "climate")),
    ("health", ("health", "medical")),
    ("technology", ("technology", "innovation")),
    ("community", ("community", "social")),
    ("research", ("research",)),
]


def infer_categories(text: str) -> list[str]:
    """
    Categories whose lexicon terms occur in text.

    Returns:
        Matching categories in lexicon order, or ["general"]
    """
    lowered = (text or "").lower()
    categories = [
        category
        for category, terms in CATEGORY_LEXICON
        if any(term in lowered for term in terms)
    ]
    return categories or ["general"]


def match_label(line: str) -> Optional[tuple[str, str]]:
    """
    Split a `Label: value` line and resolve the label to a field name.

    Markdown decoration around the label ("1. **Grant Title:**") is
    ignored. Labels longer than a few words are treated as prose.

    Returns:
        (field_name, value) or None when the line is not a known label
    """
    if ":" not in line:
        return None

    raw_label, value = line.split(":", 1)
    label = re.sub(r"^[\s#>*\-\d.)]+", "", raw_label)
    label = label.strip(" *_").lower()
    if not label or len(label.split()) > MAX_LABEL_WORDS:
        return None

    for name, pattern in _ALIAS_PATTERNS:
        if pattern.search(label):
            return name, value.strip().strip("*_ ").strip()
    return None


class LabeledTextParser(ParserStrategy):
    """
    Parser for labeled AI search responses.

    Usage:
        parser = LabeledTextParser()
        result = parser.parse(ai_response)
        records = [grant.to_grant_record() for grant in result]
    """

    def parse(self, content: str, **kwargs) -> ExtractionResult:
        """
        Parse labeled free text into grants.

        Args:
            content: Paragraph-delimited response text

        Returns:
            ExtractionResult of LabeledGrant (empty when no section has
            both a title and an agency)
        """
        if not content or not content.strip():
            return ExtractionResult(strategy=self.get_strategy_name())

        sections = [s for s in SECTION_SPLIT.split(content) if s.strip()]
        result = self.extract_batch(sections, self.parse_section)

        self.logger.info(
            "labeled_text_parsed",
            sections=len(sections),
            records=len(result),
            skipped=result.skipped,
        )
        return result

    def parse_section(self, section: str, index: int = 0) -> Optional[LabeledGrant]:
        """
        Convert one paragraph into a LabeledGrant.

        Args:
            section: Paragraph text
            index: Paragraph position

        Returns:
            LabeledGrant, or None when title or agency is missing
        """
        fields: dict[str, str] = {}
        fallback_url = None

        for line in section.splitlines():
            line = line.strip()
            if not line:
                continue

            labeled = match_label(line)
            if labeled:
                name, value = labeled
                if name == "grant_url":
                    urls = find_urls(value)
                    value = urls[0] if urls else value
                if value:
                    fields[name] = value

            if fallback_url is None:
                urls = find_urls(line)
                if urls:
                    fallback_url = urls[0]

        title = clean_text(fields.get("title"))
        agency = clean_text(fields.get("agency"))
        if not title or not agency:
            return None

        opportunity_number = fields.get("opportunity_number")
        grant_url = fields.get("grant_url") or fallback_url
        if not grant_url and opportunity_number:
            grant_url = DETAIL_URL_TEMPLATE.format(opportunity_number=opportunity_number)

        deadline = fields.get("deadline")
        description = fields.get("description")

        return LabeledGrant(
            title=title,
            agency=agency,
            opportunity_number=opportunity_number,
            deadline=deadline,
            deadline_date=normalize_deadline(deadline, now=self.now),
            funding_amount=fields.get("funding_amount"),
            description=description,
            eligibility=fields.get("eligibility"),
            grant_url=grant_url,
            categories=infer_categories(f"{title} {description or ''}"),
        )
