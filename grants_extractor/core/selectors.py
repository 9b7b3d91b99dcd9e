"""
Field extraction via ordered fallback chains.

Every field a parser pulls out of semi-structured text (a labeled value,
a date, a link) is described as a chain of independent strategies. Each
strategy returns a SelectorResult; the first one that finds something
wins. Call sites only see the chain, so a strategy can be swapped for a
structural one (a DOM lookup instead of a regex) without touching them.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Union

from bs4 import BeautifulSoup, Tag

import structlog

logger = structlog.get_logger(__name__)


EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)*\.[A-Za-z]{2,}")
PHONE_PATTERN = re.compile(r"(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]\d{4}\b")
URL_PATTERN = re.compile(r"https?://[^\s<>\"')\]]+")


@dataclass
class SelectorResult:
    """Result from one extraction strategy."""
    value: Optional[str] = None
    values: list[str] = None
    element: Optional[Tag] = None
    found: bool = False
    strategy: Optional[str] = None

    def __post_init__(self):
        if self.values is None:
            self.values = []


NOT_FOUND = SelectorResult(found=False)

Strategy = Callable[[str], SelectorResult]


def regex_strategy(
    pattern: Union[str, re.Pattern],
    flags: int = re.IGNORECASE | re.MULTILINE,
    name: Optional[str] = None,
) -> Strategy:
    """
    Build a strategy that returns the first regex group (or whole match).

    Args:
        pattern: Regex pattern, optionally with groups
        flags: Regex flags when pattern is a string
        name: Strategy name reported in results

    Returns:
        Callable text -> SelectorResult
    """
    compiled = re.compile(pattern, flags) if isinstance(pattern, str) else pattern
    strategy_name = name or compiled.pattern

    def _extract(text: str) -> SelectorResult:
        match = compiled.search(text or "")
        if not match:
            return NOT_FOUND

        groups = [g for g in match.groups() if g is not None]
        value = (groups[0] if groups else match.group(0)).strip()
        if not value:
            return NOT_FOUND

        return SelectorResult(
            value=value,
            values=groups or [match.group(0)],
            found=True,
            strategy=strategy_name,
        )

    return _extract


def label_strategy(*labels: str) -> Strategy:
    """
    Strategy for `Label: value` lines; value runs to the end of the line.

    Args:
        labels: Alternative label spellings, tried as one alternation

    Returns:
        Callable text -> SelectorResult
    """
    alternation = "|".join(re.escape(label) for label in labels)
    return regex_strategy(
        rf"(?:{alternation})\s*:\s*([^\n<]+)",
        name=f"label:{labels[0]}",
    )


class FieldChain:
    """
    Ordered list of strategies for a single field.

    Usage:
        chain = FieldChain("agency", [label_strategy("Agency")])
        agency = chain.extract(text) or DEFAULT_AGENCY
    """

    def __init__(self, field_name: str, strategies: list[Strategy]):
        """
        Initialize chain.

        Args:
            field_name: Field this chain extracts (for logging)
            strategies: Strategies in priority order
        """
        self.field_name = field_name
        self.strategies = list(strategies)

    def resolve(self, text: str) -> SelectorResult:
        """Run strategies in order and return the first successful result."""
        for strategy in self.strategies:
            result = strategy(text)
            if result.found:
                return result
        return NOT_FOUND

    def extract(self, text: str) -> Optional[str]:
        """Value of the first successful strategy, or None."""
        return self.resolve(text).value

    def __len__(self) -> int:
        return len(self.strategies)


class Selector:
    """
    Selector over parsed HTML.

    Supports CSS selectors and regex patterns against the page text.
    """

    def __init__(self, soup: BeautifulSoup):
        """
        Initialize selector with parsed HTML.

        Args:
            soup: BeautifulSoup parsed HTML
        """
        self.soup = soup

    def css_one(self, selector: str) -> SelectorResult:
        """
        Select first element using CSS selector.

        Args:
            selector: CSS selector string

        Returns:
            SelectorResult with first match
        """
        element = self.soup.select_one(selector)
        if not element:
            return NOT_FOUND

        text = element.get_text(" ", strip=True)
        if not text:
            return NOT_FOUND

        return SelectorResult(
            value=text,
            element=element,
            found=True,
            strategy=f"css:{selector}",
        )

    def regex(self, pattern: str, text: Optional[str] = None) -> SelectorResult:
        """
        Extract using regex pattern against page text.

        Args:
            pattern: Regex pattern with groups
            text: Text to search (defaults to full page text)

        Returns:
            SelectorResult with matched groups
        """
        if text is None:
            text = self.soup.get_text(" ", strip=True)
        return regex_strategy(pattern)(text)

    def try_selectors(self, selectors: list[str]) -> SelectorResult:
        """
        Try multiple CSS selectors in order, return first match.

        Args:
            selectors: List of CSS selectors to try

        Returns:
            First successful SelectorResult
        """
        for selector in selectors:
            result = self.css_one(selector)
            if result.found:
                return result
        return NOT_FOUND


def find_urls(text: str) -> list[str]:
    """All http(s) URL literals in text, trailing punctuation removed."""
    return [url.rstrip(".,;:") for url in URL_PATTERN.findall(text or "")]


def extract_contact_email(text: str, soup: Optional[BeautifulSoup] = None) -> Optional[str]:
    """
    Extract contact email.

    Tries mailto: links first (when HTML is available), then regex search.
    """
    if soup is not None:
        mailto = soup.select_one('a[href^="mailto:"]')
        if mailto:
            email = mailto.get("href", "").replace("mailto:", "").split("?")[0].strip()
            if email:
                return email

    match = EMAIL_PATTERN.search(text or "")
    return match.group(0) if match else None


def extract_contact_phone(text: str) -> Optional[str]:
    """Extract the first North American phone number."""
    match = PHONE_PATTERN.search(text or "")
    return match.group(0).strip() if match else None
