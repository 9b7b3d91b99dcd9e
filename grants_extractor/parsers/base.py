"""
Base class for parser strategies.

Parsers implement the extraction phase - converting fetched text
(feeds, listing pages, labeled free text, detail pages) into structured
records. They never perform I/O and hold no state between calls.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

import structlog

from grants_extractor.core.models import ExtractionResult, utc_now

logger = structlog.get_logger(__name__)


class ParserStrategy(ABC):
    """
    Abstract base class for parser strategies.

    Each strategy handles one content type:
    - RSS/XML feeds
    - HTML search-result listings
    - Labeled free text from AI search
    - Single grant detail pages
    """

    def __init__(self, now: Optional[datetime] = None):
        """
        Initialize parser.

        Args:
            now: Fixed reference time for defaults and staleness checks
                 (current UTC time when omitted)
        """
        self._now = now
        self.logger = logger.bind(parser=self.__class__.__name__)

    @property
    def now(self) -> datetime:
        """Reference time for this run."""
        return self._now or utc_now()

    @abstractmethod
    def parse(self, content: str, **kwargs) -> Any:
        """
        Extract records from content.

        Args:
            content: Raw fetched text

        Returns:
            Parsed output (ExtractionResult for multi-record parsers)
        """
        pass

    def extract_batch(
        self,
        fragments: Iterable[Any],
        extract_one: Callable[[Any, int], Optional[Any]],
    ) -> ExtractionResult:
        """
        Run extract_one over fragments, isolating per-fragment failures.

        A fragment that raises is logged and skipped; one that returns
        None is dropped silently.

        Args:
            fragments: Feed items, table rows or text sections
            extract_one: Callable (fragment, index) -> record or None

        Returns:
            ExtractionResult with extracted records and skipped count
        """
        result = ExtractionResult(strategy=self.get_strategy_name())

        for i, fragment in enumerate(fragments):
            try:
                record = extract_one(fragment, i)
            except Exception as e:
                result.skipped += 1
                self.logger.warning(
                    "fragment_skipped",
                    index=i,
                    error=str(e),
                )
                continue

            if record is not None:
                result.records.append(record)

        return result

    def get_strategy_name(self) -> str:
        """Return human-readable strategy name."""
        return self.__class__.__name__
