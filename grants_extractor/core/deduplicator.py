"""
Grant deduplication by natural key.

`opportunityNumber` identifies a grant across sources. When the same
number shows up twice, the more populated record is kept and gaps are
filled from the other one.
"""

from dataclasses import dataclass, replace
from typing import Optional

import structlog

from .models import GrantRecord

logger = structlog.get_logger(__name__)


def normalize_key(opportunity_number: str) -> str:
    """Normalize an opportunity number for comparison."""
    return opportunity_number.strip().upper()


@dataclass
class DeduplicationResult:
    """Result of deduplication check."""
    is_duplicate: bool
    existing_key: Optional[str] = None
    action: str = "keep"  # keep, skip, merge


class Deduplicator:
    """
    Natural-key grant deduplicator.

    Tracks seen grants by opportunity number and merges duplicates,
    preferring the record with more optional fields filled.
    """

    def __init__(self):
        """Initialize deduplicator with empty key store."""
        self._seen: dict[str, GrantRecord] = {}

    def check(self, record: GrantRecord) -> DeduplicationResult:
        """
        Check if record is a duplicate.

        Args:
            record: Record to check

        Returns:
            DeduplicationResult with action to take
        """
        key = normalize_key(record.opportunity_number)
        existing = self._seen.get(key)
        if existing is None:
            return DeduplicationResult(is_duplicate=False, action="keep")

        action = "merge" if record.filled_fields() > existing.filled_fields() else "skip"
        return DeduplicationResult(is_duplicate=True, existing_key=key, action=action)

    def process(self, record: GrantRecord) -> Optional[GrantRecord]:
        """
        Process record through deduplication.

        Args:
            record: Record to process

        Returns:
            Record if it is new, None if it was a duplicate (skipped or merged)
        """
        result = self.check(record)

        if not result.is_duplicate:
            self._seen[normalize_key(record.opportunity_number)] = record
            return record

        existing = self._seen[result.existing_key]
        if result.action == "merge":
            self._seen[result.existing_key] = self._merge(preferred=record, other=existing)
            logger.debug("grant_merged", opportunity_number=record.opportunity_number)
        else:
            self._seen[result.existing_key] = self._merge(preferred=existing, other=record)
            logger.debug("grant_skipped_duplicate", opportunity_number=record.opportunity_number)
        return None

    def process_all(self, records: list[GrantRecord]) -> list[GrantRecord]:
        """Deduplicate a batch, returning unique records in first-seen order."""
        for record in records:
            self.process(record)
        return self.get_all()

    def get_all(self) -> list[GrantRecord]:
        """Get all unique records."""
        return list(self._seen.values())

    def clear(self) -> None:
        """Clear deduplication index."""
        self._seen.clear()

    def _merge(self, preferred: GrantRecord, other: GrantRecord) -> GrantRecord:
        """Fill the preferred record's empty optional fields from the other."""
        return replace(
            preferred,
            award_floor=preferred.award_floor if preferred.award_floor is not None else other.award_floor,
            award_ceiling=preferred.award_ceiling if preferred.award_ceiling is not None else other.award_ceiling,
            category=preferred.category or other.category,
            status=preferred.status or other.status,
        )

    def __len__(self) -> int:
        """Return number of unique records."""
        return len(self._seen)
