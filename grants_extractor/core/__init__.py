"""
Core layer - stable foundation for the extraction system.

Components:
- models: GrantRecord, LabeledGrant, GrantDetails, ChecklistRequirement dataclasses
- http_client: Rate-limited, retrying HTTP client
- selectors: Ordered field fallback chains
- normalizer: Deadline, amount and text normalization
- deduplicator: Natural-key grant deduplication
"""

from .models import (
    GrantRecord,
    LabeledGrant,
    GrantDetails,
    ChecklistRequirement,
    RequirementMatch,
    ExtractionResult,
    synthesize_opportunity_number,
)
from .normalizer import (
    normalize_deadline,
    parse_amount,
    parse_timestamp,
    extract_award_range,
    extract_funding_range,
    deadline_urgency,
    deadline_text,
    clean_text,
)
from .selectors import FieldChain, SelectorResult, label_strategy, regex_strategy
from .deduplicator import Deduplicator

__all__ = [
    "GrantRecord",
    "LabeledGrant",
    "GrantDetails",
    "ChecklistRequirement",
    "RequirementMatch",
    "ExtractionResult",
    "normalize_deadline",
    "parse_amount",
    "parse_timestamp",
    "extract_award_range",
    "extract_funding_range",
    "deadline_urgency",
    "deadline_text",
    "clean_text",
    "FieldChain",
    "SelectorResult",
    "label_strategy",
    "regex_strategy",
    "Deduplicator",
    "synthesize_opportunity_number",
]
