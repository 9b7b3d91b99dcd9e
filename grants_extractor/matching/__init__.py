"""
Matching layer - checklist requirements against narrative text.

Components:
- keywords: salient-term extraction for requirements
- matcher: confidence scoring and evidence selection
- readiness: required-item progress gate
"""

from .keywords import extract_keywords
from .matcher import RequirementMatcher, build_narrative, find_evidence
from .readiness import can_start_application, required_progress

__all__ = [
    "extract_keywords",
    "RequirementMatcher",
    "build_narrative",
    "find_evidence",
    "can_start_application",
    "required_progress",
]
