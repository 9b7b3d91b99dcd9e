"""
Requirement matching between checklist items and narrative text.

Scores how well the current narrative satisfies each requirement:
- keyword coverage (up to 40 points)
- literal overlap with the requirement's first two words (20 each)
- length sufficiency (10 over 100 characters, 10 more over 500)

The total is capped at 100 and a requirement counts as completed at the
configured threshold.
"""

import re
import string
from typing import Iterable, Optional

import structlog

from grants_extractor.core.models import ChecklistRequirement, RequirementMatch
from grants_extractor.core.normalizer import truncate

from .keywords import extract_keywords

logger = structlog.get_logger(__name__)


COMPLETION_THRESHOLD = 60

KEYWORD_WEIGHT = 40
WORD_OVERLAP_BONUS = 20
LENGTH_BONUS = 10
SHORT_NARRATIVE_CHARS = 100
LONG_NARRATIVE_CHARS = 500
MAX_CONFIDENCE = 100

MIN_SENTENCE_CHARS = 20
EVIDENCE_CHARS = 150


def build_narrative(
    title: Optional[str] = None,
    summary: Optional[str] = None,
    body: Optional[str] = None,
) -> str:
    """Concatenate the narrative parts that have content."""
    return "\n\n".join(part for part in (title, summary, body) if part and part.strip())


def ensure_keywords(requirement: ChecklistRequirement) -> list[str]:
    """Return the requirement's cached keywords, computing them on first use."""
    if requirement.keywords is None:
        requirement.keywords = extract_keywords(requirement.text)
    return requirement.keywords


def _leading_words(text: str, count: int = 2) -> list[str]:
    words = [w.strip(string.punctuation) for w in text.lower().split()]
    return [w for w in words if w][:count]


def find_evidence(narrative: str, keywords: Iterable[str]) -> Optional[str]:
    """
    Pick the sentence mentioning the most keywords.

    Sentences are split on . ! ? and fragments of 20 characters or fewer are
    ignored. Ties keep the earliest sentence.

    Returns:
        The sentence, cut to 150 characters with an ellipsis, or None when no
        sentence contains any keyword
    """
    keywords = [k.lower() for k in keywords]
    if not keywords:
        return None

    best_match = None
    best_score = 0
    for sentence in re.split(r"[.!?]+", narrative):
        sentence = sentence.strip()
        if len(sentence) <= MIN_SENTENCE_CHARS:
            continue

        lowered = sentence.lower()
        score = sum(1 for keyword in keywords if keyword in lowered)
        if score > best_score:
            best_score = score
            best_match = sentence

    if best_match is None:
        return None
    return truncate(best_match, EVIDENCE_CHARS)


class RequirementMatcher:
    """
    Scores checklist requirements against narrative text.

    Stateless between calls; the only cache is the per-requirement
    keyword list.

    Usage:
        matcher = RequirementMatcher()
        matches = matcher.rescore(requirements, build_narrative(title, summary, body))
    """

    def __init__(self, completion_threshold: int = COMPLETION_THRESHOLD):
        """
        Initialize matcher.

        Args:
            completion_threshold: Confidence at which a requirement counts as completed
        """
        self.completion_threshold = completion_threshold

    def score(self, requirement: ChecklistRequirement, narrative: str) -> int:
        """Confidence (0-100) that the narrative satisfies the requirement."""
        keywords = ensure_keywords(requirement)
        narrative_lower = narrative.lower()

        points = 0.0
        if keywords:
            matched = [k for k in keywords if k in narrative_lower]
            points += len(matched) / len(keywords) * KEYWORD_WEIGHT

        for word in _leading_words(requirement.text):
            if word in narrative_lower:
                points += WORD_OVERLAP_BONUS

        if len(narrative) > SHORT_NARRATIVE_CHARS:
            points += LENGTH_BONUS
        if len(narrative) > LONG_NARRATIVE_CHARS:
            points += LENGTH_BONUS

        return min(int(points + 0.5), MAX_CONFIDENCE)

    def match(self, requirement: ChecklistRequirement, narrative: str) -> RequirementMatch:
        """
        Score one requirement and find supporting evidence.

        Args:
            requirement: Checklist requirement (keywords computed if missing)
            narrative: Full narrative text (title + summary + body)

        Returns:
            RequirementMatch with completed, confidence and matched content
        """
        if requirement is None:
            raise ValueError("requirement is required")

        narrative = narrative or ""
        confidence = self.score(requirement, narrative)
        keywords = [k for k in ensure_keywords(requirement) if k in narrative.lower()]

        return RequirementMatch(
            id=requirement.id,
            completed=confidence >= self.completion_threshold,
            confidence=confidence,
            matched_content=find_evidence(narrative, keywords),
        )

    def rescore(
        self,
        requirements: Optional[list[ChecklistRequirement]],
        narrative: str,
    ) -> list[RequirementMatch]:
        """
        Recompute every requirement against the current narrative.

        Each requirement's completed/confidence/matched_content is replaced
        with the fresh result; none is left partially updated.

        Args:
            requirements: The whole checklist
            narrative: Full narrative text

        Returns:
            One RequirementMatch per requirement, in checklist order

        Raises:
            ValueError: If no requirement set is given
        """
        if requirements is None:
            raise ValueError("requirements must be a list, got None")

        matches = []
        for requirement in requirements:
            result = self.match(requirement, narrative)
            requirement.completed = result.completed
            requirement.confidence = result.confidence
            requirement.matched_content = result.matched_content
            matches.append(result)

        logger.debug(
            "checklist_rescored",
            requirements=len(matches),
            completed=sum(1 for m in matches if m.completed),
        )
        return matches
