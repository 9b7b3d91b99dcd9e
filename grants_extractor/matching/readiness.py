"""Application readiness gate over preparation checklists."""

from typing import Iterable

from grants_extractor.core.models import ChecklistRequirement

READINESS_THRESHOLD = 50


def required_progress(items: Iterable[ChecklistRequirement]) -> int:
    """Percentage (0-100) of required items completed; 0 when nothing is required."""
    required = [item for item in items if item.required]
    if not required:
        return 0
    completed = sum(1 for item in required if item.completed)
    return int(completed / len(required) * 100 + 0.5)


def can_start_application(
    items: Iterable[ChecklistRequirement],
    threshold: int = READINESS_THRESHOLD,
) -> bool:
    """True once enough required preparation items are done."""
    return required_progress(items) >= threshold
