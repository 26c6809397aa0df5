"""Keyword heuristic mapping a prompt to an advisory provider hint. No I/O."""

from config.config_loader import IntentTable
from orchestra.models import Intent

GENERAL = "general"
_MAX_SCORE = 5


def analyze_intent(prompt: str, table: IntentTable) -> Intent:
    """Score each category by keyword hits and return the best match.

    Ties go to the category listed first in the table; no hits at all
    yields the ``general`` category.
    """
    lowered = prompt.lower()
    best_category = GENERAL
    best_score = 0
    for category, keywords in table.keywords.items():
        score = sum(1 for keyword in keywords if keyword.lower() in lowered)
        if score > best_score:
            best_category, best_score = category, score

    return Intent(
        category=best_category,
        confidence=min(best_score / _MAX_SCORE, 1.0),
        preferred_provider=table.providers.get(best_category),
    )
