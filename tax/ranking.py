from __future__ import annotations

from typing import Iterable

from tax.suggestion import Suggestion


def rank_suggestions(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """
    Most urgent first: ascending priority, then larger |realized gain/loss|,
    then suggestion_id so the order is total.
    """
    return sorted(
        suggestions,
        key=lambda s: (s.priority, -abs(s.realized_gain_loss), s.suggestion_id),
    )
