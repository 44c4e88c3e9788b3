"""
Mastery model: maps an item's history to a bounded proficiency score.

This is a pure computation module with no I/O.
"""

from sheetdrill.domain.constants import (
    ACCURACY_WEIGHT,
    CHOICE_TIERS,
    MASTERY_PRECISION,
    MAX_CHOICES,
    STREAK_CAP,
    STREAK_WEIGHT,
    WRONG_PENALTY_WEIGHT,
)
from sheetdrill.domain.models import ItemStats


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_mastery(stats: ItemStats) -> float:
    """
    Compute mastery in [0, 1] from the counts in ``stats``.

    score = accuracy * 0.72 + min(streak, 10) / 10 * 0.28 - wrong_rate * 0.2,
    clamped and rounded to 4 decimals. An unseen item has mastery 0.
    """
    seen = max(0, stats.seen_count)
    if seen == 0:
        return 0.0

    correct = max(0, stats.correct_count)
    wrong = max(0, stats.wrong_count)
    streak = max(0, stats.streak)

    accuracy = correct / seen
    streak_bonus = min(streak, STREAK_CAP) / STREAK_CAP
    wrong_penalty = wrong / seen
    score = (
        accuracy * ACCURACY_WEIGHT
        + streak_bonus * STREAK_WEIGHT
        - wrong_penalty * WRONG_PENALTY_WEIGHT
    )
    return round(clamp(score, 0.0, 1.0), MASTERY_PRECISION)


def mastery_to_choice_count(mastery: float) -> int:
    """Number of options to show: 2 below 0.40, 4 below 0.80, else 6."""
    for upper, count in CHOICE_TIERS:
        if mastery < upper:
            return count
    return MAX_CHOICES
