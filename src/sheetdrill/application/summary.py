"""
Session summary metrics derived from the round state and item set.

This is a pure computation module with no I/O.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from sheetdrill.domain.models import Item, RoundState


@dataclass(frozen=True)
class SessionSummary:
    answers: int
    correct: int
    wrong_cards: int
    wrong_selections: int
    completed: int
    total: int
    accuracy: float | None  # correct / answers
    tap_accuracy: float | None  # answers / (answers + wrong selections)
    most_missed: str
    round_ended: bool

    @property
    def round_progress(self) -> str:
        return f"{self.completed} / {self.total}"

    @property
    def accuracy_text(self) -> str:
        return format_percent(self.accuracy)

    @property
    def tap_accuracy_text(self) -> str:
        return format_percent(self.tap_accuracy)


def format_percent(value: float | None) -> str:
    if value is None:
        return "0%"
    return f"{round(value * 100)}%"


def most_missed(items: Sequence[Item]) -> str:
    """ "front (wrong_count)" for the most-missed item, or "-" if nothing was missed."""
    if not items:
        return "-"
    worst = max(items, key=lambda item: item.wrong_count)
    if worst.wrong_count == 0:
        return "-"
    return f"{worst.front} ({worst.wrong_count})"


def card_hint(item: Item, show_pronunciation: bool = True) -> str:
    if show_pronunciation and item.pronunciation:
        return item.pronunciation
    return ", ".join(item.tags)


def summarize(round_state: RoundState, items: Sequence[Item]) -> SessionSummary:
    answers = round_state.session_answers
    taps = answers + round_state.session_wrong_selections
    return SessionSummary(
        answers=answers,
        correct=round_state.session_correct,
        wrong_cards=round_state.session_wrong_cards,
        wrong_selections=round_state.session_wrong_selections,
        completed=len(round_state.completed_ids),
        total=len(items),
        accuracy=round_state.session_correct / answers if answers else None,
        tap_accuracy=answers / taps if taps else None,
        most_missed=most_missed(items),
        round_ended=round_state.ended,
    )
