"""
Domain models for the study engine.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from enum import Enum


class LastResult(str, Enum):
    NONE = ""
    CORRECT = "correct"
    WRONG = "wrong"

    @classmethod
    def parse(cls, raw: str) -> "LastResult":
        value = str(raw or "").strip().lower()
        for member in cls:
            if member.value == value:
                return member
        return cls.NONE


class StudyMode(str, Enum):
    FRONT_ONLY = "front_only"
    BACK_ONLY = "back_only"
    RANDOM = "random"


class Direction(str, Enum):
    FRONT_TO_BACK = "front_to_back"
    BACK_TO_FRONT = "back_to_front"


class AdvanceMode(str, Enum):
    DELAY = "delay"
    MANUAL = "manual"


class AnswerPhase(str, Enum):
    UNANSWERED = "unanswered"
    CORRECTING = "correcting"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ItemStats:
    """
    Tracked statistics for one item, as stored in the progress table.

    Attributes:
        seen_count: Completed draws of this item.
        correct_count: Completions without a mistake.
        wrong_count: Completions that needed a correction.
        streak: Consecutive mistake-free completions.
        last_seen_at: ISO-8601 timestamp of the last completion, or "".
        last_result: Outcome of the last completion.
        mastery: Proficiency in [0, 1] derived from the counts above.
    """

    seen_count: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    streak: int = 0
    last_seen_at: str = ""
    last_result: LastResult = LastResult.NONE
    mastery: float = 0.0


@dataclass(frozen=True)
class Item:
    """
    One study unit: a content row merged with its statistics row.

    Row numbers are 1-based sheet rows (row 1 is the header).
    """

    item_id: str
    front: str
    back: str
    pronunciation: str = ""
    tags: tuple[str, ...] = ()
    question_explanation: str = ""
    answer_explanation: str = ""
    stats: ItemStats = field(default_factory=ItemStats)
    content_row_number: int = 0
    stats_row_number: int = 0

    @property
    def mastery(self) -> float:
        return self.stats.mastery

    @property
    def wrong_count(self) -> int:
        return self.stats.wrong_count


@dataclass(frozen=True)
class PendingMutation:
    """
    A buffered statistics write for one progress row.

    The identity triple is only set for rows allocated during reconciliation,
    so the progress table gains the matching columns on first flush.
    """

    stats_row_number: int
    stats: ItemStats
    front: str | None = None
    back: str | None = None
    pronunciation: str | None = None


@dataclass(frozen=True)
class CellUpdate:
    """A single-cell write: an A1 range such as 'Card Progress'!D7 and its value."""

    range: str
    value: str | int | float


@dataclass
class RoundState:
    """Progress through the current round plus per-session counters."""

    completed_ids: set[str] = field(default_factory=set)
    session_answers: int = 0
    session_correct: int = 0
    session_wrong_cards: int = 0
    session_wrong_selections: int = 0
    ended: bool = False

    def reset(self) -> None:
        self.completed_ids = set()
        self.session_answers = 0
        self.session_correct = 0
        self.session_wrong_cards = 0
        self.session_wrong_selections = 0
        self.ended = False


@dataclass
class Draw:
    """The question currently on screen and where it is in the answer workflow."""

    item_id: str
    direction: Direction
    prompt: str
    expected: str
    options: list[str]
    prompt_explanation: str = ""
    answer_explanation: str = ""
    phase: AnswerPhase = AnswerPhase.UNANSWERED
    wrong_choice: str | None = None
    had_mistake: bool = False


@dataclass(frozen=True)
class SpreadsheetInfo:
    spreadsheet_id: str
    title: str
    sheet_titles: tuple[str, ...] = ()
    url: str = ""
