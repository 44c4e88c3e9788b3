"""Centralized constants for sheetdrill.

All magic numbers, sheet names and header aliases live here so every layer
imports from a single source of truth.
"""

# ---------- Sheets ----------
CARD_DATA_SHEET = "Card Data"
CARD_STATS_SHEET = "Card Progress"
READ_RANGE = "A:Z"

CARD_TEMPLATE_HEADERS = [
    "question",
    "answer",
    "pronunciation",
    "tags",
    "question_explanation",
    "answer_explanation",
]
STATS_TEMPLATE_HEADERS = [
    "question",
    "answer",
    "pronunciation",
    "times_seen",
    "times_correct",
    "times_wrong",
    "streak",
    "last_seen_at",
    "last_result",
    "mastery",
]

# ---------- Column aliases (semantic field -> accepted header names) ----------
IDENTITY_FIELDS = ["front", "back", "pronunciation"]
STAT_FIELDS = [
    "seen_count",
    "correct_count",
    "wrong_count",
    "streak",
    "last_seen_at",
    "last_result",
    "mastery",
]

CONTENT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "front": ("question", "front"),
    "back": ("answer", "back"),
    "pronunciation": ("pronunciation", "romanization"),
    "tags": ("tags",),
    "question_explanation": ("question_explanation",),
    "answer_explanation": ("answer_explanation",),
}
STATS_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "front": ("question", "front"),
    "back": ("answer", "back"),
    "pronunciation": ("pronunciation", "romanization"),
    "seen_count": ("times_seen", "seen_count"),
    "correct_count": ("times_correct", "correct_count"),
    "wrong_count": ("times_wrong", "wrong_count"),
    "streak": ("streak",),
    "last_seen_at": ("last_seen_at",),
    "last_result": ("last_result",),
    "mastery": ("mastery",),
}
REQUIRED_CONTENT_FIELDS = ["front", "back"]
REQUIRED_STATS_FIELDS = [*STAT_FIELDS, *IDENTITY_FIELDS]

# ---------- Mastery ----------
ACCURACY_WEIGHT = 0.72
STREAK_WEIGHT = 0.28
WRONG_PENALTY_WEIGHT = 0.2
STREAK_CAP = 10
MASTERY_PRECISION = 4

# (upper bound exclusive, choice count); anything above the last bound gets MAX_CHOICES
CHOICE_TIERS = [(0.40, 2), (0.80, 4)]
MAX_CHOICES = 6

# ---------- Scheduler ----------
WEIGHT_CEILING = 1.15
WEIGHT_FLOOR = 0.05

# ---------- Session ----------
FLUSH_EVERY_ANSWERS = 10
DEFAULT_ADVANCE_DELAY = 1.5  # seconds

# ---------- Google Sheets / HTTP ----------
SHEETS_API_BASE = "https://sheets.googleapis.com/v4"
REQUEST_TIMEOUT = 30.0
VALUE_INPUT_OPTION = "USER_ENTERED"
MIN_BARE_ID_LENGTH = 20
