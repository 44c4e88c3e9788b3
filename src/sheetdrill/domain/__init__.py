# Domain Package
from .errors import (
    CredentialsUnavailableError,
    SheetdrillError,
    TransportError,
    ValidationError,
)
from .models import (
    AdvanceMode,
    AnswerPhase,
    CellUpdate,
    Direction,
    Draw,
    Item,
    ItemStats,
    LastResult,
    PendingMutation,
    RoundState,
    SpreadsheetInfo,
    StudyMode,
)

__all__ = [
    "AdvanceMode",
    "AnswerPhase",
    "CellUpdate",
    "CredentialsUnavailableError",
    "Direction",
    "Draw",
    "Item",
    "ItemStats",
    "LastResult",
    "PendingMutation",
    "RoundState",
    "SheetdrillError",
    "SpreadsheetInfo",
    "StudyMode",
    "TransportError",
    "ValidationError",
]
