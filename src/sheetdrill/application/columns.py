"""
Header resolution and A1 range helpers.

Headers are resolved once per load into a ColumnMap; every later cell access
goes through the resolved index.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from sheetdrill.domain.constants import MIN_BARE_ID_LENGTH

_SPREADSHEET_URL_RE = re.compile(r"/spreadsheets/d/([A-Za-z0-9_-]+)")
_BARE_ID_RE = re.compile(rf"^[A-Za-z0-9_-]{{{MIN_BARE_ID_LENGTH},}}$")


def normalize_header(raw: Any) -> str:
    return str(raw if raw is not None else "").strip().lower()


@dataclass(frozen=True)
class ColumnMap:
    """Semantic field name -> 0-based column index, for one table."""

    indices: dict[str, int] = field(default_factory=dict)

    @classmethod
    def resolve(cls, header_row: list[Any], aliases: dict[str, tuple[str, ...]]) -> "ColumnMap":
        """
        Build a map from a header row.

        For each field the first alias (in alias order) present in the header
        wins. Duplicate header names resolve to their last occurrence.
        """
        header_index: dict[str, int] = {}
        for index, raw in enumerate(header_row):
            name = normalize_header(raw)
            if name:
                header_index[name] = index

        indices: dict[str, int] = {}
        for name, candidates in aliases.items():
            for alias in candidates:
                if alias in header_index:
                    indices[name] = header_index[alias]
                    break
        return cls(indices=indices)

    def has(self, name: str) -> bool:
        return name in self.indices

    def missing(self, required: list[str]) -> list[str]:
        return [name for name in required if name not in self.indices]

    def cell(self, row: list[Any], name: str) -> str:
        """Trimmed string value of ``name`` in ``row``; "" if absent or short row."""
        index = self.indices.get(name)
        if index is None or index >= len(row):
            return ""
        value = row[index]
        return str(value if value is not None else "").strip()

    def letter(self, name: str) -> str | None:
        index = self.indices.get(name)
        return column_letter(index) if index is not None else None


def column_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    n = index + 1
    result = ""
    while n > 0:
        remainder = (n - 1) % 26
        result = chr(65 + remainder) + result
        n = (n - 1) // 26
    return result


def quote_sheet_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def make_range(sheet_title: str, a1: str) -> str:
    return f"{quote_sheet_title(sheet_title)}!{a1}"


def cell_range(sheet_title: str, column_index: int, row_number: int) -> str:
    return make_range(sheet_title, f"{column_letter(column_index)}{row_number}")


def split_range(range_ref: str) -> tuple[str, str]:
    """Inverse of make_range: "'Card Data'!B3" -> ("Card Data", "B3")."""
    sheet, _, a1 = range_ref.rpartition("!")
    if sheet.startswith("'") and sheet.endswith("'") and len(sheet) >= 2:
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, a1


_A1_CELL_RE = re.compile(r"^([A-Z]+)(\d+)$")


def parse_cell(a1: str) -> tuple[int, int]:
    """ "C7" -> (2, 7): 0-based column index and 1-based row number."""
    m = _A1_CELL_RE.match(a1.strip().upper())
    if not m:
        raise ValueError(f"not a single-cell A1 reference: {a1!r}")
    letters, row = m.groups()
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - 64)
    return index - 1, int(row)


def parse_spreadsheet_id(ref: str) -> str:
    """Extract a spreadsheet id from a full URL or a bare id; "" if neither."""
    value = (ref or "").strip()
    if not value:
        return ""
    m = _SPREADSHEET_URL_RE.search(value)
    if m:
        return m.group(1)
    if _BARE_ID_RE.match(value):
        return value
    return ""


def spreadsheet_edit_url(spreadsheet_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"
