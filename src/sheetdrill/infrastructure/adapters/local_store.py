"""
Local Sheet Store: offline backend keeping each tab as a CSV file.

Layout: ``<root>/<spreadsheet_id>/<tab title>.csv``. Writes are applied to
an in-memory copy and the whole file is replaced only once every update in
the call has been applied, so a failed call leaves the files untouched.
"""

import csv
import logging
import os
import re
import tempfile
from pathlib import Path

from sheetdrill.application.columns import parse_cell, split_range
from sheetdrill.domain.errors import TransportError
from sheetdrill.domain.models import CellUpdate, SpreadsheetInfo
from sheetdrill.domain.ports import SheetStore

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]+")


class LocalSheetStore(SheetStore):
    """Implements SheetStore on plain CSV files."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _spreadsheet_dir(self, spreadsheet_id: str) -> Path:
        return self.root / spreadsheet_id

    def _tab_path(self, spreadsheet_id: str, title: str) -> Path:
        return self._spreadsheet_dir(spreadsheet_id) / f"{title}.csv"

    def _load(self, path: Path) -> list[list[str]]:
        with path.open(newline="", encoding="utf-8") as f:
            return [row for row in csv.reader(f)]

    def _save(self, path: Path, rows: list[list[str]]) -> None:
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".csv.tmp")
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                csv.writer(f).writerows(rows)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def read_values(self, spreadsheet_id: str, sheet_title: str) -> list[list[str]]:
        path = self._tab_path(spreadsheet_id, sheet_title)
        if not path.exists():
            raise TransportError(f"Read failed: Unable to parse range: {sheet_title} ({path})")
        try:
            rows = self._load(path)
        except (OSError, ValueError, csv.Error) as e:
            raise TransportError(f"Read failed: {sheet_title}: {e}") from e
        # Trailing empty rows are not part of the table, as with the Sheets API.
        while rows and not any(cell.strip() for cell in rows[-1]):
            rows.pop()
        return rows

    async def batch_write(self, spreadsheet_id: str, updates: list[CellUpdate]) -> int:
        tables: dict[str, list[list[str]]] = {}
        try:
            for update in updates:
                title, a1 = split_range(update.range)
                col, row_number = parse_cell(a1)
                if title not in tables:
                    path = self._tab_path(spreadsheet_id, title)
                    if not path.exists():
                        raise TransportError(f"Write failed: no tab named {title!r}")
                    tables[title] = self._load(path)
                rows = tables[title]
                while len(rows) < row_number:
                    rows.append([])
                row = rows[row_number - 1]
                while len(row) <= col:
                    row.append("")
                row[col] = str(update.value)
            for title, rows in tables.items():
                self._save(self._tab_path(spreadsheet_id, title), rows)
        except (OSError, ValueError, csv.Error) as e:
            raise TransportError(f"Write failed: {e}") from e

        logger.debug(f"Wrote {len(updates)} cell(s) to {spreadsheet_id}")
        return len(updates)

    async def get_info(self, spreadsheet_id: str) -> SpreadsheetInfo:
        directory = self._spreadsheet_dir(spreadsheet_id)
        if not directory.is_dir():
            raise TransportError(f"Metadata read failed (404): no spreadsheet at {directory}")
        titles = tuple(sorted(p.stem for p in directory.glob("*.csv")))
        return SpreadsheetInfo(
            spreadsheet_id=spreadsheet_id,
            title=spreadsheet_id,
            sheet_titles=titles,
            url=directory.as_uri() if directory.is_absolute() else str(directory),
        )

    async def add_sheets(self, spreadsheet_id: str, titles: list[str]) -> None:
        directory = self._spreadsheet_dir(spreadsheet_id)
        directory.mkdir(parents=True, exist_ok=True)
        for title in titles:
            path = self._tab_path(spreadsheet_id, title)
            if not path.exists():
                path.write_text("", encoding="utf-8")

    async def create_spreadsheet(self, title: str, sheet_titles: list[str]) -> SpreadsheetInfo:
        spreadsheet_id = _UNSAFE_CHARS_RE.sub("-", title).strip("-") or "spreadsheet"
        candidate, n = spreadsheet_id, 1
        while self._spreadsheet_dir(candidate).exists():
            n += 1
            candidate = f"{spreadsheet_id}-{n}"
        await self.add_sheets(candidate, sheet_titles)
        info = await self.get_info(candidate)
        return SpreadsheetInfo(
            spreadsheet_id=candidate, title=title, sheet_titles=info.sheet_titles, url=info.url
        )
