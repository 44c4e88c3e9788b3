import asyncio
import csv
import random

import pytest

from sheetdrill.domain.constants import (
    CARD_DATA_SHEET,
    CARD_STATS_SHEET,
    CARD_TEMPLATE_HEADERS,
    STATS_TEMPLATE_HEADERS,
)
from sheetdrill.domain.errors import TransportError
from sheetdrill.domain.models import CellUpdate, SpreadsheetInfo
from sheetdrill.domain.ports import SheetStore

CONTENT_ROWS = [
    CARD_TEMPLATE_HEADERS,
    ["안녕하세요", "Hello", "annyeonghaseyo", "greeting", "", "Formal greeting"],
    ["감사합니다", "Thank you", "gamsahamnida", "greeting", "", ""],
    ["물", "Water", "mul", "food", "", ""],
    ["밥", "Rice", "bap", "food", "Also means 'meal'", ""],
]


class FakeSheetStore(SheetStore):
    """In-memory store for one spreadsheet. Records every batch written."""

    def __init__(self, tabs: dict[str, list[list[str]]] | None = None):
        self.tabs = {title: [list(r) for r in rows] for title, rows in (tabs or {}).items()}
        self.writes: list[list[CellUpdate]] = []
        self.fail_writes = False
        self.write_gate: asyncio.Event | None = None

    async def read_values(self, spreadsheet_id, sheet_title):
        if sheet_title not in self.tabs:
            raise TransportError(
                f"Read failed (400): Unable to parse range: '{sheet_title}'!A:Z", status_code=400
            )
        return [list(r) for r in self.tabs[sheet_title]]

    async def batch_write(self, spreadsheet_id, updates):
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.fail_writes:
            raise TransportError("Write failed (503): backend unavailable", status_code=503)
        self.writes.append(list(updates))
        return len(updates)

    async def get_info(self, spreadsheet_id):
        return SpreadsheetInfo(spreadsheet_id, "Fake", tuple(self.tabs))

    async def add_sheets(self, spreadsheet_id, titles):
        for title in titles:
            self.tabs.setdefault(title, [])

    async def create_spreadsheet(self, title, sheet_titles):
        await self.add_sheets("fake", sheet_titles)
        return SpreadsheetInfo("fake", title, tuple(sheet_titles))


@pytest.fixture
def content_rows():
    return [list(r) for r in CONTENT_ROWS]


@pytest.fixture
def stats_header():
    return [list(STATS_TEMPLATE_HEADERS)]


@pytest.fixture
def fake_store(content_rows, stats_header):
    return FakeSheetStore({CARD_DATA_SHEET: content_rows, CARD_STATS_SHEET: stats_header})


@pytest.fixture
def rng():
    return random.Random(1234)


def write_csv(path, rows):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        csv.writer(f).writerows(rows)


def read_csv(path):
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


@pytest.fixture
def local_deck(tmp_path):
    """A local-backend spreadsheet named 'deck' with cards and an empty progress tab."""
    root = tmp_path / "sheets"
    write_csv(root / "deck" / f"{CARD_DATA_SHEET}.csv", CONTENT_ROWS[:3])
    write_csv(root / "deck" / f"{CARD_STATS_SHEET}.csv", [STATS_TEMPLATE_HEADERS])
    return root


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config files and environment overrides
    monkeypatch.setenv("HOME", str(home))
    for key in ("SHEETDRILL_SPREADSHEET", "SHEETDRILL_BACKEND", "SHEETDRILL_ACCESS_TOKEN"):
        monkeypatch.delenv(key, raising=False)
    return home
