"""Provisioning of the two-tab spreadsheet template."""

import logging
from datetime import date

from sheetdrill.domain.constants import (
    CARD_DATA_SHEET,
    CARD_STATS_SHEET,
    CARD_TEMPLATE_HEADERS,
    STATS_TEMPLATE_HEADERS,
)
from sheetdrill.domain.models import CellUpdate, SpreadsheetInfo
from sheetdrill.domain.ports import SheetStore

from .columns import cell_range

logger = logging.getLogger(__name__)


def header_updates(sheet_title: str, headers: list[str]) -> list[CellUpdate]:
    return [
        CellUpdate(range=cell_range(sheet_title, index, 1), value=name)
        for index, name in enumerate(headers)
    ]


def template_header_updates(
    content_sheet: str = CARD_DATA_SHEET, stats_sheet: str = CARD_STATS_SHEET
) -> list[CellUpdate]:
    return [
        *header_updates(content_sheet, CARD_TEMPLATE_HEADERS),
        *header_updates(stats_sheet, STATS_TEMPLATE_HEADERS),
    ]


def default_spreadsheet_title(today: date | None = None) -> str:
    return f"Sheet Cards {(today or date.today()).isoformat()}"


async def initialize_template(
    store: SheetStore,
    spreadsheet_id: str,
    content_sheet: str = CARD_DATA_SHEET,
    stats_sheet: str = CARD_STATS_SHEET,
) -> list[str]:
    """
    Ensure both tabs exist and rewrite their header rows.

    Returns:
        Titles of the tabs that had to be created.
    """
    info = await store.get_info(spreadsheet_id)
    missing = [t for t in (content_sheet, stats_sheet) if t not in info.sheet_titles]
    if missing:
        await store.add_sheets(spreadsheet_id, missing)
        logger.info(f"Added tabs {missing} to {spreadsheet_id}")

    await store.batch_write(spreadsheet_id, template_header_updates(content_sheet, stats_sheet))
    return missing


async def create_template_spreadsheet(
    store: SheetStore,
    title: str | None = None,
    content_sheet: str = CARD_DATA_SHEET,
    stats_sheet: str = CARD_STATS_SHEET,
) -> SpreadsheetInfo:
    """Create a new spreadsheet with both tabs and their headers."""
    title = (title or "").strip() or default_spreadsheet_title()
    info = await store.create_spreadsheet(title, [content_sheet, stats_sheet])
    await store.batch_write(info.spreadsheet_id, template_header_updates(content_sheet, stats_sheet))
    logger.info(f"Created template spreadsheet '{title}' ({info.spreadsheet_id})")
    return info


def build_tsv_prompt(study_notes: str = "") -> str:
    """Prompt text asking an LLM to turn study material into Card Data rows."""
    header_row = "\t".join(CARD_TEMPLATE_HEADERS)
    material = study_notes.strip() or "[Paste study material here]"
    return "\n".join(
        [
            "With the study material below, create tab-separated values (TSV) for my flashcard app.",
            f"Use exactly this header row with TAB separators: {header_row}",
            "Rules:",
            "- Return exactly one fenced code block only (no extra explanation text before or after).",
            "- Include the header row as the first line.",
            "- Use real TAB characters between columns and a new line for each row.",
            f"- Keep this exact column order: {','.join(CARD_TEMPLATE_HEADERS)}.",
            "- pronunciation, tags, question_explanation, and answer_explanation are optional "
            "and may be blank.",
            "- Do not use tab characters inside cell values; replace inner tabs with a single space.",
            "- Keep each card on one line (no multi-line cells).",
            "- Do not output markdown tables.",
            "",
            "Study material:",
            material,
        ]
    )
