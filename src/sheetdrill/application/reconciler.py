"""
Reconciler: joins the content table with the progress table.

Rows are matched on a composite (question, answer, pronunciation) key with an
occurrence counter, so the Nth duplicate content row pairs with the Nth
duplicate progress row in table order.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any

from sheetdrill.domain.constants import (
    CARD_DATA_SHEET,
    CARD_STATS_SHEET,
    CONTENT_COLUMN_ALIASES,
    REQUIRED_CONTENT_FIELDS,
    REQUIRED_STATS_FIELDS,
    STATS_COLUMN_ALIASES,
)
from sheetdrill.domain.errors import ValidationError
from sheetdrill.domain.models import Item, ItemStats, LastResult, PendingMutation

from .columns import ColumnMap
from .mastery import clamp, compute_mastery

logger = logging.getLogger(__name__)

Row = list[Any]


@dataclass
class ReconcileResult:
    """Outcome of joining both tables."""

    items: list[Item]
    new_mutations: list[PendingMutation]
    content_columns: ColumnMap
    stats_columns: ColumnMap
    skipped_rows: int = 0
    orphaned_stats: int = 0

    @property
    def allocated_rows(self) -> list[int]:
        return [m.stats_row_number for m in self.new_mutations]


@dataclass
class _StatsRow:
    row_number: int
    stats: ItemStats = field(default_factory=ItemStats)


def _normalize_key_part(value: str) -> str:
    return str(value or "").strip().lower()


def build_base_key(front: str, back: str, pronunciation: str = "") -> str:
    parts = (_normalize_key_part(front), _normalize_key_part(back), _normalize_key_part(pronunciation))
    return "qa:" + "||".join(parts)


def next_occurrence_key(base_key: str, counter: dict[str, int]) -> str:
    n = counter.get(base_key, 0) + 1
    counter[base_key] = n
    return f"{base_key}##{n}"


def parse_number(value: Any) -> float:
    """Permissive numeric parse: anything non-numeric or non-finite becomes 0."""
    if value is None:
        return 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        parsed = float(text)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def parse_count(value: Any) -> int:
    return max(0, int(parse_number(value)))


def parse_tags(value: str) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(tag.strip() for tag in str(value).split(",") if tag.strip())


def parse_stats_row(row: Row, columns: ColumnMap) -> ItemStats:
    """
    Read the statistics block of one progress row.

    A non-positive mastery on a row that has been seen is recomputed rather
    than trusted; rows written by older clients leave mastery blank.
    """
    stats = ItemStats(
        seen_count=parse_count(columns.cell(row, "seen_count")),
        correct_count=parse_count(columns.cell(row, "correct_count")),
        wrong_count=parse_count(columns.cell(row, "wrong_count")),
        streak=parse_count(columns.cell(row, "streak")),
        last_seen_at=columns.cell(row, "last_seen_at"),
        last_result=LastResult.parse(columns.cell(row, "last_result")),
        mastery=clamp(parse_number(columns.cell(row, "mastery")), 0.0, 1.0),
    )
    if stats.correct_count + stats.wrong_count > stats.seen_count:
        logger.debug(
            f"[reconcile] progress counts exceed seen_count: seen={stats.seen_count} "
            f"correct={stats.correct_count} wrong={stats.wrong_count}"
        )
    if stats.mastery <= 0 and stats.seen_count > 0:
        stats = replace(stats, mastery=compute_mastery(stats))
    return stats


def resolve_columns(
    content_rows: list[Row],
    stats_rows: list[Row],
    content_title: str = CARD_DATA_SHEET,
    stats_title: str = CARD_STATS_SHEET,
) -> tuple[ColumnMap, ColumnMap]:
    """Validate both header rows and resolve them. Raises ValidationError."""
    if not content_rows:
        raise ValidationError(
            content_title,
            message=f"{content_title} is empty. Initialize the template, then add card rows.",
        )
    content_columns = ColumnMap.resolve(content_rows[0], CONTENT_COLUMN_ALIASES)
    missing = content_columns.missing(REQUIRED_CONTENT_FIELDS)
    if missing:
        raise ValidationError(content_title, missing)

    if not stats_rows:
        raise ValidationError(
            stats_title,
            message=f"{stats_title} is empty. Initialize the template first.",
        )
    stats_columns = ColumnMap.resolve(stats_rows[0], STATS_COLUMN_ALIASES)
    missing = stats_columns.missing(REQUIRED_STATS_FIELDS)
    if missing:
        raise ValidationError(stats_title, missing)

    return content_columns, stats_columns


def reconcile(
    content_rows: list[Row],
    stats_rows: list[Row],
    content_title: str = CARD_DATA_SHEET,
    stats_title: str = CARD_STATS_SHEET,
) -> ReconcileResult:
    """
    Join raw content rows with raw progress rows into Items.

    Args:
        content_rows: Card Data tab, header first.
        stats_rows: Card Progress tab, header first.
        content_title, stats_title: Tab names used in validation messages.

    Returns:
        ReconcileResult with items in content-table order and one
        PendingMutation per content row that had no progress row.

    Raises:
        ValidationError: A table is empty or lacks required columns.
    """
    content_columns, stats_columns = resolve_columns(
        content_rows, stats_rows, content_title, stats_title
    )

    stats_by_key: dict[str, _StatsRow] = {}
    stats_counter: dict[str, int] = {}
    for index, row in enumerate(stats_rows[1:], start=2):
        front = stats_columns.cell(row, "front")
        back = stats_columns.cell(row, "back")
        if not front and not back:
            continue
        key = next_occurrence_key(
            build_base_key(front, back, stats_columns.cell(row, "pronunciation")),
            stats_counter,
        )
        stats_by_key[key] = _StatsRow(row_number=index, stats=parse_stats_row(row, stats_columns))

    next_stats_row = max(2, len(stats_rows) + 1)
    content_counter: dict[str, int] = {}
    matched_keys: set[str] = set()
    items: list[Item] = []
    new_mutations: list[PendingMutation] = []
    skipped = 0

    for index, row in enumerate(content_rows[1:], start=2):
        front = content_columns.cell(row, "front")
        back = content_columns.cell(row, "back")
        if not front and not back:
            skipped += 1
            continue
        pronunciation = content_columns.cell(row, "pronunciation")
        key = next_occurrence_key(build_base_key(front, back, pronunciation), content_counter)

        stats_row = stats_by_key.get(key)
        if stats_row is None:
            stats_row = _StatsRow(row_number=next_stats_row)
            next_stats_row += 1
            stats_by_key[key] = stats_row
            new_mutations.append(
                PendingMutation(
                    stats_row_number=stats_row.row_number,
                    stats=stats_row.stats,
                    front=front,
                    back=back,
                    pronunciation=pronunciation,
                )
            )
            logger.debug(f"[reconcile] new progress row {stats_row.row_number} for {key}")
        matched_keys.add(key)

        items.append(
            Item(
                item_id=key,
                front=front,
                back=back,
                pronunciation=pronunciation,
                tags=parse_tags(content_columns.cell(row, "tags")),
                question_explanation=content_columns.cell(row, "question_explanation"),
                answer_explanation=content_columns.cell(row, "answer_explanation"),
                stats=stats_row.stats,
                content_row_number=index,
                stats_row_number=stats_row.row_number,
            )
        )

    orphaned = len(set(stats_by_key) - matched_keys)
    if orphaned:
        logger.debug(f"[reconcile] ignoring {orphaned} progress row(s) with no matching card")

    logger.info(
        f"Reconciled {len(items)} items ({len(new_mutations)} new progress rows, "
        f"{skipped} blank rows skipped)"
    )
    return ReconcileResult(
        items=items,
        new_mutations=new_mutations,
        content_columns=content_columns,
        stats_columns=stats_columns,
        skipped_rows=skipped,
        orphaned_stats=orphaned,
    )
