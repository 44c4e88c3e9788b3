"""
Write-back queue: buffers progress-row mutations and flushes them in batches.

At most one pending mutation per progress row (last write wins). At most one
flush is in flight; entries are removed only after the store confirms the
write, so a failed flush leaves everything in place for the next attempt.
"""

import logging
from dataclasses import dataclass, replace

from sheetdrill.domain.constants import IDENTITY_FIELDS, MASTERY_PRECISION, STAT_FIELDS
from sheetdrill.domain.errors import TransportError
from sheetdrill.domain.models import CellUpdate, PendingMutation
from sheetdrill.domain.ports import SheetStore

from .columns import ColumnMap, cell_range

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlushTarget:
    """Where flushed rows go; captured once per load."""

    spreadsheet_id: str
    sheet_title: str
    columns: ColumnMap


@dataclass(frozen=True)
class FlushResult:
    ok: bool
    rows: int
    ranges: int
    error: str | None = None


def mutation_values(mutation: PendingMutation) -> dict[str, str | int | float]:
    """Field name -> cell value for every field the mutation carries."""
    stats = mutation.stats
    values: dict[str, str | int | float] = {}
    for name in IDENTITY_FIELDS:
        value = getattr(mutation, name)
        if value is not None:
            values[name] = value
    values.update(
        {
            "seen_count": stats.seen_count,
            "correct_count": stats.correct_count,
            "wrong_count": stats.wrong_count,
            "streak": stats.streak,
            "last_seen_at": stats.last_seen_at,
            "last_result": stats.last_result.value,
            "mastery": round(stats.mastery, MASTERY_PRECISION),
        }
    )
    return values


def build_cell_updates(
    sheet_title: str, columns: ColumnMap, mutation: PendingMutation
) -> list[CellUpdate]:
    """One single-cell update per field whose column exists in the progress table."""
    values = mutation_values(mutation)
    updates = []
    for name in [*IDENTITY_FIELDS, *STAT_FIELDS]:
        if name not in values or not columns.has(name):
            continue
        updates.append(
            CellUpdate(
                range=cell_range(sheet_title, columns.indices[name], mutation.stats_row_number),
                value=values[name],
            )
        )
    return updates


class WriteBackQueue:
    """Pending progress-row writes keyed by row number."""

    def __init__(self, store: SheetStore):
        self._store = store
        self._pending: dict[int, PendingMutation] = {}
        self._target: FlushTarget | None = None
        self._in_flight = False

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, row_number: int) -> bool:
        return row_number in self._pending

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def target(self) -> FlushTarget | None:
        return self._target

    def bind(self, spreadsheet_id: str, sheet_title: str, columns: ColumnMap) -> None:
        self._target = FlushTarget(spreadsheet_id, sheet_title, columns)

    def get(self, row_number: int) -> PendingMutation | None:
        return self._pending.get(row_number)

    def enqueue(self, mutation: PendingMutation) -> None:
        """Replace the row's pending mutation; identity fields are the only values carried over."""
        previous = self._pending.get(mutation.stats_row_number)
        if previous is not None and mutation.front is None and previous.front is not None:
            # A row allocated on load keeps its identity until it has been written once.
            mutation = replace(
                mutation,
                front=previous.front,
                back=previous.back,
                pronunciation=previous.pronunciation,
            )
        self._pending[mutation.stats_row_number] = mutation

    def clear(self) -> None:
        self._pending.clear()

    def build_updates(self, snapshot: dict[int, PendingMutation]) -> list[CellUpdate]:
        if self._target is None:
            return []
        updates: list[CellUpdate] = []
        for mutation in snapshot.values():
            updates.extend(
                build_cell_updates(self._target.sheet_title, self._target.columns, mutation)
            )
        return updates

    async def flush(self) -> FlushResult | None:
        """
        Write every pending mutation in one batched call.

        Returns:
            None when a flush is already running, nothing is pending or no
            target is bound; otherwise a FlushResult. Transport failures are
            reported in the result, never raised.
        """
        if self._in_flight or not self._pending or self._target is None:
            return None

        snapshot = dict(self._pending)
        updates = self.build_updates(snapshot)
        if not updates:
            return None

        self._in_flight = True
        try:
            written = await self._store.batch_write(self._target.spreadsheet_id, updates)
        except TransportError as e:
            logger.error(f"Flush of {len(snapshot)} row(s) failed: {e}")
            return FlushResult(ok=False, rows=len(snapshot), ranges=len(updates), error=str(e))
        finally:
            self._in_flight = False

        # Rows re-enqueued while the write was in flight carry newer values; keep them.
        for row_number, mutation in snapshot.items():
            if self._pending.get(row_number) is mutation:
                del self._pending[row_number]

        logger.info(f"Flushed {len(snapshot)} row(s) as {written} range(s)")
        return FlushResult(ok=True, rows=len(snapshot), ranges=written)
