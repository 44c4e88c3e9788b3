"""
Study Session: application-layer orchestrator.

Owns one StudyContext and coordinates loading, drawing, answering,
auto-advance and write-back against a SheetStore.
"""

import asyncio
import logging
import random
from collections.abc import Callable

from sheetdrill.domain.constants import (
    CARD_DATA_SHEET,
    CARD_STATS_SHEET,
    DEFAULT_ADVANCE_DELAY,
    FLUSH_EVERY_ANSWERS,
)
from sheetdrill.domain.errors import TransportError, ValidationError
from sheetdrill.domain.models import AdvanceMode, Draw, StudyMode
from sheetdrill.domain.ports import SheetStore

from .advance import AdvanceTimer
from .config import AppConfig
from .reconciler import ReconcileResult, reconcile
from .scheduler import Scheduler
from .summary import SessionSummary, summarize
from .workflow import (
    AnswerOutcome,
    AnswerResult,
    StudyContext,
    draw_next,
    submit_answer,
    utc_now_iso,
)
from .write_queue import FlushResult, WriteBackQueue

logger = logging.getLogger(__name__)


class StudySession:
    """
    Application service driving the select / answer / record cycle.

    Follows Dependency Inversion: depends on the SheetStore abstraction,
    not a concrete adapter.
    """

    def __init__(
        self,
        store: SheetStore,
        scheduler: Scheduler | None = None,
        study_mode: StudyMode = StudyMode.FRONT_ONLY,
        advance_mode: AdvanceMode = AdvanceMode.DELAY,
        advance_delay: float = DEFAULT_ADVANCE_DELAY,
        flush_every: int = FLUSH_EVERY_ANSWERS,
        content_sheet: str = CARD_DATA_SHEET,
        stats_sheet: str = CARD_STATS_SHEET,
        clock: Callable[[], str] | None = None,
    ):
        """
        Args:
            store: The remote table store (port).
            scheduler: Optional custom scheduler; uses an unseeded one if not provided.
            clock: Returns the timestamp recorded as last_seen_at.
        """
        self.store = store
        self.scheduler = scheduler or Scheduler()
        self.ctx = StudyContext(queue=WriteBackQueue(store), study_mode=study_mode)
        self.advance_mode = advance_mode
        self.advance_delay = advance_delay
        self.flush_every = max(1, flush_every)
        self.content_sheet = content_sheet
        self.stats_sheet = stats_sheet
        self.status = "Connect Google to continue."
        self._clock = clock or utc_now_iso
        self._timer = AdvanceTimer()
        self._queued_previous: str | None = None
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, store: SheetStore, config: AppConfig) -> "StudySession":
        return cls(
            store,
            scheduler=Scheduler(random.Random(config.seed)),
            study_mode=config.study_mode,
            advance_mode=config.advance_mode,
            advance_delay=config.advance_delay,
            flush_every=config.flush_every,
            content_sheet=config.content_sheet,
            stats_sheet=config.stats_sheet,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def queue(self) -> WriteBackQueue:
        return self.ctx.queue

    @property
    def current(self) -> Draw | None:
        return self.ctx.current

    @property
    def pending_writes(self) -> int:
        return len(self.ctx.queue)

    @property
    def advance_pending(self) -> bool:
        return self._queued_previous is not None

    @property
    def awaiting_manual_next(self) -> bool:
        return self.advance_pending and self.advance_mode == AdvanceMode.MANUAL

    def summary(self) -> SessionSummary:
        return summarize(self.ctx.round, self.ctx.items)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, spreadsheet_ref: str) -> ReconcileResult:
        """
        Read both tabs, reconcile them and install the new item set.

        Prior state is left untouched if reading or validation fails.

        Raises:
            ValidationError: Bad reference, empty tab or missing columns.
            TransportError: A read failed.
        """
        spreadsheet_id = self.store.parse_ref(spreadsheet_ref)
        if not spreadsheet_id:
            self.status = "Invalid sheet URL or spreadsheet ID."
            raise ValidationError("spreadsheet", message=self.status)

        self.status = (
            f"Loading cards from {self.content_sheet} and stats from {self.stats_sheet}..."
        )
        try:
            content_rows = await self.store.read_values(spreadsheet_id, self.content_sheet)
            stats_rows = await self.store.read_values(spreadsheet_id, self.stats_sheet)
        except TransportError as e:
            if "Unable to parse range" in str(e):
                self.status = (
                    f"Sheet tabs are missing. Initialize the template to create "
                    f"{self.content_sheet} and {self.stats_sheet}."
                )
            else:
                self.status = str(e)
            raise

        try:
            result = reconcile(
                content_rows,
                stats_rows,
                content_title=self.content_sheet,
                stats_title=self.stats_sheet,
            )
        except ValidationError as e:
            self.status = str(e)
            raise

        self._cancel_advance()
        ctx = self.ctx
        ctx.items = result.items
        ctx.spreadsheet_id = spreadsheet_id
        ctx.queue.clear()
        ctx.queue.bind(spreadsheet_id, self.stats_sheet, result.stats_columns)
        for mutation in result.new_mutations:
            ctx.queue.enqueue(mutation)
        ctx.round.reset()
        self._draw()

        if result.new_mutations:
            self.request_flush()

        self.status = f"Loaded {len(result.items)} cards. Start a study round."
        return result

    async def unload(self, sync_first: bool = True) -> None:
        """Drop the item set. Pending writes are flushed first unless told otherwise."""
        if sync_first and self.pending_writes:
            await self.sync()
        self._cancel_advance()
        self.ctx.items = []
        self.ctx.current = None
        self.ctx.round.reset()
        self.status = "Cards unloaded. Load a sheet to study again."

    # ------------------------------------------------------------------
    # Study cycle
    # ------------------------------------------------------------------

    def start_round(self) -> Draw | None:
        if not self.ctx.items:
            self.status = "Load cards first."
            return None
        self.ctx.round.reset()
        draw = self._draw()
        self.status = "Study round started."
        return draw

    def set_study_mode(self, mode: StudyMode) -> Draw | None:
        self.ctx.study_mode = mode
        if not self.ctx.items:
            return None
        return self._draw()

    def answer(self, choice: str) -> AnswerResult:
        """Feed one option selection into the answer workflow."""
        result = submit_answer(self.ctx, choice, self._clock())
        if result.outcome != AnswerOutcome.COMPLETED:
            return result

        if self.ctx.round.session_answers % self.flush_every == 0:
            self.request_flush()

        if result.round_ended:
            self._cancel_advance()
            self.status = "Round complete. Review the summary and start the next round."
            return result

        self._queued_previous = result.item.item_id if result.item else None
        if self.advance_mode == AdvanceMode.DELAY:
            self._timer.schedule(self.advance_delay, self.advance)
        return result

    def advance(self) -> Draw | None:
        """Move to the queued next item (timer fire or explicit next signal)."""
        previous = self._queued_previous
        if previous is None:
            return None
        return self._draw(exclude_id=previous)

    def _draw(self, exclude_id: str | None = None) -> Draw | None:
        self._cancel_advance()
        return draw_next(self.ctx, self.scheduler, exclude_id)

    def _cancel_advance(self) -> None:
        self._timer.cancel()
        self._queued_previous = None

    # ------------------------------------------------------------------
    # Write-back
    # ------------------------------------------------------------------

    def request_flush(self) -> asyncio.Task | None:
        """Start a background flush unless one is running or nothing is pending."""
        if self.ctx.queue.in_flight or not self.pending_writes:
            return None
        task = asyncio.get_running_loop().create_task(self._flush(silent=True))
        self._tasks.add(task)
        task.add_done_callback(self._on_flush_done)
        return task

    def _on_flush_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background flush crashed: {task.exception()!r}")

    def on_visibility_change(self, hidden: bool) -> asyncio.Task | None:
        if hidden:
            return self.request_flush()
        return None

    async def sync(self) -> FlushResult | None:
        """User-initiated flush. None if a flush is already in flight or nothing is pending."""
        return await self._flush(silent=False)

    async def _flush(self, silent: bool) -> FlushResult | None:
        result = await self.ctx.queue.flush()
        if result is None:
            return None
        if not result.ok:
            self.status = result.error or "Write failed."
        elif not silent:
            self.status = f"Synced {result.ranges} update range(s)."
        return result

    async def close(self) -> None:
        """Cancel the pending advance and wait for background flushes."""
        self._cancel_advance()
        if self._tasks:
            # Failures are logged by the done-callback.
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

