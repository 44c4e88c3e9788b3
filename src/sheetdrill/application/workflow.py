"""
Answer workflow: the per-draw state machine and the engine context it mutates.

    unanswered --correct--> completed
    unanswered --wrong----> correcting --correct--> completed (with mistake)

Completion updates the item's statistics, replaces it in the item list,
queues a progress-row write and records round progress.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from sheetdrill.domain.models import (
    AnswerPhase,
    Draw,
    Item,
    ItemStats,
    LastResult,
    PendingMutation,
    RoundState,
    StudyMode,
)

from .mastery import compute_mastery
from .scheduler import (
    Scheduler,
    answer_explanation_for,
    answer_for,
    prompt_explanation_for,
    prompt_for,
)
from .write_queue import WriteBackQueue

logger = logging.getLogger(__name__)


@dataclass
class StudyContext:
    """
    All mutable engine state for one loaded deck.

    Only the workflow functions in this module mutate ``items`` and ``round``.
    """

    queue: WriteBackQueue
    items: list[Item] = field(default_factory=list)
    round: RoundState = field(default_factory=RoundState)
    current: Draw | None = None
    study_mode: StudyMode = StudyMode.FRONT_ONLY
    spreadsheet_id: str = ""

    @property
    def loaded(self) -> bool:
        return bool(self.items)

    def find(self, item_id: str) -> Item | None:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    @property
    def current_item(self) -> Item | None:
        if self.current is None:
            return None
        return self.find(self.current.item_id)


class AnswerOutcome(str, Enum):
    IGNORED = "ignored"
    CORRECTION_REQUIRED = "correction_required"
    COMPLETED = "completed"


@dataclass(frozen=True)
class AnswerResult:
    outcome: AnswerOutcome
    item: Item | None = None
    had_mistake: bool = False
    round_ended: bool = False


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def draw_next(ctx: StudyContext, scheduler: Scheduler, exclude_id: str | None = None) -> Draw | None:
    """Pick the next item and install it as the current draw."""
    item = scheduler.pick_next_item(ctx.items, ctx.round.completed_ids, exclude_id)
    if item is None:
        ctx.current = None
        return None

    direction = scheduler.resolve_direction(ctx.study_mode)
    ctx.current = Draw(
        item_id=item.item_id,
        direction=direction,
        prompt=prompt_for(item, direction),
        expected=answer_for(item, direction),
        options=scheduler.build_options(item, ctx.items, direction),
        prompt_explanation=prompt_explanation_for(item, direction),
        answer_explanation=answer_explanation_for(item, direction),
    )
    return ctx.current


def record_completion(stats: ItemStats, had_mistake: bool, now: str) -> ItemStats:
    """Statistics after one completed draw."""
    updated = ItemStats(
        seen_count=stats.seen_count + 1,
        correct_count=stats.correct_count + (0 if had_mistake else 1),
        wrong_count=stats.wrong_count + (1 if had_mistake else 0),
        streak=0 if had_mistake else stats.streak + 1,
        last_seen_at=now,
        last_result=LastResult.WRONG if had_mistake else LastResult.CORRECT,
    )
    return replace(updated, mastery=compute_mastery(updated))


def submit_answer(ctx: StudyContext, choice: str, now: str | None = None) -> AnswerResult:
    """
    Feed one option selection into the current draw.

    Returns IGNORED when there is no draw, the draw is already completed, or
    a wrong option is tapped during correction.
    """
    draw = ctx.current
    if draw is None or draw.phase == AnswerPhase.COMPLETED:
        return AnswerResult(AnswerOutcome.IGNORED)

    if choice != draw.expected:
        if draw.phase == AnswerPhase.CORRECTING:
            return AnswerResult(AnswerOutcome.IGNORED)
        ctx.round.session_wrong_selections += 1
        draw.phase = AnswerPhase.CORRECTING
        draw.wrong_choice = choice
        draw.had_mistake = True
        return AnswerResult(AnswerOutcome.CORRECTION_REQUIRED)

    had_mistake = draw.phase == AnswerPhase.CORRECTING
    draw.phase = AnswerPhase.COMPLETED
    return complete_item(ctx, draw.item_id, had_mistake, now or utc_now_iso())


def complete_item(ctx: StudyContext, item_id: str, had_mistake: bool, now: str) -> AnswerResult:
    index = next((i for i, item in enumerate(ctx.items) if item.item_id == item_id), None)
    if index is None:
        logger.warning(f"Completed item {item_id} is no longer loaded")
        return AnswerResult(AnswerOutcome.IGNORED)

    item = ctx.items[index]
    updated = replace(item, stats=record_completion(item.stats, had_mistake, now))
    ctx.items[index] = updated
    ctx.queue.enqueue(PendingMutation(stats_row_number=updated.stats_row_number, stats=updated.stats))

    rnd = ctx.round
    rnd.session_answers += 1
    if had_mistake:
        rnd.session_wrong_cards += 1
    else:
        rnd.session_correct += 1
    rnd.completed_ids.add(updated.item_id)

    round_ended = False
    if not rnd.ended and len(rnd.completed_ids) >= len(ctx.items):
        rnd.ended = True
        round_ended = True
        logger.info(f"Round complete: {rnd.session_answers} answers, {rnd.session_correct} correct")

    return AnswerResult(
        AnswerOutcome.COMPLETED, item=updated, had_mistake=had_mistake, round_ended=round_ended
    )
