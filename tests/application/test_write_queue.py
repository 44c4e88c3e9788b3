import asyncio

import pytest

from sheetdrill.application.columns import ColumnMap
from sheetdrill.application.write_queue import WriteBackQueue, build_cell_updates
from sheetdrill.domain.constants import STATS_COLUMN_ALIASES, STATS_TEMPLATE_HEADERS
from sheetdrill.domain.models import ItemStats, LastResult, PendingMutation

STATS = ItemStats(
    seen_count=3,
    correct_count=2,
    wrong_count=1,
    streak=1,
    last_seen_at="2024-03-01T10:00:00.000Z",
    last_result=LastResult.CORRECT,
    mastery=0.123456,
)


@pytest.fixture
def columns():
    return ColumnMap.resolve(STATS_TEMPLATE_HEADERS, STATS_COLUMN_ALIASES)


@pytest.fixture
def queue(fake_store, columns):
    q = WriteBackQueue(fake_store)
    q.bind("sheet-id", "Card Progress", columns)
    return q


def test_stat_only_mutation_touches_stat_columns(columns):
    updates = build_cell_updates("Card Progress", columns, PendingMutation(5, STATS))
    assert [u.range for u in updates] == [
        "'Card Progress'!D5",
        "'Card Progress'!E5",
        "'Card Progress'!F5",
        "'Card Progress'!G5",
        "'Card Progress'!H5",
        "'Card Progress'!I5",
        "'Card Progress'!J5",
    ]
    values = [u.value for u in updates]
    assert values == [3, 2, 1, 1, "2024-03-01T10:00:00.000Z", "correct", 0.1235]


def test_new_row_mutation_writes_identity(columns):
    mutation = PendingMutation(9, ItemStats(), front="물", back="Water", pronunciation="")
    updates = build_cell_updates("Card Progress", columns, mutation)
    assert len(updates) == 10
    assert updates[0].range == "'Card Progress'!A9"
    assert [u.value for u in updates[:3]] == ["물", "Water", ""]
    assert updates[8].value == ""  # last_result of a never-seen row


def test_missing_columns_are_skipped():
    columns = ColumnMap.resolve(["question", "answer", "times_seen"], STATS_COLUMN_ALIASES)
    mutation = PendingMutation(2, STATS, front="A", back="B", pronunciation="C")
    updates = build_cell_updates("Card Progress", columns, mutation)
    assert [u.range for u in updates] == [
        "'Card Progress'!A2",
        "'Card Progress'!B2",
        "'Card Progress'!C2",
    ]


def test_last_write_wins(queue):
    queue.enqueue(PendingMutation(4, ItemStats(seen_count=1)))
    queue.enqueue(PendingMutation(4, ItemStats(seen_count=2)))
    queue.enqueue(PendingMutation(5, ItemStats(seen_count=1)))
    assert len(queue) == 2
    assert 4 in queue
    assert queue.get(4).stats.seen_count == 2


def test_unwritten_row_keeps_identity(queue):
    queue.enqueue(PendingMutation(6, ItemStats(), front="물", back="Water", pronunciation="mul"))
    queue.enqueue(PendingMutation(6, STATS))

    merged = queue.get(6)
    assert merged.stats == STATS
    assert (merged.front, merged.back, merged.pronunciation) == ("물", "Water", "mul")
    assert len(queue.build_updates({6: merged})) == 10


@pytest.mark.asyncio
async def test_flush_success_empties_queue(queue, fake_store):
    queue.enqueue(PendingMutation(2, STATS))
    queue.enqueue(PendingMutation(3, STATS))

    result = await queue.flush()

    assert result.ok is True
    assert result.rows == 2
    assert result.ranges == 14
    assert len(queue) == 0
    assert len(fake_store.writes) == 1
    assert len(fake_store.writes[0]) == 14


@pytest.mark.asyncio
async def test_flush_failure_keeps_everything(queue, fake_store):
    fake_store.fail_writes = True
    queue.enqueue(PendingMutation(2, STATS))
    queue.enqueue(PendingMutation(3, STATS))

    result = await queue.flush()

    assert result.ok is False
    assert "503" in result.error
    assert len(queue) == 2
    assert queue.in_flight is False

    fake_store.fail_writes = False
    retry = await queue.flush()
    assert retry.ok is True
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_flush_noop_cases(fake_store, columns):
    unbound = WriteBackQueue(fake_store)
    unbound.enqueue(PendingMutation(2, STATS))
    assert await unbound.flush() is None

    empty = WriteBackQueue(fake_store)
    empty.bind("sheet-id", "Card Progress", columns)
    assert await empty.flush() is None
    assert fake_store.writes == []


@pytest.mark.asyncio
async def test_concurrent_flush_is_a_noop_and_keeps_newer_writes(queue, fake_store):
    fake_store.write_gate = asyncio.Event()
    queue.enqueue(PendingMutation(2, STATS))
    queue.enqueue(PendingMutation(3, STATS))

    first = asyncio.create_task(queue.flush())
    while not queue.in_flight:
        await asyncio.sleep(0)

    assert await queue.flush() is None

    newer = PendingMutation(3, ItemStats(seen_count=4))
    queue.enqueue(newer)
    fake_store.write_gate.set()
    result = await first

    assert result.ok is True
    assert result.rows == 2
    assert len(queue) == 1
    assert queue.get(3) is newer


def test_clear(queue):
    queue.enqueue(PendingMutation(2, STATS))
    queue.clear()
    assert len(queue) == 0
