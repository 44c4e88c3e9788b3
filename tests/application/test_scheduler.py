import random
from collections import Counter
from unittest.mock import MagicMock

import pytest

from sheetdrill.application.scheduler import Scheduler, answer_for, item_weight, prompt_for
from sheetdrill.domain.models import Direction, Item, ItemStats, StudyMode


def _item(item_id, front=None, back=None, mastery=0.0, tags=()):
    return Item(
        item_id=item_id,
        front=front or f"front-{item_id}",
        back=back or f"back-{item_id}",
        tags=tuple(tags),
        stats=ItemStats(mastery=mastery),
    )


def _fixed_rng(value):
    rng = MagicMock(spec=random.Random)
    rng.random.return_value = value
    rng.shuffle.side_effect = lambda seq: None
    return rng


@pytest.fixture
def scheduler(rng):
    return Scheduler(rng)


def test_item_weight_bounds():
    assert item_weight(_item("a", mastery=0.0)) == pytest.approx(1.15)
    assert item_weight(_item("a", mastery=1.0)) == pytest.approx(0.15)
    assert item_weight(_item("a", mastery=1.15)) == pytest.approx(0.05)


def test_pick_next_item_empty(scheduler):
    assert scheduler.pick_next_item([]) is None


def test_pick_next_item_skips_completed(scheduler):
    items = [_item("a"), _item("b"), _item("c")]
    for _ in range(50):
        picked = scheduler.pick_next_item(items, completed_ids={"a", "c"})
        assert picked.item_id == "b"


def test_pick_next_item_reuses_whole_set_after_round(scheduler):
    items = [_item("a"), _item("b")]
    picked = {scheduler.pick_next_item(items, {"a", "b"}).item_id for _ in range(50)}
    assert picked == {"a", "b"}


def test_previous_item_is_excluded_when_possible(scheduler):
    items = [_item("a"), _item("b")]
    for _ in range(50):
        assert scheduler.pick_next_item(items, exclude_id="a").item_id == "b"


def test_single_item_is_picked_even_if_excluded(scheduler):
    only = _item("a")
    assert scheduler.pick_next_item([only], exclude_id="a") is only


def test_weighted_pick_walks_cumulative_weights():
    items = [_item("weak", mastery=0.0), _item("strong", mastery=1.0)]
    # total 1.30: rolls below 1.15 land on the first item
    assert Scheduler(_fixed_rng(0.0)).pick_weighted(items).item_id == "weak"
    assert Scheduler(_fixed_rng(0.88)).pick_weighted(items).item_id == "weak"
    assert Scheduler(_fixed_rng(0.89)).pick_weighted(items).item_id == "strong"
    assert Scheduler(_fixed_rng(0.9999)).pick_weighted(items).item_id == "strong"


def test_weak_items_come_up_more_often(scheduler):
    items = [_item("weak", mastery=0.0), _item("strong", mastery=1.0)]
    counts = Counter(scheduler.pick_next_item(items).item_id for _ in range(2000))
    # Expected share of the weak item is 1.15 / 1.30
    assert counts["weak"] / 2000 > 0.8
    assert counts["strong"] > 0


def test_resolve_direction(scheduler):
    assert scheduler.resolve_direction(StudyMode.FRONT_ONLY) == Direction.FRONT_TO_BACK
    assert scheduler.resolve_direction(StudyMode.BACK_ONLY) == Direction.BACK_TO_FRONT
    seen = {scheduler.resolve_direction(StudyMode.RANDOM) for _ in range(50)}
    assert seen == {Direction.FRONT_TO_BACK, Direction.BACK_TO_FRONT}


def test_prompt_and_answer_follow_direction():
    item = _item("a", front="물", back="Water")
    assert prompt_for(item, Direction.FRONT_TO_BACK) == "물"
    assert answer_for(item, Direction.FRONT_TO_BACK) == "Water"
    assert prompt_for(item, Direction.BACK_TO_FRONT) == "Water"
    assert answer_for(item, Direction.BACK_TO_FRONT) == "물"


def test_distractors_prefer_shared_tags(scheduler):
    target = _item("t", tags=["food"])
    same = _item("s", tags=["food", "noun"])
    others = [_item(f"o{i}", tags=["greeting"]) for i in range(5)]
    items = [target, same, *others]
    for _ in range(20):
        picked = scheduler.pick_distractors(target, items, 1, Direction.FRONT_TO_BACK)
        assert [item.item_id for item in picked] == ["s"]


def test_distractors_fall_back_to_other_items(scheduler):
    target = _item("t", tags=["food"])
    same = _item("s", tags=["food"])
    other = _item("o", tags=["greeting"])
    picked = scheduler.pick_distractors(target, [target, same, other], 3, Direction.FRONT_TO_BACK)
    assert {item.item_id for item in picked} == {"s", "o"}


def test_distractor_answers_are_unique_and_differ_from_target(scheduler):
    target = _item("t", back="Water")
    twin = _item("twin", back=" Water ")
    dup1 = _item("d1", back="Rice")
    dup2 = _item("d2", back="Rice ")
    picked = scheduler.pick_distractors(
        target, [target, twin, dup1, dup2], 3, Direction.FRONT_TO_BACK
    )
    assert len(picked) == 1
    assert picked[0].item_id in {"d1", "d2"}


def test_choice_count_is_capped_by_deck_size(scheduler):
    items = [_item(str(i), mastery=0.9) for i in range(3)]
    assert scheduler.choice_count(items[0], items) == 3
    big = [_item(str(i), mastery=0.5) for i in range(10)]
    assert scheduler.choice_count(big[0], big) == 4


def test_build_options(scheduler):
    items = [_item(str(i), mastery=0.9) for i in range(10)]
    target = items[4]
    options = scheduler.build_options(target, items, Direction.FRONT_TO_BACK)
    assert len(options) == 6
    assert len(set(options)) == 6
    assert target.back in options


def test_build_options_back_to_front(scheduler):
    items = [_item(str(i)) for i in range(5)]
    options = scheduler.build_options(items[0], items, Direction.BACK_TO_FRONT)
    assert len(options) == 2
    assert "front-0" in options
    assert all(option.startswith("front-") for option in options)


def test_seeded_schedulers_are_reproducible():
    items = [_item(str(i), mastery=i / 10) for i in range(8)]
    first = Scheduler(random.Random(99))
    second = Scheduler(random.Random(99))
    picks_a = [first.pick_next_item(items).item_id for _ in range(20)]
    picks_b = [second.pick_next_item(items).item_id for _ in range(20)]
    assert picks_a == picks_b
