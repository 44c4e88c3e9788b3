from sheetdrill.application.summary import card_hint, format_percent, most_missed, summarize
from sheetdrill.domain.models import Item, ItemStats, RoundState


def _item(front, wrong=0, pronunciation="", tags=()):
    return Item(
        item_id=front,
        front=front,
        back=front.upper(),
        pronunciation=pronunciation,
        tags=tuple(tags),
        stats=ItemStats(wrong_count=wrong),
    )


def test_summarize_counts():
    items = [_item("a", wrong=1), _item("b", wrong=3), _item("c")]
    state = RoundState(
        completed_ids={"a", "b"},
        session_answers=4,
        session_correct=3,
        session_wrong_cards=1,
        session_wrong_selections=1,
    )

    summary = summarize(state, items)

    assert summary.round_progress == "2 / 3"
    assert summary.accuracy_text == "75%"
    assert summary.tap_accuracy_text == "80%"
    assert summary.most_missed == "b (3)"
    assert summary.round_ended is False


def test_summarize_before_any_answer():
    summary = summarize(RoundState(), [_item("a")])
    assert summary.accuracy is None
    assert summary.accuracy_text == "0%"
    assert summary.tap_accuracy_text == "0%"
    assert summary.round_progress == "0 / 1"


def test_most_missed_without_misses():
    assert most_missed([]) == "-"
    assert most_missed([_item("a"), _item("b")]) == "-"


def test_format_percent_rounds():
    assert format_percent(2 / 3) == "67%"
    assert format_percent(1.0) == "100%"


def test_card_hint_prefers_pronunciation():
    item = _item("물", pronunciation="mul", tags=["food", "noun"])
    assert card_hint(item) == "mul"
    assert card_hint(item, show_pronunciation=False) == "food, noun"
    assert card_hint(_item("x")) == ""
