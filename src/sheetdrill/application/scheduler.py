"""
Scheduler: chooses the next item and builds its answer options.

Selection is importance-weighted by inverse mastery, not a uniform shuffle.
The random source is injectable so tests can seed it.
"""

import random
from collections.abc import Collection, Sequence

from sheetdrill.domain.constants import WEIGHT_CEILING, WEIGHT_FLOOR
from sheetdrill.domain.models import Direction, Item, StudyMode

from .mastery import mastery_to_choice_count


def item_weight(item: Item) -> float:
    """max(0.05, 1.15 - mastery): weak items come up more, mastered ones never starve."""
    return max(WEIGHT_FLOOR, WEIGHT_CEILING - item.mastery)


def prompt_for(item: Item, direction: Direction) -> str:
    return item.front if direction == Direction.FRONT_TO_BACK else item.back


def answer_for(item: Item, direction: Direction) -> str:
    return item.back if direction == Direction.FRONT_TO_BACK else item.front


def prompt_explanation_for(item: Item, direction: Direction) -> str:
    if direction == Direction.FRONT_TO_BACK:
        return item.question_explanation
    return item.answer_explanation


def answer_explanation_for(item: Item, direction: Direction) -> str:
    if direction == Direction.FRONT_TO_BACK:
        return item.answer_explanation
    return item.question_explanation


class Scheduler:
    """
    Weighted next-item selection plus option-set construction.

    Stateless apart from the random source.
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def pick_next_item(
        self,
        items: Sequence[Item],
        completed_ids: Collection[str] = (),
        exclude_id: str | None = None,
    ) -> Item | None:
        """
        Choose the next item to study.

        Items not yet completed this round form the pool; once every item is
        completed the whole set is used again. The previous item is excluded
        when there is anything else to pick.
        """
        if not items:
            return None
        remaining = [item for item in items if item.item_id not in completed_ids]
        candidates = remaining if remaining else list(items)
        return self.pick_weighted(candidates, exclude_id)

    def pick_weighted(self, candidates: Sequence[Item], exclude_id: str | None = None) -> Item | None:
        pool = list(candidates)
        if len(pool) > 1 and exclude_id is not None:
            pool = [item for item in pool if item.item_id != exclude_id] or pool
        if not pool:
            return None

        weights = [item_weight(item) for item in pool]
        roll = self.rng.random() * sum(weights)
        for item, weight in zip(pool, weights):
            roll -= weight
            if roll <= 0:
                return item
        return pool[-1]

    def resolve_direction(self, mode: StudyMode) -> Direction:
        if mode == StudyMode.FRONT_ONLY:
            return Direction.FRONT_TO_BACK
        if mode == StudyMode.BACK_ONLY:
            return Direction.BACK_TO_FRONT
        return Direction.FRONT_TO_BACK if self.rng.random() < 0.5 else Direction.BACK_TO_FRONT

    def shuffled(self, values: Sequence) -> list:
        copy = list(values)
        self.rng.shuffle(copy)
        return copy

    def pick_distractors(
        self,
        target: Item,
        items: Sequence[Item],
        count: int,
        direction: Direction,
    ) -> list[Item]:
        """
        Pick up to ``count`` wrong options for ``target``.

        Items sharing a tag with the target are tried first, then any other
        item. Answers are unique after trimming and never equal the target's
        answer. Fewer than ``count`` come back when the deck is too small or
        too homogeneous.
        """
        if count <= 0:
            return []

        target_answer = answer_for(target, direction).strip()
        target_tags = set(target.tags)
        others = [
            item
            for item in items
            if item.item_id != target.item_id
            and answer_for(item, direction).strip() != target_answer
        ]
        same_tag = [item for item in others if target_tags.intersection(item.tags)]

        selected: list[Item] = []
        used_answers = {target_answer}
        for pool in (same_tag, others):
            for item in self.shuffled(pool):
                if len(selected) >= count:
                    return selected
                answer = answer_for(item, direction).strip()
                if answer in used_answers:
                    continue
                selected.append(item)
                used_answers.add(answer)
        return selected

    def choice_count(self, target: Item, items: Sequence[Item]) -> int:
        return min(len(items), mastery_to_choice_count(target.mastery))

    def build_options(self, target: Item, items: Sequence[Item], direction: Direction) -> list[str]:
        """Target answer plus distractor answers, shuffled once."""
        distractors = self.pick_distractors(
            target, items, self.choice_count(target, items) - 1, direction
        )
        options = [answer_for(target, direction)]
        options.extend(answer_for(item, direction) for item in distractors)
        return self.shuffled(options)
