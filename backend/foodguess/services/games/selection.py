"""Picks the next dish and image while keeping repeats rare.

Dishes are drawn uniformly from those the player has not seen in the current
era. When every dish has been seen the era resets. A couple of dishes from
recently finished games may be folded back into the pool so that a game does
not feel completely disconnected from the previous ones; the engine caps how
many of those can actually be picked per game.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .catalog import DishCard
from .sessions import SessionRecord

logger = logging.getLogger(__name__)

MAX_RECENT_REPEATS = 2


class NoContentAvailable(Exception):
    """The catalog has no dish with at least one image."""


@dataclass(frozen=True)
class Selection:
    dish: DishCard
    image_index: int
    recent_repeat: bool = False
    era_reset: bool = False

    @property
    def image(self) -> str:
        return self.dish.images[self.image_index]


def eligible_dishes(dishes: Iterable[DishCard]) -> List[DishCard]:
    return [d for d in dishes if d.has_images]


def least_used_image(dish: DishCard, record: SessionRecord) -> int:
    """First never-shown image, or the one shown longest ago once all were seen."""
    count = len(dish.images)
    history = [i for i in record.used_images_by_dish.get(dish.id, []) if 0 <= i < count]
    if not history:
        return 0
    seen = set(history)
    if len(seen) < count:
        for index in range(count):
            if index not in seen:
                return index
    return history[0]


def record_selection(record: SessionRecord, dish: DishCard, image_index: int,
                     now: Optional[float] = None) -> None:
    """Mark the dish used and move the image to the newest end of its history."""
    count = len(dish.images)
    history = [
        i for i in record.used_images_by_dish.get(dish.id, [])
        if i != image_index and 0 <= i < count
    ]
    history.append(image_index)
    if len(history) > count:
        history = history[-count:]
    record.used_images_by_dish[dish.id] = history
    record.used_dish_ids.add(dish.id)
    record.last_played_at = time.time() if now is None else now


class ContentSelector:
    def __init__(self, rng: Optional[random.Random] = None,
                 max_recent_repeats: int = MAX_RECENT_REPEATS):
        self.rng = rng or random.Random()
        self.max_recent_repeats = max_recent_repeats

    def select_next_dish(self, dishes: Sequence[DishCard], record: SessionRecord,
                         exclude_ids: Iterable[int] = (),
                         recent_repeats_used: int = 0) -> Selection:
        """Choose a dish and image and record the choice in ``record``.

        ``exclude_ids`` holds the dishes already played in the running game;
        they are only offered again when nothing else is left.
        """
        eligible = eligible_dishes(dishes)
        if not eligible:
            raise NoContentAvailable('catalog has no dishes with images')

        excluded = set(exclude_ids)
        available = [
            d for d in eligible
            if d.id not in record.used_dish_ids and d.id not in excluded
        ]
        era_reset = False
        if not available:
            era_reset = True
            eligible_ids = {d.id for d in eligible}
            # the running game's dishes stay marked in the new era
            record.used_dish_ids = excluded & eligible_ids
            available = [d for d in eligible if d.id not in excluded] or list(eligible)
            logger.info(
                f"[selection-reset] eligible={len(eligible)} carried={len(record.used_dish_ids)}"
            )

        folded = []
        if not era_reset and recent_repeats_used < self.max_recent_repeats:
            folded = self._recent_candidates(
                eligible, record, excluded, {d.id for d in available},
                self.max_recent_repeats - recent_repeats_used,
            )

        candidates = available + folded
        self.rng.shuffle(candidates)
        dish = candidates[0]
        image_index = least_used_image(dish, record)
        record_selection(record, dish, image_index)
        folded_ids = {d.id for d in folded}
        logger.debug(
            f"[selection] dish={dish.id} image={image_index} pool={len(candidates)} "
            f"recent_pool={len(folded)}"
        )
        return Selection(
            dish=dish,
            image_index=image_index,
            recent_repeat=dish.id in folded_ids,
            era_reset=era_reset,
        )

    def _recent_candidates(self, eligible: List[DishCard], record: SessionRecord,
                           excluded: set, available_ids: set, limit: int) -> List[DishCard]:
        by_id = {d.id: d for d in eligible}
        picked: List[DishCard] = []
        seen = set()
        for dish_id in reversed(record.recent_dish_ids):
            if len(picked) >= limit:
                break
            if dish_id in seen or dish_id in excluded or dish_id in available_ids:
                continue
            seen.add(dish_id)
            dish = by_id.get(dish_id)
            if dish is not None:
                picked.append(dish)
        return picked
