"""Cancelable auto-advance timer keyed by a generation counter."""

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class AdvanceTimer:
    """
    At most one scheduled advance at a time.

    Every schedule() and cancel() bumps the generation, so a callback that
    fires after it was superseded sees a stale generation and does nothing.
    """

    def __init__(self):
        self._generation = 0
        self._handle: asyncio.TimerHandle | None = None
        self._pending = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        return self._pending

    def schedule(self, delay: float, callback: Callable[[], object]) -> int:
        self.cancel()
        generation = self._generation
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(0.0, delay), self._fire, generation, callback)
        self._pending = True
        return generation

    def cancel(self) -> None:
        self._generation += 1
        self._pending = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, generation: int, callback: Callable[[], object]) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping stale advance (generation {generation} != {self._generation})")
            return
        self._handle = None
        self._pending = False
        callback()
