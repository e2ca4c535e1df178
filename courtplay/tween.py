"""Per-token coordinate tweens and the join that waits for all of them."""

import asyncio
from typing import Callable, Iterable, Optional

from .models import Coordinate

# apply(player_id, x, y) -> False once the token is gone or the tween is stale
FrameApplier = Callable[[str, float, float], bool]
Easing = Callable[[float], float]


def linear(t: float) -> float:
    return t


def ease_in_out(t: float) -> float:
    """Cubic ease-in-out, close to the CSS ``ease`` transition curve."""
    if t < 0.5:
        return 4 * t * t * t
    return 1 - (-2 * t + 2) ** 3 / 2


class Tween:
    """Interpolates one token from ``start`` to ``end`` over a fixed duration.

    The tween always finishes within its duration (plus at most one frame),
    even if the token disappears mid-flight: the applier reports that and the
    tween stops early.
    """

    def __init__(
        self,
        player_id: str,
        start: Coordinate,
        end: Coordinate,
        duration: float,
        apply: FrameApplier,
        frame_interval: float = 1 / 60,
        easing: Easing = ease_in_out,
    ):
        self.player_id = player_id
        self.start = start
        self.end = end
        self.duration = duration
        self.apply = apply
        self.frame_interval = frame_interval
        self.easing = easing

    @property
    def is_noop(self) -> bool:
        return self.start == self.end

    def position_at(self, t: float) -> tuple[float, float]:
        if t >= 1.0:
            return self.end.x, self.end.y
        k = self.easing(max(0.0, t))
        return (
            self.start.x + (self.end.x - self.start.x) * k,
            self.start.y + (self.end.y - self.start.y) * k,
        )

    async def run(self) -> bool:
        """Drive the tween to completion. Returns False if it was cut short."""
        if self.is_noop or self.duration <= 0:
            x, y = self.position_at(1.0)
            return self.apply(self.player_id, x, y)

        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            t = min(1.0, (loop.time() - started) / self.duration)
            x, y = self.position_at(t)
            if not self.apply(self.player_id, x, y):
                return False
            if t >= 1.0:
                return True
            remaining = self.duration - (loop.time() - started)
            await asyncio.sleep(max(0.0, min(self.frame_interval, remaining)))


class TweenJoin:
    """Runs a group of tweens concurrently; complete when every tween is."""

    def __init__(self, tweens: Iterable[Tween]):
        self.tweens = list(tweens)
        self._tasks: list[asyncio.Task] = []
        self._gathered: Optional[asyncio.Future] = None
        self._cancelled = False

    def start(self) -> None:
        if self._gathered is not None:
            return
        self._tasks = [asyncio.ensure_future(tween.run()) for tween in self.tweens]
        self._gathered = asyncio.gather(*self._tasks)

    @property
    def done(self) -> bool:
        return self._gathered is not None and self._gathered.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def wait(self) -> bool:
        """
        Wait for every tween to finish.

        Returns:
            True if all tweens ran to completion, False if the join was
            cancelled or any tween was cut short
        """
        self.start()
        try:
            results = await self._gathered
        except asyncio.CancelledError:
            if self._cancelled:
                return False
            raise
        return all(results)

    def cancel(self) -> None:
        """Stop every in-flight tween; waiters see ``wait()`` return False."""
        self._cancelled = True
        for task in self._tasks:
            task.cancel()
