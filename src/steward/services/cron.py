"""Cron expression validation and cancellable asyncio cron timers."""

import asyncio
import logging
from collections.abc import Callable, Iterator
from datetime import datetime

from croniter import CroniterBadDateError, croniter

logger = logging.getLogger(__name__)

CRON_FIELD_COUNT = 5


def validate_cron(expression: str) -> bool:
    """Return True if `expression` is a valid 5-field cron expression.

    Expressions that parse but never match a real date (e.g. Feb 30) are
    rejected as well.
    """
    if not isinstance(expression, str):
        return False
    if len(expression.split()) != CRON_FIELD_COUNT:
        return False
    try:
        if not croniter.is_valid(expression):
            return False
        croniter(expression, datetime.now().astimezone()).get_next(datetime)
    except (CroniterBadDateError, ValueError, KeyError):
        return False
    return True


def next_fire_time(expression: str, base: datetime | None = None) -> datetime:
    """Compute the next matching instant after `base` (process local time)."""
    start = base or datetime.now().astimezone()
    return croniter(expression, start).get_next(datetime)


class CronTimer:
    """Fires a zero-argument callback at every instant matching a cron expression.

    The callback runs synchronously on the event loop and is expected to hand
    real work off to its own task, so stopping a timer never cancels work that
    is already in flight.
    """

    def __init__(self, name: str, expression: str, callback: Callable[[], None]) -> None:
        if not validate_cron(expression):
            raise ValueError(f"Invalid cron expression: {expression!r}")
        self.name = name
        self.expression = expression
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """Start waiting for the first matching instant."""
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.create_task(self._run(), name=f"cron:{self.name}")

    def stop(self) -> None:
        """Stop the timer. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True
        # A callback stopping its own timer lets the loop exit on its own
        if (
            self._task is not None
            and not self._task.done()
            and self._task is not asyncio.current_task()
        ):
            self._task.cancel()

    async def _run(self) -> None:
        schedule = croniter(self.expression, datetime.now().astimezone())
        while not self._stopped:
            try:
                fire_at = schedule.get_next(datetime)
            except CroniterBadDateError as e:
                logger.error(f"Cron timer {self.name} has no next run for {self.expression!r}: {e}")
                self._stopped = True
                break
            delay = (fire_at - datetime.now().astimezone()).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
            if self._stopped:
                break
            try:
                self._callback()
            except Exception as e:
                logger.exception(f"Cron callback for {self.name} failed: {e}")


class TimerRegistry:
    """Process-wide map of task name to active cron timer.

    Owned by the scheduler; created and drained by the application. Timers
    that stopped on their own are dropped the next time the map is read.
    """

    def __init__(self) -> None:
        self._timers: dict[str, CronTimer] = {}

    def _prune(self) -> None:
        for name in [n for n, t in self._timers.items() if t.stopped]:
            logger.info(f"Dropping stopped timer: {name}")
            del self._timers[name]

    def __contains__(self, name: object) -> bool:
        self._prune()
        return name in self._timers

    def __len__(self) -> int:
        self._prune()
        return len(self._timers)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def get(self, name: str) -> CronTimer | None:
        self._prune()
        return self._timers.get(name)

    def names(self) -> list[str]:
        self._prune()
        return list(self._timers)

    def add(self, timer: CronTimer) -> None:
        """Register and start a timer, replacing any timer with the same name."""
        self.remove(timer.name)
        self._timers[timer.name] = timer
        timer.start()

    def remove(self, name: str) -> bool:
        """Stop and forget a timer. Returns False if none was registered."""
        timer = self._timers.pop(name, None)
        if timer is None:
            return False
        timer.stop()
        return True

    def stop_all(self) -> list[str]:
        """Stop every timer and clear the registry."""
        stopped = list(self._timers)
        for name in stopped:
            self.remove(name)
        return stopped
