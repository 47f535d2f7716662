"""Time-of-day job scheduler."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

from croniter import croniter

from oprelay.utils.logging import get_logger

log = get_logger(__name__)

Action = Callable[[], Awaitable[Any]]

_SEPARATOR_RE = re.compile(r"[,;\s]+")
_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{1,2}))?$")


@dataclass(frozen=True)
class ScheduledTask:
    name: str
    hour: int
    minute: int
    action: Action

    @property
    def label(self) -> str:
        return f"{self.name}@{self.hour:02d}:{self.minute:02d}"


def parse_times(raw: str, family: str = "schedule") -> list[tuple[int, int]]:
    """Parse ``"09:00, 14:30"`` into ``[(9, 0), (14, 30)]``.

    Bad entries are logged and dropped without affecting the others.
    """
    times: list[tuple[int, int]] = []
    for entry in _SEPARATOR_RE.split(raw or ""):
        if not entry:
            continue
        match = _TIME_RE.match(entry)
        if match is None:
            log.warning("invalid_schedule_entry", family=family, entry=entry)
            continue
        hour, minute = int(match.group(1)), int(match.group(2) or 0)
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            log.warning("invalid_schedule_entry", family=family, entry=entry)
            continue
        times.append((hour, minute))
    return times


def next_fire(hour: int, minute: int, now: datetime) -> datetime:
    """Next local occurrence of hour:minute strictly after *now*."""
    return croniter(f"{minute} {hour} * * *", now).get_next(datetime)


class Scheduler:
    """Runs each task once a day at its time of day.

    Each task owns one asyncio loop: sleep until the next occurrence, run the
    action, recompute. The next occurrence is computed after the action
    finishes, so a slow job never shifts later runs.
    """

    def __init__(
        self,
        now: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._now = now
        self._sleep = sleep
        self._entries: list[ScheduledTask] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def entries(self) -> list[ScheduledTask]:
        return list(self._entries)

    def add(self, task: ScheduledTask) -> None:
        self._entries.append(task)
        if self._running:
            self._spawn(task)

    def add_daily(self, name: str, times: str, action: Action) -> int:
        """Register *action* at every valid time in *times*; returns the count."""
        parsed = parse_times(times, family=name)
        if not parsed:
            log.info("schedule_disabled", job=name)
            return 0
        for hour, minute in parsed:
            self.add(ScheduledTask(name=name, hour=hour, minute=minute, action=action))
        return len(parsed)

    async def start(self) -> None:
        self._running = True
        for task in self._entries:
            self._spawn(task)
        log.info("scheduler_started", jobs=len(self._entries))

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    def _spawn(self, task: ScheduledTask) -> None:
        self._tasks.append(asyncio.create_task(self._run(task), name=task.label))

    async def _run(self, task: ScheduledTask) -> None:
        while self._running:
            now = self._now()
            fire_at = next_fire(task.hour, task.minute, now)
            delay = (fire_at - now).total_seconds()
            log.info("job_scheduled", job=task.label, in_seconds=round(delay))
            await self._sleep(delay)
            try:
                await task.action()
                log.info("job_finished", job=task.label)
            except Exception:
                log.exception("job_failed", job=task.label)
