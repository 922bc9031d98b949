"""Recurring job scheduling against explicit next-fire times.

Each job owns a schedule that answers "when is the next run strictly after
``now``". ``JobScheduler.run_pending`` fires every job whose next-fire time has
passed and then advances it beyond ``now``, so a run that was missed while the
process was busy happens once, late, instead of being skipped.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Callable, List, Optional, Protocol
from zoneinfo import ZoneInfo

LOG = logging.getLogger("solarshift")


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)


@dataclass
class FixedClock:
    """Manually advanced clock for tests and replays."""
    current: datetime

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> datetime:
        self.current = self.current + delta
        return self.current


class Schedule(Protocol):
    def next_fire_after(self, now: datetime) -> datetime: ...


@dataclass(frozen=True)
class IntervalSchedule:
    """Fires every ``interval`` aligned to ``origin`` (default: the epoch, i.e. on the hour)."""
    interval: timedelta
    origin: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)

    def next_fire_after(self, now: datetime) -> datetime:
        if self.interval <= timedelta(0):
            raise ValueError("interval must be positive")
        elapsed = now - self.origin
        periods = elapsed // self.interval + 1
        return self.origin + periods * self.interval


@dataclass(frozen=True)
class DailySchedule:
    """Fires once a day at ``hour:minute`` wall-clock time in ``tz_name``."""
    hour: int
    minute: int = 0
    tz_name: str = "UTC"

    def next_fire_after(self, now: datetime) -> datetime:
        tz = ZoneInfo(self.tz_name)
        local = now.astimezone(tz)
        candidate = datetime.combine(local.date(), time(self.hour, self.minute), tzinfo=tz)
        if candidate <= local:
            candidate = datetime.combine(local.date() + timedelta(days=1), time(self.hour, self.minute), tzinfo=tz)
        return candidate.astimezone(timezone.utc)


@dataclass
class RecurringJob:
    name: str
    schedule: Schedule
    action: Callable[[], Any]
    next_fire: Optional[datetime] = None
    runs: int = 0
    last_result: Any = None

    def prime(self, now: datetime) -> None:
        if self.next_fire is None:
            self.next_fire = self.schedule.next_fire_after(now)

    def due(self, now: datetime) -> bool:
        return self.next_fire is not None and self.next_fire <= now


@dataclass
class JobScheduler:
    clock: Any = field(default_factory=SystemClock)
    jobs: List[RecurringJob] = field(default_factory=list)

    def add_job(
        self,
        name: str,
        schedule: Schedule,
        action: Callable[[], Any],
        run_immediately: bool = False,
    ) -> RecurringJob:
        job = RecurringJob(name=name, schedule=schedule, action=action)
        now = self.clock.now()
        job.next_fire = now if run_immediately else schedule.next_fire_after(now)
        self.jobs.append(job)
        LOG.info("Scheduled job %s; next run at %s", name, job.next_fire.isoformat())
        return job

    def next_fire_time(self) -> Optional[datetime]:
        times = [j.next_fire for j in self.jobs if j.next_fire is not None]
        return min(times) if times else None

    def run_pending(self, now: Optional[datetime] = None) -> List[str]:
        """Run every due job once, in registration order. Returns the names that ran.

        Jobs run one at a time. An exception from a job is logged and the job is
        still advanced to its next fire time.
        """
        now = now or self.clock.now()
        fired: List[str] = []
        for job in self.jobs:
            job.prime(now)
            if not job.due(now):
                continue
            LOG.info("Running job %s (due %s)", job.name, job.next_fire.isoformat())
            try:
                job.last_result = job.action()
            except Exception:
                LOG.exception("Job %s raised", job.name)
                job.last_result = None
            job.runs += 1
            job.next_fire = job.schedule.next_fire_after(now)
            fired.append(job.name)
        return fired

    def run(self, stop_event: threading.Event, max_wait_seconds: float = 60.0) -> None:
        """Block running due jobs until ``stop_event`` is set.

        Waits on the event rather than sleeping so a stop request is honoured
        between jobs without waiting for the next fire time.
        """
        while not stop_event.is_set():
            self.run_pending()
            nxt = self.next_fire_time()
            if nxt is None:
                delay = max_wait_seconds
            else:
                delay = (nxt - self.clock.now()).total_seconds()
                delay = min(max_wait_seconds, max(0.0, delay))
            stop_event.wait(delay)
        LOG.info("Scheduler stopped")
