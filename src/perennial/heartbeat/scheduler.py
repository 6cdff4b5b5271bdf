"""Named-job scheduler driving the heartbeat monitors.

A schedule is either a five-field cron expression (``"*/2 * * * *"``) or an
interval: ``"90s"``, ``"2m"``, ``"1h30m"``, ``"1d"`` or a bare number of
seconds. Each started job runs as an asyncio task that sleeps until the next
run and then fires a tick. A tick that comes due while the previous
invocation of the same job is still running is skipped.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from croniter import croniter

from perennial.lib.errors import SchedulerError
from perennial.lib.logging_config import get_logger
from perennial.models.config import INTERVAL_PATTERN, is_cron_expression

logger = get_logger(__name__)

JobFn = Callable[[], Awaitable[None]]

UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_COMPONENT = re.compile(r"(\d+)([smhd])")


def parse_interval(expression: str) -> float:
    """Convert an interval expression to seconds.

    Raises:
        SchedulerError: If the expression is malformed or not positive
    """
    text = expression.strip()
    if not INTERVAL_PATTERN.match(text):
        raise SchedulerError(f"Invalid schedule expression: {expression!r}")

    if text[-1].isalpha():
        seconds = float(
            sum(int(n) * UNIT_SECONDS[unit] for n, unit in _COMPONENT.findall(text))
        )
    else:
        seconds = float(text)

    if seconds <= 0:
        raise SchedulerError(f"Schedule interval must be positive: {expression!r}")
    return seconds


@dataclass(frozen=True)
class Schedule:
    """A parsed schedule.

    Attributes:
        expression: The schedule as written
        interval: Seconds between runs, or None for a cron schedule
    """

    expression: str
    interval: float | None = None

    @property
    def is_cron(self) -> bool:
        return self.interval is None

    def next_after(self, moment: datetime) -> datetime:
        """Return the first run time strictly after ``moment``."""
        if self.interval is not None:
            return moment + timedelta(seconds=self.interval)
        return croniter(self.expression, moment).get_next(datetime)


def parse_schedule(expression: str) -> Schedule:
    """Parse a cron expression or an interval.

    Raises:
        SchedulerError: If the expression is neither
    """
    text = expression.strip()
    if is_cron_expression(text):
        return Schedule(expression=text)
    return Schedule(expression=text, interval=parse_interval(text))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RegisteredJob:
    """A job known to the scheduler."""

    name: str
    fn: JobFn
    schedule: Schedule
    last_run: datetime | None = None
    next_run: datetime | None = None
    task: asyncio.Task[None] | None = None
    running: int = 0
    skipped: int = 0

    @property
    def interval(self) -> float | None:
        return self.schedule.interval

    @property
    def in_flight(self) -> bool:
        return self.running > 0

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


@dataclass(frozen=True)
class JobStatus:
    name: str
    active: bool
    last_run: datetime | None
    next_run: datetime | None
    in_flight: bool = False


@dataclass(frozen=True)
class SchedulerStatus:
    running: bool
    jobs: list[JobStatus] = field(default_factory=list)


class HeartbeatScheduler:
    """Runs registered async jobs on cron or interval schedules.

    A failing job is logged and never stops the scheduler or other jobs.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._jobs: dict[str, RegisteredJob] = {}
        self._ticks: set[asyncio.Task[None]] = set()
        self._clock = clock
        self._started = False

    @property
    def jobs(self) -> list[str]:
        return list(self._jobs)

    @property
    def running(self) -> bool:
        return self._started

    def register(self, name: str, fn: JobFn, schedule: str) -> RegisteredJob:
        """Register a named job.

        Jobs registered while the scheduler runs are started immediately.

        Raises:
            SchedulerError: If the name is taken or the schedule is invalid
        """
        if name in self._jobs:
            raise SchedulerError(f"Job '{name}' is already registered")

        job = RegisteredJob(name=name, fn=fn, schedule=parse_schedule(schedule))
        self._jobs[name] = job
        logger.debug(f"Registered job '{name}' on schedule {job.schedule.expression}")
        if self._started:
            self._start_job(job)
        return job

    def start(self) -> None:
        """Start a timer task for every registered job.

        Must be called from within a running event loop. Calling it again
        while running is a no-op.
        """
        if self._started:
            return
        for job in self._jobs.values():
            self._start_job(job)
        self._started = True
        logger.info(f"Heartbeat started with {len(self._jobs)} job(s)")

    def _start_job(self, job: RegisteredJob) -> None:
        job.next_run = job.schedule.next_after(self._clock())
        job.task = asyncio.create_task(self._timer(job), name=f"heartbeat:{job.name}")

    async def _timer(self, job: RegisteredJob) -> None:
        while True:
            delay = (job.next_run - self._clock()).total_seconds() if job.next_run else 0
            await asyncio.sleep(max(delay, 0))
            job.next_run = job.schedule.next_after(self._clock())

            if job.in_flight:
                job.skipped += 1
                logger.warning(
                    f"Skipping tick of job '{job.name}': previous run still in progress"
                )
                continue

            tick = asyncio.create_task(self._tick(job), name=f"heartbeat-tick:{job.name}")
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    async def _tick(self, job: RegisteredJob) -> None:
        job.running += 1
        try:
            await job.fn()
        except Exception:
            logger.exception(f"Heartbeat job '{job.name}' failed")
        finally:
            job.running -= 1
            job.last_run = self._clock()

    async def stop(self) -> None:
        """Cancel every timer and wait for in-flight runs to finish.

        Jobs stay registered and the scheduler can be started again.
        """
        timers = [job.task for job in self._jobs.values() if job.task is not None]
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
        if self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)

        for job in self._jobs.values():
            job.task = None
            job.next_run = None
        self._started = False
        logger.info("Heartbeat stopped")

    async def run_now(self, name: str) -> None:
        """Run one job immediately, outside its schedule.

        Raises:
            SchedulerError: If the job is not registered
            Exception: Whatever the job itself raises
        """
        job = self._jobs.get(name)
        if job is None:
            raise SchedulerError(f"Job '{name}' is not registered")

        job.running += 1
        try:
            await job.fn()
        finally:
            job.running -= 1
            job.last_run = self._clock()

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self._started,
            jobs=[
                JobStatus(
                    name=job.name,
                    active=job.active,
                    last_run=job.last_run,
                    next_run=job.next_run if job.active else None,
                    in_flight=job.in_flight,
                )
                for job in self._jobs.values()
            ],
        )
