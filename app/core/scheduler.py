"""
In-process wall-clock scheduler for the background jobs.
Each job gets its own loop task; every tick runs in a separate task guarded by a
per-job lock, so a slow run is never overlapped by the next tick of the same job.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable, Protocol
from zoneinfo import ZoneInfo

from app.core.clock import Clock, system_clock
from app.core.exceptions import JobAlreadyRunning, UnknownJob

logger = logging.getLogger(__name__)


class Trigger(Protocol):
    def next_fire_time(self, now: datetime) -> datetime:
        ...


class IntervalTrigger:
    """Fire every `seconds` (minimum 1 second)."""

    def __init__(self, seconds: float):
        self.seconds = max(1.0, float(seconds))

    def next_fire_time(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.seconds)

    def __repr__(self) -> str:
        return f"IntervalTrigger(seconds={self.seconds})"


class DailyTrigger:
    """Fire once a day at hour:minute local time in `tz`. `now` and the result are naive UTC."""

    def __init__(self, hour: int, minute: int = 0, tz: str = "UTC"):
        self.hour = hour
        self.minute = minute
        self.tz = ZoneInfo(tz)

    def next_fire_time(self, now: datetime) -> datetime:
        local_now = now.replace(tzinfo=timezone.utc).astimezone(self.tz)
        at = time(self.hour, self.minute)
        candidate = datetime.combine(local_now.date(), at, tzinfo=self.tz)
        if candidate <= local_now:
            candidate = datetime.combine(local_now.date() + timedelta(days=1), at, tzinfo=self.tz)
        return candidate.astimezone(timezone.utc).replace(tzinfo=None)

    def __repr__(self) -> str:
        return f"DailyTrigger({self.hour:02d}:{self.minute:02d} {self.tz.key})"


JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    name: str
    func: JobFunc
    trigger: Trigger
    run_on_start: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None

    @property
    def busy(self) -> bool:
        return self.lock.locked()


class Scheduler:
    def __init__(self, clock: Clock | None = None, startup_delay: float = 0.0):
        self.clock = clock or system_clock
        self.startup_delay = startup_delay
        self._jobs: dict[str, ScheduledJob] = {}
        self._loops: list[asyncio.Task] = []
        self._runs: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return bool(self._loops)

    @property
    def jobs(self) -> dict[str, ScheduledJob]:
        return dict(self._jobs)

    def add_job(self, name: str, func: JobFunc, trigger: Trigger, run_on_start: bool = False) -> ScheduledJob:
        if name in self._jobs:
            raise ValueError(f"Job {name} already registered")
        job = ScheduledJob(name=name, func=func, trigger=trigger, run_on_start=run_on_start)
        self._jobs[name] = job
        return job

    def start(self) -> None:
        """Start one loop task per job. Must be called from a running event loop."""
        if self.running:
            return
        for job in self._jobs.values():
            self._loops.append(asyncio.create_task(self._job_loop(job), name=f"scheduler:{job.name}"))
            logger.info("Scheduler: job %s started (%r)", job.name, job.trigger)

    async def stop(self) -> None:
        """Cancel the job loops and any in-flight runs, then wait for them to finish."""
        tasks = self._loops + list(self._runs)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()
        self._runs.clear()
        logger.info("Scheduler stopped")

    async def run_job(self, name: str) -> Any:
        """
        Run a job now under its run-lock and return its result.
        Raises UnknownJob, or JobAlreadyRunning if a run of the same job is in flight.
        """
        job = self._jobs.get(name)
        if job is None:
            raise UnknownJob(name)
        if job.lock.locked():
            raise JobAlreadyRunning(name)
        async with job.lock:
            job.last_started_at = self.clock.now()
            try:
                return await job.func()
            finally:
                job.last_finished_at = self.clock.now()

    async def _tick(self, job: ScheduledJob) -> None:
        try:
            await self.run_job(job.name)
        except JobAlreadyRunning:
            logger.warning("Scheduler: skipping %s tick, previous run still in progress", job.name)
        except Exception as e:
            logger.exception("Scheduler: job %s failed: %s", job.name, e)

    def _spawn(self, job: ScheduledJob) -> None:
        task = asyncio.create_task(self._tick(job), name=f"scheduler-run:{job.name}")
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    async def _job_loop(self, job: ScheduledJob) -> None:
        try:
            if self.startup_delay > 0:
                await self.clock.sleep(self.startup_delay)
            if job.run_on_start:
                self._spawn(job)
            while True:
                now = self.clock.now()
                fire_at = job.trigger.next_fire_time(now)
                await self.clock.sleep(max(0.0, (fire_at - now).total_seconds()))
                self._spawn(job)
        except asyncio.CancelledError:
            logger.info("Scheduler: job %s cancelled", job.name)
            raise
