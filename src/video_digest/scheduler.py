"""
Cron scheduling for the daily digest.

Binds a zero-argument run coroutine to a cron expression evaluated in a
named timezone, using APScheduler's asyncio scheduler. The expression and
timezone are validated before anything is registered, so a bad schedule
stops the process at startup instead of failing silently later.

A failed scheduled run is only logged; the scheduler keeps waiting for the
next firing. `run_now()` bypasses the schedule and returns the result.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .errors import ConfigError, ErrorCode
from .logging import get_logger
from .models import ScheduleConfig, StageResult

logger = get_logger("scheduler")

JOB_ID = "daily-digest"
MISFIRE_GRACE_SECONDS = 3600

# Standard cron numbering: 0 and 7 are Sunday
CRON_DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def to_day_names(day_of_week: str) -> str:
    """
    Rewrite numeric cron day-of-week values as day names.

    APScheduler counts days from Monday = 0, standard cron from Sunday = 0,
    so "1-5" must become "mon,tue,wed,thu,fri" and "*/2" must become
    "sun,tue,thu,sat". A bare "*" and named days are left untouched.

    Raises:
        ValueError: On a day number outside 0-7 or a bad step
    """
    parts = []
    for part in day_of_week.split(","):
        base, slash, step = part.partition("/")
        if base == "*" and not slash:
            parts.append(part)
            continue
        if base != "*" and not base[:1].isdigit():
            parts.append(part)
            continue

        if base == "*":
            start, end = 0, 6
        else:
            first, dash, last = base.partition("-")
            start = int(first)
            # "n/m" runs from n to the end of the week
            end = int(last) if dash else (max(start, 6) if slash else start)

        if not 0 <= start <= end <= 7:
            raise ValueError(f"day of week out of range: {part}")
        increment = int(step) if slash else 1
        if increment < 1:
            raise ValueError(f"invalid day of week step: {part}")

        parts.extend(CRON_DAY_NAMES[day] for day in range(start, end + 1, increment))

    return ",".join(dict.fromkeys(parts))


def build_trigger(schedule: ScheduleConfig) -> CronTrigger:
    """
    Validate the schedule and build its cron trigger.

    Raises:
        ConfigError: SCHEDULE_INVALID_TIMEZONE or SCHEDULE_INVALID_CRON
    """
    try:
        tz = ZoneInfo(schedule.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(
            ErrorCode.SCHEDULE_INVALID_TIMEZONE,
            f"Unknown timezone: \"{schedule.timezone}\""
        )

    try:
        fields = schedule.cron_expression.split()
        if len(fields) != 5:
            raise ValueError(f"expected 5 fields, got {len(fields)}")
        fields[4] = to_day_names(fields[4])
        return CronTrigger.from_crontab(" ".join(fields), timezone=tz)
    except ValueError as e:
        raise ConfigError(
            ErrorCode.SCHEDULE_INVALID_CRON,
            f"Invalid cron expression \"{schedule.cron_expression}\": {e}"
        )


class ScheduleHandle:
    """Running schedule returned by DigestScheduler.start()."""

    def __init__(self, scheduler: AsyncIOScheduler, schedule: ScheduleConfig):
        self._scheduler = scheduler
        self.schedule = schedule

    @property
    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")


class DigestScheduler:
    """Fires the digest run on a cron schedule or on demand."""

    def __init__(self, run: Callable[[], Awaitable[StageResult]]):
        """
        Args:
            run: Zero-argument coroutine function executing one digest
        """
        self._run = run
        self._handle: Optional[ScheduleHandle] = None

    @property
    def handle(self) -> Optional[ScheduleHandle]:
        return self._handle

    def start(self, schedule: ScheduleConfig) -> ScheduleHandle:
        """
        Validate `schedule` and start firing runs.

        Must be called from inside a running asyncio event loop.

        Raises:
            ConfigError: If the cron expression or timezone is invalid
        """
        trigger = build_trigger(schedule)

        logger.info("Schedule: \"%s\" (timezone: %s)", schedule.cron_expression, schedule.timezone)

        scheduler = AsyncIOScheduler(timezone=trigger.timezone)
        scheduler.add_job(
            self._fire,
            trigger=trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
        )
        scheduler.start()

        self._handle = ScheduleHandle(scheduler, schedule)
        logger.info("Scheduler started, next run at %s", self._handle.next_run_time)
        return self._handle

    async def run_now(self) -> StageResult:
        """Run one digest immediately and return its result."""
        logger.info("Immediate run requested")
        return await self._run()

    def shutdown(self) -> None:
        if self._handle is not None:
            self._handle.shutdown()
            self._handle = None

    async def _fire(self) -> None:
        logger.info("Scheduled run triggered")
        result = await self._run()
        if result.success:
            logger.info("Scheduled run finished: \"%s\"", result.summary_title)
        else:
            logger.error("Scheduled run failed: %s", result.error_message)
        if self._handle is not None:
            logger.info("Next run at %s", self._handle.next_run_time)
