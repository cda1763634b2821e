"""
Recurring Scheduler - Timezone-Anchored Daily Jobs

Fires callbacks at a wall-clock time anchored to a named timezone,
independent of the host timezone.

Job lifecycle:
    IDLE --start--> ARMED(next_fire) --fire--> EXECUTING --> ARMED(next) --> ...
    any state --stop--> CANCELLED --start--> ARMED(first fire recomputed)

Timing rules:
    - First fire: today in the zone at the anchor time, or tomorrow when
      that instant has already passed ("11:00 Europe/Moscow" at 12:00 Moscow
      fires tomorrow 11:00; at 10:00 it fires today 11:00)
    - Later fires step by the period using wall-clock arithmetic in the
      zone, so a daily job stays at 11:00 local across DST changes
    - Fixed delay: the next fire is computed after the callback returns, as
      the first anchored slot strictly after "now". Slots missed by a slow
      callback are skipped, never batched
    - Nothing is persisted: after a restart the first fire is recomputed

Callbacks run on the scheduler's own asyncio task per job. They may be
plain functions or coroutine functions and should hand long work off
instead of blocking the event loop. An exception raised by a callback is
logged and the next fire proceeds as planned.

Usage:
    scheduler = RecurringScheduler()
    scheduler.schedule_daily("11:00:00", "Europe/Moscow", broadcaster.broadcast)
    await scheduler.start()
    ...
    await scheduler.stop()
"""

import asyncio
import inspect
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from core.errors import ConfigError
from core.logging import get_logger
from core.utils.time import combine_in_zone, current_utc_datetime, ensure_aware, parse_time_of_day, parse_zone


JobCallback = Callable[[], Union[Any, Awaitable[Any]]]


class ScheduleState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    EXECUTING = "executing"
    CANCELLED = "cancelled"


class ScheduleHandle:
    """
    One registered recurring job.

    Attributes:
        name: Job name used in logs and task names
        anchor_time: Wall-clock time of day the job is anchored to
        zone: Timezone the anchor time is interpreted in
        period: Distance between consecutive fires
        callback: Function invoked on every fire
        state: Current ScheduleState
        next_fire_at: Next planned fire (aware, in the job's zone) while armed
        fire_count: Number of completed fires
        last_error: Message of the last callback failure, if any
    """

    def __init__(
        self,
        name: str,
        anchor_time: time,
        zone: ZoneInfo,
        period: timedelta,
        callback: JobCallback
    ):
        if period <= timedelta(0):
            raise ConfigError(f"Schedule period must be positive, got {period}")

        self.name = name
        self.anchor_time = anchor_time
        self.zone = zone
        self.period = period
        self.callback = callback

        self.state = ScheduleState.IDLE
        self.next_fire_at: Optional[datetime] = None
        self.fire_count = 0
        self.last_error: Optional[str] = None

    def first_fire(self, now: datetime) -> datetime:
        """
        First fire instant for a job started at `now`.

        Example:
            >>> handle = ScheduleHandle("daily", time(11), ZoneInfo("Europe/Moscow"), timedelta(days=1), cb)
            >>> handle.first_fire(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))   # 12:00 Moscow
            datetime.datetime(2024, 3, 2, 11, 0, tzinfo=zoneinfo.ZoneInfo(key='Europe/Moscow'))
        """
        now_utc = ensure_aware(now).astimezone(timezone.utc)
        local_today = now_utc.astimezone(self.zone).date()

        candidate = combine_in_zone(local_today, self.anchor_time, self.zone)
        if candidate.astimezone(timezone.utc) < now_utc:
            candidate = combine_in_zone(local_today + timedelta(days=1), self.anchor_time, self.zone)
        return candidate

    def next_fire_after(self, previous_fire: datetime, now: datetime) -> datetime:
        """
        First anchored slot after both `previous_fire` and `now`.

        Adding a timedelta to an aware datetime keeps its tzinfo and moves
        the wall clock, so daily steps keep the local anchor time through
        DST transitions.
        """
        now_utc = ensure_aware(now).astimezone(timezone.utc)
        fire = previous_fire.astimezone(self.zone) + self.period
        while fire.astimezone(timezone.utc) <= now_utc:
            fire = fire + self.period
        return fire

    def describe(self) -> dict:
        return {
            "name": self.name,
            "anchor_time": self.anchor_time.isoformat(),
            "zone": self.zone.key,
            "period_seconds": self.period.total_seconds(),
            "state": self.state.value,
            "next_fire_at": self.next_fire_at.isoformat() if self.next_fire_at else None,
            "fire_count": self.fire_count,
            "last_error": self.last_error,
        }

    def __repr__(self) -> str:
        return (
            f"<ScheduleHandle name={self.name} at={self.anchor_time} {self.zone.key} "
            f"every={self.period} state={self.state.value}>"
        )


class RecurringScheduler:
    """
    Runs ScheduleHandles on dedicated asyncio tasks.

    Attributes:
        jobs: Registered schedule handles
        running: True between start() and stop()

    Example:
        >>> scheduler = RecurringScheduler()
        >>> handle = scheduler.schedule_daily("11:00:00", "Europe/Moscow", send_quotes)
        >>> await scheduler.start()
        >>> handle.next_fire_at
        datetime.datetime(2024, 3, 2, 11, 0, tzinfo=zoneinfo.ZoneInfo(key='Europe/Moscow'))
        >>> await scheduler.stop()

    Notes:
        - clock and sleep are injectable so tests can drive time
        - stop() lets a callback that is already executing finish, but no
          further fire happens afterwards
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = current_utc_datetime,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self._clock = clock
        self._sleep = sleep
        self._jobs: List[ScheduleHandle] = []
        self._tasks: Dict[ScheduleHandle, asyncio.Task] = {}
        self.running = False
        self.logger = get_logger(__name__)

    @property
    def jobs(self) -> List[ScheduleHandle]:
        return list(self._jobs)

    # ============================================
    # Registration
    # ============================================

    def schedule_daily(
        self,
        time_of_day: Union[str, time],
        zone_id: Union[str, ZoneInfo],
        callback: JobCallback,
        period: timedelta = timedelta(days=1),
        name: Optional[str] = None
    ) -> ScheduleHandle:
        """
        Register a job firing at `time_of_day` in `zone_id`, then every `period`.

        Args:
            time_of_day: datetime.time or "HH:MM[:SS]"
            zone_id: IANA zone name or ZoneInfo
            callback: Sync or async callable without arguments
            period: Distance between fires (1 day by default)
            name: Job name (defaults to "job-<n>")

        Returns:
            The job's ScheduleHandle

        Raises:
            ConfigError: Invalid time, unknown zone or non-positive period
        """
        anchor = parse_time_of_day(time_of_day) if isinstance(time_of_day, str) else time_of_day
        zone = parse_zone(zone_id) if isinstance(zone_id, str) else zone_id

        handle = ScheduleHandle(
            name=name or f"job-{len(self._jobs) + 1}",
            anchor_time=anchor,
            zone=zone,
            period=period,
            callback=callback,
        )
        self._jobs.append(handle)
        self.logger.info(f"Scheduled {handle.name}: {anchor.isoformat()} {zone.key} every {period}")

        if self.running:
            self._launch(handle)
        return handle

    # ============================================
    # Lifecycle
    # ============================================

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.logger.info(f"Starting scheduler with {len(self._jobs)} job(s)...")
        for handle in self._jobs:
            if handle.state in (ScheduleState.IDLE, ScheduleState.CANCELLED):
                self._launch(handle)

    async def stop(self) -> None:
        if not self.running:
            return
        self.logger.info("Stopping scheduler...")
        self.running = False

        for handle in self._jobs:
            was_executing = handle.state is ScheduleState.EXECUTING
            handle.state = ScheduleState.CANCELLED
            handle.next_fire_at = None
            task = self._tasks.get(handle)
            if task is not None and not was_executing:
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()
        self.logger.info("Scheduler stopped")

    def _launch(self, handle: ScheduleHandle) -> None:
        first = handle.first_fire(self._clock())
        handle.state = ScheduleState.ARMED
        handle.next_fire_at = first
        self._tasks[handle] = asyncio.create_task(self._run_job(handle, first), name=f"schedule_{handle.name}")
        self.logger.info(f"{handle.name} armed, first fire at {first.isoformat()}")

    # ============================================
    # Job Loop
    # ============================================

    async def _run_job(self, handle: ScheduleHandle, fire_at: datetime) -> None:
        while handle.state is not ScheduleState.CANCELLED:
            delay = (fire_at - self._clock()).total_seconds()
            if delay > 0:
                await self._sleep(delay)

            if handle.state is ScheduleState.CANCELLED:
                break

            handle.state = ScheduleState.EXECUTING
            await self._fire(handle)

            if handle.state is ScheduleState.CANCELLED:
                break

            fire_at = handle.next_fire_after(fire_at, self._clock())
            handle.state = ScheduleState.ARMED
            handle.next_fire_at = fire_at
            self.logger.debug(f"{handle.name} re-armed for {fire_at.isoformat()}")

    async def _fire(self, handle: ScheduleHandle) -> None:
        self.logger.info(f"Running scheduled job {handle.name}")
        try:
            result = handle.callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            handle.last_error = str(e)
            self.logger.error(f"Scheduled job {handle.name} failed: {e}", exc_info=True)
        else:
            handle.last_error = None
        finally:
            handle.fire_count += 1
