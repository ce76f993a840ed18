"""
APScheduler-based poller for prayer slot reminders.

An interval job (reminder_tick) scans every active slot on each tick and
hands each one to the evaluator. A second interval job sends due custom
reminders, and a cron job broadcasts the daily devotional. There are no
per-slot timers: all state that matters lives in delivery_records, so jobs
are kept in memory and re-added on startup.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

import sentry_sdk
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.config import (
    check_timeout_budget,
    get_custom_reminder_interval_seconds,
    get_devotional_hour,
    get_start_notifications_enabled,
    get_tick_interval_seconds,
    get_trigger_tolerance_seconds,
    get_worker_pool_size,
)
from core.database import get_connection
from core.queries.preferences import get_preferences
from core.queries.slots import list_active_slots
from core.timezone import get_timezone

from .evaluator import EvaluationResult, process_slot, process_slot_start
from .types import ReminderPreference, Slot

logger = logging.getLogger(__name__)


_scheduler: AsyncIOScheduler | None = None

# Serializes ticks; a tick that finds it held is skipped
_run_lock = asyncio.Lock()

_last_report: "TickReport | None" = None

REMINDER_TICK_JOB_ID = "reminder_tick"
DAILY_DEVOTIONAL_JOB_ID = "daily_devotional"
CUSTOM_REMINDERS_JOB_ID = "custom_reminders"


@dataclass
class TickReport:
    """Summary of one poller pass."""

    started_at: datetime
    finished_at: datetime | None = None
    skipped: bool = False
    slots: int = 0
    actions: dict[str, int] = field(default_factory=dict)
    start_actions: dict[str, int] = field(default_factory=dict)
    errors: int = 0


# =============================================================================
# Scheduler initialization and shutdown
# =============================================================================


def init_scheduler() -> AsyncIOScheduler:
    """
    Initialize and start the APScheduler.

    Call this during app startup (in FastAPI lifespan).
    """
    global _scheduler

    if _scheduler is not None:
        return _scheduler

    for warning in check_timeout_budget():
        logger.warning(warning)

    _scheduler = AsyncIOScheduler(
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 30,
        },
        timezone=get_timezone(None),
    )

    tick_seconds = get_tick_interval_seconds()
    _scheduler.add_job(
        _scheduled_tick,
        trigger="interval",
        seconds=tick_seconds,
        id=REMINDER_TICK_JOB_ID,
        replace_existing=True,
        next_run_time=datetime.now(timezone.utc),
    )

    devotional_hour = get_devotional_hour()
    if devotional_hour is not None:
        _scheduler.add_job(
            _scheduled_devotional,
            trigger="cron",
            hour=devotional_hour,
            minute=0,
            id=DAILY_DEVOTIONAL_JOB_ID,
            replace_existing=True,
        )

    _scheduler.add_job(
        _scheduled_custom_reminders,
        trigger="interval",
        seconds=get_custom_reminder_interval_seconds(),
        id=CUSTOM_REMINDERS_JOB_ID,
        replace_existing=True,
    )

    _scheduler.start()
    logger.info(
        f"Reminder scheduler started (tick every {tick_seconds:g}s, "
        f"devotional at {devotional_hour if devotional_hour is not None else 'off'})"
    )
    return _scheduler


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler gracefully.

    Call this during app shutdown.
    """
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Reminder scheduler stopped")


def get_scheduler_status() -> dict:
    """Running state, next tick time and the last tick's report, for /health."""
    next_tick = None
    if _scheduler is not None:
        job = _scheduler.get_job(REMINDER_TICK_JOB_ID)
        if job and job.next_run_time:
            next_tick = job.next_run_time.isoformat()

    last_tick = None
    if _last_report is not None:
        last_tick = asdict(_last_report)
        for key in ("started_at", "finished_at"):
            if last_tick[key] is not None:
                last_tick[key] = last_tick[key].isoformat()

    return {
        "running": bool(_scheduler and _scheduler.running),
        "next_tick": next_tick,
        "last_tick": last_tick,
    }


# =============================================================================
# Tick
# =============================================================================


async def _load_work() -> list[tuple[Slot, ReminderPreference]]:
    async with get_connection() as conn:
        slots = await list_active_slots(conn)
        preferences = await get_preferences(conn, [s.owner_id for s in slots])
    return [(slot, preferences[slot.owner_id]) for slot in slots]


async def _evaluate(
    evaluator,
    slot: Slot,
    preference: ReminderPreference,
    now: datetime,
    tolerance_seconds: float,
    semaphore: asyncio.Semaphore,
) -> EvaluationResult | None:
    """Run one evaluator for one slot; errors are logged and reported, never raised."""
    async with semaphore:
        try:
            return await evaluator(slot, preference, now, tolerance_seconds)
        except Exception as e:
            logger.error(f"Reminder evaluation failed for slot {slot.slot_id}: {e}")
            sentry_sdk.capture_exception(e)
            return None


async def run_tick(now: datetime | None = None) -> TickReport:
    """
    Run one pass over all active slots.

    Each slot gets its offset reminder and, when enabled, its slot-start notice.

    Args:
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        TickReport; skipped=True when another tick was still running

    Raises:
        Exception: If the slot or preference registries cannot be read
    """
    global _last_report

    now = now or datetime.now(timezone.utc)
    report = TickReport(started_at=now)

    if _run_lock.locked():
        logger.warning("Previous reminder tick still running, skipping this one")
        report.skipped = True
        report.finished_at = datetime.now(timezone.utc)
        return report

    async with _run_lock:
        work = await _load_work()
        report.slots = len(work)

        semaphore = asyncio.Semaphore(get_worker_pool_size())
        tolerance = get_trigger_tolerance_seconds()
        start_work = work if get_start_notifications_enabled() else []
        results, start_results = await asyncio.gather(
            asyncio.gather(
                *(
                    _evaluate(process_slot, slot, preference, now, tolerance, semaphore)
                    for slot, preference in work
                )
            ),
            asyncio.gather(
                *(
                    _evaluate(process_slot_start, slot, preference, now, tolerance, semaphore)
                    for slot, preference in start_work
                )
            ),
        )

        actions = Counter(r.action.value for r in results if r is not None)
        report.actions = dict(actions)
        report.start_actions = dict(Counter(r.action.value for r in start_results if r is not None))
        report.errors = sum(1 for r in [*results, *start_results] if r is None)
        report.finished_at = datetime.now(timezone.utc)

    _last_report = report
    if actions.get("sent") or report.start_actions.get("sent") or report.errors:
        logger.info(
            f"Reminder tick: {report.slots} slots, {dict(actions)}, "
            f"starts {report.start_actions}, {report.errors} errors"
        )
    return report


async def _scheduled_tick() -> None:
    """Interval job entry point. Called by APScheduler."""
    try:
        await run_tick()
    except Exception as e:
        logger.error(f"Reminder tick failed: {e}")
        sentry_sdk.capture_exception(e)


async def _scheduled_devotional() -> None:
    """Daily devotional job entry point. Called by APScheduler."""
    from .broadcast import broadcast_daily_devotional

    try:
        await broadcast_daily_devotional()
    except Exception as e:
        logger.error(f"Daily devotional broadcast failed: {e}")
        sentry_sdk.capture_exception(e)


async def _scheduled_custom_reminders() -> None:
    """Custom reminder job entry point. Called by APScheduler."""
    from .custom_reminders import process_custom_reminders

    try:
        await process_custom_reminders()
    except Exception as e:
        logger.error(f"Custom reminder run failed: {e}")
        sentry_sdk.capture_exception(e)
