import asyncio
import logging
from datetime import datetime, timezone

from app.core.config import settings
from app.memory.sweep import run_memory_sweep

log = logging.getLogger("engagement-scheduler")

INITIAL_DELAY_SECONDS = 60

_scheduler_task: asyncio.Task | None = None


async def _run_sweep_once():
    try:
        report = await run_memory_sweep()
        log.info(
            "[SCHEDULER] Memory sweep complete: users=%s deleted=%s failed=%s",
            report.users_scanned, report.memories_deleted, len(report.failed_users),
        )
        return report
    except Exception as e:
        log.exception("[SCHEDULER] Memory sweep failed: %s", e)
        return None


async def _scheduler_loop():
    interval_seconds = settings.MEMORY_SWEEP_INTERVAL_HOURS * 3600

    log.info("[SCHEDULER] Starting memory sweep scheduler: interval=%sh", settings.MEMORY_SWEEP_INTERVAL_HOURS)

    await asyncio.sleep(INITIAL_DELAY_SECONDS)

    while True:
        try:
            log.info("[SCHEDULER] Running memory sweep at %s", datetime.now(timezone.utc).isoformat())
            await _run_sweep_once()
        except asyncio.CancelledError:
            log.info("[SCHEDULER] Scheduler cancelled, shutting down")
            break

        log.info("[SCHEDULER] Next run in %s hours", settings.MEMORY_SWEEP_INTERVAL_HOURS)
        await asyncio.sleep(interval_seconds)


def start_scheduler():
    global _scheduler_task

    if not settings.MEMORY_SWEEP_ENABLED:
        log.info("[SCHEDULER] Memory sweep scheduler is disabled (MEMORY_SWEEP_ENABLED=false)")
        return

    if _scheduler_task is not None:
        log.warning("[SCHEDULER] Scheduler already running")
        return

    _scheduler_task = asyncio.create_task(_scheduler_loop())
    log.info("[SCHEDULER] Memory sweep scheduler started")


def stop_scheduler():
    global _scheduler_task

    if _scheduler_task is not None:
        _scheduler_task.cancel()
        _scheduler_task = None
        log.info("[SCHEDULER] Memory sweep scheduler stopped")
