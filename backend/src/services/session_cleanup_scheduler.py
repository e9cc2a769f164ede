"""
Session cleanup scheduler for booking attempts and one-time codes.

Runs every few minutes to delete booking sessions older than their TTL and
codes that are expired or used. Expiry is already enforced at the point of
use, so this only reclaims storage.
"""

import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore

from core.constants import (
    SESSION_SWEEP_INTERVAL_MINUTES, SESSION_SWEEP_MAX_INSTANCES, SESSION_SWEEP_MISFIRE_GRACE_SECONDS,
)
from core.database import get_db_context
from services.otp_service import OTPService
from services.session_store import SessionStore
from utils.datetime_utils import UTC

logger = logging.getLogger(__name__)

# Global singleton instance
_session_cleanup_scheduler: Optional['SessionCleanupScheduler'] = None


class SessionCleanupScheduler:
    """
    Scheduler for the booking session sweep.

    Database sessions are created fresh for each run to avoid stale session issues.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone=UTC)
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background sweep.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Session cleanup scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_cleanup,
            IntervalTrigger(minutes=SESSION_SWEEP_INTERVAL_MINUTES),
            id="booking_session_cleanup",
            name="Expired booking session and code cleanup",
            max_instances=SESSION_SWEEP_MAX_INSTANCES,
            replace_existing=True,
            misfire_grace_time=SESSION_SWEEP_MISFIRE_GRACE_SECONDS,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Session cleanup scheduler started (runs every {SESSION_SWEEP_INTERVAL_MINUTES} minutes)")

    async def stop_scheduler(self) -> None:
        """
        Stop the background sweep.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=True)
            self._is_started = False
            logger.info("Session cleanup scheduler stopped")

    async def _run_cleanup(self) -> None:
        # Blocking database work runs off the event loop
        import asyncio
        await asyncio.to_thread(self.execute_cleanup)

    def execute_cleanup(self) -> tuple[int, int]:
        """
        Delete stale booking sessions and codes.

        Returns:
            tuple: (sessions removed, codes removed); (0, 0) if the run failed
        """
        try:
            with get_db_context() as db:
                sessions = SessionStore.purge_expired(db)
                codes = OTPService.purge_stale_codes(db)
        except Exception as e:
            logger.exception(f"Error during booking session cleanup: {e}")
            # Don't re-raise - allow scheduler to continue
            return 0, 0

        if sessions or codes:
            logger.info(f"Cleaned up {sessions} expired booking sessions and {codes} stale codes")
        return sessions, codes


def get_session_cleanup_scheduler() -> SessionCleanupScheduler:
    """
    Get the global session cleanup scheduler instance.

    Returns:
        SessionCleanupScheduler: The global scheduler instance
    """
    global _session_cleanup_scheduler
    if _session_cleanup_scheduler is None:
        _session_cleanup_scheduler = SessionCleanupScheduler()
    return _session_cleanup_scheduler


async def start_session_cleanup_scheduler() -> None:
    """
    Start the global session cleanup scheduler.

    This should be called during application startup.
    """
    scheduler = get_session_cleanup_scheduler()
    await scheduler.start_scheduler()


async def stop_session_cleanup_scheduler() -> None:
    """
    Stop the global session cleanup scheduler.

    This should be called during application shutdown.
    """
    global _session_cleanup_scheduler
    if _session_cleanup_scheduler:
        await _session_cleanup_scheduler.stop_scheduler()
