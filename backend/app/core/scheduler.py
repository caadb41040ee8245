"""
Background scheduler for periodic tasks.

This module manages background jobs that run on a schedule:
- Purge expired authentication tokens: Runs every TOKEN_PURGE_INTERVAL_MINUTES
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.errors import BackendError
from app.services.token_service import token_service
import logging

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def purge_expired_tokens_job(session_factory=SessionLocal):
    """
    Background job to delete expired token rows.

    Verification already ignores expired rows, so this only reclaims space.
    """
    db = session_factory()
    try:
        deleted = token_service.purge_expired(db)
        if deleted > 0:
            logger.info(f"Token purge completed: Deleted {deleted} expired tokens")
        else:
            logger.info("Token purge completed: No expired tokens found")
    except BackendError as e:
        # Next run retries; nothing depends on the purge succeeding
        logger.error(f"Error in purge_expired_tokens_job: {str(e)}")
    finally:
        db.close()


def start_scheduler():
    """
    Start the background scheduler.

    This should be called when the FastAPI app starts.
    """
    if not scheduler.running:
        scheduler.add_job(
            purge_expired_tokens_job,
            trigger=IntervalTrigger(minutes=settings.TOKEN_PURGE_INTERVAL_MINUTES),
            id="purge_expired_tokens",
            name="Purge expired tokens",
            replace_existing=True
        )

        scheduler.start()
        logger.info(
            f"Background scheduler started. Token purge scheduled every "
            f"{settings.TOKEN_PURGE_INTERVAL_MINUTES} minutes."
        )


def stop_scheduler():
    """
    Stop the background scheduler.

    This should be called when the FastAPI app shuts down.
    """
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped.")
