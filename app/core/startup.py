"""
Startup utilities for the application.
"""
import logging

from sqlalchemy.exc import OperationalError, ProgrammingError

from app.core.database import get_async_session_maker_instance, table_exists
from app.models.notification import Notification
from app.models.offer_notification_log import OfferNotificationLog
from app.models.vendor_metrics import VendorMetrics

logger = logging.getLogger(__name__)

REQUIRED_TABLES = (OfferNotificationLog.__tablename__, VendorMetrics.__tablename__)
OPTIONAL_TABLES = (Notification.__tablename__,)


async def check_job_tables() -> list[str]:
    """
    Check the tables written by the background jobs. Returns the missing required ones.
    Nothing is created here: tables come from Alembic migrations.
    """
    missing: list[str] = []
    try:
        async with get_async_session_maker_instance()() as session:
            for name in REQUIRED_TABLES:
                if not await table_exists(session, name):
                    missing.append(name)
            for name in OPTIONAL_TABLES:
                if not await table_exists(session, name):
                    logger.info("Optional table %s not found; notification history is disabled", name)
    except (OperationalError, ProgrammingError) as e:
        logger.warning(
            f"Database error during table check. Error: {e}. "
            f"Please ensure database is accessible and migrations are run."
        )
        return missing
    except Exception as e:
        # Don't raise: the app should still start and the jobs will log their own errors
        logger.error(f"Unexpected error during table check: {e}", exc_info=True)
        return missing
    if missing:
        logger.warning("Tables %s not found. Please run 'alembic upgrade head' to create them.", ", ".join(missing))
    return missing
