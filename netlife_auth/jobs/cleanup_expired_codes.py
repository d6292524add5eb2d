"""
Expired login code cleanup job

Deletes login codes whose expiry has passed and reports store counts
before and after. Safe to run on overlapping schedules.

Run command:
    python -m netlife_auth.jobs.cleanup_expired_codes
"""
import logging

from sqlalchemy.orm import Session

from ..db import SessionLocal, init_db
from ..services.auth.code_store import SQLAlchemyCodeStore

logger = logging.getLogger(__name__)


def run_cleanup(db: Session) -> dict:
    """
    Purge expired login codes.

    Returns:
        Dict with stats_before, deleted and stats_after
    """
    store = SQLAlchemyCodeStore(db)
    now = store.now()

    stats_before = store.get_stats(now)
    logger.info(
        f"Before cleanup: {stats_before.total_active} active, "
        f"{stats_before.expired_count} expired, {stats_before.verified_count} verified"
    )

    deleted = store.purge_expired(now)
    store.commit()
    logger.info(f"Deleted {deleted} expired login codes")

    stats_after = store.get_stats()
    logger.info(
        f"After cleanup: {stats_after.total_active} active, "
        f"{stats_after.expired_count} expired, {stats_after.verified_count} verified"
    )

    return {
        "stats_before": stats_before.as_dict(),
        "deleted": deleted,
        "stats_after": stats_after.as_dict(),
    }


def main():
    """Main entry point for the cleanup job"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    init_db()
    db = SessionLocal()
    try:
        logger.info("Starting expired login code cleanup...")
        results = run_cleanup(db)
        logger.info(f"Cleanup completed: {results}")
    except Exception as e:
        logger.error(f"Cleanup failed: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
