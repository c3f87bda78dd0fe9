"""
Expire memberships whose end date has passed. Meant for cron; safe to repeat.
Run: python -m scripts.expire_memberships
"""
import logging
import sys

from app.core import config
from app.core.logging_config import setup_logging
from app.db.session import SessionLocal
from app.services.membership_service import check_and_update_expired

logger = logging.getLogger(__name__)


def main():
    setup_logging(config.LOG_LEVEL, config.LOG_DIR)
    db = SessionLocal()
    try:
        count = check_and_update_expired(db)
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}", exc_info=True)
        return 1
    finally:
        db.close()

    logger.info(f"Expiry sweep finished: {count} memberships expired")
    return 0


if __name__ == "__main__":
    sys.exit(main())
