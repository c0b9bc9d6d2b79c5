import logging

from tenacity import retry, stop_after_attempt, wait_fixed, before_sleep_log

from database.database import engine, create_all, db_session_scope
from database.repositories import DeliveryConfigRepository

logger = logging.getLogger(__name__)


@retry(stop=stop_after_attempt(5), wait=wait_fixed(2), before_sleep=before_sleep_log(logger, logging.WARNING), reraise=True)
def init_db(bind=None, session_factory=None):
    """Create tables and seed the delivery config row with placeholder secrets.

    Retried while the database container is still starting.
    """
    logger.info("Initializing database...")
    try:
        create_all(bind or engine)
        logger.info("Tables created or verified.")

        with db_session_scope(session_factory) as session:
            DeliveryConfigRepository(session).ensure_row()
        logger.info("Delivery config row present.")
    except Exception as e:
        logger.error(f"Error initializing DB: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
