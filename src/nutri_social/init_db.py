"""Create the social tables on the configured database for local development."""

import logging

from nutri_social.core.logging import configure_logging
from nutri_social.db.session import create_tables

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Initialize the database by creating all tables."""
    create_tables()


if __name__ == "__main__":
    configure_logging()
    init_db()
    logger.info("Database initialized.")
