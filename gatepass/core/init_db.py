"""
Create the visitor table on the configured database.

    python -m gatepass.core.init_db
"""

import logging

from sqlalchemy import inspect

from gatepass.core.config import settings
from gatepass.core.database import engine, Base
from gatepass.models import Visitor

logging.basicConfig(level=logging.INFO, format=settings.log_format)
logger = logging.getLogger(__name__)


def existing_tables():
    return inspect(engine).get_table_names()


def init_db():
    """Create missing tables; existing ones are left as they are."""
    before = set(existing_tables())
    Base.metadata.create_all(bind=engine)
    created = sorted(set(existing_tables()) - before)

    if created:
        logger.info(f"Created tables: {', '.join(created)}")
    else:
        logger.info("All tables already present")
    return created


if __name__ == "__main__":
    logger.info(f"Initializing database at {engine.url.render_as_string(hide_password=True)}")
    init_db()
    if Visitor.__tablename__ not in existing_tables():
        raise SystemExit(f"Table {Visitor.__tablename__} is missing after initialization")
    logger.info("Database initialization complete")
