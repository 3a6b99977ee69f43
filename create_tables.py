"""
Create every ConstructPM table on the configured database.

    python create_tables.py           # create missing tables
    python create_tables.py --reset   # drop and recreate (development only)
"""
import logging
import sys

from constructpm.core.config import settings
from constructpm.db.base import Base # Registers all models on the metadata
from constructpm.db.session import engine

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

def create_tables(reset=False):
    if reset:
        logger.warning("Dropping all tables on %s", engine.url.render_as_string(hide_password=True))
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))

if __name__ == "__main__":
    create_tables(reset="--reset" in sys.argv[1:])
