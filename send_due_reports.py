"""
Send scheduled portfolio reports that are due. Run hourly from cron, e.g.

    0 * * * * cd /srv/constructpm && python send_due_reports.py
"""
import asyncio
import logging

from constructpm.core.config import settings
from constructpm.db.session import SessionLocal
from constructpm.actions.reports import send_due_reports

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

def main():
    db = SessionLocal()
    try:
        sent = asyncio.run(send_due_reports(db))
        logger.info("Sent %d scheduled reports", sent)
    finally:
        db.close()

if __name__ == "__main__":
    main()
