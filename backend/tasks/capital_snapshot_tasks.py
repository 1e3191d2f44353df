import logging
from typing import Optional

from sqlalchemy.orm import Session

from database import SessionLocal
from crud import capital_report
from utils import now_local

logger = logging.getLogger(__name__)


def take_monthly_capital_snapshots(year: Optional[int] = None, month: Optional[int] = None):
    """
    Store the capital report of every tenant as the snapshot for the given month.

    Runs at the end of each month from the scheduler; defaults to the current
    month in the application timezone. One tenant failing does not stop the
    others.
    """
    today = now_local()
    year = year or today.year
    month = month or today.month
    logger.info(f"Starting capital snapshot task for {month:02d}/{year}.")

    db: Session = SessionLocal()
    try:
        tenant_ids = capital_report.get_tenant_ids(db)
        for tenant_id in tenant_ids:
            try:
                capital_report.take_snapshot(db, tenant_id, year, month)
                db.commit()
            except Exception as e:
                logger.error(f"Capital snapshot failed for tenant '{tenant_id}': {e}", exc_info=True)
                db.rollback()
        logger.info(f"Capital snapshot task finished for {len(tenant_ids)} tenant(s).")
    finally:
        db.close()
