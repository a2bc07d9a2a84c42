#!/usr/bin/env python3
"""
Rebuild the booked flags of stored schedules from the appointment store
Usage: python reconcile_schedules.py [<schedule_id> ...]
"""
import logging
import sys

from clinic_booking.database import SessionLocal
from clinic_booking.domain.appointments.booking_service import BookingService

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def reconcile(schedule_ids: list[int]) -> int:
    db = SessionLocal()
    try:
        service = BookingService(db)
        if not schedule_ids:
            return service.reconcile_all()
        total = 0
        for schedule_id in schedule_ids:
            _, changed = service.reconcile_schedule(schedule_id)
            logger.info(f"Schedule {schedule_id}: {changed} slot(s) changed")
            total += changed
        return total
    finally:
        db.close()


if __name__ == "__main__":
    try:
        changed = reconcile([int(arg) for arg in sys.argv[1:]])
    except Exception as e:
        logger.error(f"❌ Reconciliation failed: {e}")
        sys.exit(1)
    logger.info(f"✅ Reconciliation finished, {changed} slot(s) changed")
