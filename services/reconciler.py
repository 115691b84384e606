"""
Status reconciler.

Derives ``is_active`` and tightens ``is_available`` for every offering from
the clock and its reservations. It never reopens an offering; that is left
to the expiry sweeper and to payment rejection.
"""
import logging

from sqlalchemy import select

from models.offering import Offering
from services.capacity import approved_count, committed_count, lock_offering

logger = logging.getLogger(__name__)


def derive_flags(offering, approved: int, committed: int, now):
    """Return the (is_active, is_available) an offering should have at ``now``."""
    is_active = approved > 0 and offering.start_date <= now <= offering.end_date

    is_available = offering.is_available
    if committed >= offering.max_participants:
        is_available = False
    if now >= offering.booking_deadline:
        is_available = False

    return is_active, is_available


def _wanted_flags(session, offering, now):
    return derive_flags(
        offering,
        approved_count(session, offering.id),
        committed_count(session, offering.id),
        now,
    )


def reconcile_offering(session, offering_id: int, now) -> bool:
    """Reconcile one offering. Returns True if a flag changed."""
    offering = session.get(Offering, offering_id, populate_existing=True)
    if offering is None or _wanted_flags(session, offering, now) == (offering.is_active, offering.is_available):
        session.rollback()
        return False

    # something moved; redo the read under the lock before writing
    offering = lock_offering(session, offering_id)
    if offering is None:
        session.rollback()
        return False
    is_active, is_available = _wanted_flags(session, offering, now)
    changed = (is_active, is_available) != (offering.is_active, offering.is_available)
    offering.is_active = is_active
    offering.is_available = is_available
    session.commit()
    return changed


def run_status_reconciliation(session, clock) -> dict:
    now = clock.now()
    summary = {"checked": 0, "changed": [], "failed": []}

    offering_ids = session.execute(select(Offering.id).order_by(Offering.id)).scalars().all()
    session.rollback()

    for offering_id in offering_ids:
        summary["checked"] += 1
        try:
            if reconcile_offering(session, offering_id, now):
                summary["changed"].append(offering_id)
        except Exception:
            session.rollback()
            summary["failed"].append(offering_id)
            logger.exception("Status reconciliation failed for offering %s", offering_id)

    if summary["changed"]:
        logger.info("Reconciled flags on offering(s) %s", summary["changed"])
    return summary
