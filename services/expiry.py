"""
Expiry sweeper.

Moves unpaid reservations past ``expires_at`` to EXPIRED and reopens the
offerings they were holding. Ordering against the status reconciler is
not guaranteed, so every decision is recomputed from the rows.
"""
import logging

from sqlalchemy import select, update

from models.reservation import Reservation, STATUS_APPROVED, STATUS_EXPIRED
from services.capacity import can_reopen, committed_count, lock_offering

logger = logging.getLogger(__name__)

_NOT_EXPIRABLE = (STATUS_APPROVED, STATUS_EXPIRED)


def _expirable(now):
    return (
        Reservation.expires_at < now,
        Reservation.payment_status.notin_(_NOT_EXPIRABLE),
    )


def run_expiry_sweep(session, clock) -> dict:
    now = clock.now()
    summary = {"expired": 0, "reopened": [], "failed": []}

    rows = session.execute(
        select(Reservation.id, Reservation.offering_id).where(*_expirable(now))
    ).all()
    if not rows:
        session.rollback()
        return summary

    ids = [r.id for r in rows]
    try:
        # re-apply the status guard: an approval may have landed since the select
        result = session.execute(
            update(Reservation)
            .where(Reservation.id.in_(ids), *_expirable(now))
            .values(payment_status=STATUS_EXPIRED)
            .execution_options(synchronize_session=False)
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    summary["expired"] = result.rowcount
    logger.info("Expired %d reservation(s)", result.rowcount)

    for offering_id in sorted({r.offering_id for r in rows}):
        try:
            offering = lock_offering(session, offering_id)
            if offering is None:
                session.rollback()
                continue
            committed = committed_count(session, offering_id)
            if not offering.is_available and can_reopen(offering, committed, now):
                offering.is_available = True
                summary["reopened"].append(offering_id)
            session.commit()
        except Exception:
            session.rollback()
            summary["failed"].append(offering_id)
            logger.exception("Expiry sweep failed to refresh offering %s", offering_id)

    if summary["reopened"]:
        logger.info("Reopened offering(s) %s after expiry", summary["reopened"])
    return summary
