from sqlalchemy import func, select, update

from models.offering import Offering
from models.reservation import Reservation, COMMITTED_STATUSES, STATUS_APPROVED
from services.errors import NotFound


def committed_count(session, offering_id: int) -> int:
    """Approved + pending reservations; a pending one holds its seat until it expires."""
    stmt = (
        select(func.count(Reservation.id))
        .where(
            Reservation.offering_id == offering_id,
            Reservation.payment_status.in_(COMMITTED_STATUSES),
        )
    )
    return session.execute(stmt).scalar_one()


def approved_count(session, offering_id: int) -> int:
    stmt = (
        select(func.count(Reservation.id))
        .where(
            Reservation.offering_id == offering_id,
            Reservation.payment_status == STATUS_APPROVED,
        )
    )
    return session.execute(stmt).scalar_one()


def committed_counts(session, offering_ids) -> dict:
    """Committed count per offering in one query, for listings."""
    if not offering_ids:
        return {}
    stmt = (
        select(Reservation.offering_id, func.count(Reservation.id))
        .where(
            Reservation.offering_id.in_(offering_ids),
            Reservation.payment_status.in_(COMMITTED_STATUSES),
        )
        .group_by(Reservation.offering_id)
    )
    counts = {oid: 0 for oid in offering_ids}
    counts.update({oid: n for oid, n in session.execute(stmt).all()})
    return counts


def get_capacity(session, offering_id: int) -> dict:
    offering = session.get(Offering, offering_id)
    if offering is None:
        raise NotFound("Offering not found")
    return {
        "committed": committed_count(session, offering_id),
        "capacity": offering.max_participants,
    }


def lock_offering(session, offering_id: int):
    """
    Serialise the caller's transaction with every other writer of this offering.

    The version bump takes the row lock on PostgreSQL and the database write
    lock on SQLite, so counts read afterwards are stable until commit.
    Returns the refreshed Offering, or None if it does not exist.
    """
    result = session.execute(
        update(Offering)
        .where(Offering.id == offering_id)
        .values(lock_version=Offering.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return session.get(
        Offering,
        offering_id,
        with_for_update=True,
        populate_existing=True,
    )


def can_reopen(offering, committed: int, now) -> bool:
    return (
        offering.is_verified
        and committed < offering.max_participants
        and now < offering.booking_deadline
    )
