"""
Reservation transaction and payment review.

Every write path here locks the offering row first (see
``services.capacity.lock_offering``) so that the capacity read and the
insert/flag flip that depends on it commit as one serial step.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from models.offering import KIND_SESSION
from models.reservation import (
    Reservation,
    STATUS_APPROVED,
    STATUS_EXPIRED,
    STATUS_PENDING,
    STATUS_REJECTED,
)
from models.user import User
from services.capacity import can_reopen, committed_count, lock_offering
from services.codes import allocate_unique_code
from services.errors import (
    ConflictRetryExhausted,
    DuplicateBooking,
    Full,
    InvalidInput,
    NotAvailable,
    NotFound,
    NotReviewable,
)

logger = logging.getLogger(__name__)

REVIEW_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


def _code_in_use(session, code: int) -> bool:
    stmt = (
        select(Reservation.id)
        .where(
            Reservation.unique_code == code,
            Reservation.payment_status != STATUS_EXPIRED,
        )
        .limit(1)
    )
    return session.execute(stmt).first() is not None


def _check_duplicate(session, offering, user_id: int):
    rows = session.execute(
        select(Reservation.payment_status).where(
            Reservation.offering_id == offering.id,
            Reservation.user_id == user_id,
        )
    ).scalars().all()

    if offering.kind == KIND_SESSION:
        blocking = rows
    else:
        blocking = [s for s in rows if s != STATUS_EXPIRED]

    if not blocking:
        return
    if STATUS_PENDING in blocking:
        raise DuplicateBooking(
            "You already have a pending booking for this offering",
            reason=DuplicateBooking.ALREADY_PENDING,
        )
    raise DuplicateBooking(
        "You have already booked this offering",
        reason=DuplicateBooking.ALREADY_BOOKED,
    )


def _book_once(session, offering_id, user_id, clock, ttl, kind, max_code_attempts):
    now = clock.now()

    offering = lock_offering(session, offering_id)
    if offering is None or (kind is not None and offering.kind != kind):
        raise NotFound("Offering not found")

    if session.get(User, user_id) is None:
        raise NotFound("User not found")

    _check_duplicate(session, offering, user_id)

    committed = committed_count(session, offering.id)
    if committed >= offering.max_participants:
        raise Full()

    if (
        not offering.is_available
        or not offering.is_verified
        or offering.mentor_id is None
        or now >= offering.booking_deadline
    ):
        raise NotAvailable()

    code = allocate_unique_code(
        lambda c: _code_in_use(session, c),
        max_attempts=max_code_attempts,
    )

    reservation = Reservation(
        offering_id=offering.id,
        user_id=user_id,
        unique_code=code,
        amount_due=(offering.price or 0) + code,
        payment_status=STATUS_PENDING,
        created_at=now,
        expires_at=now + ttl,
    )
    session.add(reservation)
    session.flush()

    if committed + 1 >= offering.max_participants:
        offering.is_available = False

    session.commit()

    return {
        "reservation_id": reservation.id,
        "offering_id": offering.id,
        "code": code,
        "amount_due": reservation.amount_due,
        "expires_at": reservation.expires_at,
        "offering_available": offering.is_available,
    }


def book_offering(
    session,
    offering_id: int,
    user_id: int,
    clock,
    ttl,
    kind=None,
    max_code_attempts=None,
    integrity_retries=3,
):
    """
    Reserve one seat for ``user_id`` and return the booking details.

    Raises NotFound, NotAvailable, Full or DuplicateBooking without writing
    anything. An IntegrityError on commit (a code or duplicate claim racing
    in from another offering's transaction) reruns the whole unit, so the
    preconditions are re-checked against the winner's row.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return _book_once(session, offering_id, user_id, clock, ttl, kind, max_code_attempts)
        except IntegrityError:
            session.rollback()
            if attempt > integrity_retries:
                logger.warning(
                    "Booking offering=%s user=%s kept violating constraints after %d attempts",
                    offering_id, user_id, attempt,
                )
                raise ConflictRetryExhausted()
            logger.info(
                "Booking offering=%s user=%s hit a constraint, retrying (attempt %d)",
                offering_id, user_id, attempt,
            )
        except Exception:
            session.rollback()
            raise


def review_reservation(session, reservation_id: int, status: str, reviewer_id: int, clock):
    """Approve or reject a pending payment. Returns (reservation, offering_reopened)."""
    status = (status or "").strip().upper()
    if status not in REVIEW_STATUSES:
        raise InvalidInput("status must be APPROVED or REJECTED")

    now = clock.now()
    try:
        reservation = session.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFound("Reservation not found")

        offering = lock_offering(session, reservation.offering_id)
        session.refresh(reservation)

        if reservation.payment_status != STATUS_PENDING:
            raise NotReviewable(f"Reservation is already {reservation.payment_status}")
        if status == STATUS_APPROVED and reservation.expires_at <= now:
            raise NotReviewable("Payment window has lapsed")

        reservation.payment_status = status
        reservation.reviewed_at = now
        reservation.reviewed_by = reviewer_id

        reopened = False
        if status == STATUS_REJECTED and offering is not None and not offering.is_available:
            session.flush()
            if can_reopen(offering, committed_count(session, offering.id), now):
                offering.is_available = True
                reopened = True

        session.commit()
    except Exception:
        session.rollback()
        raise

    return reservation, reopened
