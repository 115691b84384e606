from models.offering import Offering
from services.capacity import can_reopen, committed_count, lock_offering
from services.errors import InvalidInput, NotFound

VERIFY_STATUSES = ("VERIFIED", "REJECTED")


def verify_offering(session, offering_id: int, status: str, reason, reviewer_id: int, clock) -> Offering:
    status = (status or "").strip().upper()
    if status not in VERIFY_STATUSES:
        raise InvalidInput("status must be VERIFIED or REJECTED")

    now = clock.now()
    try:
        offering = lock_offering(session, offering_id)
        if offering is None:
            raise NotFound("Offering not found")

        offering.verified_by = reviewer_id
        offering.verified_at = now
        if status == "VERIFIED":
            offering.is_verified = True
            offering.reject_reason = None
            offering.is_available = can_reopen(offering, committed_count(session, offering.id), now)
        else:
            offering.is_verified = False
            offering.is_available = False
            offering.reject_reason = reason

        session.commit()
    except Exception:
        session.rollback()
        raise
    return offering
