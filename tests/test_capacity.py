import pytest

from models import db
from models.reservation import STATUS_APPROVED, STATUS_EXPIRED, STATUS_PENDING, STATUS_REJECTED
from services.capacity import committed_count, committed_counts, get_capacity
from services.errors import NotFound


def test_pending_and_approved_hold_seats(make_offering, add_reservation, mentee_ids):
    offering_id = make_offering(capacity=5)
    add_reservation(offering_id, mentee_ids[0], STATUS_PENDING, code=101)
    add_reservation(offering_id, mentee_ids[1], STATUS_APPROVED, code=102)
    add_reservation(offering_id, mentee_ids[2], STATUS_REJECTED, code=103)
    add_reservation(offering_id, mentee_ids[3], STATUS_EXPIRED, code=104)

    assert committed_count(db.session, offering_id) == 2
    assert get_capacity(db.session, offering_id) == {"committed": 2, "capacity": 5}


def test_committed_counts_fills_zero_for_empty_offerings(make_offering, add_reservation, mentee_ids):
    busy = make_offering(capacity=3)
    idle = make_offering(capacity=3)
    add_reservation(busy, mentee_ids[0], STATUS_PENDING, code=111)

    assert committed_counts(db.session, [busy, idle]) == {busy: 1, idle: 0}
    assert committed_counts(db.session, []) == {}


def test_get_capacity_unknown_offering(ctx):
    with pytest.raises(NotFound):
        get_capacity(db.session, 9999)
