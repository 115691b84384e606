from datetime import timedelta

from conftest import NOW
from models.audit_log import AuditLog
from models.offering import Offering
from models.reservation import Reservation, STATUS_APPROVED
from utils.roles import ADMIN


def _class_payload(**overrides):
    payload = {
        "title": "Intro to Data Engineering",
        "category": "Data",
        "education_level": "Beginner",
        "start_date": (NOW + timedelta(days=3)).isoformat(),
        "duration_in_days": 14,
        "price": 150000,
        "max_participants": 1,
    }
    payload.update(overrides)
    return payload


def _mentor_headers(client, login, admin_headers):
    headers = login("mentor.new@example.com")
    resp = client.patch("/mentors/register", json={"skills": ["python", "sql"], "about": "Data eng"}, headers=headers)
    assert resp.status_code == 200
    user_id = client.get("/auth/me", headers=headers).get_json()["id"]
    resp = client.post(f"/admin/mentors/{user_id}/approve", headers=admin_headers)
    assert resp.status_code == 200
    return headers


def _mentee_headers(client, login, email):
    headers = login(email)
    resp = client.post("/auth/select-role", json={"role": "MENTEE"}, headers=headers)
    assert resp.status_code == 200
    return headers


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "scheduler_running": False}


def test_login_registers_new_user(client):
    resp = client.post("/auth/login", json={"email": "New@Example.com", "name": "New"})

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["created"] is True
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["roles"] == []

    again = client.post("/auth/login", json={"email": "new@example.com"})
    assert again.get_json()["created"] is False


def test_login_rejects_bad_email(client):
    assert client.post("/auth/login", json={"email": "nope"}).status_code == 400


def test_admin_role_cannot_be_self_selected(client, login):
    headers = login("someone@example.com")
    resp = client.post("/auth/select-role", json={"role": ADMIN}, headers=headers)
    assert resp.status_code == 400


def test_cookie_session_requires_csrf_header(client):
    client.post("/auth/login", json={"email": "cookie@example.com"})

    blocked = client.post("/auth/select-role", json={"role": "MENTEE"})
    assert blocked.status_code == 403

    token = client.get_cookie("csrf_token").value
    allowed = client.post("/auth/select-role", json={"role": "MENTEE"}, headers={"X-CSRF-Token": token})
    assert allowed.status_code == 200


def test_anonymous_requests_are_rejected(client):
    assert client.get("/classes").status_code == 401
    assert client.post("/classes/1/book").status_code == 401


def test_mentee_cannot_publish_classes(client, login):
    headers = _mentee_headers(client, login, "m@example.com")
    assert client.post("/classes", json=_class_payload(), headers=headers).status_code == 403


def test_class_validation(client, login, admin_id):
    mentor = _mentor_headers(client, login, login("admin@example.com"))

    missing = client.post("/classes", json=_class_payload(title=""), headers=mentor)
    bad_capacity = client.post("/classes", json=_class_payload(max_participants=0), headers=mentor)
    bad_date = client.post("/classes", json=_class_payload(start_date="tomorrow"), headers=mentor)

    assert missing.status_code == 400
    assert bad_capacity.status_code == 400
    assert bad_date.status_code == 400


def test_wrongly_typed_fields_are_rejected(client, login, admin_id):
    mentor = _mentor_headers(client, login, login("admin@example.com"))
    session_payload = {
        "title": "Office hours",
        "start_time": 5,
        "end_time": (NOW + timedelta(days=1, hours=1)).isoformat(),
        "max_participants": 2,
    }

    numeric_date = client.post("/classes", json=_class_payload(start_date=20260301), headers=mentor)
    list_price = client.post("/classes", json=_class_payload(price=[1]), headers=mentor)
    dict_title = client.post("/classes", json=_class_payload(title={"en": "x"}), headers=mentor)
    numeric_category = client.post("/classes", json=_class_payload(category=7), headers=mentor)
    numeric_start = client.post("/sessions", json=session_payload, headers=mentor)
    list_body = client.post("/classes", json=[_class_payload()], headers=mentor)

    for resp in (numeric_date, list_price, dict_title, numeric_category, numeric_start, list_body):
        assert resp.status_code == 400
        assert resp.get_json()["error"]
    assert Offering.query.count() == 0


def test_class_that_already_ended_is_rejected(client, login, admin_id):
    mentor = _mentor_headers(client, login, login("admin@example.com"))

    ended = client.post(
        "/classes",
        json=_class_payload(start_date=(NOW - timedelta(days=10)).isoformat(), end_date=(NOW - timedelta(days=1)).isoformat()),
        headers=mentor,
    )
    running = client.post(
        "/classes",
        json=_class_payload(start_date=(NOW - timedelta(days=1)).isoformat(), end_date=(NOW + timedelta(days=5)).isoformat()),
        headers=mentor,
    )

    assert ended.status_code == 400
    assert running.status_code == 201


def test_admin_offering_list_filters_by_kind(client, login, admin_id, make_offering):
    class_id = make_offering(capacity=2)
    admin = login("admin@example.com")

    classes = client.get("/admin/offerings?kind=class", headers=admin)
    bogus = client.get("/admin/offerings?kind=webinar", headers=admin)

    assert classes.status_code == 200
    assert [o["id"] for o in classes.get_json()] == [class_id]
    assert bogus.status_code == 400


def test_full_booking_flow(client, login, admin_id, fresh):
    admin = login("admin@example.com")
    mentor = _mentor_headers(client, login, admin)

    created = client.post("/classes", json=_class_payload(), headers=mentor)
    assert created.status_code == 201
    offering = created.get_json()["offering"]
    assert offering["is_verified"] is False
    assert offering["is_available"] is False
    assert offering["end_date"] == (NOW + timedelta(days=17)).isoformat()
    offering_id = offering["id"]

    alice = _mentee_headers(client, login, "alice@example.com")
    bob = _mentee_headers(client, login, "bob@example.com")

    # not bookable before verification
    early = client.post(f"/classes/{offering_id}/book", headers=alice)
    assert early.status_code == 409
    assert early.get_json()["code"] == "NOT_AVAILABLE"

    verified = client.post(f"/admin/offerings/{offering_id}/verify", json={"status": "VERIFIED"}, headers=admin)
    assert verified.status_code == 200
    assert verified.get_json()["offering"]["is_available"] is True

    booked = client.post(f"/classes/{offering_id}/book", headers=alice)
    assert booked.status_code == 201
    booking = booked.get_json()
    assert booking["amount_due"] == 150000 + booking["code"]
    assert booking["expires_at"] == (NOW + timedelta(hours=24)).isoformat()

    capacity = client.get(f"/offerings/{offering_id}/capacity", headers=bob)
    assert capacity.get_json() == {"committed": 1, "capacity": 1}

    full = client.post(f"/classes/{offering_id}/book", headers=bob)
    assert full.status_code == 409
    assert full.get_json()["code"] == "FULL"

    again = client.post(f"/classes/{offering_id}/book", headers=alice)
    assert again.get_json()["reason"] == "ALREADY_PENDING"

    wrong_kind = client.post(f"/sessions/{offering_id}/book", headers=alice)
    assert wrong_kind.status_code == 404

    mine = client.get("/reservations/me", headers=alice).get_json()
    assert [r["id"] for r in mine] == [booking["reservation_id"]]

    reviewed = client.post(
        f"/admin/reservations/{booking['reservation_id']}/review",
        json={"status": "APPROVED"},
        headers=admin,
    )
    assert reviewed.status_code == 200
    assert fresh(Reservation, booking["reservation_id"]).payment_status == STATUS_APPROVED

    listed = client.get("/classes?available=true", headers=bob).get_json()
    assert listed == []

    assert AuditLog.query.filter_by(action="BOOKING_CREATE").count() == 1
    assert AuditLog.query.filter_by(action="BOOKING_FAIL_FULL").count() == 1


def test_rejected_offering_keeps_reason(client, login, admin_id, fresh):
    admin = login("admin@example.com")
    mentor = _mentor_headers(client, login, admin)
    offering_id = client.post("/classes", json=_class_payload(), headers=mentor).get_json()["offering"]["id"]

    resp = client.post(
        f"/admin/offerings/{offering_id}/verify",
        json={"status": "REJECTED", "reason": "Missing syllabus"},
        headers=admin,
    )

    assert resp.status_code == 200
    offering = fresh(Offering, offering_id)
    assert offering.is_verified is False
    assert offering.reject_reason == "Missing syllabus"

    bad = client.post(f"/admin/offerings/{offering_id}/verify", json={"status": "MAYBE"}, headers=admin)
    assert bad.status_code == 400


def test_session_booking_and_listing(client, login, admin_id):
    admin = login("admin@example.com")
    mentor = _mentor_headers(client, login, admin)
    resp = client.post(
        "/sessions",
        json={
            "title": "Career Q&A",
            "start_time": (NOW + timedelta(days=1)).isoformat(),
            "end_time": (NOW + timedelta(days=1, hours=1)).isoformat(),
            "max_participants": 10,
        },
        headers=mentor,
    )
    assert resp.status_code == 201
    session_id = resp.get_json()["offering"]["id"]
    client.post(f"/admin/offerings/{session_id}/verify", json={"status": "VERIFIED"}, headers=admin)

    mentee = _mentee_headers(client, login, "carol@example.com")
    booked = client.post(f"/sessions/{session_id}/book", headers=mentee)
    assert booked.status_code == 201

    sessions = client.get("/sessions", headers=mentee).get_json()
    assert [(s["id"], s["committed"]) for s in sessions] == [(session_id, 1)]


def test_session_in_the_past_is_rejected(client, login, admin_id):
    mentor = _mentor_headers(client, login, login("admin@example.com"))
    resp = client.post(
        "/sessions",
        json={
            "title": "Too late",
            "start_time": (NOW - timedelta(hours=1)).isoformat(),
            "end_time": NOW.isoformat(),
            "max_participants": 3,
        },
        headers=mentor,
    )
    assert resp.status_code == 400


def test_admin_task_triggers(client, login, admin_id, make_offering, book, mentee_ids, clock, fresh):
    offering_id = make_offering(capacity=1)
    book(offering_id, mentee_ids[0])
    clock.advance(hours=25)
    admin = login("admin@example.com")

    sweep = client.post("/admin/tasks/expiry-sweep", headers=admin)
    assert sweep.status_code == 200
    assert sweep.get_json()["expired"] == 1
    assert fresh(Offering, offering_id).is_available is True

    reconcile = client.post("/admin/tasks/reconcile", headers=admin)
    assert reconcile.status_code == 200
    assert reconcile.get_json()["failed"] == []

    logs = client.get("/admin/audit-logs?action=EXPIRY_SWEEP_RUN", headers=admin).get_json()
    assert len(logs) == 1


def test_admin_endpoints_require_admin(client, login):
    headers = _mentee_headers(client, login, "dave@example.com")
    assert client.get("/admin/offerings", headers=headers).status_code == 403
    assert client.post("/admin/tasks/expiry-sweep", headers=headers).status_code == 403


def test_logout_revokes_the_token(client, login):
    headers = login("erin@example.com")
    assert client.get("/auth/me", headers=headers).status_code == 200

    assert client.post("/auth/logout", headers=headers).status_code == 200

    assert client.get("/auth/me", headers=headers).status_code == 401
