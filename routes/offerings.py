from datetime import datetime, timedelta, timezone

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.offering import Offering, KIND_CLASS, KIND_SESSION
from models.reservation import Reservation
from security.rbac import require_roles
from services.capacity import committed_counts, get_capacity
from services.errors import BookingError
from services.reservations import book_offering
from utils.audit import log_event
from utils.auth_context import login_required
from utils.clock import get_clock
from utils.roles import MENTOR, MENTEE

offerings_bp = Blueprint("offerings", __name__)


def _parse_iso(dt_str: str) -> datetime:
    # Expect ISO format like "2026-01-20T18:00:00"; aware values are stored as naive UTC
    if not isinstance(dt_str, str):
        raise ValueError("dates must be ISO 8601 strings")
    dt = datetime.fromisoformat(dt_str)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _int(value, field):
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be an integer")


def _positive_int(value, field):
    number = _int(value, field)
    if number <= 0:
        raise ValueError(f"{field} must be positive")
    return number


def _text(value, field):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string")
    return value.strip()


def _payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _common_fields(data):
    title = _text(data.get("title") or data.get("name"), "title")
    if not title:
        raise ValueError("title is required")
    price = _int(data.get("price") or 0, "price")
    if price < 0:
        raise ValueError("price must not be negative")
    return {
        "title": title,
        "description": _text(data.get("description"), "description") or None,
        "price": price,
        "max_participants": _positive_int(data.get("max_participants") or data.get("maxParticipants"), "max_participants"),
    }


def _save_offering(offering):
    db.session.add(offering)
    db.session.commit()
    log_event("OFFERING_CREATE", user_id=g.user.id, entity="offering", entity_id=offering.id, metadata={"kind": offering.kind})
    return jsonify(message="Offering created, waiting for verification", offering=offering.to_dict(committed=0)), 201


# ---------- MENTOR: publish classes and sessions ----------
@offerings_bp.post("/classes")
@require_roles(MENTOR)
def create_class():
    data = _payload()
    try:
        fields = _common_fields(data)
        extra = {
            "category": _text(data.get("category"), "category") or None,
            "education_level": _text(data.get("education_level") or data.get("educationLevel"), "education_level") or None,
            "terms": _text(data.get("terms"), "terms") or None,
        }
        start = data.get("start_date")
        if not start:
            raise ValueError("start_date is required")
        start_date = _parse_iso(start)
        if data.get("end_date"):
            end_date = _parse_iso(data["end_date"])
        else:
            days = _positive_int(data.get("duration_in_days") or data.get("durationInDays"), "duration_in_days")
            end_date = start_date + timedelta(days=days)
    except ValueError as exc:
        return jsonify(error=str(exc)), 400

    if end_date <= start_date:
        return jsonify(error="end_date must be after start_date"), 400
    if end_date <= get_clock().now():
        return jsonify(error="Class has already ended"), 400

    return _save_offering(Offering(
        kind=KIND_CLASS,
        mentor_id=g.user.id,
        **extra,
        start_date=start_date,
        end_date=end_date,
        **fields,
    ))


@offerings_bp.post("/sessions")
@require_roles(MENTOR)
def create_session():
    data = _payload()
    try:
        fields = _common_fields(data)
        start = data.get("start_time") or data.get("startTime")
        end = data.get("end_time") or data.get("endTime")
        if not start or not end:
            raise ValueError("start_time and end_time are required")
        start_time = _parse_iso(start)
        end_time = _parse_iso(end)
    except ValueError as exc:
        return jsonify(error=str(exc)), 400

    if end_time <= start_time:
        return jsonify(error="end_time must be after start_time"), 400
    if start_time <= get_clock().now():
        return jsonify(error="Session must start in the future"), 400

    return _save_offering(Offering(
        kind=KIND_SESSION,
        mentor_id=g.user.id,
        start_date=start_time,
        end_date=end_time,
        **fields,
    ))


# ---------- everyone: browse ----------
def _list(kind):
    q = Offering.query.filter_by(kind=kind)
    if request.args.get("available") == "true":
        q = q.filter_by(is_available=True)
    mentor_id = request.args.get("mentor_id", type=int)
    if mentor_id:
        q = q.filter_by(mentor_id=mentor_id)

    rows = q.order_by(Offering.start_date.asc()).limit(200).all()
    counts = committed_counts(db.session, [o.id for o in rows])
    return jsonify([o.to_dict(committed=counts[o.id]) for o in rows]), 200


@offerings_bp.get("/classes")
@login_required
def list_classes():
    return _list(KIND_CLASS)


@offerings_bp.get("/sessions")
@login_required
def list_sessions():
    return _list(KIND_SESSION)


@offerings_bp.get("/offerings/<int:offering_id>")
@login_required
def get_offering(offering_id: int):
    offering = db.session.get(Offering, offering_id)
    if not offering:
        return jsonify(error="Offering not found"), 404
    counts = committed_counts(db.session, [offering.id])
    return jsonify(offering.to_dict(committed=counts[offering.id])), 200


@offerings_bp.get("/offerings/<int:offering_id>/capacity")
@login_required
def offering_capacity(offering_id: int):
    try:
        return jsonify(get_capacity(db.session, offering_id)), 200
    except BookingError as exc:
        return jsonify(exc.to_dict()), exc.status_code


# ---------- MENTEE: book ----------
def _book(offering_id: int, kind: str):
    cfg = current_app.config
    try:
        result = book_offering(
            db.session,
            offering_id,
            g.user.id,
            get_clock(),
            timedelta(seconds=cfg.get("BOOKING_TTL_SECONDS", 86400)),
            kind=kind,
            max_code_attempts=cfg.get("BOOKING_CODE_MAX_ATTEMPTS"),
            integrity_retries=cfg.get("BOOKING_INTEGRITY_RETRIES", 3),
        )
    except BookingError as exc:
        log_event(
            f"BOOKING_FAIL_{exc.code}",
            user_id=g.user.id,
            entity="offering",
            entity_id=offering_id,
            metadata={"reason": exc.reason} if exc.reason else None,
        )
        return jsonify(exc.to_dict()), exc.status_code

    log_event(
        "BOOKING_CREATE",
        user_id=g.user.id,
        entity="reservation",
        entity_id=result["reservation_id"],
        metadata={"offering_id": offering_id, "code": result["code"]},
    )
    return jsonify(
        message="Booked successfully, transfer the amount due before the reservation expires",
        reservation_id=result["reservation_id"],
        code=result["code"],
        amount_due=result["amount_due"],
        expires_at=result["expires_at"].isoformat(),
    ), 201


@offerings_bp.post("/classes/<int:offering_id>/book")
@require_roles(MENTEE)
def book_class(offering_id: int):
    return _book(offering_id, KIND_CLASS)


@offerings_bp.post("/sessions/<int:offering_id>/book")
@require_roles(MENTEE)
def book_session(offering_id: int):
    return _book(offering_id, KIND_SESSION)


@offerings_bp.get("/reservations/me")
@login_required
def my_reservations():
    status = (request.args.get("status") or "").strip().upper()
    q = Reservation.query.filter_by(user_id=g.user.id)
    if status:
        q = q.filter_by(payment_status=status)
    rows = q.order_by(Reservation.created_at.desc()).all()
    return jsonify([r.to_dict() for r in rows]), 200
