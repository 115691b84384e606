from flask import Blueprint, jsonify, g, request

from models import db
from models.audit_log import AuditLog
from models.offering import Offering, OFFERING_KINDS
from models.reservation import Reservation
from models.user import User
from security.rbac import require_roles
from services.capacity import committed_counts
from services.errors import BookingError
from services.offerings import verify_offering
from services.reservations import review_reservation
from services.expiry import run_expiry_sweep
from services.reconciler import run_status_reconciliation
from utils.audit import log_event
from utils.clock import get_clock
from utils.roles import ADMIN, MENTOR, PENDING_MENTOR, role_names
from utils.seed import get_role

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/offerings")
@require_roles(ADMIN)
def list_offerings():
    q = Offering.query
    verified = request.args.get("verified")
    if verified in ("true", "false"):
        q = q.filter(Offering.is_verified == (verified == "true"))
    kind = (request.args.get("kind") or "").strip().upper()
    if kind:
        if kind not in OFFERING_KINDS:
            return jsonify(error=f"kind must be one of {', '.join(OFFERING_KINDS)}"), 400
        q = q.filter(Offering.kind == kind)

    rows = q.order_by(Offering.created_at.desc()).limit(200).all()
    counts = committed_counts(db.session, [o.id for o in rows])
    return jsonify([o.to_dict(committed=counts[o.id]) for o in rows]), 200


@admin_bp.post("/offerings/<int:offering_id>/verify")
@require_roles(ADMIN)
def verify(offering_id: int):
    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip().upper()
    reason = (data.get("reason") or "").strip() or None

    try:
        offering = verify_offering(db.session, offering_id, status, reason, g.user.id, get_clock())
    except BookingError as exc:
        return jsonify(exc.to_dict()), exc.status_code

    log_event(
        "OFFERING_VERIFY",
        user_id=g.user.id,
        entity="offering",
        entity_id=offering.id,
        metadata={"status": status, "reason": reason},
    )
    return jsonify(message="Offering updated", offering=offering.to_dict()), 200


@admin_bp.get("/reservations")
@require_roles(ADMIN)
def list_reservations():
    q = Reservation.query
    status = (request.args.get("status") or "").strip().upper()
    if status:
        q = q.filter(Reservation.payment_status == status)
    offering_id = request.args.get("offering_id", type=int)
    if offering_id:
        q = q.filter(Reservation.offering_id == offering_id)
    code = request.args.get("code", type=int)
    if code:
        q = q.filter(Reservation.unique_code == code)

    rows = q.order_by(Reservation.created_at.desc()).limit(200).all()
    return jsonify([r.to_dict() for r in rows]), 200


@admin_bp.post("/reservations/<int:reservation_id>/review")
@require_roles(ADMIN)
def review(reservation_id: int):
    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip().upper()

    try:
        reservation, reopened = review_reservation(db.session, reservation_id, status, g.user.id, get_clock())
    except BookingError as exc:
        return jsonify(exc.to_dict()), exc.status_code

    log_event(
        "RESERVATION_REVIEW",
        user_id=g.user.id,
        entity="reservation",
        entity_id=reservation.id,
        metadata={"status": status, "offering_reopened": reopened},
    )
    return jsonify(message="Reservation updated", reservation=reservation.to_dict(), offering_reopened=reopened), 200


@admin_bp.post("/mentors/<int:user_id>/approve")
@require_roles(ADMIN)
def approve_mentor(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    if not user.has_role(PENDING_MENTOR):
        return jsonify(error="User has no pending mentor registration"), 409

    user.roles = [r for r in user.roles if r.name != PENDING_MENTOR] + [get_role(MENTOR)]
    db.session.commit()

    log_event("MENTOR_APPROVE", user_id=g.user.id, entity="user", entity_id=user.id)
    return jsonify(message="Mentor approved", roles=role_names(user.roles)), 200


# ---------- on-demand background tasks ----------
@admin_bp.post("/tasks/expiry-sweep")
@require_roles(ADMIN)
def trigger_expiry_sweep():
    summary = run_expiry_sweep(db.session, get_clock())
    log_event("EXPIRY_SWEEP_RUN", user_id=g.user.id, entity="reservation", metadata=summary)
    return jsonify(summary), 200


@admin_bp.post("/tasks/reconcile")
@require_roles(ADMIN)
def trigger_reconcile():
    summary = run_status_reconciliation(db.session, get_clock())
    log_event("STATUS_RECONCILE_RUN", user_id=g.user.id, entity="offering", metadata=summary)
    return jsonify(summary), 200


@admin_bp.get("/audit-logs")
@require_roles(ADMIN)
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action == action)
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "timestamp": r.timestamp.isoformat(),
            "user_id": r.user_id,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "ip": r.ip,
            "metadata": r.metadata_json,
        }
        for r in rows
    ]), 200
