from flask import Blueprint, request, jsonify, g

from models import db
from utils.audit import log_event
from utils.auth_context import login_required
from utils.roles import PENDING_MENTOR, MENTOR, role_names
from utils.seed import get_role

mentor_bp = Blueprint("mentor", __name__, url_prefix="/mentors")

PROFILE_FIELDS = {
    "gender": 20,
    "location": 160,
    "skills": None,
    "linkedin": 255,
    "portfolio": 255,
    "about": None,
}


@mentor_bp.patch("/register")
@login_required
def register_mentor():
    data = request.get_json(silent=True) or {}
    if g.user.has_role(MENTOR):
        return jsonify(error="Already a mentor"), 409

    for field, max_len in PROFILE_FIELDS.items():
        value = data.get(field)
        if field == "portfolio" and value is None:
            value = data.get("portofolio")
        if value is None:
            continue
        if isinstance(value, list) and field == "skills":
            value = ", ".join(str(v).strip() for v in value if str(v).strip())
        if not isinstance(value, str) or (max_len and len(value.strip()) > max_len):
            return jsonify(error=f"Invalid {field}"), 400
        setattr(g.user, field, value.strip() or None)

    g.user.roles = [get_role(PENDING_MENTOR)]
    db.session.commit()

    log_event("MENTOR_REGISTER", user_id=g.user.id, entity="user", entity_id=g.user.id)
    return jsonify(message="Mentor registration submitted", roles=role_names(g.user.roles)), 200
