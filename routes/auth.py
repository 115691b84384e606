from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security.csrf import issue_csrf_token
from security.session import create_session, raw_token_from_request, revoke_session, revoke_all_sessions
from utils.audit import log_event
from utils.auth_context import login_required
from utils.roles import SELF_SELECTABLE_ROLES, ADMIN, MENTOR, role_names
from utils.seed import get_role


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "photo_url": user.photo_url,
        "roles": role_names(user.roles),
    }


@auth_bp.post("/login")
def login():
    """
    Sign in with an identity already verified by the external provider.
    Unknown emails are registered on the fly.
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    name = (data.get("name") or "").strip() or None
    photo_url = (data.get("photo_url") or data.get("photoURL") or "").strip() or None

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400

    user = User.query.filter_by(email=email).first()
    created = user is None
    if created:
        user = User(email=email, name=name, photo_url=photo_url)
        db.session.add(user)
        db.session.commit()
        log_event("REGISTER_SUCCESS", user_id=user.id)

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "mentormatch_session")
    max_age = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)

    resp = jsonify(message="User logged in successfully", user=_user_payload(user), token=raw_token, created=created)
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=max_age,
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_user_payload(g.user)), 200


@auth_bp.post("/select-role")
@login_required
def select_role():
    data = request.get_json(silent=True) or {}
    selected = (data.get("role") or data.get("selectedRole") or "").strip().upper()

    if selected not in SELF_SELECTABLE_ROLES:
        return jsonify(error="Invalid role selected", allowed=sorted(SELF_SELECTABLE_ROLES)), 400
    if g.user.has_role(ADMIN) or g.user.has_role(MENTOR):
        return jsonify(error="Role already assigned"), 409

    g.user.roles = [get_role(selected)]
    db.session.commit()

    log_event("ROLE_SELECT", user_id=g.user.id, entity="user", entity_id=g.user.id, metadata={"role": selected})
    return jsonify(message="Role selected successfully", user=_user_payload(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "mentormatch_session")

    revoke_session(raw_token_from_request())
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
