import secrets
from flask import request, jsonify, current_app

def _names():
    return (
        current_app.config.get("CSRF_COOKIE_NAME", "csrf_token"),
        current_app.config.get("CSRF_HEADER_NAME", "X-CSRF-Token"),
    )

def issue_csrf_token(resp):
    cookie_name, _ = _names()
    resp.set_cookie(
        cookie_name,
        secrets.token_urlsafe(32),
        httponly=False,  # client JS echoes it back in the header
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp

def require_csrf():
    # Bearer-token clients are not exposed to cross-site form posts
    if request.headers.get("Authorization", "").startswith("Bearer "):
        return None
    cookie_name, header_name = _names()
    cookie_token = request.cookies.get(cookie_name)
    header_token = request.headers.get(header_name)
    if not cookie_token or not header_token or cookie_token != header_token:
        return jsonify(error="CSRF validation failed"), 403
    return None
