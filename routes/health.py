from flask import Blueprint, jsonify, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    scheduler = current_app.extensions.get("lifecycle_scheduler")
    return jsonify(status="ok", scheduler_running=bool(scheduler and scheduler.running)), 200
