from .health import health_bp
from .auth import auth_bp
from .mentor import mentor_bp
from .offerings import offerings_bp
from .admin import admin_bp
