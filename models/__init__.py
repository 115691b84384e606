from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .auth_session import AuthSession
from .offering import Offering
from .reservation import Reservation
