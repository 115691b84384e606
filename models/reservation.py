from datetime import datetime
from sqlalchemy import text
from models.db import db

STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"
STATUS_EXPIRED = "EXPIRED"

# statuses that hold a seat
COMMITTED_STATUSES = (STATUS_APPROVED, STATUS_PENDING)

_LIVE = text("payment_status != 'EXPIRED'")


class Reservation(db.Model):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)

    offering_id = db.Column(db.Integer, db.ForeignKey("offerings.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    unique_code = db.Column(db.Integer, nullable=False)
    amount_due = db.Column(db.Integer, nullable=False, default=0)  # price + unique_code

    payment_status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    # status values: PENDING, APPROVED, REJECTED, EXPIRED

    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        # Codes may be recycled once the holder has expired
        db.Index(
            "uq_reservations_live_code",
            "unique_code",
            unique=True,
            sqlite_where=_LIVE,
            postgresql_where=_LIVE,
        ),
        # One live claim per (user, offering)
        db.Index(
            "uq_reservations_live_user_offering",
            "user_id",
            "offering_id",
            unique=True,
            sqlite_where=_LIVE,
            postgresql_where=_LIVE,
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "offering_id": self.offering_id,
            "user_id": self.user_id,
            "unique_code": self.unique_code,
            "amount_due": self.amount_due,
            "payment_status": self.payment_status,
            "expires_at": self.expires_at.isoformat(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
        }
