from datetime import datetime
from models.db import db

KIND_CLASS = "CLASS"
KIND_SESSION = "SESSION"
OFFERING_KINDS = (KIND_CLASS, KIND_SESSION)


class Offering(db.Model):
    """A bookable class or mentoring session owned by a mentor.

    Classes run from ``start_date`` to ``end_date`` and stay bookable until
    they end; sessions close for booking once they start.
    """

    __tablename__ = "offerings"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(20), nullable=False, index=True)
    mentor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    title = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(80), nullable=True)
    education_level = db.Column(db.String(80), nullable=True)
    terms = db.Column(db.Text, nullable=True)

    price = db.Column(db.Integer, nullable=False, default=0)  # smallest unit
    max_participants = db.Column(db.Integer, nullable=False)

    start_date = db.Column(db.DateTime, nullable=False, index=True)
    end_date = db.Column(db.DateTime, nullable=False)

    is_available = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    is_verified = db.Column(db.Boolean, default=False, nullable=False)
    reject_reason = db.Column(db.String(255), nullable=True)
    verified_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)

    # bumped by every writer that must serialise with bookings on this row
    lock_version = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("max_participants > 0", name="ck_offerings_capacity_positive"),
        db.CheckConstraint("end_date >= start_date", name="ck_offerings_date_order"),
    )

    @property
    def booking_deadline(self) -> datetime:
        if self.kind == KIND_SESSION:
            return self.start_date
        return self.end_date

    def to_dict(self, committed=None):
        out = {
            "id": self.id,
            "kind": self.kind,
            "mentor_id": self.mentor_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "education_level": self.education_level,
            "terms": self.terms,
            "price": self.price,
            "max_participants": self.max_participants,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "is_available": self.is_available,
            "is_active": self.is_active,
            "is_verified": self.is_verified,
            "reject_reason": self.reject_reason,
        }
        if committed is not None:
            out["committed"] = committed
        return out
