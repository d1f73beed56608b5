from models.db import db
from models.status import RequestStatus, enum_column_values
from utils import clock

class JoinRequest(db.Model):
    __tablename__ = "join_requests"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(
        db.Enum(RequestStatus, native_enum=False, length=20, values_callable=enum_column_values),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    message = db.Column(db.Text, nullable=True)

    # The rejection cooldown is measured from here
    created_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)

    user = db.relationship("User", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_join_request_once"),
    )
