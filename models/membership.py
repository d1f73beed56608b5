from models.db import db
from models.status import MembershipRole, MembershipStatus, enum_column_values
from utils import clock

class Membership(db.Model):
    __tablename__ = "project_members"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    role = db.Column(
        db.Enum(MembershipRole, native_enum=False, length=20, values_callable=enum_column_values),
        nullable=False,
        default=MembershipRole.MEMBER,
    )
    # left / kicked are terminal; the row is kept as history and never reactivated
    status = db.Column(
        "membership_status",
        db.Enum(MembershipStatus, native_enum=False, length=20, values_callable=enum_column_values),
        nullable=False,
        default=MembershipStatus.ACTIVE,
    )

    joined_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)
    left_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User", lazy="joined")

    __table_args__ = (
        # One row per (project, user) for the life of the project; inserts double as the race gate
        db.UniqueConstraint("project_id", "user_id", name="uq_project_member_once"),
    )
