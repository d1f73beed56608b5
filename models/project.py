from models.db import db
from models.status import ProjectStatus, enum_column_values
from utils import clock

class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=False)

    # Soft delete only: active -> deleted, never back
    status = db.Column(
        db.Enum(ProjectStatus, native_enum=False, length=20, values_callable=enum_column_values),
        nullable=False,
        default=ProjectStatus.ACTIVE,
        index=True,
    )
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    tags = db.Column(db.JSON, nullable=False, default=list)
    looking_for = db.Column(db.JSON, nullable=False, default=list)
    recruitment_open = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)

    creator = db.relationship("User", lazy="joined")
