from models.db import db
from utils import clock


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    # username keeps the caller's casing for display; username_lower backs uniqueness and lookups
    username = db.Column(db.String(50), nullable=False)
    username_lower = db.Column(db.String(50), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, default=clock.utcnow, nullable=False)
