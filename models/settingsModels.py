from core.extensions import db
from core.imports import datetime


class StoreSetting(db.Model):
    """One row per settings group (store, notifications, security, features)."""
    __tablename__ = "store_settings"

    id = db.Column(db.Integer, primary_key=True)
    group = db.Column(db.String(50), unique=True, nullable=False)
    values = db.Column(db.JSON, nullable=False, default=dict)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
