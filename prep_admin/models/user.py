# prep_admin/models/user.py

from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from prep_admin.extensions import db

ROLES = ("admin", "teacher", "student")
COURSES = ("TOEIC", "IELTS", "APTIS")


class Profile(UserMixin, db.Model):
    __tablename__ = "profiles"
    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'teacher', 'student')", name="ck_profiles_role"),
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="student")
    course = db.Column(db.String(20), nullable=True)
    class_name = db.Column(db.String(100), nullable=True)
    # Single source of truth for account status; Flask-Login reads it too
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    password_hash = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    last_sign_in_at = db.Column(db.DateTime, nullable=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def display_name(self):
        return self.full_name or self.email

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "course": self.course,
            "class_name": self.class_name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_sign_in_at": self.last_sign_in_at.isoformat() if self.last_sign_in_at else None,
        }

    def __repr__(self):
        return f"<Profile {self.email} ({self.role})>"
