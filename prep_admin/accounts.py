# prep_admin/accounts.py
"""Profile management shared by the users screen and the JSON API."""

import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from prep_admin.errors import NotFoundError, StoreError, ValidationError
from prep_admin.extensions import db
from prep_admin.models.user import COURSES, ROLES, Profile

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "Email này đã được sử dụng"


def _commit(action, profile):
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.error("Integrity error on %s of %s: %s", action, profile.email, e)
        raise StoreError(DUPLICATE_EMAIL_MESSAGE, detail=str(e.orig)) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error on %s of %s: %s", action, profile.email, e)
        raise StoreError.from_exception(e) from e


def _check(email, role, course):
    if not email or not role:
        raise ValidationError()
    if role not in ROLES:
        raise ValidationError("Vai trò không hợp lệ", field="role")
    if course and course not in COURSES:
        raise ValidationError("Khóa học không hợp lệ", field="course")


def email_taken(email, exclude_id=None):
    query = Profile.query.filter(func.lower(Profile.email) == email.strip().lower())
    if exclude_id is not None:
        query = query.filter(Profile.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def create_profile(email, password, full_name=None, role="student", course=None, class_name=None, is_active=True):
    email = (email or "").strip().lower()
    _check(email, role, course)
    if not password or len(password) < 6:
        raise ValidationError("Mật khẩu phải có ít nhất 6 ký tự.", field="password")
    if email_taken(email):
        raise ValidationError(DUPLICATE_EMAIL_MESSAGE, field="email")

    profile = Profile(
        email=email,
        full_name=(full_name or "").strip() or None,
        role=role,
        course=course or None,
        class_name=(class_name or "").strip() or None,
        is_active=bool(is_active),
    )
    profile.set_password(password)
    db.session.add(profile)
    _commit("create", profile)
    logger.info("Profile %s created with role %s", profile.email, profile.role)
    return profile


def update_profile(profile_id, email, full_name=None, role="student", course=None, class_name=None,
                   is_active=True, password=None):
    profile = get_profile(profile_id)
    email = (email or "").strip().lower()
    _check(email, role, course)
    if email_taken(email, exclude_id=profile.id):
        raise ValidationError(DUPLICATE_EMAIL_MESSAGE, field="email")

    profile.email = email
    profile.full_name = (full_name or "").strip() or None
    profile.role = role
    profile.course = course or None
    profile.class_name = (class_name or "").strip() or None
    profile.is_active = bool(is_active)
    if password:
        profile.set_password(password)
    _commit("update", profile)
    return profile


def get_profile(profile_id):
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError("Không tìm thấy người dùng")
    return profile


def set_active(profile_id, is_active):
    profile = get_profile(profile_id)
    profile.is_active = bool(is_active)
    _commit("status change", profile)
    return profile


def delete_profile(profile_id):
    profile = get_profile(profile_id)
    db.session.delete(profile)
    _commit("delete", profile)
    return profile


def search_profiles(search=None, role=None):
    query = Profile.query
    if role and role != "all":
        query = query.filter(Profile.role == role)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Profile.email.ilike(pattern), Profile.full_name.ilike(pattern)))
    return query.order_by(Profile.created_at.desc(), Profile.id.desc())
