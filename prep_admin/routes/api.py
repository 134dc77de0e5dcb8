# prep_admin/routes/api.py
"""
JSON API used by the exercises, learning paths and users screens.

Every failure answers ``{"error": message}`` with a status code matching
the error type (400 validation, 401/403 access, 404 missing, 409 ordering
conflict, 500 store or storage). Messages are safe to display.
"""

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from prep_admin.accounts import create_profile
from prep_admin.authoring import ExerciseDraft
from prep_admin.dashboard import learning_paths_with_stats, user_stats
from prep_admin.errors import StoreError, ValidationError
from prep_admin.exercises import (
    create_exercise,
    delete_exercise,
    get_exercise,
    search_exercises,
    set_exercise_status,
    update_exercise,
)
from prep_admin.extensions import db
from prep_admin.importer import import_lesson_rows, read_import_file
from prep_admin.models.curriculum import COURSE_TYPES, LEVELS, LearningPath
from prep_admin.models.lesson import Lesson
from prep_admin.models.user import Profile
from prep_admin.routes.auth import admin_required, staff_required
from prep_admin.uploads import NO_FILE_MESSAGE, store_file

api_bp = Blueprint("api", __name__)

logger = logging.getLogger(__name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Dữ liệu gửi lên không hợp lệ")
    return data


# --- Exercises --- #

@api_bp.route("/exercises", methods=["GET"])
@staff_required
def list_exercises():
    exercises = search_exercises(
        exercise_type=request.args.get("exercise_type"),
        difficulty_level=request.args.get("difficulty_level"),
        search=request.args.get("search"),
    )
    return jsonify(exercises=[exercise.to_dict() for exercise in exercises])


@api_bp.route("/exercises", methods=["POST"])
@staff_required
def create_exercise_endpoint():
    draft = ExerciseDraft.from_payload(_json_body())
    # Ids from the client cannot point at rows of another exercise
    draft.questions = draft.existing_questions + draft.questions
    draft.existing_questions = []
    exercise = create_exercise(draft)
    return jsonify(message="Tạo bài tập thành công", exercise=exercise.to_dict()), 201


@api_bp.route("/exercises/<int:exercise_id>", methods=["GET"])
@staff_required
def get_exercise_endpoint(exercise_id):
    return jsonify(exercise=get_exercise(exercise_id).to_dict())


@api_bp.route("/exercises/<int:exercise_id>", methods=["PUT"])
@staff_required
def update_exercise_endpoint(exercise_id):
    draft = ExerciseDraft.from_payload(_json_body())
    exercise = update_exercise(exercise_id, draft)
    return jsonify(message="Cập nhật bài tập thành công", exercise=exercise.to_dict())


@api_bp.route("/exercises/<int:exercise_id>", methods=["DELETE"])
@staff_required
def delete_exercise_endpoint(exercise_id):
    data = get_exercise(exercise_id).to_dict(with_questions=False)
    delete_exercise(exercise_id)
    return jsonify(message="Đã xóa bài tập", exercise=data)


@api_bp.route("/exercises/<int:exercise_id>/toggle-status", methods=["PATCH"])
@staff_required
def toggle_exercise_status(exercise_id):
    body = _json_body()
    exercise = set_exercise_status(exercise_id, body.get("is_active"))
    return jsonify(
        message="Cập nhật trạng thái thành công",
        is_active=exercise.is_active,
        exercise=exercise.to_dict(),
    )


@api_bp.route("/exercises/upload-file", methods=["POST"])
@staff_required
def upload_exercise_file():
    file_storage = request.files.get("file")
    if file_storage is None or not file_storage.filename:
        raise ValidationError(NO_FILE_MESSAGE, field="file")
    data = store_file(file_storage)
    return jsonify(success=True, data=data)


# --- Learning paths --- #

@api_bp.route("/learning-paths", methods=["GET"])
@staff_required
def list_learning_paths():
    return jsonify(success=True, data=learning_paths_with_stats(active_only=True))


def _optional_int(body, name, default=None):
    value = body.get(name)
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        raise ValidationError(f"Giá trị không hợp lệ: {name}", field=name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Giá trị không hợp lệ: {name}", field=name)


@api_bp.route("/learning-paths", methods=["POST"])
@staff_required
def create_learning_path():
    body = _json_body()
    name = (body.get("name") or "").strip()
    course_type = body.get("course_type")
    if not name or not course_type:
        raise ValidationError()
    if course_type not in COURSE_TYPES:
        raise ValidationError("Loại khóa học không hợp lệ", field="course_type")
    level = body.get("level") or "Beginner"
    if level not in LEVELS:
        raise ValidationError("Trình độ không hợp lệ", field="level")
    difficulty = _optional_int(body, "difficulty_level", 1)
    if not 1 <= difficulty <= 5:
        raise ValidationError("Độ khó phải nằm trong khoảng 1-5", field="difficulty_level")

    path = LearningPath(
        name=name,
        description=body.get("description") or None,
        course_type=course_type,
        level=level,
        target_score=_optional_int(body, "target_score"),
        duration_weeks=_optional_int(body, "duration_weeks"),
        difficulty_level=difficulty,
        prerequisites=body.get("prerequisites") or None,
        is_active=True,
    )
    db.session.add(path)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error creating learning path %r: %s", name, e)
        raise StoreError.from_exception(e) from e
    return jsonify(success=True, data=path.to_dict()), 201


# --- Users --- #

@api_bp.route("/users", methods=["GET"])
@staff_required
def users_overview():
    users = Profile.query.order_by(Profile.created_at.desc(), Profile.id.desc()).all()
    return jsonify(success=True, data={"users": [u.to_dict() for u in users], "stats": user_stats()})


@api_bp.route("/admin/create-user", methods=["POST"])
@admin_required
def admin_create_user():
    body = _json_body()
    profile = create_profile(
        email=body.get("email"),
        password=body.get("password"),
        full_name=body.get("full_name"),
        role=body.get("role") or "student",
        course=body.get("course"),
        class_name=body.get("class_name"),
    )
    return jsonify(message="Tạo người dùng thành công", user=profile.to_dict()), 201


# --- Lesson import --- #

@api_bp.route("/import-lessons", methods=["POST"])
@staff_required
def import_lessons():
    lesson_id = request.form.get("lessonId", type=int)
    if not lesson_id:
        raise ValidationError("Thiếu bài học", field="lessonId")
    lesson = db.session.get(Lesson, lesson_id)
    if lesson is None:
        raise ValidationError("Không tìm thấy bài học", field="lessonId")
    df = read_import_file(request.files.get("file"))
    result = import_lesson_rows(lesson.id, df)
    status = 200 if result.imported or not result.errors else 400
    return jsonify(
        message="Import thành công" if result.imported else "Không có dòng hợp lệ",
        imported=result.imported,
        sections_created=result.sections_created,
        errors=result.errors,
    ), status
