# prep_admin/dashboard.py
from datetime import datetime

from sqlalchemy import desc, func

from prep_admin.extensions import db
from prep_admin.models.curriculum import CurriculumItem, LearningPath
from prep_admin.models.exercise import Exercise
from prep_admin.models.lesson import Lesson
from prep_admin.models.user import Profile


def _start_of_day(now=None):
    now = now or datetime.utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def user_stats(now=None):
    """Totals for the users screen: all profiles, created today, signed in today."""
    today = _start_of_day(now)
    return {
        "totalUsers": Profile.query.count(),
        "newUsersToday": Profile.query.filter(Profile.created_at >= today).count(),
        "activeUsersToday": Profile.query.filter(Profile.last_sign_in_at >= today).count(),
    }


def learning_paths_with_stats(active_only=True):
    counts = (
        db.session.query(CurriculumItem.learning_path_id, func.count(CurriculumItem.id))
        .group_by(CurriculumItem.learning_path_id)
        .all()
    )
    curriculum_counts = dict(counts)

    query = LearningPath.query
    if active_only:
        query = query.filter(LearningPath.is_active.is_(True))
    paths = query.order_by(LearningPath.course_type, LearningPath.difficulty_level, LearningPath.id).all()

    result = []
    for path in paths:
        data = path.to_dict()
        data["curriculum_count"] = curriculum_counts.get(path.id, 0)
        # No enrollment tracking yet
        data["enrolled_users"] = 0
        data["avg_completion"] = 0
        result.append(data)
    return result


def get_dashboard_data():
    role_counts = dict(
        db.session.query(Profile.role, func.count(Profile.id)).group_by(Profile.role).all()
    )
    recent_exercises = Exercise.query.order_by(desc(Exercise.created_at)).limit(5).all()
    recent_lessons = Lesson.query.order_by(desc(Lesson.created_at)).limit(5).all()

    return {
        "users_count": sum(role_counts.values()),
        "students_count": role_counts.get("student", 0),
        "teachers_count": role_counts.get("teacher", 0),
        "lessons_count": Lesson.query.count(),
        "exercises_count": Exercise.query.count(),
        "active_exercises_count": Exercise.query.filter(Exercise.is_active.is_(True)).count(),
        "learning_paths_count": LearningPath.query.count(),
        "user_stats": user_stats(),
        "recent_exercises": recent_exercises,
        "recent_lessons": recent_lessons,
    }
