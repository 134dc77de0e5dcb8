# prep_admin/exercises.py
"""
Persistence for exercises and their embedded questions.

Callers hand over an ``ExerciseDraft``; it is validated here again so the
API enforces the same rules as the authoring form. Saving an edited draft
applies its planned changes (insert new questions, update kept ones, delete
dropped ones) in one transaction with the exercise row locked, then lays
the questions out as 1..N in draft order.
"""

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from prep_admin.errors import NotFoundError, StoreError, ValidationError
from prep_admin.extensions import db
from prep_admin.models.exercise import Exercise, ExerciseQuestion

logger = logging.getLogger(__name__)

SAMPLE_EXERCISES = [
    {
        "title": "TOEIC Listening Practice",
        "description": "Bài tập luyện nghe TOEIC cơ bản",
        "exercise_type": "multiple_choice",
        "difficulty_level": "medium",
        "max_score": 100,
        "time_limit_minutes": 30,
        "questions": [
            {
                "question_text": "What is the main topic of the conversation?",
                "question_type": "multiple_choice",
                "points": 10,
                "options": ["Business meeting", "Travel plans", "Restaurant reservation", "Job interview"],
                "correct_answer": "Business meeting",
            }
        ],
    },
    {
        "title": "Grammar Basics - Present Tense",
        "description": "Bài tập ngữ pháp về thì hiện tại",
        "exercise_type": "fill_blank",
        "difficulty_level": "easy",
        "max_score": 80,
        "time_limit_minutes": 20,
        "questions": [
            {
                "question_text": "She _____ to work every day.",
                "question_type": "fill_blank",
                "points": 10,
                "correct_answer": "goes",
            }
        ],
    },
    {
        "title": "IELTS Writing Task 2",
        "description": "Viết luận về các chủ đề xã hội",
        "exercise_type": "essay",
        "difficulty_level": "hard",
        "max_score": 200,
        "time_limit_minutes": 60,
        "questions": [
            {
                "question_text": "Some people think that universities should only offer practical subjects. Discuss.",
                "question_type": "essay",
                "points": 100,
                "correct_answer": "Task response, coherence, lexical resource, grammatical range",
            }
        ],
    },
]


def search_exercises(exercise_type=None, difficulty_level=None, search=None):
    query = Exercise.query
    if exercise_type and exercise_type != "all":
        query = query.filter(Exercise.exercise_type == exercise_type)
    if difficulty_level and difficulty_level != "all":
        query = query.filter(Exercise.difficulty_level == difficulty_level)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Exercise.title.ilike(pattern), Exercise.description.ilike(pattern)))
    return query.order_by(Exercise.created_at.desc(), Exercise.id.desc()).all()


def get_exercise(exercise_id):
    exercise = db.session.get(Exercise, exercise_id)
    if exercise is None:
        raise NotFoundError("Không tìm thấy bài tập")
    return exercise


def _apply_fields(exercise, fields):
    for name, value in fields.items():
        setattr(exercise, name, value)


def create_exercise(draft):
    payload = draft.to_payload()
    questions = payload.pop("questions")
    exercise = Exercise(**payload)
    for position, question in enumerate(questions, start=1):
        question.pop("id", None)
        exercise.questions.append(ExerciseQuestion(order=position, **question))
    db.session.add(exercise)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error creating exercise %r: %s", payload.get("title"), e)
        raise StoreError.from_exception(e) from e
    logger.info("Exercise %s created with %d questions", exercise.id, len(questions))
    return exercise


def update_exercise(exercise_id, draft):
    draft.validate()
    try:
        exercise = db.session.execute(
            select(Exercise).where(Exercise.id == exercise_id).with_for_update()
        ).scalar_one_or_none()
        if exercise is None:
            raise NotFoundError("Không tìm thấy bài tập")

        persisted = {question.id: question for question in exercise.questions}
        changes = draft.plan_changes(persisted.keys())

        _apply_fields(exercise, draft.exercise_fields())
        for question_id in changes.deletes:
            exercise.questions.remove(persisted[question_id])
        db.session.flush()

        ordered = []
        for question_id, data in changes.updates:
            question = persisted[question_id]
            data.pop("id", None)
            _apply_fields(question, data)
            ordered.append(question)
        for data in changes.inserts:
            data.pop("id", None)
            question = ExerciseQuestion(exercise_id=exercise.id, **data)
            ordered.append(question)

        # Park everything on negative positions first so UNIQUE(exercise_id, order)
        # holds while rows trade places
        for index, question in enumerate(ordered, start=1):
            question.order = -index
            if question.id is None:
                exercise.questions.append(question)
        db.session.flush()
        for index, question in enumerate(ordered, start=1):
            question.order = index
        db.session.commit()
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error updating exercise %s: %s", exercise_id, e)
        raise StoreError.from_exception(e) from e

    logger.info(
        "Exercise %s updated: %d inserted, %d updated, %d deleted",
        exercise_id, len(changes.inserts), len(changes.updates), len(changes.deletes),
    )
    return exercise


def set_exercise_status(exercise_id, is_active):
    if not isinstance(is_active, bool):
        raise ValidationError("is_active phải là giá trị true/false", field="is_active")
    exercise = get_exercise(exercise_id)
    exercise.is_active = is_active
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error toggling exercise %s: %s", exercise_id, e)
        raise StoreError.from_exception(e) from e
    return exercise


def delete_exercise(exercise_id):
    exercise = get_exercise(exercise_id)
    try:
        db.session.delete(exercise)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error deleting exercise %s: %s", exercise_id, e)
        raise StoreError.from_exception(e) from e
    return exercise
