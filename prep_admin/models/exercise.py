# prep_admin/models/exercise.py

from datetime import datetime

from prep_admin.extensions import db
from prep_admin.ordering import OrderedMixin

EXERCISE_TYPES = {
    "multiple_choice": "Trắc nghiệm",
    "true_false": "Đúng/Sai",
    "fill_blank": "Điền khuyết",
    "essay": "Tự luận",
    "speaking": "Nói tự do",
}
DIFFICULTY_LEVELS = {
    "easy": "Dễ",
    "medium": "Trung bình",
    "hard": "Khó",
}
QUESTION_TYPES = ("multiple_choice", "true_false", "fill_blank", "essay")


class Exercise(db.Model):
    __tablename__ = "exercises"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    exercise_type = db.Column(db.String(30), nullable=False)
    difficulty_level = db.Column(db.String(20), nullable=False)
    max_score = db.Column(db.Integer, nullable=False, default=100)
    time_limit_minutes = db.Column(db.Integer, nullable=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    source_file_url = db.Column(db.String(1024), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

    questions = db.relationship(
        "ExerciseQuestion",
        back_populates="exercise",
        order_by="ExerciseQuestion.order",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self, with_questions=True):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "exercise_type": self.exercise_type,
            "difficulty_level": self.difficulty_level,
            "max_score": self.max_score,
            "time_limit_minutes": self.time_limit_minutes,
            "lesson_id": self.lesson_id,
            "is_active": self.is_active,
            "source_file_url": self.source_file_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_questions:
            data["questions"] = [q.to_dict() for q in self.questions]
        return data

    def __repr__(self):
        return f"<Exercise {self.id}: {self.title}>"


class ExerciseQuestion(OrderedMixin, db.Model):
    __tablename__ = "exercise_questions"
    __table_args__ = (
        db.UniqueConstraint("exercise_id", "order", name="uq_exercise_questions_order"),
    )
    __order_column__ = "order"
    __order_scope__ = ("exercise_id",)
    __order_parent__ = ("exercise_id", Exercise)

    id = db.Column(db.Integer, primary_key=True)
    exercise_id = db.Column(db.Integer, db.ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    question_type = db.Column(db.String(30), nullable=False)
    points = db.Column(db.Integer, nullable=False, default=10)
    options = db.Column(db.JSON, nullable=True)
    correct_answer = db.Column(db.Text, nullable=True)
    order = db.Column("order", db.Integer, nullable=False)

    exercise = db.relationship("Exercise", back_populates="questions")

    def to_dict(self):
        return {
            "id": self.id,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "points": self.points,
            "options": self.options,
            "correct_answer": self.correct_answer,
            "order": self.order,
        }
