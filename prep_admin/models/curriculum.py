# prep_admin/models/curriculum.py

from datetime import datetime

from prep_admin.extensions import db
from prep_admin.ordering import OrderedMixin

COURSE_TYPES = ("TOEIC", "IELTS", "APTIS")
LEVELS = ("Beginner", "Elementary", "Intermediate", "Upper-Intermediate", "Advanced")
CONTENT_TYPES = ("Listening", "Reading", "Writing", "Speaking", "Test", "Exercise", "Review")


class LearningPath(db.Model):
    __tablename__ = "learning_paths"
    __table_args__ = (
        db.CheckConstraint("difficulty_level BETWEEN 1 AND 5", name="ck_learning_paths_difficulty"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    course_type = db.Column(db.String(20), nullable=False)
    level = db.Column(db.String(30), nullable=False, default="Beginner")
    target_score = db.Column(db.Integer, nullable=True)
    duration_weeks = db.Column(db.Integer, nullable=True)
    difficulty_level = db.Column(db.Integer, nullable=False, default=1)
    prerequisites = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    curriculum_items = db.relationship(
        "CurriculumItem",
        back_populates="learning_path",
        order_by="[CurriculumItem.week_number, CurriculumItem.order_index]",
        cascade="all, delete-orphan",
        lazy=True,
    )
    path_items = db.relationship(
        "PathItem",
        back_populates="learning_path",
        order_by="PathItem.item_order",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "course_type": self.course_type,
            "level": self.level,
            "target_score": self.target_score,
            "duration_weeks": self.duration_weeks,
            "difficulty_level": self.difficulty_level,
            "prerequisites": self.prerequisites,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<LearningPath {self.name}>"


class CurriculumItem(OrderedMixin, db.Model):
    """One scheduled unit of study; ordered within (path, week)."""

    __tablename__ = "curriculum_items"
    __table_args__ = (
        db.UniqueConstraint(
            "learning_path_id", "week_number", "order_index", name="uq_curriculum_items_week_order"
        ),
    )
    __order_column__ = "order_index"
    __order_scope__ = ("learning_path_id", "week_number")
    __order_parent__ = ("learning_path_id", LearningPath)

    id = db.Column(db.Integer, primary_key=True)
    learning_path_id = db.Column(
        db.Integer, db.ForeignKey("learning_paths.id", ondelete="CASCADE"), nullable=False
    )
    week_number = db.Column(db.Integer, nullable=False, default=1)
    day_number = db.Column(db.Integer, nullable=False, default=1)
    order_index = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    content_type = db.Column(db.String(30), nullable=False, default="Reading")
    estimated_minutes = db.Column(db.Integer, nullable=True, default=30)
    is_required = db.Column(db.Boolean, nullable=False, default=True)

    learning_path = db.relationship("LearningPath", back_populates="curriculum_items")

    def to_dict(self):
        return {
            "id": self.id,
            "learning_path_id": self.learning_path_id,
            "week_number": self.week_number,
            "day_number": self.day_number,
            "order_index": self.order_index,
            "title": self.title,
            "description": self.description,
            "content_type": self.content_type,
            "estimated_minutes": self.estimated_minutes,
            "is_required": self.is_required,
        }

    def __repr__(self):
        return f"<CurriculumItem W{self.week_number} #{self.order_index} {self.title}>"


class PathItem(OrderedMixin, db.Model):
    """Attaches a Lesson to a LearningPath at a position."""

    __tablename__ = "path_items"
    __table_args__ = (
        db.UniqueConstraint("path_id", "item_order", name="uq_path_items_order"),
        db.UniqueConstraint("path_id", "lesson_id", name="uq_path_items_lesson"),
    )
    __order_column__ = "item_order"
    __order_scope__ = ("path_id",)
    __order_parent__ = ("path_id", LearningPath)

    id = db.Column(db.Integer, primary_key=True)
    path_id = db.Column(db.Integer, db.ForeignKey("learning_paths.id", ondelete="CASCADE"), nullable=False)
    lesson_id = db.Column(db.Integer, db.ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    item_order = db.Column(db.Integer, nullable=False)

    learning_path = db.relationship("LearningPath", back_populates="path_items")
    lesson = db.relationship("Lesson", lazy="joined")

    @property
    def lesson_title(self):
        # Rows whose lesson vanished render a placeholder instead of failing
        return self.lesson.title if self.lesson is not None else "Lỗi tải tên bài học"

    def __repr__(self):
        return f"<PathItem path={self.path_id} lesson={self.lesson_id} #{self.item_order}>"
