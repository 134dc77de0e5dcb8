# prep_admin/models/lesson.py

from datetime import datetime

from prep_admin.extensions import db
from prep_admin.ordering import OrderedMixin

LESSON_TYPES = ("TOEIC", "IELTS", "APTIS", "Grammar", "Vocabulary")
SECTION_TYPES = ("reading", "listening", "multiple_choice", "writing", "speaking")


class Lesson(db.Model):
    __tablename__ = "lessons"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(50), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    sections = db.relationship(
        "TestSection",
        back_populates="lesson",
        order_by="TestSection.order",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Lesson {self.title}>"


class TestSection(OrderedMixin, db.Model):
    """A block within a lesson: reading passage, listening audio, MCQ group."""

    __tablename__ = "test_sections"
    __table_args__ = (
        db.UniqueConstraint("lesson_id", "order", name="uq_test_sections_lesson_order"),
    )
    __order_column__ = "order"
    __order_scope__ = ("lesson_id",)
    __order_parent__ = ("lesson_id", Lesson)
    # Keep pytest from collecting the model as a test class
    __test__ = False

    id = db.Column(db.Integer, primary_key=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(50), nullable=False)
    content = db.Column(db.Text, nullable=True)
    order = db.Column("order", db.Integer, nullable=False)

    lesson = db.relationship("Lesson", back_populates="sections")
    questions = db.relationship(
        "Question",
        back_populates="section",
        order_by="Question.order",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self):
        return f"<TestSection {self.title} #{self.order}>"


class Question(OrderedMixin, db.Model):
    __tablename__ = "questions"
    __table_args__ = (
        db.UniqueConstraint("section_id", "order", name="uq_questions_section_order"),
    )
    __order_column__ = "order"
    __order_scope__ = ("section_id",)
    __order_parent__ = ("section_id", TestSection)

    id = db.Column(db.Integer, primary_key=True)
    section_id = db.Column(db.Integer, db.ForeignKey("test_sections.id", ondelete="CASCADE"), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    question_type = db.Column(db.String(30), nullable=False, default="multiple_choice")
    # [{"label": "A", "text": "..."}, ...]
    options = db.Column(db.JSON, nullable=False, default=list)
    correct_answer = db.Column(db.String(255), nullable=False)
    order = db.Column("order", db.Integer, nullable=False)

    section = db.relationship("TestSection", back_populates="questions")

    def option_text(self, label):
        for option in self.options or []:
            if option.get("label") == label:
                return option.get("text")
        return None

    def __repr__(self):
        preview = self.question_text[:30] + "..." if len(self.question_text or "") > 30 else self.question_text
        return f"<Question {self.id}: {preview}>"
