"""
Exercise authoring: exercise metadata plus an embedded list of questions.

An ``ExerciseDraft`` keeps persisted questions (``existing_questions``, each
carrying its database ``id``) apart from questions drafted in this session
(``questions``). On save the draft turns into one payload; the server side
turns the same payload back into inserts for new questions, updates for
existing ones and deletes for persisted questions the author dropped.

Question editing is single-flight: one question at a time is open, either
being added, an existing one being edited or a new one being edited.
"""

from collections import namedtuple

from prep_admin.errors import REQUIRED_FIELDS_MESSAGE, ValidationError
from prep_admin.models.exercise import DIFFICULTY_LEVELS, EXERCISE_TYPES, QUESTION_TYPES

CLOSED = "closed"
ADDING = "adding"
EDITING_EXISTING = "editing_existing"
EDITING_NEW = "editing_new"

QUESTION_REQUIRED_MESSAGE = "Vui lòng điền đầy đủ thông tin câu hỏi"
CHOOSE_CORRECT_MESSAGE = "Vui lòng chọn đáp án đúng"
MIN_OPTIONS_MESSAGE = "Câu hỏi trắc nghiệm cần ít nhất 2 lựa chọn"
TRUE_FALSE_MESSAGE = "Vui lòng chọn Đúng hoặc Sai"
FILL_BLANK_MESSAGE = "Vui lòng nhập ít nhất một đáp án được chấp nhận"
EDIT_IN_PROGRESS_MESSAGE = "Vui lòng hoàn tất câu hỏi đang soạn trước"
INVALID_PAYLOAD_MESSAGE = "Dữ liệu gửi lên không hợp lệ"
DUPLICATE_QUESTION_MESSAGE = "Một câu hỏi xuất hiện nhiều lần trong bài tập"

DEFAULT_MAX_SCORE = 100
DEFAULT_POINTS = 10

QuestionChanges = namedtuple("QuestionChanges", ["inserts", "updates", "deletes"])


def _to_int(value, default, message):
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ValidationError(message)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if number < 0:
        raise ValidationError(message)
    return number


def _text(data, name):
    value = data.get(name)
    if value is None or isinstance(value, str):
        return value
    raise ValidationError(INVALID_PAYLOAD_MESSAGE, field=name)


def _question_id(value):
    if value in (None, ""):
        return None
    if isinstance(value, str) and value.isdigit():
        return int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(INVALID_PAYLOAD_MESSAGE, field="questions")
    return value or None


class QuestionDraft:
    """One question being authored; its answer shape depends on ``question_type``.

    multiple_choice  options + the text of the correct option
    true_false       correct_answer is "true" or "false"
    fill_blank       correct_answer lists accepted answers separated by "|"
    essay            correct_answer holds free-text grading guidance
    """

    def __init__(self, question_text="", question_type="", points=DEFAULT_POINTS,
                 options=None, correct_answer="", id=None):
        self.id = id
        self.question_text = question_text or ""
        self.question_type = question_type or ""
        self.points = points
        self.options = list(options) if options else ["", "", "", ""]
        self.correct_answer = correct_answer or ""

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValidationError(INVALID_PAYLOAD_MESSAGE, field="questions")
        options = data.get("options")
        if options is not None and (
            not isinstance(options, list) or not all(isinstance(option, str) for option in options)
        ):
            raise ValidationError(INVALID_PAYLOAD_MESSAGE, field="options")
        correct_answer = data.get("correct_answer")
        if isinstance(correct_answer, bool):
            correct_answer = "true" if correct_answer else "false"
        else:
            correct_answer = _text(data, "correct_answer")
        return cls(
            question_text=_text(data, "question_text"),
            question_type=_text(data, "question_type"),
            points=data.get("points", DEFAULT_POINTS),
            options=options or None,
            correct_answer=correct_answer,
            id=_question_id(data.get("id")),
        )

    def copy(self):
        return QuestionDraft(self.question_text, self.question_type, self.points,
                             list(self.options), self.correct_answer, self.id)

    def add_option(self, text=""):
        self.options.append(text)

    def set_option(self, index, text):
        previous = self.options[index]
        self.options[index] = text
        if previous and previous == self.correct_answer:
            self.correct_answer = text

    def remove_option(self, index):
        removed = self.options.pop(index)
        if removed and removed == self.correct_answer:
            # The author has to pick a correct answer again before saving
            self.correct_answer = ""
        return removed

    def filled_options(self):
        return [option.strip() for option in self.options if option and option.strip()]

    @property
    def accepted_answers(self):
        if self.question_type != "fill_blank":
            return []
        return [answer.strip() for answer in self.correct_answer.split("|") if answer.strip()]

    def errors(self):
        problems = []
        if not self.question_text.strip() or not self.question_type:
            return [QUESTION_REQUIRED_MESSAGE]
        if self.question_type not in QUESTION_TYPES:
            return [f"Loại câu hỏi không hợp lệ: {self.question_type}"]
        try:
            _to_int(self.points, DEFAULT_POINTS, "Điểm của câu hỏi phải là số nguyên không âm")
        except ValidationError as e:
            problems.append(e.message)

        if self.question_type == "multiple_choice":
            options = self.filled_options()
            if len(options) < 2:
                problems.append(MIN_OPTIONS_MESSAGE)
            if not self.correct_answer.strip() or self.correct_answer.strip() not in options:
                problems.append(CHOOSE_CORRECT_MESSAGE)
        elif self.question_type == "true_false":
            if str(self.correct_answer).strip().lower() not in ("true", "false"):
                problems.append(TRUE_FALSE_MESSAGE)
        elif self.question_type == "fill_blank":
            if not self.accepted_answers:
                problems.append(FILL_BLANK_MESSAGE)
        return problems

    def to_dict(self):
        data = {
            "question_text": self.question_text.strip(),
            "question_type": self.question_type,
            "points": _to_int(self.points, DEFAULT_POINTS, "Điểm của câu hỏi phải là số nguyên không âm"),
            "options": self.filled_options() if self.question_type == "multiple_choice" else None,
            "correct_answer": self._normalized_answer(),
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    def _normalized_answer(self):
        answer = str(self.correct_answer or "").strip()
        if self.question_type == "true_false":
            return answer.lower()
        if self.question_type == "fill_blank":
            return "|".join(self.accepted_answers)
        return answer or None


class ExerciseDraft:
    REQUIRED = ("title", "exercise_type", "difficulty_level")

    def __init__(self, title="", description="", exercise_type="", difficulty_level="",
                 max_score=None, time_limit_minutes=None, lesson_id=None,
                 source_file_url=None, existing_questions=None, questions=None):
        self.title = title or ""
        self.description = description or ""
        self.exercise_type = exercise_type or ""
        self.difficulty_level = difficulty_level or ""
        self.max_score = max_score
        self.time_limit_minutes = time_limit_minutes
        self.lesson_id = lesson_id
        self.source_file_url = source_file_url
        self.existing_questions = list(existing_questions or [])
        self.questions = list(questions or [])
        self.mode = CLOSED
        self.editing_index = None
        self.current = None

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            raise ValidationError(INVALID_PAYLOAD_MESSAGE)
        items = data.get("questions")
        if items is not None and not isinstance(items, list):
            raise ValidationError(INVALID_PAYLOAD_MESSAGE, field="questions")
        existing, new = [], []
        for item in items or []:
            draft = QuestionDraft.from_dict(item)
            (existing if draft.id is not None else new).append(draft)
        return cls(
            title=_text(data, "title"),
            description=_text(data, "description"),
            exercise_type=_text(data, "exercise_type"),
            difficulty_level=_text(data, "difficulty_level"),
            max_score=data.get("max_score"),
            time_limit_minutes=data.get("time_limit_minutes"),
            lesson_id=data.get("lesson_id"),
            source_file_url=_text(data, "source_file_url"),
            existing_questions=existing,
            questions=new,
        )

    @classmethod
    def from_exercise(cls, exercise):
        return cls(
            title=exercise.title,
            description=exercise.description,
            exercise_type=exercise.exercise_type,
            difficulty_level=exercise.difficulty_level,
            max_score=exercise.max_score,
            time_limit_minutes=exercise.time_limit_minutes,
            lesson_id=exercise.lesson_id,
            source_file_url=exercise.source_file_url,
            existing_questions=[QuestionDraft.from_dict(q.to_dict()) for q in exercise.questions],
        )

    # --- question authoring modal ---

    def _ensure_closed(self):
        if self.mode != CLOSED:
            raise ValidationError(EDIT_IN_PROGRESS_MESSAGE)

    def open_add(self):
        self._ensure_closed()
        self.mode = ADDING
        self.editing_index = None
        self.current = QuestionDraft()
        return self.current

    def open_edit_existing(self, index):
        self._ensure_closed()
        self.current = self.existing_questions[index].copy()
        self.mode = EDITING_EXISTING
        self.editing_index = index
        return self.current

    def open_edit_new(self, index):
        self._ensure_closed()
        self.current = self.questions[index].copy()
        self.mode = EDITING_NEW
        self.editing_index = index
        return self.current

    def commit_question(self):
        if self.mode == CLOSED:
            raise ValidationError(QUESTION_REQUIRED_MESSAGE)
        problems = self.current.errors()
        if problems:
            raise ValidationError(problems[0])
        if self.mode == ADDING:
            self.questions.append(self.current)
        elif self.mode == EDITING_EXISTING:
            self.existing_questions[self.editing_index] = self.current
        else:
            self.questions[self.editing_index] = self.current
        committed = self.current
        self.cancel()
        return committed

    def cancel(self):
        self.mode = CLOSED
        self.editing_index = None
        self.current = None

    def remove_existing(self, index):
        self._ensure_closed()
        return self.existing_questions.pop(index)

    def remove_new(self, index):
        self._ensure_closed()
        return self.questions.pop(index)

    def add_parsed_questions(self, parsed):
        """Append multiple-choice questions given as ``{question, options, correctAnswer}``."""
        for item in parsed:
            options = list(item.get("options") or [])
            correct = item.get("correctAnswer")
            self.questions.append(QuestionDraft(
                question_text=item.get("question", ""),
                question_type="multiple_choice",
                points=DEFAULT_POINTS,
                options=options,
                correct_answer=options[correct] if isinstance(correct, int) and 0 <= correct < len(options) else "",
            ))

    # --- save ---

    def missing_fields(self):
        return [name for name in self.REQUIRED if not str(getattr(self, name) or "").strip()]

    def validate(self):
        """Raise ``ValidationError`` for the first problem; nothing is sent before this passes."""
        if self.missing_fields():
            raise ValidationError(REQUIRED_FIELDS_MESSAGE, field=self.missing_fields()[0])
        if self.mode != CLOSED:
            raise ValidationError(EDIT_IN_PROGRESS_MESSAGE)
        if self.exercise_type not in EXERCISE_TYPES:
            raise ValidationError("Loại bài tập không hợp lệ", field="exercise_type")
        if self.difficulty_level not in DIFFICULTY_LEVELS:
            raise ValidationError("Mức độ khó không hợp lệ", field="difficulty_level")
        kept_ids = [question.id for question in self.existing_questions]
        if len(kept_ids) != len(set(kept_ids)):
            raise ValidationError(DUPLICATE_QUESTION_MESSAGE, field="questions")
        _to_int(self.max_score, DEFAULT_MAX_SCORE, "Điểm tối đa phải là số nguyên không âm")
        _to_int(self.time_limit_minutes, None, "Thời gian làm bài phải là số phút hợp lệ")
        _to_int(self.lesson_id, None, "Bài học liên kết không hợp lệ")
        for number, question in enumerate(self.all_questions(), start=1):
            problems = question.errors()
            if problems:
                raise ValidationError(f"Câu hỏi {number}: {problems[0]}", field="questions")

    def all_questions(self):
        return self.existing_questions + self.questions

    def exercise_fields(self):
        return {
            "title": self.title.strip(),
            "description": self.description.strip() or None,
            "exercise_type": self.exercise_type,
            "difficulty_level": self.difficulty_level,
            "max_score": _to_int(self.max_score, DEFAULT_MAX_SCORE, "Điểm tối đa phải là số nguyên không âm"),
            "time_limit_minutes": _to_int(self.time_limit_minutes, None, "Thời gian làm bài phải là số phút hợp lệ"),
            "lesson_id": _to_int(self.lesson_id, None, "Bài học liên kết không hợp lệ"),
            "source_file_url": self.source_file_url or None,
        }

    def to_payload(self):
        self.validate()
        payload = self.exercise_fields()
        payload["questions"] = [question.to_dict() for question in self.all_questions()]
        return payload

    def plan_changes(self, persisted_ids=()):
        """Split the draft's questions into inserts, updates and deletes."""
        kept = {question.id for question in self.existing_questions}
        unknown = kept - set(persisted_ids)
        if unknown:
            raise ValidationError(f"Câu hỏi không thuộc bài tập này: {sorted(unknown)}", field="questions")
        inserts = [question.to_dict() for question in self.questions]
        updates = [(question.id, question.to_dict()) for question in self.existing_questions]
        deletes = [qid for qid in persisted_ids if qid not in kept]
        return QuestionChanges(inserts, updates, deletes)
