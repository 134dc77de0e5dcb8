# prep_admin/forms.py

from string import ascii_uppercase

from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    FieldList,
    Form,
    FormField,
    HiddenField,
    IntegerField,
    PasswordField,
    SelectField,
    StringField,
    SubmitField,
    TextAreaField,
)
from wtforms.validators import DataRequired, Email, EqualTo, Length, NumberRange, Optional, ValidationError

from prep_admin.errors import REQUIRED_FIELDS_MESSAGE
from prep_admin.models.curriculum import CONTENT_TYPES, COURSE_TYPES, LEVELS
from prep_admin.models.lesson import LESSON_TYPES, SECTION_TYPES
from prep_admin.models.user import COURSES, ROLES

ROLE_LABELS = {"admin": "Quản trị viên", "teacher": "Giáo viên", "student": "Học viên"}


def required():
    return DataRequired(message=REQUIRED_FIELDS_MESSAGE)


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[required(), Email(message="Email không hợp lệ.")])
    password = PasswordField("Mật khẩu", validators=[required()])
    remember = BooleanField("Ghi nhớ đăng nhập")
    submit = SubmitField("Đăng nhập")


class ChangePasswordForm(FlaskForm):
    current_password = PasswordField("Mật khẩu hiện tại", validators=[required()])
    new_password = PasswordField("Mật khẩu mới", validators=[
        required(),
        Length(min=6, message="Mật khẩu phải có ít nhất 6 ký tự."),
    ])
    confirm_password = PasswordField("Xác nhận mật khẩu mới", validators=[
        required(),
        EqualTo("new_password", message="Mật khẩu xác nhận không khớp."),
    ])
    submit = SubmitField("Đổi mật khẩu")


class UserForm(FlaskForm):
    email = StringField("Email", validators=[required(), Email(message="Email không hợp lệ.")])
    full_name = StringField("Họ và tên", validators=[required(), Length(max=255)])
    role = SelectField("Vai trò", choices=[(r, ROLE_LABELS[r]) for r in ROLES], default="student")
    course = SelectField("Khóa học", choices=[("", "-- Không --")] + [(c, c) for c in COURSES], default="")
    class_name = StringField("Lớp", validators=[Optional(), Length(max=100)])
    # Optional on edit; the create view checks it separately
    password = PasswordField("Mật khẩu", validators=[Optional(), Length(min=6, message="Mật khẩu phải có ít nhất 6 ký tự.")])
    is_active = BooleanField("Đang hoạt động", default=True)
    submit = SubmitField("Lưu")


class LessonForm(FlaskForm):
    title = StringField("Tiêu đề", validators=[required(), Length(max=255)])
    description = TextAreaField("Mô tả", validators=[Optional()])
    type = SelectField("Loại bài học", choices=[(t, t) for t in LESSON_TYPES], validators=[required()])
    submit = SubmitField("Lưu bài học")


class SectionForm(FlaskForm):
    title = StringField("Tiêu đề phần", validators=[required(), Length(max=255)])
    type = SelectField("Loại phần", choices=[(t, t) for t in SECTION_TYPES], validators=[required()])
    content = TextAreaField("Nội dung", validators=[Optional()])
    submit = SubmitField("Thêm phần")


class SectionQuestionForm(FlaskForm):
    """Options are typed one per line and labelled A, B, C... in order."""

    section_id = HiddenField("sectionId", validators=[required()])
    question_text = TextAreaField("Câu hỏi", validators=[required()])
    options = TextAreaField("Các lựa chọn (mỗi dòng một lựa chọn)", validators=[required()])
    correct_answer = StringField("Đáp án đúng (A, B, C...)", validators=[required(), Length(max=1)])
    submit = SubmitField("Thêm câu hỏi")

    def labelled_options(self):
        lines = [line.strip() for line in (self.options.data or "").splitlines() if line.strip()]
        return [{"label": ascii_uppercase[i], "text": text} for i, text in enumerate(lines[:26])]

    def validate_options(self, field):
        if len(self.labelled_options()) < 2:
            raise ValidationError("Câu hỏi cần ít nhất 2 lựa chọn.")

    def validate_correct_answer(self, field):
        field.data = (field.data or "").strip().upper()
        labels = [option["label"] for option in self.labelled_options()]
        if field.data not in labels:
            raise ValidationError("Đáp án đúng phải là một trong các nhãn lựa chọn.")


class LearningPathForm(FlaskForm):
    name = StringField("Tên lộ trình", validators=[required(), Length(max=255)])
    description = TextAreaField("Mô tả", validators=[Optional()])
    course_type = SelectField("Khóa học", choices=[(c, c) for c in COURSE_TYPES], validators=[required()])
    level = SelectField("Trình độ", choices=[(lv, lv) for lv in LEVELS], default="Beginner")
    target_score = IntegerField("Điểm mục tiêu", validators=[Optional(), NumberRange(min=0)])
    duration_weeks = IntegerField("Số tuần", validators=[Optional(), NumberRange(min=1)])
    difficulty_level = IntegerField("Độ khó (1-5)", default=1, validators=[
        Optional(),
        NumberRange(min=1, max=5, message="Độ khó phải nằm trong khoảng 1-5."),
    ])
    prerequisites = TextAreaField("Yêu cầu đầu vào", validators=[Optional()])
    is_active = BooleanField("Đang hoạt động", default=True)
    submit = SubmitField("Lưu lộ trình")


class CurriculumEntryForm(Form):
    """One curriculum row inside the new-path form; rows without a title are skipped."""

    week_number = IntegerField("Tuần", default=1, validators=[Optional(), NumberRange(min=1)])
    day_number = IntegerField("Ngày", default=1, validators=[Optional(), NumberRange(min=1, max=7)])
    title = StringField("Tiêu đề", validators=[Optional(), Length(max=255)])
    # "description" would shadow the FormField attribute of the same name
    notes = TextAreaField("Mô tả", validators=[Optional()])
    content_type = SelectField("Loại nội dung", choices=[(c, c) for c in CONTENT_TYPES], default="Reading")
    estimated_minutes = IntegerField("Thời lượng (phút)", default=30, validators=[Optional(), NumberRange(min=0)])
    is_required = BooleanField("Bắt buộc", default=True)


class NewLearningPathForm(LearningPathForm):
    curriculum = FieldList(FormField(CurriculumEntryForm), min_entries=1)


class CurriculumItemForm(FlaskForm):
    week_number = IntegerField("Tuần", default=1, validators=[required(), NumberRange(min=1)])
    day_number = IntegerField("Ngày", default=1, validators=[Optional(), NumberRange(min=1, max=7)])
    title = StringField("Tiêu đề", validators=[required(), Length(max=255)])
    description = TextAreaField("Mô tả", validators=[Optional()])
    content_type = SelectField("Loại nội dung", choices=[(c, c) for c in CONTENT_TYPES], default="Reading")
    estimated_minutes = IntegerField("Thời lượng (phút)", default=30, validators=[Optional(), NumberRange(min=0)])
    is_required = BooleanField("Bắt buộc", default=True)
    submit = SubmitField("Thêm vào lộ trình")


def first_error(form):
    """First validation message of ``form``, for a flash banner."""
    for errors in form.errors.values():
        for error in errors:
            if isinstance(error, dict):
                # FieldList of FormField nests its errors
                for nested in error.values():
                    if nested:
                        return nested[0]
                continue
            if isinstance(error, list):
                if error:
                    return error[0] if isinstance(error[0], str) else REQUIRED_FIELDS_MESSAGE
                continue
            return error
    return REQUIRED_FIELDS_MESSAGE
