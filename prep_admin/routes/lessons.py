from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, send_file, url_for

from prep_admin.errors import AdminError, user_message
from prep_admin.extensions import db
from prep_admin.forms import LessonForm, SectionForm, SectionQuestionForm, first_error
from prep_admin.importer import EXPECTED_IMPORT_COLUMNS, import_lesson_rows, read_import_file, template_file
from prep_admin.models.curriculum import PathItem
from prep_admin.models.lesson import Lesson, Question, TestSection
from prep_admin.ordering import append_ordered, move_ordered, remove_ordered
from prep_admin.routes.auth import staff_required

lessons_bp = Blueprint("lessons", __name__)


def _section_of(lesson, section_id):
    section = db.session.get(TestSection, section_id)
    if section is None or section.lesson_id != lesson.id:
        abort(404)
    return section


def _question_of(lesson, question_id):
    question = db.session.get(Question, question_id)
    if question is None or question.section.lesson_id != lesson.id:
        abort(404)
    return question


def _back_to(lesson):
    return redirect(url_for("lessons.edit_lesson", lesson_id=lesson.id))


@lessons_bp.route("/")
@staff_required
def list_lessons():
    q = request.args.get("q", "").strip()
    page = request.args.get("page", 1, type=int)
    query = Lesson.query
    if q:
        query = query.filter(Lesson.title.ilike(f"%{q}%"))
    pagination = query.order_by(Lesson.created_at.desc(), Lesson.id.desc()).paginate(
        page=page,
        per_page=current_app.config.get("PER_PAGE", 10),
        error_out=False,
    )
    return render_template(
        "lessons/list.html", pagination=pagination, lessons=pagination.items, q=q, form=LessonForm()
    )


@lessons_bp.route("/new", methods=["POST"])
@staff_required
def new_lesson():
    form = LessonForm()
    if not form.validate_on_submit():
        flash(first_error(form), "danger")
        return redirect(url_for("lessons.list_lessons"))
    lesson = Lesson(title=form.title.data.strip(), description=form.description.data or None, type=form.type.data)
    db.session.add(lesson)
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating lesson: {e}")
        flash(user_message(e), "danger")
        return redirect(url_for("lessons.list_lessons"))
    flash("Đã tạo bài học mới.", "success")
    return _back_to(lesson)


@lessons_bp.route("/delete", methods=["POST"])
@staff_required
def delete_lesson():
    lesson = db.get_or_404(Lesson, request.form.get("lessonId", type=int))
    try:
        # Detach from learning paths first so their item order stays contiguous
        for item in PathItem.query.filter_by(lesson_id=lesson.id).all():
            remove_ordered(item)
        db.session.delete(lesson)
        db.session.commit()
        flash("Đã xóa bài học.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting lesson {lesson.id}: {e}")
        flash(user_message(e), "danger")
    return redirect(url_for("lessons.list_lessons"))


@lessons_bp.route("/<int:lesson_id>/edit", methods=["GET", "POST"])
@staff_required
def edit_lesson(lesson_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    form = LessonForm(obj=lesson)
    if request.method == "POST":
        if form.validate_on_submit():
            lesson.title = form.title.data.strip()
            lesson.description = form.description.data or None
            lesson.type = form.type.data
            try:
                db.session.commit()
                flash("Đã cập nhật bài học.", "success")
                return _back_to(lesson)
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(f"Error updating lesson {lesson_id}: {e}")
                flash(user_message(e), "danger")
        else:
            flash(first_error(form), "danger")
    return render_template(
        "lessons/edit.html",
        lesson=lesson,
        form=form,
        section_form=SectionForm(formdata=None),
        question_form=SectionQuestionForm(formdata=None),
    )


@lessons_bp.route("/<int:lesson_id>/sections", methods=["POST"])
@staff_required
def add_section(lesson_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    form = SectionForm()
    if not form.validate_on_submit():
        flash(first_error(form), "danger")
        return _back_to(lesson)
    try:
        append_ordered(
            TestSection,
            lesson_id=lesson.id,
            title=form.title.data.strip(),
            type=form.type.data,
            content=form.content.data or None,
        )
        flash("Đã thêm phần mới.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(lesson)


@lessons_bp.route("/<int:lesson_id>/sections/<int:section_id>/move", methods=["POST"])
@staff_required
def move_section(lesson_id, section_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    section = _section_of(lesson, section_id)
    try:
        move_ordered(section, request.form.get("direction", ""))
    except ValueError:
        abort(400)
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(lesson)


@lessons_bp.route("/<int:lesson_id>/sections/<int:section_id>/delete", methods=["POST"])
@staff_required
def delete_section(lesson_id, section_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    section = _section_of(lesson, section_id)
    try:
        remove_ordered(section)
        flash("Đã xóa phần.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(lesson)


@lessons_bp.route("/<int:lesson_id>/questions", methods=["POST"])
@staff_required
def add_question(lesson_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    form = SectionQuestionForm()
    if not form.validate_on_submit():
        flash(first_error(form), "danger")
        return _back_to(lesson)
    if not form.section_id.data.isdigit():
        abort(404)
    section = _section_of(lesson, int(form.section_id.data))
    try:
        append_ordered(
            Question,
            section_id=section.id,
            question_text=form.question_text.data.strip(),
            question_type="multiple_choice",
            options=form.labelled_options(),
            correct_answer=form.correct_answer.data,
        )
        flash("Đã thêm câu hỏi.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(lesson)


@lessons_bp.route("/<int:lesson_id>/questions/<int:question_id>/move", methods=["POST"])
@staff_required
def move_question(lesson_id, question_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    question = _question_of(lesson, question_id)
    try:
        move_ordered(question, request.form.get("direction", ""))
    except ValueError:
        abort(400)
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(lesson)


@lessons_bp.route("/<int:lesson_id>/questions/<int:question_id>/delete", methods=["POST"])
@staff_required
def delete_question(lesson_id, question_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    question = _question_of(lesson, question_id)
    try:
        remove_ordered(question)
        flash("Đã xóa câu hỏi.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(lesson)


@lessons_bp.route("/<int:lesson_id>/import", methods=["GET", "POST"])
@staff_required
def import_lesson(lesson_id):
    lesson = db.get_or_404(Lesson, lesson_id)
    if request.method == "POST":
        try:
            df = read_import_file(request.files.get("file"))
        except AdminError as e:
            flash(user_message(e), "danger")
            return render_template("lessons/import.html", lesson=lesson, columns=EXPECTED_IMPORT_COLUMNS)

        result = import_lesson_rows(lesson.id, df)
        if result.imported:
            flash(f"Đã nhập {result.imported} câu hỏi ({result.sections_created} phần mới).", "success")
        for error in result.errors[:5]:
            flash(error, "warning")
        if len(result.errors) > 5:
            flash(f"... và {len(result.errors) - 5} lỗi khác.", "warning")
        if not result.imported:
            flash("Không có câu hỏi hợp lệ nào trong file.", "danger")
            return render_template("lessons/import.html", lesson=lesson, columns=EXPECTED_IMPORT_COLUMNS)
        return _back_to(lesson)
    return render_template("lessons/import.html", lesson=lesson, columns=EXPECTED_IMPORT_COLUMNS)


@lessons_bp.route("/import/template/<fmt>")
@staff_required
def download_template(fmt):
    try:
        output, filename, mimetype = template_file(fmt)
    except AdminError as e:
        flash(user_message(e), "danger")
        return redirect(url_for("lessons.list_lessons"))
    current_app.logger.info(f"Sending template file: {filename}")
    return send_file(output, mimetype=mimetype, as_attachment=True, download_name=filename)
