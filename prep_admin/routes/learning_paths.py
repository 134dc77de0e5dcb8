from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, url_for

from prep_admin.dashboard import learning_paths_with_stats
from prep_admin.errors import AdminError, user_message
from prep_admin.extensions import db
from prep_admin.forms import CurriculumItemForm, NewLearningPathForm, first_error
from prep_admin.grouping import group_by_week, week_summary
from prep_admin.models.curriculum import CurriculumItem, LearningPath, PathItem
from prep_admin.models.lesson import Lesson
from prep_admin.ordering import append_ordered, move_ordered, remove_ordered
from prep_admin.routes.auth import staff_required

learning_paths_bp = Blueprint("learning_paths", __name__)

BLANK_CURRICULUM_ROWS = 3


def _back_to(path_id):
    return redirect(url_for("learning_paths.path_detail", path_id=path_id))


def _curriculum_values(entry, description):
    return {
        "week_number": entry.week_number.data or 1,
        "day_number": entry.day_number.data or 1,
        "title": entry.title.data.strip(),
        "description": description.data or None,
        "content_type": entry.content_type.data,
        "estimated_minutes": entry.estimated_minutes.data,
        "is_required": bool(entry.is_required.data),
    }


@learning_paths_bp.route("/")
@staff_required
def list_paths():
    return render_template("learning_paths/list.html", paths=learning_paths_with_stats(active_only=False))


@learning_paths_bp.route("/new", methods=["GET", "POST"])
@staff_required
def new_path():
    form = NewLearningPathForm()
    if request.method == "POST":
        if not form.validate_on_submit():
            flash(first_error(form), "danger")
            return render_template("learning_paths/new.html", form=form)

        path = LearningPath(
            name=form.name.data.strip(),
            description=form.description.data or None,
            course_type=form.course_type.data,
            level=form.level.data,
            target_score=form.target_score.data,
            duration_weeks=form.duration_weeks.data,
            difficulty_level=form.difficulty_level.data or 1,
            prerequisites=form.prerequisites.data or None,
            is_active=bool(form.is_active.data),
        )
        # Nobody else can see the path yet, so positions are numbered here and
        # the path commits together with its curriculum
        next_in_week = {}
        for entry in form.curriculum.entries:
            if not (entry.title.data or "").strip():
                continue
            values = _curriculum_values(entry, entry.notes)
            week = values["week_number"]
            next_in_week[week] = next_in_week.get(week, 0) + 1
            path.curriculum_items.append(CurriculumItem(order_index=next_in_week[week], **values))
        db.session.add(path)
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error creating learning path: {e}")
            flash(user_message(e), "danger")
            return render_template("learning_paths/new.html", form=form)
        flash(f"Đã tạo lộ trình với {len(path.curriculum_items)} mục học.", "success")
        return _back_to(path.id)

    while len(form.curriculum.entries) < BLANK_CURRICULUM_ROWS:
        form.curriculum.append_entry()
    return render_template("learning_paths/new.html", form=form)


@learning_paths_bp.route("/<int:path_id>")
@staff_required
def path_detail(path_id):
    path = db.get_or_404(LearningPath, path_id)
    path_items = (
        PathItem.query.filter_by(path_id=path.id).order_by(PathItem.item_order, PathItem.id).all()
    )
    lesson_ids_in_path = [item.lesson_id for item in path_items]
    available_lessons = Lesson.query
    if lesson_ids_in_path:
        available_lessons = available_lessons.filter(Lesson.id.not_in(lesson_ids_in_path))
    curriculum = group_by_week(path.curriculum_items)
    return render_template(
        "learning_paths/detail.html",
        path=path,
        path_items=path_items,
        available_lessons=available_lessons.order_by(Lesson.title).all(),
        curriculum=curriculum,
        summary=week_summary(curriculum),
        curriculum_form=CurriculumItemForm(formdata=None),
    )


@learning_paths_bp.route("/items/add", methods=["POST"])
@staff_required
def add_path_item():
    path_id = request.form.get("pathId", type=int)
    lesson_id = request.form.get("lessonId", type=int)
    if not path_id or not lesson_id:
        flash("Thiếu lộ trình hoặc bài học.", "danger")
        return redirect(request.referrer or url_for("learning_paths.list_paths"))
    path = db.get_or_404(LearningPath, path_id)
    if db.session.get(Lesson, lesson_id) is None:
        flash("Không tìm thấy bài học.", "danger")
    elif PathItem.query.filter_by(path_id=path.id, lesson_id=lesson_id).first():
        flash("Bài học đã có trong lộ trình.", "warning")
    else:
        try:
            append_ordered(PathItem, path_id=path.id, lesson_id=lesson_id)
            flash("Đã thêm bài học vào lộ trình.", "success")
        except AdminError as e:
            flash(user_message(e), "danger")
    return _back_to(path.id)


@learning_paths_bp.route("/items/remove", methods=["POST"])
@staff_required
def remove_path_item():
    item = db.get_or_404(PathItem, request.form.get("pathItemId", type=int))
    path_id = item.path_id
    try:
        remove_ordered(item)
        flash("Đã xóa bài học khỏi lộ trình.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(path_id)


@learning_paths_bp.route("/<int:path_id>/items/<int:item_id>/move", methods=["POST"])
@staff_required
def move_path_item(path_id, item_id):
    item = db.get_or_404(PathItem, item_id)
    if item.path_id != path_id:
        abort(404)
    try:
        move_ordered(item, request.form.get("direction", ""))
    except ValueError:
        abort(400)
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(path_id)


@learning_paths_bp.route("/<int:path_id>/curriculum", methods=["POST"])
@staff_required
def add_curriculum_item(path_id):
    path = db.get_or_404(LearningPath, path_id)
    form = CurriculumItemForm()
    if not form.validate_on_submit():
        flash(first_error(form), "danger")
        return _back_to(path.id)
    try:
        append_ordered(CurriculumItem, learning_path_id=path.id, **_curriculum_values(form, form.description))
        flash("Đã thêm mục học.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(path.id)


def _curriculum_item_of(path_id, item_id):
    item = db.get_or_404(CurriculumItem, item_id)
    if item.learning_path_id != path_id:
        abort(404)
    return item


@learning_paths_bp.route("/<int:path_id>/curriculum/<int:item_id>/move", methods=["POST"])
@staff_required
def move_curriculum_item(path_id, item_id):
    item = _curriculum_item_of(path_id, item_id)
    try:
        move_ordered(item, request.form.get("direction", ""))
    except ValueError:
        abort(400)
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(path_id)


@learning_paths_bp.route("/<int:path_id>/curriculum/<int:item_id>/delete", methods=["POST"])
@staff_required
def delete_curriculum_item(path_id, item_id):
    item = _curriculum_item_of(path_id, item_id)
    try:
        remove_ordered(item)
        flash("Đã xóa mục học.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _back_to(path_id)
