from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user

from prep_admin.accounts import (
    create_profile,
    delete_profile,
    get_profile,
    search_profiles,
    set_active,
    update_profile,
)
from prep_admin.dashboard import user_stats
from prep_admin.errors import AdminError, user_message
from prep_admin.forms import ROLE_LABELS, UserForm, first_error
from prep_admin.routes.auth import admin_required, staff_required
from prep_admin.session import current_session

users_bp = Blueprint("users", __name__)

SELF_MESSAGE = "Không thể thực hiện thao tác này trên chính tài khoản của bạn."


def _list_url():
    return redirect(request.referrer or url_for("users.list_users"))


@users_bp.route("/")
@staff_required
def list_users():
    q = request.args.get("q", "").strip()
    role = request.args.get("role", "all")
    page = request.args.get("page", 1, type=int)
    pagination = search_profiles(search=q, role=role).paginate(
        page=page,
        per_page=current_app.config.get("PER_PAGE", 10),
        error_out=False,
    )
    return render_template(
        "users/list.html",
        pagination=pagination,
        users=pagination.items,
        q=q,
        role=role,
        roles=ROLE_LABELS,
        stats=user_stats(),
    )


@users_bp.route("/new", methods=["GET", "POST"])
@admin_required
def create_user():
    form = UserForm()
    if request.method == "POST":
        if not form.validate_on_submit():
            flash(first_error(form), "danger")
        elif not form.password.data:
            flash("Vui lòng nhập mật khẩu cho tài khoản mới.", "danger")
        else:
            try:
                profile = create_profile(
                    email=form.email.data,
                    password=form.password.data,
                    full_name=form.full_name.data,
                    role=form.role.data,
                    course=form.course.data,
                    class_name=form.class_name.data,
                    is_active=form.is_active.data,
                )
                flash(f"Đã tạo tài khoản {profile.email}.", "success")
                return redirect(url_for("users.list_users"))
            except AdminError as e:
                flash(user_message(e), "danger")
    return render_template("users/form.html", form=form, profile=None, title="Thêm người dùng")


@users_bp.route("/<int:user_id>/edit", methods=["GET", "POST"])
@admin_required
def edit_user(user_id):
    profile = get_profile(user_id)
    form = UserForm(obj=profile)
    if request.method == "POST":
        if not form.validate_on_submit():
            flash(first_error(form), "danger")
        elif profile.id == current_user.id and (form.role.data != "admin" or not form.is_active.data):
            flash(SELF_MESSAGE, "danger")
        else:
            try:
                update_profile(
                    profile.id,
                    email=form.email.data,
                    full_name=form.full_name.data,
                    role=form.role.data,
                    course=form.course.data,
                    class_name=form.class_name.data,
                    is_active=form.is_active.data,
                    password=form.password.data,
                )
                current_session().profile_changed(profile)
                flash("Đã cập nhật người dùng.", "success")
                return redirect(url_for("users.list_users"))
            except AdminError as e:
                flash(user_message(e), "danger")
    return render_template("users/form.html", form=form, profile=profile, title="Sửa người dùng")


@users_bp.route("/<int:user_id>/toggle", methods=["POST"])
@admin_required
def toggle_user(user_id):
    profile = get_profile(user_id)
    if profile.id == current_user.id:
        flash(SELF_MESSAGE, "danger")
        return _list_url()
    try:
        set_active(profile.id, not profile.is_active)
        current_session().profile_changed(profile)
        state = "kích hoạt" if profile.is_active else "vô hiệu hóa"
        flash(f"Đã {state} tài khoản {profile.email}.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _list_url()


@users_bp.route("/<int:user_id>/delete", methods=["POST"])
@admin_required
def delete_user(user_id):
    profile = get_profile(user_id)
    if request.form.get("confirm") != "yes":
        flash("Vui lòng xác nhận trước khi xóa.", "warning")
        return _list_url()
    if profile.id == current_user.id:
        flash(SELF_MESSAGE, "danger")
        return _list_url()
    try:
        delete_profile(profile.id)
        flash("Đã xóa người dùng.", "success")
    except AdminError as e:
        flash(user_message(e), "danger")
    return _list_url()
