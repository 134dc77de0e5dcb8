from functools import wraps

from flask import Blueprint, abort, flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from prep_admin.forms import LoginForm
from prep_admin.models.user import Profile

auth_bp = Blueprint("auth", __name__)

FORBIDDEN_MESSAGE = "Bạn không có quyền truy cập trang này."


def role_required(*roles):
    """Like ``login_required`` but also checks ``current_user.role``."""

    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role not in roles:
                if request.path.startswith("/api/"):
                    return jsonify(error=FORBIDDEN_MESSAGE), 403
                abort(403)
            return view(*args, **kwargs)

        return wrapped

    return decorator


admin_required = role_required("admin")
staff_required = role_required("admin", "teacher")


def _safe_next(target):
    # Only same-site relative paths
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("admin.dashboard"))
    form = LoginForm()
    if form.validate_on_submit():
        profile = Profile.query.filter_by(email=form.email.data.strip().lower()).first()
        if profile and profile.check_password(form.password.data):
            # login_user refuses profiles whose is_active is False
            if login_user(profile, remember=form.remember.data):
                flash("Đăng nhập thành công.", "success")
                return redirect(_safe_next(request.args.get("next")) or url_for("admin.dashboard"))
            flash("Tài khoản đã bị vô hiệu hóa. Vui lòng liên hệ quản trị viên.", "danger")
        else:
            flash("Email hoặc mật khẩu không đúng.", "danger")
    elif form.errors:
        flash(next(iter(form.errors.values()))[0], "danger")
    return render_template("auth/login.html", form=form)


@auth_bp.route("/logout")
@login_required
def logout():
    logout_user()
    flash("Đã đăng xuất.", "success")
    return redirect(url_for("auth.login"))
