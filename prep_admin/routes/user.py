from flask import Blueprint, current_app, flash, redirect, render_template, url_for
from flask_login import current_user, login_required

from prep_admin.extensions import db
from prep_admin.forms import ChangePasswordForm
from prep_admin.session import current_session

user_bp = Blueprint("user", __name__)


@user_bp.route("/change-password", methods=["GET", "POST"])
@login_required
def change_password():
    form = ChangePasswordForm()
    if form.validate_on_submit():
        if not current_user.check_password(form.current_password.data):
            flash("Mật khẩu hiện tại không đúng.", "danger")
        elif form.new_password.data == form.current_password.data:
            flash("Mật khẩu mới phải khác mật khẩu hiện tại.", "warning")
        else:
            try:
                current_user.set_password(form.new_password.data)
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(f"Error changing password for {current_user.email}: {e}")
                flash("Không thể đổi mật khẩu. Vui lòng thử lại sau.", "danger")
            else:
                current_session().profile_changed(current_user._get_current_object())
                flash("Đổi mật khẩu thành công!", "success")
                return redirect(url_for("admin.dashboard"))
    return render_template("user/change_password.html", form=form, title="Đổi mật khẩu")
