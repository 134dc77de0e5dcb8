from flask import Blueprint, render_template

from prep_admin.dashboard import get_dashboard_data
from prep_admin.routes.auth import staff_required

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/")
@staff_required
def dashboard():
    return render_template("dashboard.html", **get_dashboard_data())
