# prep_admin/main.py
import os

import click
from dotenv import load_dotenv

# Config classes read the environment at import time
load_dotenv()

from flask import Flask, flash, jsonify, redirect, render_template, request, url_for  # noqa: E402
from flask_login import current_user  # noqa: E402

from prep_admin.config import config_by_name  # noqa: E402
from prep_admin.errors import AdminError, user_message  # noqa: E402
from prep_admin.extensions import csrf, db, login_manager, migrate  # noqa: E402
from prep_admin.logging_config import init_logging  # noqa: E402
from prep_admin.session import SessionService  # noqa: E402

# Every model module must be imported before relationships are configured
from prep_admin.models import curriculum, exercise, lesson  # noqa: E402,F401
from prep_admin.models.user import Profile  # noqa: E402

from prep_admin.routes.admin import admin_bp  # noqa: E402
from prep_admin.routes.api import api_bp  # noqa: E402
from prep_admin.routes.auth import auth_bp  # noqa: E402
from prep_admin.routes.learning_paths import learning_paths_bp  # noqa: E402
from prep_admin.routes.lessons import lessons_bp  # noqa: E402
from prep_admin.routes.user import user_bp  # noqa: E402
from prep_admin.routes.users import users_bp  # noqa: E402


def _bootstrap_admin(app):
    """Create the first admin account when the database has none."""
    if Profile.query.filter_by(role="admin").first():
        return
    admin = Profile(
        email=app.config["ADMIN_EMAIL"].strip().lower(),
        full_name="Administrator",
        role="admin",
        is_active=True,
    )
    admin.set_password(app.config["ADMIN_PASSWORD"])
    db.session.add(admin)
    db.session.commit()
    app.logger.info(f"Admin account {admin.email} created.")


def create_app(test_config=None):
    app = Flask(__name__, template_folder="templates", static_folder="static")

    config_name = os.environ.get("APP_ENV", "development")
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)
    if test_config:
        app.config.update(test_config)
    elif config_name == "production":
        config_class.validate()

    init_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message = "Vui lòng đăng nhập để tiếp tục."
    login_manager.login_message_category = "warning"
    SessionService().init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(Profile, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        if request.path.startswith("/api/"):
            return jsonify(error="Không được phép."), 401
        flash(login_manager.login_message, login_manager.login_message_category)
        return redirect(url_for("auth.login", next=request.path))

    with app.app_context():
        try:
            db.create_all()
            _bootstrap_admin(app)
        except Exception as e:
            db.session.rollback()
            app.logger.error(f"Error during database initialization or admin creation: {e}")
            raise

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(user_bp, url_prefix="/user")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(lessons_bp, url_prefix="/admin/lessons")
    app.register_blueprint(learning_paths_bp, url_prefix="/admin/learning-paths")
    app.register_blueprint(users_bp, url_prefix="/admin/users")
    # JSON API relies on the login session; forms keep CSRF
    app.register_blueprint(api_bp, url_prefix="/api")
    csrf.exempt(api_bp)

    @app.route("/")
    def index():
        if current_user.is_authenticated:
            return redirect(url_for("admin.dashboard"))
        return redirect(url_for("auth.login"))

    # Error Handling
    @app.errorhandler(AdminError)
    def handle_admin_error(e):
        if e.detail:
            app.logger.error(f"{type(e).__name__} on {request.path}: {e.detail}")
        if request.path.startswith("/api/"):
            return jsonify(e.to_dict()), e.status_code
        if e.status_code == 404:
            return render_template("404.html"), 404
        flash(user_message(e), "danger")
        return redirect(request.referrer or url_for("admin.dashboard"))

    @app.errorhandler(404)
    def page_not_found(e):
        if request.path.startswith("/api/"):
            return jsonify(error="Không tìm thấy"), 404
        return render_template("404.html"), 404

    @app.errorhandler(413)
    def request_too_large(e):
        message = "File không được vượt quá 10MB"
        if request.path.startswith("/api/"):
            return jsonify(error=message), 413
        flash(message, "danger")
        return redirect(request.referrer or url_for("admin.dashboard"))

    @app.errorhandler(500)
    def internal_server_error(e):
        app.logger.error(f"Internal Server Error: {e}")
        db.session.rollback()
        if request.path.startswith("/api/"):
            return jsonify(error="Lỗi máy chủ. Vui lòng thử lại sau."), 500
        return render_template("500.html"), 500

    @app.cli.command("seed-exercises")
    def seed_exercises():
        """Insert the sample exercises."""
        from prep_admin.authoring import ExerciseDraft
        from prep_admin.exercises import SAMPLE_EXERCISES, create_exercise

        created = 0
        for sample in SAMPLE_EXERCISES:
            try:
                create_exercise(ExerciseDraft.from_payload(sample))
                created += 1
            except AdminError as e:
                click.echo(f"Bỏ qua '{sample['title']}': {user_message(e)}", err=True)
        click.echo(f"Đã thêm {created} bài tập mẫu")

    return app
