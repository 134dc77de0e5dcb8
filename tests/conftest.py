"""
Test fixtures for the prep admin back-office.

Provides app, client, admin_client and teacher_client fixtures backed by a
file-based SQLite database per test. Cloudinary is never called for real.

HTTP tests must not hold an app context open across requests (Flask would
reuse it, and with it ``g`` and the logged-in user), so database set-up in
those tests happens inside short ``app.app_context()`` blocks. Service tests
take the ``ctx`` fixture instead.
"""

import pytest

from prep_admin.main import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass"
TEACHER_EMAIL = "teacher@example.com"
TEACHER_PASSWORD = "teacherpass"


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    db_file = tmp_path / "test.db"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_file}",
        "SECRET_KEY": "test-secret-key",
        "WTF_CSRF_ENABLED": False,
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "LOG_FORMAT": "text",
        "ORDER_RETRY_ATTEMPTS": 50,
        "CLOUDINARY_CLOUD_NAME": "demo",
        "CLOUDINARY_API_KEY": "key",
        "CLOUDINARY_API_SECRET": "secret",
    })
    yield app

    from prep_admin.extensions import db

    with app.app_context():
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    """Application context for tests that call services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def login(app, email, password):
    client = app.test_client()
    client.post("/auth/login", data={"email": email, "password": password})
    return client


@pytest.fixture
def admin_client(app):
    """Test client logged in as the bootstrap admin."""
    return login(app, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def teacher_client(app):
    """Test client logged in as a teacher."""
    from prep_admin.accounts import create_profile

    with app.app_context():
        create_profile(TEACHER_EMAIL, TEACHER_PASSWORD, full_name="Cô Lan", role="teacher", course="IELTS")
    return login(app, TEACHER_EMAIL, TEACHER_PASSWORD)


@pytest.fixture
def lesson_id(app):
    from prep_admin.extensions import db
    from prep_admin.models.lesson import Lesson

    with app.app_context():
        lesson = Lesson(title="TOEIC Part 5", description="Incomplete sentences", type="TOEIC")
        db.session.add(lesson)
        db.session.commit()
        return lesson.id


@pytest.fixture
def path_id(app):
    from prep_admin.extensions import db
    from prep_admin.models.curriculum import LearningPath

    with app.app_context():
        path = LearningPath(name="IELTS 6.5 in 12 weeks", course_type="IELTS", level="Intermediate",
                            difficulty_level=3, duration_weeks=12)
        db.session.add(path)
        db.session.commit()
        return path.id
