import os

os.environ.setdefault("FLASK_ENV", "testing")

import pytest

from app import create_app
from models import db
from models.users import User
from models.courses import Course
from models.course_sections import Section
from models.course_lessons import Lesson
from models.enrollments import Enrollment
from utils.tokens import get_jwt_token


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def foreign_keys_enforced(app):
    """sqlite skips foreign key checks unless asked; MySQL always runs them."""
    with db.engine.connect() as connection:
        connection.exec_driver_sql("PRAGMA foreign_keys=ON")
    yield
    db.session.remove()
    with db.engine.connect() as connection:
        connection.exec_driver_sql("PRAGMA foreign_keys=OFF")


def _make_user(email, full_name, role):
    user = User(email=email, full_name=full_name, role=role)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def educator(app):
    return _make_user("educator@example.com", "Test Educator", "educator")


@pytest.fixture
def other_educator(app):
    return _make_user("other.educator@example.com", "Other Educator", "educator")


@pytest.fixture
def learner(app):
    return _make_user("learner@example.com", "Test Learner", "learner")


@pytest.fixture
def other_learner(app):
    return _make_user("other.learner@example.com", "Other Learner", "learner")


def auth_headers(user):
    token = get_jwt_token({
        "user_id": user.id, "role": user.role, "email": user.email, "full_name": user.full_name
    })
    return {"Authorization": f"Bearer {token}"}


def make_course(educator, lessons_per_section=(2, 2), status="published", title="Python Basics"):
    """Course with one section per entry, each holding that many lessons."""
    course = Course(educator_id=educator.id, title=title, status=status, price=0)
    db.session.add(course)
    db.session.flush()

    for s_index, lesson_count in enumerate(lessons_per_section, start=1):
        section = Section(course_id=course.id, title=f"Section {s_index}", order_index=s_index)
        db.session.add(section)
        db.session.flush()
        for l_index in range(1, lesson_count + 1):
            db.session.add(Lesson(
                section_id=section.id,
                course_id=course.id,
                title=f"Lesson {s_index}.{l_index}",
                duration=10,
                order_index=l_index,
                is_preview=(s_index == 1 and l_index == 1),
            ))
    db.session.commit()
    return course


def course_lesson_ids(course):
    return [
        lesson.id
        for lesson in Lesson.query.filter_by(course_id=course.id).order_by(Lesson.section_id, Lesson.order_index).all()
    ]


def enroll(learner, course, progress=0):
    enrollment = Enrollment(learner_id=learner.id, course_id=course.id, progress=progress)
    db.session.add(enrollment)
    db.session.commit()
    return enrollment


@pytest.fixture
def course(educator):
    return make_course(educator)


@pytest.fixture
def enrollment(learner, course):
    return enroll(learner, course)
