from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from classes.progress_manager import ProgressManager
from models import db
from models.courses import Course
from models.course_lessons import Lesson
from models.enrollments import Enrollment
from models.lesson_progress import LessonProgress
from conftest import auth_headers, course_lesson_ids, enroll, make_course


def test_learner_cannot_manage_courses(client, learner):
    response = client.get("/api/educator/courses", headers=auth_headers(learner))
    assert response.status_code == 403
    assert response.get_json()["error"] == "Forbidden - Educator access required"


def test_course_crud(client, educator):
    headers = auth_headers(educator)

    response = client.post("/api/educator/courses", json={"title": "  Data Science  ", "price": "49.5"}, headers=headers)
    assert response.status_code == 201
    created = response.get_json()["course"]
    assert created["title"] == "Data Science"
    assert created["status"] == "draft"
    assert created["price"] == 49.5

    course_id = created["id"]
    response = client.put(f"/api/educator/courses/{course_id}", json={"subtitle": "From zero"}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()["course"]["subtitle"] == "From zero"

    courses = client.get("/api/educator/courses", headers=headers).get_json()["courses"]
    assert [c["id"] for c in courses] == [course_id]
    assert courses[0]["lesson_count"] == 0
    assert courses[0]["enrollment_count"] == 0

    response = client.delete(f"/api/educator/courses/{course_id}", headers=headers)
    assert response.status_code == 200
    assert db.session.get(Course, course_id) is None


def test_create_course_requires_title(client, educator):
    response = client.post("/api/educator/courses", json={"description": "No title"}, headers=auth_headers(educator))
    assert response.status_code == 400


def test_invalid_price_rejected(client, educator, course):
    response = client.put(
        f"/api/educator/courses/{course.id}", json={"price": "free"}, headers=auth_headers(educator)
    )
    assert response.status_code == 400


def test_other_educator_cannot_touch_course(client, other_educator, course):
    headers = auth_headers(other_educator)

    assert client.get(f"/api/educator/courses/{course.id}", headers=headers).status_code == 403
    assert client.delete(f"/api/educator/courses/{course.id}", headers=headers).status_code == 403
    assert client.get(f"/api/educator/courses/{course.id}/students", headers=headers).status_code == 403


def test_missing_course(client, educator):
    assert client.get("/api/educator/courses/9999", headers=auth_headers(educator)).status_code == 404


def test_publish_requires_a_lesson(client, educator):
    empty = make_course(educator, lessons_per_section=(), status="draft", title="Empty")
    headers = auth_headers(educator)

    response = client.post(f"/api/educator/courses/{empty.id}/publish", headers=headers)
    assert response.status_code == 400

    draft = make_course(educator, lessons_per_section=(1,), status="draft", title="Ready")
    response = client.post(f"/api/educator/courses/{draft.id}/publish", headers=headers)
    assert response.status_code == 200
    assert response.get_json()["course"]["status"] == "published"

    response = client.post(f"/api/educator/courses/{draft.id}/unpublish", headers=headers)
    assert response.get_json()["course"]["status"] == "draft"


def test_sections_and_lessons(client, educator):
    course = make_course(educator, lessons_per_section=(), status="draft", title="Build up")
    headers = auth_headers(educator)

    response = client.post(f"/api/educator/courses/{course.id}/sections", json={"title": "Intro"}, headers=headers)
    assert response.status_code == 201
    section = response.get_json()["section"]
    assert section["order_index"] == 1

    url = f"/api/educator/courses/{course.id}/sections/{section['id']}/lessons"
    first = client.post(url, json={"title": "Welcome", "duration": 5}, headers=headers).get_json()["lesson"]
    second = client.post(url, json={"title": "Setup"}, headers=headers).get_json()["lesson"]
    assert (first["order_index"], second["order_index"]) == (1, 2)

    response = client.put(
        f"/api/educator/courses/{course.id}/lessons/{second['id']}",
        json={"title": "Install tools", "is_preview": True},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.get_json()["lesson"]["is_preview"] is True

    curriculum = client.get(f"/api/educator/courses/{course.id}/curriculum", headers=headers).get_json()
    assert [l["title"] for l in curriculum["sections"][0]["lessons"]] == ["Welcome", "Install tools"]

    response = client.delete(f"/api/educator/courses/{course.id}/sections/{section['id']}", headers=headers)
    assert response.status_code == 200
    assert Lesson.query.filter_by(course_id=course.id).count() == 0


def test_lesson_requires_title_and_valid_duration(client, educator, course):
    headers = auth_headers(educator)
    section_id = course.sections[0].id
    url = f"/api/educator/courses/{course.id}/sections/{section_id}/lessons"

    assert client.post(url, json={}, headers=headers).status_code == 400
    assert client.post(url, json={"title": "Bad", "duration": "long"}, headers=headers).status_code == 400
    assert client.post(url, json={"title": "Bad", "duration": -3}, headers=headers).status_code == 400


def test_lesson_content_is_sanitised(client, educator, course):
    section_id = course.sections[0].id
    response = client.post(
        f"/api/educator/courses/{course.id}/sections/{section_id}/lessons",
        json={"title": "Notes", "content": "<p>Hello</p><script>alert(1)</script>"},
        headers=auth_headers(educator),
    )

    content = response.get_json()["lesson"]["content"]
    assert "<p>Hello</p>" in content
    assert "<script>" not in content


def test_adding_a_lesson_reconciles_enrollments(client, educator, learner, course):
    enrollment = enroll(learner, course)
    for lesson_id in course_lesson_ids(course):
        db.session.add(LessonProgress(enrollment_id=enrollment.id, lesson_id=lesson_id))
    db.session.commit()
    enrollment.progress = 100
    db.session.commit()

    client.post(
        f"/api/educator/courses/{course.id}/sections/{course.sections[0].id}/lessons",
        json={"title": "Bonus"},
        headers=auth_headers(educator),
    )

    assert db.session.get(Enrollment, enrollment.id).progress == 80


def test_deleting_a_completed_lesson_reconciles_enrollments(client, educator, learner, course):
    enrollment = enroll(learner, course)
    lesson_ids = course_lesson_ids(course)
    db.session.add(LessonProgress(enrollment_id=enrollment.id, lesson_id=lesson_ids[0]))
    db.session.commit()
    enrollment.progress = 25
    db.session.commit()

    response = client.delete(f"/api/educator/courses/{course.id}/lessons/{lesson_ids[0]}", headers=auth_headers(educator))

    assert response.status_code == 200
    assert LessonProgress.query.count() == 0
    assert db.session.get(Enrollment, enrollment.id).progress == 0


def test_roster_reconciles_and_reports_stats(client, educator, learner, other_learner, course):
    lesson_ids = course_lesson_ids(course)
    finished = enroll(learner, course, progress=10)
    for lesson_id in lesson_ids:
        db.session.add(LessonProgress(enrollment_id=finished.id, lesson_id=lesson_id))
    halfway = enroll(other_learner, course, progress=0)
    db.session.add(LessonProgress(enrollment_id=halfway.id, lesson_id=lesson_ids[0]))
    db.session.commit()

    response = client.get(f"/api/educator/courses/{course.id}/students", headers=auth_headers(educator))

    assert response.status_code == 200
    data = response.get_json()
    by_learner = {s["learner"]["id"]: s for s in data["students"]}
    assert by_learner[learner.id]["progress"] == 100
    assert by_learner[other_learner.id]["progress"] == 25
    assert by_learner[other_learner.id]["completed_lessons"] == 1
    assert data["stats"] == {
        "total_students": 2,
        "average_completion": 63,
        "completed_students": 1,
        "active_students": 1,
        "not_started": 0,
        "total_lessons": 4,
    }
    assert db.session.get(Enrollment, finished.id).progress == 100
    assert db.session.get(Enrollment, halfway.id).progress == 25


def test_roster_without_students(client, educator, course):
    data = client.get(f"/api/educator/courses/{course.id}/students", headers=auth_headers(educator)).get_json()

    assert data["students"] == []
    assert data["stats"]["total_students"] == 0
    assert data["stats"]["average_completion"] == 0
    assert data["stats"]["total_lessons"] == 4


def test_dashboard(client, educator, learner, course):
    make_course(educator, lessons_per_section=(1,), status="draft", title="Draft")
    enroll(learner, course, progress=50)

    data = client.get("/api/educator/dashboard", headers=auth_headers(educator)).get_json()

    assert data["total_courses"] == 2
    assert data["published_courses"] == 1
    assert data["draft_courses"] == 1
    assert data["total_students"] == 1
    assert data["total_lessons"] == 5
    assert data["average_completion"] == 50


def test_roster_read_failure_falls_back_to_empty(client, educator, learner, course):
    enroll(learner, course)
    error = OperationalError("SELECT", {}, Exception("connection refused"))

    with patch.object(ProgressManager, "count_total_lessons", side_effect=error):
        response = client.get(f"/api/educator/courses/{course.id}/students", headers=auth_headers(educator))

    assert response.status_code == 200
    data = response.get_json()
    assert data["students"] == []
    assert data["stats"] == {
        "total_students": 0,
        "average_completion": 0,
        "completed_students": 0,
        "active_students": 0,
        "not_started": 0,
        "total_lessons": 0,
    }


def test_roster_serves_computed_progress_when_repair_fails(client, educator, learner, course):
    enrollment = enroll(learner, course, progress=60)
    error = OperationalError("UPDATE enrollments", {}, Exception("database is locked"))

    with patch.object(ProgressManager, "write_progress", side_effect=error):
        response = client.get(f"/api/educator/courses/{course.id}/students", headers=auth_headers(educator))

    assert response.status_code == 200
    assert response.get_json()["students"][0]["progress"] == 0
    assert db.session.get(Enrollment, enrollment.id).progress == 60
