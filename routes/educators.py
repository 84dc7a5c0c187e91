import logging
from flask import Blueprint, jsonify, g, request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from classes.progress_manager import ProgressManager
from models import db
from models.users import User
from models.courses import Course
from models.course_sections import Section
from models.course_lessons import Lesson
from models.enrollments import Enrollment
from models.lesson_progress import LessonProgress
from models.tasks import Task
from utils.helpers import average_percentage, commit_or_error, parse_int, sanitize_content
from utils.utils import login_required, role_required

logger = logging.getLogger(__name__)

# Educators' blueprint
educator_bp = Blueprint("educator", __name__)

COURSE_FIELDS = ("title", "subtitle", "description", "category", "level", "thumbnail_url")


def get_owned_course(course_id):
    """Returns (course, error_response)."""
    course = db.session.get(Course, course_id)
    if not course:
        return None, (jsonify({"error": "Course not found"}), 404)
    if course.educator_id != g.user.get("user_id"):
        return None, (jsonify({"error": "You do not have permission to manage this course"}), 403)
    return course, None


def _apply_course_fields(course, data):
    for field in COURSE_FIELDS:
        if field in data:
            setattr(course, field, data.get(field))
    if "price" in data:
        try:
            course.price = float(data.get("price") or 0)
        except (TypeError, ValueError):
            raise ValueError("Price must be a number.")


#__________________________________________________________________________________________ * Courses *__________________________________________________

# fetch all courses
@educator_bp.route("/courses", methods=["GET"])
@login_required
@role_required("educator")
def get_my_courses():
    educator_id = g.user.get("user_id")

    enrollment_counts = dict(
        db.session.query(Enrollment.course_id, func.count(Enrollment.id))
        .join(Course, Course.id == Enrollment.course_id)
        .filter(Course.educator_id == educator_id)
        .group_by(Enrollment.course_id)
        .all()
    )
    lesson_counts = dict(
        db.session.query(Lesson.course_id, func.count(Lesson.id))
        .join(Course, Course.id == Lesson.course_id)
        .filter(Course.educator_id == educator_id)
        .group_by(Lesson.course_id)
        .all()
    )

    courses = Course.query.filter_by(educator_id=educator_id).order_by(Course.created_at.desc(), Course.id.desc()).all()
    courses_list = [
        {
            **c.to_dict(),
            "enrollment_count": enrollment_counts.get(c.id, 0),
            "lesson_count": lesson_counts.get(c.id, 0),
        }
        for c in courses
    ]

    return jsonify({"courses": courses_list}), 200


# create a course
@educator_bp.route("/courses", methods=["POST"])
@login_required
@role_required("educator")
def create_course():
    data = request.get_json(silent=True) or {}
    if not data.get("title"):
        return jsonify({"error": "Title is required"}), 400

    course = Course(educator_id=g.user.get("user_id"), status="draft")
    try:
        _apply_course_fields(course, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    db.session.add(course)
    error = commit_or_error("Failed to create course")
    if error:
        return error

    logger.info("Educator %s created course %s", course.educator_id, course.id)
    return jsonify({"message": "Course created successfully", "course": course.to_dict()}), 201


# Fetch course details
@educator_bp.route("/courses/<int:course_id>", methods=["GET"])
@login_required
@role_required("educator")
def get_course_details(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error
    return jsonify(course.to_dict()), 200


# Edit course
@educator_bp.route("/courses/<int:course_id>", methods=["PUT"])
@login_required
@role_required("educator")
def edit_course(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        _apply_course_fields(course, data)
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    error = commit_or_error("Failed to update course")
    if error:
        return error
    return jsonify({"message": "Course updated successfully", "course": course.to_dict()}), 200


# Delete course
@educator_bp.route("/courses/<int:course_id>", methods=["DELETE"])
@login_required
@role_required("educator")
def delete_course(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    # Tasks outlive the course they were linked to
    Task.query.filter_by(course_id=course_id).update({"course_id": None}, synchronize_session="fetch")
    db.session.delete(course)
    error = commit_or_error("Failed to delete course")
    if error:
        return error
    return jsonify({"message": "Course deleted successfully"}), 200


@educator_bp.route("/courses/<int:course_id>/publish", methods=["POST"])
@login_required
@role_required("educator")
def publish_course(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    if ProgressManager.count_total_lessons(course_id) == 0:
        return jsonify({"error": "Add at least one lesson before publishing"}), 400

    course.status = "published"
    error = commit_or_error("Failed to publish course")
    if error:
        return error
    return jsonify({"message": "Course published successfully", "course": course.to_dict()}), 200


@educator_bp.route("/courses/<int:course_id>/unpublish", methods=["POST"])
@login_required
@role_required("educator")
def unpublish_course(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    course.status = "draft"
    error = commit_or_error("Failed to unpublish course")
    if error:
        return error
    return jsonify({"message": "Course moved back to draft", "course": course.to_dict()}), 200


#__________________________________________________________________________________________ * Curriculum *__________________________________________________

@educator_bp.route("/courses/<int:course_id>/curriculum", methods=["GET"])
@login_required
@role_required("educator")
def get_curriculum(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    return jsonify({
        "course": course.to_dict(),
        "sections": [
            {**section.to_dict(), "lessons": [lesson.to_dict() for lesson in section.lessons]}
            for section in course.sections
        ],
    }), 200


# add a section
@educator_bp.route("/courses/<int:course_id>/sections", methods=["POST"])
@login_required
@role_required("educator")
def add_section(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    if not data.get("title"):
        return jsonify({"error": "Title is required"}), 400

    try:
        order_index = parse_int(data["order_index"], "order_index") if data.get("order_index") is not None \
            else Section.get_next_order(course_id)
        section = Section(
            course_id=course_id,
            title=data.get("title"),
            description=data.get("description"),
            order_index=order_index,
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    db.session.add(section)
    error = commit_or_error("Failed to create section")
    if error:
        return error
    return jsonify({"message": "Section created successfully", "section": section.to_dict()}), 201


# Edit section
@educator_bp.route("/courses/<int:course_id>/sections/<int:section_id>", methods=["PUT"])
@login_required
@role_required("educator")
def edit_section(course_id, section_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    section = Section.query.filter_by(id=section_id, course_id=course_id).first()
    if not section:
        return jsonify({"error": "Section not found"}), 404

    data = request.get_json(silent=True) or {}
    try:
        if "title" in data:
            section.title = data.get("title")
        if "description" in data:
            section.description = data.get("description")
        if data.get("order_index") is not None:
            section.order_index = parse_int(data["order_index"], "order_index")
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    error = commit_or_error("Failed to update section")
    if error:
        return error
    return jsonify({"message": "Section updated successfully", "section": section.to_dict()}), 200


# Delete a section and its lessons
@educator_bp.route("/courses/<int:course_id>/sections/<int:section_id>", methods=["DELETE"])
@login_required
@role_required("educator")
def delete_section(course_id, section_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    section = Section.query.filter_by(id=section_id, course_id=course_id).first()
    if not section:
        return jsonify({"error": "Section not found"}), 404

    db.session.delete(section)
    error = commit_or_error("Failed to delete section")
    if error:
        return error

    ProgressManager.reconcile_all(course_id)
    return jsonify({"message": "Section deleted successfully"}), 200


def _apply_lesson_fields(lesson, data):
    if "title" in data:
        lesson.title = data.get("title")
    if "video_url" in data:
        lesson.video_url = data.get("video_url") or None
    if "content" in data:
        lesson.content = sanitize_content(data.get("content"))
    if data.get("duration") is not None:
        lesson.duration = parse_int(data["duration"], "duration")
    if "is_preview" in data:
        lesson.is_preview = bool(data.get("is_preview"))
    if data.get("order_index") is not None:
        lesson.order_index = parse_int(data["order_index"], "order_index")


# add a lesson to a section
@educator_bp.route("/courses/<int:course_id>/sections/<int:section_id>/lessons", methods=["POST"])
@login_required
@role_required("educator")
def add_lesson(course_id, section_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    section = Section.query.filter_by(id=section_id, course_id=course_id).first()
    if not section:
        return jsonify({"error": "Section not found"}), 404

    data = request.get_json(silent=True) or {}
    if not data.get("title"):
        return jsonify({"error": "Title is required"}), 400

    lesson = Lesson(
        section_id=section.id,
        course_id=course_id,
        order_index=Lesson.get_next_order(section.id),
    )
    try:
        _apply_lesson_fields(lesson, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    db.session.add(lesson)
    error = commit_or_error("Failed to create lesson")
    if error:
        return error

    # Every enrollment's percentage shifts when the lesson count does
    ProgressManager.reconcile_all(course_id)
    return jsonify({"message": "Lesson created successfully", "lesson": lesson.to_dict()}), 201


# Edit lesson
@educator_bp.route("/courses/<int:course_id>/lessons/<int:lesson_id>", methods=["PUT"])
@login_required
@role_required("educator")
def edit_lesson(course_id, lesson_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    lesson = Lesson.query.filter_by(id=lesson_id, course_id=course_id).first()
    if not lesson:
        return jsonify({"error": "Lesson not found"}), 404

    data = request.get_json(silent=True) or {}
    try:
        if data.get("section_id") is not None:
            section_id = parse_int(data["section_id"], "section_id")
            if not Section.query.filter_by(id=section_id, course_id=course_id).first():
                return jsonify({"error": "Section not found"}), 404
            lesson.section_id = section_id
        _apply_lesson_fields(lesson, data)
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    error = commit_or_error("Failed to update lesson")
    if error:
        return error
    return jsonify({"message": "Lesson updated successfully", "lesson": lesson.to_dict()}), 200


# Delete a lesson
@educator_bp.route("/courses/<int:course_id>/lessons/<int:lesson_id>", methods=["DELETE"])
@login_required
@role_required("educator")
def delete_lesson(course_id, lesson_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    lesson = Lesson.query.filter_by(id=lesson_id, course_id=course_id).first()
    if not lesson:
        return jsonify({"error": "Lesson not found"}), 404

    db.session.delete(lesson)
    error = commit_or_error("Failed to delete lesson")
    if error:
        return error

    ProgressManager.reconcile_all(course_id)
    return jsonify({"message": "Lesson deleted successfully"}), 200


#__________________________________________________________________________________________ * Students *__________________________________________________

def _empty_stats(total_lessons=0):
    return {
        "total_students": 0,
        "average_completion": 0,
        "completed_students": 0,
        "active_students": 0,
        "not_started": 0,
        "total_lessons": total_lessons,
    }


# Student roster with reconciled progress
@educator_bp.route("/courses/<int:course_id>/students", methods=["GET"])
@login_required
@role_required("educator")
def get_course_students(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    try:
        total_lessons = ProgressManager.count_total_lessons(course_id)
        rows = (
            db.session.query(Enrollment, User)
            .join(User, User.id == Enrollment.learner_id)
            .filter(Enrollment.course_id == course_id)
            .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
            .all()
        )

        students = []
        for enrollment, learner in rows:
            counts = ProgressManager.refresh_enrollment(enrollment, total_lessons=total_lessons)
            last_completed = (
                db.session.query(func.max(LessonProgress.completed_at))
                .filter(LessonProgress.enrollment_id == enrollment.id, LessonProgress.completed.is_(True))
                .scalar()
            )
            students.append({
                "enrollment_id": enrollment.id,
                "learner": learner.to_dict(),
                "progress": counts["progress"],
                "completed_lessons": counts["completed_lessons"],
                "total_lessons": total_lessons,
                "enrolled_at": enrollment.enrolled_at,
                "last_activity": last_completed or enrollment.enrolled_at,
            })
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error loading student data for course %s", course_id)
        return jsonify({"course": {"id": course_id}, "students": [], "stats": _empty_stats()}), 200

    progresses = [s["progress"] for s in students]
    completed_students = sum(1 for p in progresses if p == 100)
    active_students = sum(1 for p in progresses if 0 < p < 100)
    stats = {
        "total_students": len(students),
        "average_completion": average_percentage(progresses),
        "completed_students": completed_students,
        "active_students": active_students,
        "not_started": len(students) - completed_students - active_students,
        "total_lessons": total_lessons,
    }
    logger.debug("Roster stats for course %s: %s", course_id, stats)

    return jsonify({
        "course": {"id": course.id, "title": course.title},
        "students": students,
        "stats": stats,
    }), 200


# Educator dashboard stats
@educator_bp.route("/dashboard", methods=["GET"])
@login_required
@role_required("educator")
def get_dashboard():
    educator_id = g.user.get("user_id")

    courses = Course.query.filter_by(educator_id=educator_id).all()
    course_ids = [c.id for c in courses]

    stored_progress = []
    total_lessons = 0
    if course_ids:
        stored_progress = [
            p or 0 for (p,) in db.session.query(Enrollment.progress).filter(Enrollment.course_id.in_(course_ids)).all()
        ]
        total_lessons = Lesson.query.filter(Lesson.course_id.in_(course_ids)).count()

    return jsonify({
        "total_courses": len(courses),
        "published_courses": sum(1 for c in courses if c.is_published),
        "draft_courses": sum(1 for c in courses if not c.is_published),
        "total_students": len(stored_progress),
        "total_lessons": total_lessons,
        "average_completion": average_percentage(stored_progress),
    }), 200
