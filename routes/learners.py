import logging
from flask import Blueprint, jsonify, g
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from classes.enrollment_manager import EnrollmentManager, PaymentRequiredError
from classes.progress_manager import ProgressManager, ProgressWriteError
from models import db
from models.users import User
from models.courses import Course
from models.course_sections import Section
from models.course_lessons import Lesson
from models.enrollments import Enrollment
from utils.utils import login_required, role_required

logger = logging.getLogger(__name__)

# Learners' blueprint
learner_bp = Blueprint("learner", __name__)


def _published_course_or_none(course_id):
    return Course.query.filter_by(id=course_id, status="published").first()


#                                                         CATALOGUE
#_____________________________________________________________________________________________________________
# Browse published courses
@learner_bp.route("/browse", methods=["GET"])
@login_required
def browse_courses():
    lesson_counts = (
        db.session.query(Lesson.course_id, func.count(Lesson.id).label("lesson_count"))
        .group_by(Lesson.course_id)
        .subquery()
    )
    rows = (
        db.session.query(Course, User.full_name, lesson_counts.c.lesson_count)
        .join(User, User.id == Course.educator_id)
        .outerjoin(lesson_counts, lesson_counts.c.course_id == Course.id)
        .filter(Course.status == "published")
        .order_by(Course.created_at.desc(), Course.id.desc())
        .all()
    )

    courses = []
    for course, educator_name, lesson_count in rows:
        courses.append({
            **course.to_dict(),
            "educator_name": educator_name or "Unknown educator",
            "section_count": len(course.sections),
            "lesson_count": lesson_count or 0,
        })
    return jsonify({"courses": courses}), 200


# Course details with curriculum outline
@learner_bp.route("/courses/<int:course_id>", methods=["GET"])
@login_required
def get_course_details(course_id):
    course = _published_course_or_none(course_id)
    if not course:
        return jsonify({"error": "Course not found"}), 404

    enrollment = EnrollmentManager.get_enrollment(course_id, g.user.get("user_id"))

    return jsonify({
        **course.to_dict(),
        "is_enrolled": enrollment is not None,
        "sections": [
            {
                **section.to_dict(),
                "lessons": [lesson.to_dict(include_content=False) for lesson in section.lessons],
            }
            for section in course.sections
        ],
    }), 200


# Enroll in a course
@learner_bp.route("/courses/<int:course_id>/enroll", methods=["POST"])
@login_required
@role_required("learner")
def enroll(course_id):
    try:
        enrollment, created = EnrollmentManager.enroll_learner(course_id, g.user.get("user_id"))
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except PaymentRequiredError as e:
        return jsonify({"error": str(e), "payment_required": True}), 402
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Enrollment in course %s failed", course_id)
        return jsonify({"error": "Failed to enroll. Please try again."}), 500

    if not created:
        return jsonify({
            "message": "Already enrolled in this course",
            "already_enrolled": True,
            "enrollment": enrollment.to_dict()
        }), 200

    return jsonify({
        "message": "Enrolled successfully",
        "already_enrolled": False,
        "enrollment": enrollment.to_dict()
    }), 201


# Leave a course
@learner_bp.route("/courses/<int:course_id>/enroll", methods=["DELETE"])
@login_required
@role_required("learner")
def unenroll(course_id):
    try:
        removed = EnrollmentManager.unenroll_learner(course_id, g.user.get("user_id"))
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Unenrolling from course %s failed", course_id)
        return jsonify({"error": "Failed to leave the course. Please try again."}), 500

    if not removed:
        return jsonify({"error": "Not enrolled in this course"}), 404
    return jsonify({"message": "Unenrolled successfully"}), 200


#                                                         MY COURSES
#_____________________________________________________________________________________________________________
# Course list with reconciled progress
@learner_bp.route("/courses", methods=["GET"])
@login_required
@role_required("learner")
def get_my_courses():
    learner_id = g.user.get("user_id")

    try:
        enrollments = (
            Enrollment.query
            .options(joinedload(Enrollment.course))
            .filter_by(learner_id=learner_id)
            .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
            .all()
        )

        courses = []
        for enrollment in enrollments:
            counts = ProgressManager.refresh_enrollment(enrollment)
            courses.append({
                "enrollment_id": enrollment.id,
                "enrolled_at": enrollment.enrolled_at,
                "course": enrollment.course.to_dict(),
                "progress": counts["progress"],
                "completed_lessons": counts["completed_lessons"],
                "total_lessons": counts["total_lessons"],
            })
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error loading courses for learner %s", learner_id)
        return jsonify({"courses": []}), 200

    return jsonify({"courses": courses}), 200


#                                                         COURSE PLAYER
#_____________________________________________________________________________________________________________
def _get_learner_enrollment(course_id):
    return EnrollmentManager.get_enrollment(course_id, g.user.get("user_id"))


@learner_bp.route("/learn/<int:course_id>", methods=["GET"])
@login_required
@role_required("learner")
def get_course_player(course_id):
    try:
        enrollment = _get_learner_enrollment(course_id)
        if not enrollment:
            return jsonify({"error": "Not enrolled in this course"}), 404

        course = enrollment.course
        sections = (
            Section.query
            .options(joinedload(Section.lessons))
            .filter_by(course_id=course_id)
            .order_by(Section.order_index, Section.id)
            .all()
        )
        completed_ids = ProgressManager.completed_lesson_ids(enrollment.id)
        counts = ProgressManager.refresh_enrollment(enrollment)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error loading course %s for the player", course_id)
        return jsonify({"error": "Failed to load course"}), 500

    sections_data = []
    for section in sections:
        lessons = [
            {**lesson.to_dict(), "is_completed": lesson.id in completed_ids}
            for lesson in section.lessons
        ]
        sections_data.append({
            **section.to_dict(),
            "lessons": lessons,
            "completed_lessons": sum(1 for lesson in lessons if lesson["is_completed"]),
        })

    return jsonify({
        "course": course.to_dict(),
        "enrollment": enrollment.to_dict(),
        "sections": sections_data,
        "progress": counts["progress"],
        "completed_lessons": counts["completed_lessons"],
        "total_lessons": counts["total_lessons"],
        "remaining_lessons": counts["total_lessons"] - min(counts["completed_lessons"], counts["total_lessons"]),
    }), 200


def _progress_response(message, counts, lesson_id, is_completed):
    return jsonify({
        "message": message,
        "lesson_id": lesson_id,
        "is_completed": is_completed,
        "progress": counts["progress"],
        "completed_lessons": counts["completed_lessons"],
        "total_lessons": counts["total_lessons"],
    }), 200


# Mark a lesson complete
@learner_bp.route("/learn/<int:course_id>/lessons/<int:lesson_id>/complete", methods=["POST"])
@login_required
@role_required("learner")
def mark_lesson_complete(course_id, lesson_id):
    try:
        enrollment = _get_learner_enrollment(course_id)
        if not enrollment:
            return jsonify({"error": "Not enrolled in this course"}), 404
        counts = ProgressManager.mark_complete(enrollment, lesson_id)
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ProgressWriteError as e:
        return jsonify({"error": str(e)}), 500
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error completing lesson %s of course %s", lesson_id, course_id)
        return jsonify({"error": "Failed to mark lesson as complete"}), 500

    return _progress_response("Lesson marked as complete", counts, lesson_id, True)


# Mark a lesson incomplete
@learner_bp.route("/learn/<int:course_id>/lessons/<int:lesson_id>/complete", methods=["DELETE"])
@login_required
@role_required("learner")
def mark_lesson_incomplete(course_id, lesson_id):
    try:
        enrollment = _get_learner_enrollment(course_id)
        if not enrollment:
            return jsonify({"error": "Not enrolled in this course"}), 404
        counts = ProgressManager.mark_incomplete(enrollment, lesson_id)
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ProgressWriteError as e:
        return jsonify({"error": str(e)}), 500
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error resetting lesson %s of course %s", lesson_id, course_id)
        return jsonify({"error": "Failed to mark lesson as incomplete. Please try again."}), 500

    return _progress_response("Lesson marked as incomplete", counts, lesson_id, False)


# Free preview lessons
@learner_bp.route("/preview/<int:course_id>/<int:lesson_id>", methods=["GET"])
@login_required
def preview_lesson(course_id, lesson_id):
    course = _published_course_or_none(course_id)
    if not course:
        return jsonify({"error": "Course not found"}), 404

    lesson = Lesson.query.filter_by(id=lesson_id, course_id=course_id).first()
    if not lesson:
        return jsonify({"error": "Lesson not found in this course"}), 404
    if not lesson.is_preview:
        return jsonify({"error": "This lesson is not available for preview"}), 403

    return jsonify({
        "course": {"id": course.id, "title": course.title},
        "lesson": lesson.to_dict(),
    }), 200
