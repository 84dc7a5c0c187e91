import logging
from flask import Blueprint, jsonify, g, request
from sqlalchemy.exc import SQLAlchemyError

from classes.assessment_manager import AssessmentManager, AttemptLimitError
from classes.enrollment_manager import EnrollmentManager
from models import db
from models.courses import Course
from models.course_lessons import Lesson
from models.assessments import Assessment, AssessmentAttempt
from utils.helpers import commit_or_error, parse_int
from utils.utils import login_required, role_required

logger = logging.getLogger(__name__)

# Lesson assessments blueprint
assessments_bp = Blueprint("assessments", __name__)


def _owns_course(course_id):
    course = db.session.get(Course, course_id)
    return course is not None and course.educator_id == g.user.get("user_id")


#__________________________________________________________________________________________ * Educators *__________________________________________________

# create or replace a lesson's assessment
@assessments_bp.route("/", methods=["POST"], strict_slashes=False)
@login_required
@role_required("educator")
def save_assessment():
    data = request.get_json(silent=True) or {}
    if not data.get("lesson_id") or not data.get("course_id") or not data.get("questions"):
        return jsonify({"error": "Missing required fields"}), 400

    try:
        course_id = parse_int(data["course_id"], "course_id")
        lesson_id = parse_int(data["lesson_id"], "lesson_id")
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if not _owns_course(course_id):
        return jsonify({"error": "Course not found or access denied"}), 404

    lesson = Lesson.query.filter_by(id=lesson_id, course_id=course_id).first()
    if not lesson:
        return jsonify({"error": "Lesson not found"}), 404

    try:
        assessment, created = AssessmentManager.save_assessment(lesson, g.user.get("user_id"), data)
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    error = commit_or_error("Failed to save assessment")
    if error:
        return error

    logger.info("Educator %s saved assessment %s for lesson %s", g.user.get("user_id"), assessment.id, lesson_id)
    return jsonify({
        "message": f"Assessment saved successfully with {len(assessment.questions)} questions",
        "assessment": assessment.to_dict(),
    }), 201 if created else 200


@assessments_bp.route("/<int:assessment_id>", methods=["DELETE"])
@login_required
@role_required("educator")
def delete_assessment(assessment_id):
    assessment = db.session.get(Assessment, assessment_id)
    if not assessment or not _owns_course(assessment.course_id):
        return jsonify({"error": "Assessment not found"}), 404

    db.session.delete(assessment)
    error = commit_or_error("Failed to delete assessment")
    if error:
        return error
    return jsonify({"message": "Assessment deleted successfully"}), 200


#__________________________________________________________________________________________ * Learners *__________________________________________________

# fetch a lesson's assessment; answers only for the course's educator
@assessments_bp.route("/", methods=["GET"], strict_slashes=False)
@login_required
def get_assessment():
    lesson_id = request.args.get("lesson_id", type=int)
    if not lesson_id:
        return jsonify({"error": "lesson_id is required"}), 400

    lesson = db.session.get(Lesson, lesson_id)
    if not lesson:
        return jsonify({"error": "Lesson not found"}), 404

    is_owner = _owns_course(lesson.course_id)
    if not is_owner and not EnrollmentManager.get_enrollment(lesson.course_id, g.user.get("user_id")):
        return jsonify({"error": "Not enrolled in this course"}), 403

    assessment = AssessmentManager.get_for_lesson(lesson_id)
    if not assessment:
        return jsonify({"assessment": None}), 200
    return jsonify({"assessment": assessment.to_dict(include_answers=is_owner)}), 200


@assessments_bp.route("/<int:assessment_id>/attempts", methods=["POST"])
@login_required
@role_required("learner")
def submit_attempt(assessment_id):
    data = request.get_json(silent=True) or {}
    answers = data.get("answers")
    if not isinstance(answers, dict):
        return jsonify({"error": "Answers are required"}), 400

    try:
        time_taken = parse_int(data["time_taken_seconds"], "time_taken_seconds") \
            if data.get("time_taken_seconds") is not None else None
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    assessment = db.session.get(Assessment, assessment_id)
    if not assessment:
        return jsonify({"error": "Assessment not found"}), 404

    enrollment = EnrollmentManager.get_enrollment(assessment.course_id, g.user.get("user_id"))
    if not enrollment:
        return jsonify({"error": "Not enrolled in this course"}), 403

    try:
        attempt, grading = AssessmentManager.submit_attempt(assessment, enrollment, answers, time_taken)
    except AttemptLimitError as e:
        return jsonify({"error": str(e)}), 403
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to record attempt on assessment %s", assessment_id)
        return jsonify({"error": "Failed to submit assessment"}), 500

    return jsonify({
        "attempt_id": attempt.id,
        "passing_score": assessment.passing_score,
        **grading,
    }), 201


@assessments_bp.route("/<int:assessment_id>/attempts", methods=["GET"])
@login_required
@role_required("learner")
def get_attempts(assessment_id):
    assessment = db.session.get(Assessment, assessment_id)
    if not assessment:
        return jsonify({"error": "Assessment not found"}), 404

    attempts = (
        AssessmentAttempt.query
        .filter_by(assessment_id=assessment_id, learner_id=g.user.get("user_id"))
        .order_by(AssessmentAttempt.submitted_at.desc(), AssessmentAttempt.id.desc())
        .all()
    )
    best = max((a.score for a in attempts), default=None)
    return jsonify({
        "attempts": [a.to_dict() for a in attempts],
        "best_score": best,
        "passed": any(a.passed for a in attempts),
        "max_attempts": assessment.max_attempts,
    }), 200
