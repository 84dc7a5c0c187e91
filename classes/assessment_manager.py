import logging
from flask import current_app

from models import db
from models.assessments import Assessment, AssessmentQuestion, AssessmentAttempt
from utils.helpers import parse_int

logger = logging.getLogger(__name__)


class AttemptLimitError(Exception):
    """The learner has used every attempt the assessment allows."""


def _normalise_answer(value):
    return str(value).strip().casefold()


def _optional_int(data, field):
    value = data.get(field)
    if value in (None, ""):
        return None
    return parse_int(value, field)


class AssessmentManager:
    @staticmethod
    def get_for_lesson(lesson_id):
        return Assessment.query.filter_by(lesson_id=lesson_id).first()

    @staticmethod
    def save_assessment(lesson, educator_id, data):
        """Create the lesson's assessment, or replace it and all its questions.

        Fields left out fall back to their defaults on every save. Returns
        ``(assessment, created)``; raises ValueError on invalid input. The
        caller commits.
        """
        questions = data.get("questions")
        if not isinstance(questions, list) or not questions:
            raise ValueError("At least one question is required.")

        assessment = AssessmentManager.get_for_lesson(lesson.id)
        created = assessment is None
        if created:
            assessment = Assessment(lesson_id=lesson.id, course_id=lesson.course_id, created_by=educator_id)

        passing_score = _optional_int(data, "passing_score")
        assessment.title = data.get("title") or current_app.config["DEFAULT_ASSESSMENT_TITLE"]
        assessment.description = data.get("description") or None
        assessment.difficulty = data.get("difficulty") or "medium"
        assessment.passing_score = (
            passing_score if passing_score is not None else current_app.config["DEFAULT_PASSING_SCORE"]
        )
        assessment.time_limit_minutes = _optional_int(data, "time_limit_minutes")
        assessment.max_attempts = _optional_int(data, "max_attempts")
        assessment.is_required = bool(data.get("is_required"))

        new_questions = []
        for index, item in enumerate(questions):
            if not isinstance(item, dict):
                raise ValueError("Each question must be an object.")
            points = _optional_int(item, "points")
            new_questions.append(AssessmentQuestion(
                question_text=item.get("question_text") or item.get("question"),
                options=item.get("options") or [],
                correct_answer=item.get("correct_answer"),
                explanation=item.get("explanation"),
                points=1 if points is None else points,
                order_index=index,
            ))
        # delete-orphan drops the previous questions
        assessment.questions = new_questions

        if created:
            db.session.add(assessment)
        return assessment, created

    @staticmethod
    def grade(assessment, answers):
        """Point-weighted percentage; answers are keyed by question id."""
        earned_points = 0
        total_points = 0
        results = []

        for question in assessment.questions:
            total_points += question.points
            submitted = answers.get(str(question.id), answers.get(question.id))
            is_correct = submitted is not None and (
                _normalise_answer(submitted) == _normalise_answer(question.correct_answer)
            )
            if is_correct:
                earned_points += question.points
            results.append({
                "question_id": question.id,
                "question_text": question.question_text,
                "options": question.options or [],
                "submitted_answer": submitted,
                "correct_answer": question.correct_answer,
                "is_correct": is_correct,
                "explanation": question.explanation,
                "points": question.points,
            })

        score = round(earned_points / total_points * 100, 2) if total_points > 0 else 0.0
        return {
            "score": score,
            "passed": score >= assessment.passing_score,
            "earned_points": earned_points,
            "total_points": total_points,
            "total_questions": len(results),
            "results": results,
        }

    @staticmethod
    def count_attempts(assessment_id, learner_id):
        return AssessmentAttempt.query.filter_by(assessment_id=assessment_id, learner_id=learner_id).count()

    @staticmethod
    def submit_attempt(assessment, enrollment, answers, time_taken_seconds=None):
        """Grade and record one attempt. Raises AttemptLimitError when none are left."""
        used = AssessmentManager.count_attempts(assessment.id, enrollment.learner_id)
        if assessment.max_attempts and used >= assessment.max_attempts:
            raise AttemptLimitError("Maximum attempts reached")

        grading = AssessmentManager.grade(assessment, answers)
        attempt = AssessmentAttempt(
            assessment_id=assessment.id,
            learner_id=enrollment.learner_id,
            enrollment_id=enrollment.id,
            answers=answers,
            score=grading["score"],
            passed=grading["passed"],
            time_taken_seconds=time_taken_seconds,
        )
        db.session.add(attempt)
        db.session.commit()

        logger.info(
            "Learner %s scored %s on assessment %s (%s)",
            enrollment.learner_id, grading["score"], assessment.id, "passed" if grading["passed"] else "failed"
        )
        grading["attempts_used"] = used + 1
        grading["attempts_left"] = (
            max(0, assessment.max_attempts - grading["attempts_used"]) if assessment.max_attempts else None
        )
        return attempt, grading
