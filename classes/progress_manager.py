import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.course_lessons import Lesson
from models.enrollments import Enrollment
from models.lesson_progress import LessonProgress

logger = logging.getLogger(__name__)


class ProgressWriteError(Exception):
    """A lesson completion write did not land; nothing was changed."""


def calculate_progress(completed_lessons, total_lessons):
    """Percentage of completed lessons, rounded half up.

    An empty course is 0%, never a division error. A completed count above
    the total (a stale row outliving its lesson) is capped at 100.
    """
    if completed_lessons < 0 or total_lessons < 0:
        raise ValueError("Lesson counts cannot be negative.")
    if total_lessons == 0:
        return 0
    completed_lessons = min(completed_lessons, total_lessons)
    # floor(100 * c / t + 0.5) without floats
    return (200 * completed_lessons + total_lessons) // (2 * total_lessons)


class ProgressManager:
    @staticmethod
    def count_total_lessons(course_id):
        return db.session.query(func.count(Lesson.id)).filter(Lesson.course_id == course_id).scalar() or 0

    @staticmethod
    def count_completed_lessons(enrollment_id):
        return (
            db.session.query(func.count(LessonProgress.id))
            .filter(LessonProgress.enrollment_id == enrollment_id, LessonProgress.completed.is_(True))
            .scalar()
        ) or 0

    @staticmethod
    def completed_lesson_ids(enrollment_id):
        rows = (
            db.session.query(LessonProgress.lesson_id)
            .filter(LessonProgress.enrollment_id == enrollment_id, LessonProgress.completed.is_(True))
            .all()
        )
        return {row.lesson_id for row in rows}

    @staticmethod
    def compute_progress(enrollment, total_lessons=None):
        """Recount an enrollment from its completion rows.

        ``total_lessons`` may be passed in by views that already counted the
        course, the roster for instance.
        """
        if total_lessons is None:
            total_lessons = ProgressManager.count_total_lessons(enrollment.course_id)
        completed = ProgressManager.count_completed_lessons(enrollment.id)
        return {
            "total_lessons": total_lessons,
            "completed_lessons": completed,
            "progress": calculate_progress(completed, total_lessons),
        }

    @staticmethod
    def write_progress(enrollment_id, progress):
        """Single-field update by id; the only place Enrollment.progress is written."""
        values = {
            Enrollment.progress: progress,
            Enrollment.updated_at: datetime.utcnow(),
        }
        if progress == 100:
            values[Enrollment.completed_at] = func.coalesce(Enrollment.completed_at, datetime.utcnow())
        else:
            values[Enrollment.completed_at] = None

        Enrollment.query.filter_by(id=enrollment_id).update(values, synchronize_session="fetch")
        db.session.commit()

    @staticmethod
    def reconcile(enrollment_id, stored_progress, computed_progress):
        """Overwrite a stale cached percentage. Returns True when a write landed.

        Failures are logged and rolled back, never retried; the stale value
        stays until the next reconciliation.
        """
        if (stored_progress or 0) == computed_progress:
            return False

        logger.info(
            "Updating progress of enrollment %s from %s%% to %s%%",
            enrollment_id, stored_progress, computed_progress
        )
        try:
            ProgressManager.write_progress(enrollment_id, computed_progress)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to update progress of enrollment %s", enrollment_id)
            return False
        return True

    @staticmethod
    def refresh_enrollment(enrollment, total_lessons=None):
        """Fetch-compute-reconcile for one enrollment, as every view does."""
        stored = enrollment.progress
        counts = ProgressManager.compute_progress(enrollment, total_lessons=total_lessons)
        counts["stored_progress"] = stored
        counts["updated"] = ProgressManager.reconcile(enrollment.id, stored, counts["progress"])
        return counts

    @staticmethod
    def _get_course_lesson(enrollment, lesson_id):
        lesson = Lesson.query.filter_by(id=lesson_id, course_id=enrollment.course_id).first()
        if not lesson:
            raise LookupError("Lesson not found in this course")
        return lesson

    @staticmethod
    def mark_complete(enrollment, lesson_id):
        """absent -> completed, then reconcile the owning enrollment."""
        try:
            lesson = ProgressManager._get_course_lesson(enrollment, lesson_id)
            existing = LessonProgress.query.filter_by(enrollment_id=enrollment.id, lesson_id=lesson.id).first()
            if existing is None:
                db.session.add(LessonProgress(
                    enrollment_id=enrollment.id,
                    lesson_id=lesson.id,
                    completed=True,
                    completed_at=datetime.utcnow()
                ))
            elif not existing.completed:
                existing.completed = True
                existing.completed_at = datetime.utcnow()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Error marking lesson %s complete for enrollment %s: %s", lesson_id, enrollment.id, e)
            raise ProgressWriteError("Failed to mark lesson as complete") from e

        return ProgressManager.refresh_enrollment(enrollment)

    @staticmethod
    def mark_incomplete(enrollment, lesson_id):
        """completed -> absent. The row is deleted, not flagged."""
        try:
            lesson = ProgressManager._get_course_lesson(enrollment, lesson_id)
            LessonProgress.query.filter_by(
                enrollment_id=enrollment.id, lesson_id=lesson.id
            ).delete(synchronize_session="fetch")
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Error marking lesson %s incomplete for enrollment %s: %s", lesson_id, enrollment.id, e)
            raise ProgressWriteError("Failed to mark lesson as incomplete. Please try again.") from e

        return ProgressManager.refresh_enrollment(enrollment)

    @staticmethod
    def reconcile_all(course_id=None):
        """Sweep every enrollment (optionally of one course). Returns (checked, updated)."""
        query = Enrollment.query
        if course_id is not None:
            query = query.filter_by(course_id=course_id)

        totals = {}
        checked = updated = 0
        for enrollment in query.order_by(Enrollment.id).all():
            if enrollment.course_id not in totals:
                totals[enrollment.course_id] = ProgressManager.count_total_lessons(enrollment.course_id)
            result = ProgressManager.refresh_enrollment(enrollment, total_lessons=totals[enrollment.course_id])
            checked += 1
            if result["updated"]:
                updated += 1
        return checked, updated
