import logging
from sqlalchemy.exc import IntegrityError

from models import db
from models.courses import Course
from models.enrollments import Enrollment

logger = logging.getLogger(__name__)


class PaymentRequiredError(Exception):
    """Paid courses are enrolled through checkout, not directly."""


class EnrollmentManager:
    @staticmethod
    def get_enrollment(course_id, learner_id):
        return Enrollment.query.filter_by(course_id=course_id, learner_id=learner_id).first()

    @staticmethod
    def enroll_learner(course_id, learner_id):
        """Enroll a learner once per course.

        Returns ``(enrollment, created)``. Raises LookupError for an unknown
        course, ValueError for one that is not published and
        PaymentRequiredError for a paid course.
        """
        course = db.session.get(Course, course_id)
        if not course:
            raise LookupError("Course not found")
        if not course.is_published:
            raise ValueError("Course not available for enrollment")

        existing = EnrollmentManager.get_enrollment(course_id, learner_id)
        if existing:
            return existing, False
        if not course.is_free:
            raise PaymentRequiredError("Payment required to enroll in this course")

        enrollment = Enrollment(course_id=course_id, learner_id=learner_id, progress=0)
        db.session.add(enrollment)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent request enrolled the same pair first
            db.session.rollback()
            existing = EnrollmentManager.get_enrollment(course_id, learner_id)
            if existing is None:
                raise
            return existing, False

        logger.info("Learner %s enrolled in course %s", learner_id, course_id)
        return enrollment, True

    @staticmethod
    def unenroll_learner(course_id, learner_id):
        enrollment = EnrollmentManager.get_enrollment(course_id, learner_id)
        if not enrollment:
            return False
        db.session.delete(enrollment)
        db.session.commit()
        logger.info("Learner %s left course %s", learner_id, course_id)
        return True
