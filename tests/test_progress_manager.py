from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from classes.progress_manager import ProgressManager, ProgressWriteError, calculate_progress
from models import db
from models.enrollments import Enrollment
from models.lesson_progress import LessonProgress
from conftest import course_lesson_ids, enroll, make_course


def _complete(enrollment, lesson_ids):
    for lesson_id in lesson_ids:
        db.session.add(LessonProgress(enrollment_id=enrollment.id, lesson_id=lesson_id, completed=True))
    db.session.commit()


class TestCalculateProgress:

    def test_bounds_and_full_completion(self):
        for total in range(0, 13):
            for completed in range(0, total + 1):
                result = calculate_progress(completed, total)
                assert 0 <= result <= 100
                if total > 0:
                    assert (result == 100) == (completed == total)

    def test_zero_total_is_zero(self):
        assert calculate_progress(0, 0) == 0
        assert calculate_progress(5, 0) == 0

    def test_scenarios(self):
        assert calculate_progress(0, 4) == 0
        assert calculate_progress(1, 4) == 25
        assert calculate_progress(2, 3) == 67
        assert calculate_progress(1, 3) == 33

    def test_rounds_half_up(self):
        # 12.5 and 37.5 would go to the even neighbour with round()
        assert calculate_progress(1, 8) == 13
        assert calculate_progress(3, 8) == 38
        assert calculate_progress(1, 200) == 1

    def test_completed_above_total_is_capped(self):
        assert calculate_progress(5, 4) == 100

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError):
            calculate_progress(-1, 4)
        with pytest.raises(ValueError):
            calculate_progress(1, -4)


class TestComputeProgress:

    def test_four_lessons_none_completed(self, enrollment):
        assert ProgressManager.compute_progress(enrollment)["progress"] == 0

    def test_four_lessons_one_completed(self, course, enrollment):
        _complete(enrollment, course_lesson_ids(course)[:1])
        counts = ProgressManager.compute_progress(enrollment)
        assert counts == {"total_lessons": 4, "completed_lessons": 1, "progress": 25}

    def test_three_lessons_two_completed(self, educator, learner):
        course = make_course(educator, lessons_per_section=(3,), title="Three lessons")
        enrollment = enroll(learner, course)
        _complete(enrollment, course_lesson_ids(course)[:2])
        assert ProgressManager.compute_progress(enrollment)["progress"] == 67

    def test_empty_course(self, educator, learner):
        course = make_course(educator, lessons_per_section=(), title="Empty")
        enrollment = enroll(learner, course)
        counts = ProgressManager.compute_progress(enrollment)
        assert counts["total_lessons"] == 0
        assert counts["progress"] == 0

    def test_other_enrollments_not_counted(self, course, enrollment, other_learner):
        other = enroll(other_learner, course)
        _complete(other, course_lesson_ids(course))
        assert ProgressManager.compute_progress(enrollment)["completed_lessons"] == 0


class TestReconcile:

    def test_equal_values_skip_the_write(self, course, learner):
        enrollment = enroll(learner, course, progress=50)
        _complete(enrollment, course_lesson_ids(course)[:2])

        with patch.object(ProgressManager, "write_progress", wraps=ProgressManager.write_progress) as write:
            result = ProgressManager.refresh_enrollment(enrollment)

        assert result["progress"] == 50
        assert result["updated"] is False
        assert write.call_count == 0

    def test_stale_value_written_once(self, learner, educator):
        course = make_course(educator, lessons_per_section=(5, 5), title="Ten lessons")
        enrollment = enroll(learner, course, progress=30)
        _complete(enrollment, course_lesson_ids(course)[:6])

        with patch.object(ProgressManager, "write_progress", wraps=ProgressManager.write_progress) as write:
            result = ProgressManager.refresh_enrollment(enrollment)

        assert result["updated"] is True
        write.assert_called_once_with(enrollment.id, 60)
        assert db.session.get(Enrollment, enrollment.id).progress == 60

    def test_second_call_is_a_no_op(self, course, enrollment):
        _complete(enrollment, course_lesson_ids(course)[:1])

        assert ProgressManager.reconcile(enrollment.id, 0, 25) is True
        with patch.object(ProgressManager, "write_progress") as write:
            stored = db.session.get(Enrollment, enrollment.id).progress
            assert ProgressManager.reconcile(enrollment.id, stored, 25) is False
        write.assert_not_called()

    def test_failed_write_is_logged_not_raised(self, course, enrollment, caplog):
        _complete(enrollment, course_lesson_ids(course)[:1])
        error = OperationalError("UPDATE enrollments", {}, Exception("database is locked"))

        with patch.object(ProgressManager, "write_progress", side_effect=error) as write:
            result = ProgressManager.refresh_enrollment(enrollment)

        assert write.call_count == 1
        assert result["progress"] == 25
        assert result["updated"] is False
        assert db.session.get(Enrollment, enrollment.id).progress == 0
        assert "Failed to update progress" in caplog.text

    def test_completed_at_follows_full_progress(self, course, enrollment):
        ProgressManager.reconcile(enrollment.id, 0, 100)
        assert db.session.get(Enrollment, enrollment.id).completed_at is not None

        ProgressManager.reconcile(enrollment.id, 100, 75)
        assert db.session.get(Enrollment, enrollment.id).completed_at is None


class TestLessonCompletion:

    def test_mark_complete_updates_progress(self, course, enrollment):
        lesson_id = course_lesson_ids(course)[0]

        result = ProgressManager.mark_complete(enrollment, lesson_id)

        assert result["progress"] == 25
        row = LessonProgress.query.filter_by(enrollment_id=enrollment.id, lesson_id=lesson_id).one()
        assert row.completed is True
        assert row.completed_at is not None
        assert db.session.get(Enrollment, enrollment.id).progress == 25

    def test_mark_complete_twice_keeps_one_row(self, course, enrollment):
        lesson_id = course_lesson_ids(course)[0]
        ProgressManager.mark_complete(enrollment, lesson_id)
        result = ProgressManager.mark_complete(enrollment, lesson_id)

        assert result["progress"] == 25
        assert LessonProgress.query.filter_by(enrollment_id=enrollment.id).count() == 1

    def test_complete_then_incomplete_restores_progress(self, course, enrollment):
        lesson_ids = course_lesson_ids(course)
        ProgressManager.mark_complete(enrollment, lesson_ids[0])
        before = db.session.get(Enrollment, enrollment.id).progress

        ProgressManager.mark_complete(enrollment, lesson_ids[1])
        assert db.session.get(Enrollment, enrollment.id).progress == 50

        result = ProgressManager.mark_incomplete(enrollment, lesson_ids[1])
        assert result["progress"] == before == 25
        assert LessonProgress.query.filter_by(enrollment_id=enrollment.id, lesson_id=lesson_ids[1]).first() is None

    def test_mark_incomplete_on_absent_lesson(self, course, enrollment):
        result = ProgressManager.mark_incomplete(enrollment, course_lesson_ids(course)[0])
        assert result["progress"] == 0
        assert result["updated"] is False

    def test_all_lessons_completed_reaches_100(self, course, enrollment):
        for lesson_id in course_lesson_ids(course):
            result = ProgressManager.mark_complete(enrollment, lesson_id)
        assert result["progress"] == 100
        assert db.session.get(Enrollment, enrollment.id).completed_at is not None

    def test_lesson_from_another_course_rejected(self, educator, enrollment):
        other_course = make_course(educator, lessons_per_section=(1,), title="Other")
        with pytest.raises(LookupError):
            ProgressManager.mark_complete(enrollment, course_lesson_ids(other_course)[0])

    def test_failed_completion_changes_nothing(self, course, enrollment):
        lesson_id = course_lesson_ids(course)[0]
        error = OperationalError("INSERT INTO lesson_progress", {}, Exception("connection lost"))

        with patch.object(Session, "commit", side_effect=error):
            with pytest.raises(ProgressWriteError, match="Failed to mark lesson as complete"):
                ProgressManager.mark_complete(enrollment, lesson_id)

        assert LessonProgress.query.filter_by(enrollment_id=enrollment.id).count() == 0
        assert db.session.get(Enrollment, enrollment.id).progress == 0

    def test_lesson_lookup_failure_is_reported(self, course, enrollment):
        error = OperationalError("SELECT", {}, Exception("connection refused"))

        with patch.object(ProgressManager, "_get_course_lesson", side_effect=error):
            with pytest.raises(ProgressWriteError, match="Failed to mark lesson as incomplete"):
                ProgressManager.mark_incomplete(enrollment, course_lesson_ids(course)[0])


class TestReconcileAll:

    def test_repairs_every_stale_enrollment(self, course, learner, other_learner, educator):
        first = enroll(learner, course, progress=90)
        second = enroll(other_learner, course, progress=0)
        _complete(second, course_lesson_ids(course)[:2])

        checked, updated = ProgressManager.reconcile_all()

        assert (checked, updated) == (2, 2)
        assert db.session.get(Enrollment, first.id).progress == 0
        assert db.session.get(Enrollment, second.id).progress == 50

    def test_limited_to_one_course(self, course, learner, educator):
        other_course = make_course(educator, lessons_per_section=(1,), title="Other")
        enroll(learner, course, progress=40)
        stale_elsewhere = enroll(learner, other_course, progress=40)

        checked, updated = ProgressManager.reconcile_all(course_id=course.id)

        assert (checked, updated) == (1, 1)
        assert db.session.get(Enrollment, stale_elsewhere.id).progress == 40
