from models import db
from datetime import datetime


class LessonProgress(db.Model):
    __tablename__ = "lesson_progress"

    id = db.Column(db.Integer, primary_key=True)
    enrollment_id = db.Column(db.Integer, db.ForeignKey("enrollments.id"), nullable=False)
    lesson_id = db.Column(db.Integer, db.ForeignKey("course_lessons.id"), nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=True)
    completed_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("enrollment_id", "lesson_id", name="unique_enrollment_lesson"),
    )

    enrollment = db.relationship("Enrollment", back_populates="lesson_progress")
    lesson = db.relationship("Lesson", back_populates="progress_records")

    def __repr__(self):
        return f"<LessonProgress Enrollment {self.enrollment_id} Lesson {self.lesson_id}>"
