from models import db
from sqlalchemy.orm import relationship


class Enrollment(db.Model):
    __tablename__ = 'enrollments'

    id = db.Column(db.Integer, primary_key=True)
    learner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False)
    # Cached percentage, owned by ProgressManager.reconcile
    progress = db.Column(db.Integer, default=0, nullable=False)
    enrolled_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("learner_id", "course_id", name="unique_learner_course"),
    )

    learner = db.relationship("User", backref="enrollments")
    course = db.relationship("Course", back_populates="enrollments")
    lesson_progress = relationship("LessonProgress", back_populates="enrollment", cascade="all, delete-orphan")
    assessment_attempts = relationship("AssessmentAttempt", back_populates="enrollment", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Enrollment Learner {self.learner_id} Course {self.course_id}>"

    def to_dict(self):
        return {
            "id": self.id,
            "learner_id": self.learner_id,
            "course_id": self.course_id,
            "progress": self.progress or 0,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
        }
