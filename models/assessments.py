from datetime import datetime
from models import db
from sqlalchemy.orm import relationship, validates
from classes.validators import validate_choice, validate_length, validate_non_negative, validate_required

DIFFICULTIES = ("easy", "medium", "hard")


class Assessment(db.Model):
    """Quiz attached to a single lesson."""
    __tablename__ = "lesson_assessments"

    id = db.Column(db.Integer, primary_key=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey("course_lessons.id"), nullable=False, unique=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False, default="Lesson Assessment")
    description = db.Column(db.Text, nullable=True)
    difficulty = db.Column(db.String(20), nullable=False, default="medium")
    passing_score = db.Column(db.Integer, nullable=False, default=70)
    time_limit_minutes = db.Column(db.Integer, nullable=True)
    max_attempts = db.Column(db.Integer, nullable=True)  # None means unlimited
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    lesson = relationship("Lesson", back_populates="assessment")
    questions = relationship(
        "AssessmentQuestion", back_populates="assessment", cascade="all, delete-orphan",
        order_by="AssessmentQuestion.order_index"
    )
    attempts = relationship("AssessmentAttempt", back_populates="assessment", cascade="all, delete-orphan")

    @validates("title")
    def _check_title(self, key, value):
        validate_required("Title", value)
        validate_length("Title", value, 255)
        return value.strip()

    @validates("difficulty")
    def _check_difficulty(self, key, value):
        validate_choice("Difficulty", value, DIFFICULTIES)
        return value

    @validates("passing_score")
    def _check_passing_score(self, key, value):
        if value is None or not 0 <= value <= 100:
            raise ValueError("Passing score must be between 0 and 100.")
        return value

    @validates("time_limit_minutes", "max_attempts")
    def _check_limits(self, key, value):
        if value is not None and value < 1:
            raise ValueError(f"{key.replace('_', ' ').capitalize()} must be at least 1.")
        return value

    def __repr__(self):
        return f"<Assessment {self.title} (Lesson ID {self.lesson_id})>"

    def to_dict(self, include_answers=True):
        return {
            "id": self.id,
            "lesson_id": self.lesson_id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "difficulty": self.difficulty,
            "passing_score": self.passing_score,
            "time_limit_minutes": self.time_limit_minutes,
            "max_attempts": self.max_attempts,
            "is_required": self.is_required,
            "questions": [q.to_dict(include_answers=include_answers) for q in self.questions],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class AssessmentQuestion(db.Model):
    __tablename__ = "assessment_questions"

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(db.Integer, db.ForeignKey("lesson_assessments.id"), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    question_type = db.Column(db.String(20), nullable=False, default="multiple_choice")
    options = db.Column(db.JSON, nullable=True)
    correct_answer = db.Column(db.Text, nullable=False)
    explanation = db.Column(db.Text, nullable=True)
    points = db.Column(db.Integer, nullable=False, default=1)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    assessment = relationship("Assessment", back_populates="questions")

    @validates("question_text", "correct_answer")
    def _check_text(self, key, value):
        validate_required(key.replace("_", " ").capitalize(), value)
        return str(value).strip()

    @validates("points")
    def _check_points(self, key, value):
        validate_non_negative("Points", value)
        return value

    def to_dict(self, include_answers=True):
        data = {
            "id": self.id,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "options": self.options or [],
            "points": self.points,
            "order_index": self.order_index,
        }
        if include_answers:
            data["correct_answer"] = self.correct_answer
            data["explanation"] = self.explanation
        return data


class AssessmentAttempt(db.Model):
    __tablename__ = "assessment_attempts"

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(db.Integer, db.ForeignKey("lesson_assessments.id"), nullable=False)
    learner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    enrollment_id = db.Column(db.Integer, db.ForeignKey("enrollments.id"), nullable=False)
    answers = db.Column(db.JSON, nullable=False)
    score = db.Column(db.Float, nullable=False, default=0.0)
    passed = db.Column(db.Boolean, nullable=False, default=False)
    time_taken_seconds = db.Column(db.Integer, nullable=True)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    assessment = relationship("Assessment", back_populates="attempts")
    enrollment = relationship("Enrollment", back_populates="assessment_attempts")

    def __repr__(self):
        return f"<AssessmentAttempt Assessment {self.assessment_id} Learner {self.learner_id}>"

    def to_dict(self):
        return {
            "id": self.id,
            "assessment_id": self.assessment_id,
            "learner_id": self.learner_id,
            "answers": self.answers,
            "score": self.score,
            "passed": self.passed,
            "time_taken_seconds": self.time_taken_seconds,
            "submitted_at": self.submitted_at,
        }
