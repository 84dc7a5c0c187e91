from models import db
from datetime import datetime
from sqlalchemy.orm import relationship, validates
from classes.validators import validate_choice, validate_length, validate_required

TASK_PRIORITIES = ("low", "medium", "high")
TASK_STATUSES = ("todo", "in-progress", "completed")


class Task(db.Model):
    __tablename__ = "learner_tasks"

    id = db.Column(db.Integer, primary_key=True)
    learner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(db.String(20), nullable=False, default="medium")
    status = db.Column(db.String(20), nullable=False, default="todo")
    due_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    course = relationship("Course")
    subtasks = relationship(
        "Subtask", back_populates="task", cascade="all, delete-orphan",
        order_by="Subtask.id"
    )

    @validates("title")
    def _check_title(self, key, value):
        validate_required("Title", value)
        validate_length("Title", value, 255)
        return value.strip()

    @validates("priority")
    def _check_priority(self, key, value):
        validate_choice("Priority", value, TASK_PRIORITIES)
        return value

    @validates("status")
    def _check_status(self, key, value):
        validate_choice("Status", value, TASK_STATUSES)
        return value

    def __repr__(self):
        return f"<Task {self.title} (Learner ID {self.learner_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "learner_id": self.learner_id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "course": {"id": self.course.id, "title": self.course.title} if self.course else None,
            "subtasks": [s.to_dict() for s in self.subtasks],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class Subtask(db.Model):
    __tablename__ = "learner_subtasks"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("learner_tasks.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    task = relationship("Task", back_populates="subtasks")

    @validates("title")
    def _check_title(self, key, value):
        validate_required("Title", value)
        validate_length("Title", value, 255)
        return value.strip()

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "created_at": self.created_at,
        }
