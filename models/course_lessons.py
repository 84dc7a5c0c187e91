from sqlalchemy.orm import relationship, validates
from models import db
from classes.validators import validate_length, validate_non_negative, validate_required


class Lesson(db.Model):
    __tablename__ = "course_lessons"

    id = db.Column(db.Integer, primary_key=True)
    section_id = db.Column(db.Integer, db.ForeignKey("course_sections.id"), nullable=False)
    # Always the section's course; kept on the row so lesson counts need no join
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    video_url = db.Column(db.String(500), nullable=True)
    content = db.Column(db.Text, nullable=True)
    duration = db.Column(db.Integer, nullable=False, default=0)  # minutes
    is_preview = db.Column(db.Boolean, nullable=False, default=False)
    order_index = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    course = relationship("Course", back_populates="lessons")
    section = relationship("Section", back_populates="lessons")
    progress_records = relationship("LessonProgress", back_populates="lesson", cascade="all, delete-orphan")
    assessment = relationship(
        "Assessment", back_populates="lesson", uselist=False, cascade="all, delete-orphan"
    )

    @staticmethod
    def get_next_order(section_id):
        last_lesson = Lesson.query.filter_by(section_id=section_id).order_by(Lesson.order_index.desc()).first()
        return (last_lesson.order_index + 1) if last_lesson else 1

    @validates("title")
    def _check_title(self, key, value):
        validate_required("Title", value)
        validate_length("Title", value, 255)
        return value.strip()

    @validates("duration")
    def _check_duration(self, key, value):
        validate_non_negative("Duration", value)
        return value

    def __repr__(self):
        return f"<Lesson {self.title} (Course ID {self.course_id})>"

    def to_dict(self, include_content=True):
        data = {
            "id": self.id,
            "section_id": self.section_id,
            "course_id": self.course_id,
            "title": self.title,
            "video_url": self.video_url,
            "duration": self.duration,
            "is_preview": self.is_preview,
            "order_index": self.order_index,
        }
        if include_content:
            data["content"] = self.content if self.content is not None else ""
        return data
