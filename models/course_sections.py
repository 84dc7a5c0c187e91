from models import db
from sqlalchemy.orm import relationship, validates
from classes.validators import validate_length, validate_required


class Section(db.Model):
    __tablename__ = "course_sections"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    course = relationship("Course", back_populates="sections")
    lessons = relationship(
        "Lesson", back_populates="section", cascade="all, delete-orphan",
        order_by="Lesson.order_index"
    )

    @staticmethod
    def get_next_order(course_id):
        last_section = Section.query.filter_by(course_id=course_id).order_by(Section.order_index.desc()).first()
        return (last_section.order_index + 1) if last_section else 1

    @validates("title")
    def _check_title(self, key, value):
        validate_required("Title", value)
        validate_length("Title", value, 255)
        return value.strip()

    def __repr__(self):
        return f"<Section {self.title} (Course ID {self.course_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description if self.description is not None else "",
            "order_index": self.order_index,
        }
