from models import db
from sqlalchemy.orm import relationship, validates
from classes.validators import validate_choice, validate_length, validate_non_negative, validate_required

COURSE_STATUSES = ("draft", "published")


class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.Integer, primary_key=True)
    educator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    subtitle = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True)
    level = db.Column(db.String(50), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default="draft")
    thumbnail_url = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    educator = relationship("User", backref="courses")
    sections = relationship(
        "Section", back_populates="course", cascade="all, delete-orphan",
        order_by="Section.order_index"
    )
    lessons = relationship("Lesson", back_populates="course", cascade="all, delete")
    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")

    @validates("title")
    def _check_title(self, key, value):
        validate_required("Title", value)
        validate_length("Title", value, 255)
        return value.strip()

    @validates("status")
    def _check_status(self, key, value):
        validate_choice("Status", value, COURSE_STATUSES)
        return value

    @validates("price")
    def _check_price(self, key, value):
        validate_non_negative("Price", value)
        return value

    @property
    def is_published(self):
        return self.status == "published"

    @property
    def is_free(self):
        return not self.price or float(self.price) == 0

    def __repr__(self):
        return f"<Course {self.title} (Educator ID {self.educator_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "educator_id": self.educator_id,
            "title": self.title,
            "subtitle": self.subtitle,
            "description": self.description,
            "category": self.category,
            "level": self.level,
            "price": float(self.price) if self.price is not None else 0.0,
            "is_free": self.is_free,
            "status": self.status,
            "thumbnail_url": self.thumbnail_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
