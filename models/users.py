from models import db
from sqlalchemy.orm import validates
from classes.validators import validate_choice, validate_length

ROLES = ("educator", "learner")


class User(db.Model):
    """Profile of an identity issued by the external auth provider."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=True, unique=True)
    full_name = db.Column(db.String(100), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="learner")  # 'educator', 'learner'
    avatar_url = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    @validates("role")
    def _check_role(self, key, value):
        validate_choice("Role", value, ROLES)
        return value

    @validates("full_name")
    def _check_full_name(self, key, value):
        validate_length("Full name", value, 100)
        return value

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "avatar_url": self.avatar_url,
        }
