import logging
from sqlalchemy.exc import IntegrityError

from models import db
from models.users import User

logger = logging.getLogger(__name__)


class UserManager:
    @staticmethod
    def get_or_create_profile(claims):
        """Profile row for a token's identity, created the first time it is seen.

        Raises ValueError when the claims cannot describe a valid profile.
        """
        try:
            user_id = int(claims.get("user_id"))
        except (TypeError, ValueError):
            raise ValueError("Token does not carry a user id.")

        user = db.session.get(User, user_id)
        if user:
            return user

        user = User(
            id=user_id,
            email=claims.get("email") or None,
            full_name=claims.get("full_name") or None,
            role=claims.get("role"),
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent request created the same profile first
            db.session.rollback()
            user = db.session.get(User, user_id)
            if user is None:
                raise
            return user

        logger.info("Created %s profile for user %s", user.role, user_id)
        return user
