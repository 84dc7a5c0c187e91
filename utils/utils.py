import logging
from functools import wraps
from flask import current_app, request, jsonify, g
from sqlalchemy.exc import SQLAlchemyError

from classes.user_manager import UserManager
from models import db
from utils.tokens import decode_jwt

logger = logging.getLogger(__name__)


def _get_request_token():
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip()
    return request.cookies.get(current_app.config.get("TOKEN_COOKIE_NAME", "access_token"))


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _get_request_token()
        if not token:
            return jsonify({"error": "Unauthorized"}), 401

        decoded = decode_jwt(token)
        if not decoded or not decoded.get("user_id"):
            return jsonify({"error": "Invalid token"}), 401

        # Courses, enrollments and tasks all reference the profile row
        try:
            UserManager.get_or_create_profile(decoded)
        except ValueError:
            return jsonify({"error": "Invalid token"}), 401
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to load profile of user %s", decoded.get("user_id"))
            return jsonify({"error": "Failed to load user profile"}), 500

        g.user = decoded
        return f(*args, **kwargs)

    return decorated_function


def role_required(role):
    """Use below @login_required."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.user.get("role") != role:
                return jsonify({"error": f"Forbidden - {role.capitalize()} access required"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
