import logging

import bleach
from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from models import db

logger = logging.getLogger(__name__)


def sanitize_content(text_content):
    """Strip lesson rich text down to the configured tag whitelist."""
    if not text_content:
        return text_content
    allowed_tags = current_app.config.get("ALLOWED_CONTENT_TAGS", [])
    return bleach.clean(text_content.strip(), tags=allowed_tags, strip=True)


def average_percentage(values):
    """Mean of integer percentages, rounded half up; 0 for no values."""
    values = list(values)
    if not values:
        return 0
    return (2 * sum(values) + len(values)) // (2 * len(values))


def parse_int(value, field_name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be an integer.")


def commit_or_error(message):
    """Commit the session; on failure roll back and return an error response."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(message)
        return jsonify({"error": message}), 500
    return None
