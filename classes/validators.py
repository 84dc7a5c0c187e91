# validators.py
from datetime import date, datetime


def validate_length(field_name, value, max_length):
    if value is not None and len(value) > max_length:
        raise ValueError(f"{field_name} must be {max_length} characters or fewer.")


def validate_required(field_name, value):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{field_name} is required.")


def validate_choice(field_name, value, choices):
    if value not in choices:
        raise ValueError(f"{field_name} must be one of: {', '.join(choices)}.")


def validate_non_negative(field_name, value):
    if value is not None and value < 0:
        raise ValueError(f"{field_name} cannot be negative.")


def parse_date(field_name, value):
    """Accept a date, a datetime or an ISO string; empty values become None."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        raise ValueError(f"{field_name} must be an ISO date (YYYY-MM-DD).")
