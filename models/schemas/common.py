import re

from marshmallow import Schema, fields, ValidationError

USERNAME_RE = re.compile(r"^[a-z0-9_]{3,30}$")


def normalize_str(value):
    return value.strip() if isinstance(value, str) else value


def normalize_lower(value):
    return value.strip().lower() if isinstance(value, str) else value


def validate_password_policy(value: str) -> None:
    """At least 8 characters with a lower-case letter, an upper-case letter and a digit."""
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")
    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)):
        raise ValidationError("Password must contain a lower-case letter, an upper-case letter and a digit.")


def validate_not_blank(value: str) -> None:
    if not value or not value.strip():
        raise ValidationError("Must not be blank.")


class OwnerSummarySchema(Schema):
    id = fields.String()
    username = fields.String()
    fullname = fields.String()
    avatar = fields.String()
