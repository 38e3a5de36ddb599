from marshmallow import Schema, fields, pre_load, validates, validates_schema, validate, ValidationError

from models.user import UserRole, AccountStatus
from models.schemas.common import (
    USERNAME_RE,
    normalize_lower,
    normalize_str,
    validate_password_policy,
)


class UserCreateSchema(Schema):
    username = fields.String(required=True)
    fullname = fields.String(required=True, validate=validate.Length(min=2, max=100))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    avatar = fields.Url(required=True)
    cover_image = fields.Url(load_default="")

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            for key in ("username", "email"):
                if key in data:
                    data[key] = normalize_lower(data[key])
            if "fullname" in data:
                data["fullname"] = normalize_str(data["fullname"])
            if data.get("cover_image") in (None, ""):
                data.pop("cover_image", None)
        return data

    @validates("username")
    def validate_username(self, value, **kwargs):
        if not USERNAME_RE.match(value):
            raise ValidationError("Username must be 3-30 characters: lower-case letters, digits or underscores.")

    @validates("password")
    def validate_password(self, value, **kwargs):
        validate_password_policy(value)


class UserLoginSchema(Schema):
    username = fields.String()
    email = fields.String()
    password = fields.String(required=True, load_only=True)

    @validates_schema
    def require_identifier(self, data, **kwargs):
        if not data.get("username") and not data.get("email"):
            raise ValidationError("username or email is required", field_name="username")


class UserUpdateSchema(Schema):
    fullname = fields.String(validate=validate.Length(min=2, max=100))
    email = fields.Email()

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = normalize_lower(data["email"])
        return data

    @validates_schema
    def require_one(self, data, **kwargs):
        if not data:
            raise ValidationError("Provide fullname or email")


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        validate_password_policy(value)

    @validates_schema
    def must_differ(self, data, **kwargs):
        if data.get("current_password") and data.get("current_password") == data.get("new_password"):
            raise ValidationError("New password must differ from the current one", field_name="new_password")


class RoleUpdateSchema(Schema):
    role = fields.Enum(UserRole, by_value=True, required=True)


class StatusUpdateSchema(Schema):
    status = fields.Enum(AccountStatus, by_value=True, required=True)


class UserOutSchema(Schema):
    # password_hash is never dumped
    id = fields.String()
    username = fields.String()
    fullname = fields.String()
    email = fields.String()
    avatar = fields.String()
    cover_image = fields.String()
    role = fields.Enum(UserRole, by_value=True)
    account_status = fields.Enum(AccountStatus, by_value=True)
    last_login_at = fields.DateTime(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
