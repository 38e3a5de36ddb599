from marshmallow import Schema, fields, pre_load, validates_schema, validate, ValidationError

from models.schemas.common import OwnerSummarySchema, normalize_str


class VideoCreateSchema(Schema):
    title = fields.String(required=True, validate=validate.Length(min=1, max=200))
    description = fields.String(load_default="no description", validate=validate.Length(max=5000))
    video_file = fields.Url(required=True)
    thumbnail = fields.Url(required=True)
    duration = fields.Float(allow_none=True, validate=validate.Range(min=0))
    is_published = fields.Boolean(load_default=True)

    @pre_load
    def strip_text(self, data, **kwargs):
        if isinstance(data, dict):
            data = {k: normalize_str(v) if k in ("title", "description") else v for k, v in data.items()}
            if data.get("description") == "":
                data.pop("description")
        return data


class VideoUpdateSchema(Schema):
    title = fields.String(validate=validate.Length(min=1, max=200))
    description = fields.String(validate=validate.Length(max=5000))
    thumbnail = fields.Url()

    @pre_load
    def strip_text(self, data, **kwargs):
        if isinstance(data, dict):
            data = {k: normalize_str(v) if k in ("title", "description") else v for k, v in data.items()}
        return data

    @validates_schema
    def require_one(self, data, **kwargs):
        if not data:
            raise ValidationError("Provide title, description or thumbnail")


class VideoOutSchema(Schema):
    id = fields.String()
    title = fields.String()
    description = fields.String()
    video_file = fields.String()
    thumbnail = fields.String()
    duration = fields.Float(allow_none=True)
    views = fields.Integer()
    is_published = fields.Boolean()
    owner_id = fields.String()
    owner = fields.Nested(OwnerSummarySchema)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
