from marshmallow import Schema, fields, pre_load, validate

from models.schemas.common import OwnerSummarySchema, normalize_str, validate_not_blank


class CommentCreateSchema(Schema):
    content = fields.String(
        required=True,
        validate=[validate.Length(min=1, max=1000), validate_not_blank],
    )

    @pre_load
    def strip_content(self, data, **kwargs):
        if isinstance(data, dict) and "content" in data:
            data = dict(data)
            data["content"] = normalize_str(data["content"])
        return data


class CommentUpdateSchema(CommentCreateSchema):
    pass


class CommentOutSchema(Schema):
    id = fields.String()
    content = fields.String()
    video_id = fields.String()
    parent_id = fields.String(allow_none=True)
    owner = fields.Nested(OwnerSummarySchema)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
