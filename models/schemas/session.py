from marshmallow import Schema, fields


class SessionOutSchema(Schema):
    id = fields.String()
    user_agent = fields.String()
    ip_address = fields.String()
    created_at = fields.DateTime()
    expires_at = fields.DateTime()
