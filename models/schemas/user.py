from marshmallow import Schema, fields, pre_load, validate, validates, ValidationError

MIN_PASSWORD_LENGTH = 8


def _strip(v):
    return v.strip() if isinstance(v, str) else v


def _check_password(value):
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")


class UserCreateSchema(Schema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.String(required=True, load_only=True)
    role = fields.String(load_default=None, validate=validate.Length(min=1, max=20))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            for key in ("email", "name"):
                if key in data:
                    data[key] = _strip(data[key])
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class UserUpdateSchema(Schema):
    name = fields.String(validate=validate.Length(min=1, max=255))
    email = fields.Email(validate=validate.Length(max=255))
    password = fields.String(load_only=True)
    role = fields.String(validate=validate.Length(min=1, max=20))
    is_active = fields.Boolean(data_key="isActive")

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    name = fields.String()
    email = fields.String()
    role = fields.String()
    is_active = fields.Boolean(data_key="isActive")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")
