from marshmallow import EXCLUDE, Schema, fields, validate

from models.schemas.user import UserCreateSchema


class RegisterSchema(UserCreateSchema):
    # role is not self-assignable at registration
    class Meta:
        exclude = ("role",)
        unknown = EXCLUDE


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class RefreshTokenSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(required=True, data_key="refreshToken", validate=validate.Length(min=1))


class TokenPairSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
