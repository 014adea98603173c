"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    totp_code = fields.String(load_default=None, validate=validate.Length(max=16))
    backup_code = fields.String(load_default=None, validate=validate.Length(max=32))


class RefreshSchema(Schema):
    """Input payload carrying the opaque refresh token."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=256))


class LogoutSchema(Schema):
    """Optional target session for logout; defaults to the caller's session."""

    session_id = fields.String(load_default=None, validate=validate.Length(max=64))


class TokenPairSchema(Schema):
    """Response payload with a freshly issued token pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    session_id = fields.String(required=True)
    expires_in = fields.Integer(required=True)
    token_type = fields.Constant("bearer")


class UserSchema(Schema):
    """Public view of the authenticated user with role permissions."""

    id = fields.String(required=True)
    email = fields.Email(required=True)
    role = fields.String(required=True)
    permissions = fields.List(fields.String())
    mfa_enabled = fields.Boolean()


class SessionSchema(Schema):
    """One active session as listed to its owner."""

    session_id = fields.String(required=True)
    user_agent = fields.String()
    ip_address = fields.String()
    created_at = fields.DateTime()
    last_rotated_at = fields.DateTime()
    expires_at = fields.DateTime()
    current = fields.Boolean()
