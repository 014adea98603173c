"""MFA Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema


class CodeSchema(Schema):
    """A single TOTP code proving possession of the authenticator."""

    code = fields.String(required=True, validate=validate.Length(min=6, max=16))


class VerifySchema(Schema):
    """Second-factor check; at least one of the two codes is required."""

    totp_code = fields.String(load_default=None, validate=validate.Length(max=16))
    backup_code = fields.String(load_default=None, validate=validate.Length(max=32))

    @validates_schema
    def _one_code(self, data, **kwargs):
        if not data.get("totp_code") and not data.get("backup_code"):
            raise ValidationError("Provide totp_code or backup_code.", "_schema")


class MfaSetupSchema(Schema):
    secret = fields.String()
    provisioning_uri = fields.String()
    qr_code = fields.String()
    backup_codes = fields.List(fields.String())


class MfaStatusSchema(Schema):
    enabled = fields.Boolean()
    configured = fields.Boolean()
    remaining_backup_codes = fields.Integer()


class BackupCodesSchema(Schema):
    backup_codes = fields.List(fields.String())
