"""MFA enrollment endpoints for the authenticated user."""

from __future__ import annotations

from flask import Blueprint, request

from sessionkeeper.api.deps import (
    current_claims,
    json_response,
    no_store,
    require_auth,
    services,
    timing,
)
from sessionkeeper.schemas import (
    BackupCodesSchema,
    CodeSchema,
    MfaSetupSchema,
    MfaStatusSchema,
    VerifySchema,
)

bp = Blueprint("mfa", __name__)

code_schema = CodeSchema()
verify_schema = VerifySchema()
setup_schema = MfaSetupSchema()
status_schema = MfaStatusSchema()
codes_schema = BackupCodesSchema()


@bp.post("/setup")
@require_auth
@timing
def setup():
    """Start enrollment: return the secret, QR code and backup codes once."""

    out = services().mfa.setup(current_claims().subject)
    return no_store(json_response({"data": setup_schema.dump(out)}, status=201))


@bp.post("/enable")
@require_auth
@timing
def enable():
    data = code_schema.load(request.get_json(silent=True) or {})
    services().mfa.enable(current_claims().subject, data["code"])
    return json_response({"data": {"enabled": True}})


@bp.post("/disable")
@require_auth
@timing
def disable():
    """Turn MFA off; only a current TOTP code is accepted as proof."""

    data = code_schema.load(request.get_json(silent=True) or {})
    services().mfa.disable(current_claims().subject, data["code"])
    return json_response({"data": {"enabled": False}})


@bp.post("/verify")
@require_auth
@timing
def verify():
    data = verify_schema.load(request.get_json(silent=True) or {})
    services().mfa.verify(
        current_claims().subject,
        totp_code=data["totp_code"],
        backup_code=data["backup_code"],
    )
    return json_response({"data": {"verified": True}})


@bp.get("/status")
@require_auth
@timing
def status():
    out = services().mfa.status(current_claims().subject)
    return json_response({"data": status_schema.dump(out)})


@bp.post("/backup-codes")
@require_auth
@timing
def regenerate_backup_codes():
    """Replace all backup codes; requires a fresh TOTP code."""

    data = code_schema.load(request.get_json(silent=True) or {})
    out = services().mfa.regenerate_backup_codes(current_claims().subject, data["code"])
    return no_store(json_response({"data": codes_schema.dump(out)}))
