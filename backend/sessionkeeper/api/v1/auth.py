"""Authentication and session endpoints using the service layer."""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, g, request

from sessionkeeper.api.deps import (
    client_info,
    current_claims,
    json_response,
    no_store,
    require_auth,
    services,
    timing,
)
from sessionkeeper.core.errors import NotFound
from sessionkeeper.schemas import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    SessionSchema,
    TokenPairSchema,
    UserSchema,
)
from sessionkeeper.services.auth.dto import LoginIn, RefreshIn

bp = Blueprint("auth", __name__)

login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
token_schema = TokenPairSchema()
user_schema = UserSchema()
session_schema = SessionSchema()


@bp.post("/login")
@timing
def login():
    """Authenticate credentials (plus optional second factor) and open a session."""

    data = login_schema.load(request.get_json(silent=True) or {})
    out = services().auth.login(LoginIn(**data), client_info())
    body = {"data": {**token_schema.dump(out.tokens), "user": user_schema.dump(out.user)}}
    return no_store(json_response(body))


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the refresh token and return a new pair for the same session."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    pair = services().auth.refresh(RefreshIn(data["refresh_token"]), client_info())
    return no_store(json_response({"data": token_schema.dump(pair)}))


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Revoke the presented access token and end the current (or given) session."""

    data = logout_schema.load(request.get_json(silent=True) or {})
    services().auth.logout(g.access_token, session_id=data["session_id"])
    return json_response({"data": {"logged_out": True}})


@bp.post("/logout-all")
@require_auth
@timing
def logout_all():
    """End every session of the authenticated user."""

    claims = current_claims()
    count = services().auth.logout_all(claims.subject, access_token=g.access_token)
    return json_response({"data": {"invalidated_count": count}})


@bp.get("/sessions")
@require_auth
@timing
def list_sessions():
    """List the authenticated user's active sessions, oldest first."""

    claims = current_claims()
    items = [
        {**asdict(s), "current": s.session_id == claims.session_id}
        for s in services().auth.list_sessions(claims.subject)
    ]
    return json_response({"data": session_schema.dump(items, many=True)})


@bp.delete("/sessions/<session_id>")
@require_auth
@timing
def revoke_session(session_id: str):
    """End one of the caller's own sessions."""

    claims = current_claims()
    if not services().sessions.invalidate_user_session(claims.subject, session_id):
        raise NotFound("Session not found")
    return "", 204


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user profile with role permissions."""

    claims = current_claims()
    user = services().auth.profile(claims)
    body = {"data": {**user_schema.dump(user), "session_id": claims.session_id}}
    return json_response(body)
