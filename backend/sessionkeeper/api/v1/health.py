"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sessionkeeper.api.deps import json_response, timing
from sessionkeeper.core.extensions import db, get_redis

bp = Blueprint("health", __name__)


def _store_status() -> str:
    if current_app.config.get("SESSION_BACKEND") != "redis":
        return "memory"
    try:
        get_redis().ping()
    except RedisError:
        current_app.logger.exception("healthcheck.store_error")
        return "fail"
    return "ok"


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and session store health information."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"
    store_status = _store_status()
    healthy = db_status == "ok" and store_status != "fail"
    payload = {
        "status": "ok" if healthy else "degraded",
        "db": db_status,
        "store": store_status,
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if healthy else 503)
