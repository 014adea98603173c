# sessionkeeper/services/_shared/base.py
from __future__ import annotations

from datetime import datetime

from sessionkeeper.core import errors as api_errors
from sessionkeeper.core.clock import Clock, utcnow
from sessionkeeper.services._shared.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Hold the injected clock so every component shares one notion of "now".
    * Centralize error translation.
    * Keep services thin, orchestration-only, no web/ORM leakage.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        """
        Initialize the base service.

        :param clock: Callable returning aware UTC datetimes.
        :type clock: Clock | None
        """
        self.clock: Clock = clock or utcnow

    def now_utc(self) -> datetime:
        return self.clock()

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, AuthError):
            # status carried by the error class (401 / 403 / 404)
            return api_errors.APIError(
                message=exc.message,
                status_code=exc.status,
                code=exc.code,
            )

        if isinstance(exc, StoreUnavailableError):
            # → 503 Service Unavailable
            return api_errors.ServiceUnavailable()

        if isinstance(exc, NotFoundError):
            # → 404 Not Found
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ConflictError):
            # → 409 Conflict
            return api_errors.Conflict(str(exc))

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
