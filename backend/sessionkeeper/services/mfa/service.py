# sessionkeeper/services/mfa/service.py
from __future__ import annotations

from typing import TypeVar

from sessionkeeper.core.clock import Clock
from sessionkeeper.services._shared.base import BaseService
from sessionkeeper.services._shared.errors import (
    ConflictError,
    MfaInvalidCodeError,
    NotFoundError,
)
from sessionkeeper.services.mfa.dto import BackupCodesOut, MfaResult, MfaSetupOut, MfaStatusOut
from sessionkeeper.services.mfa.manager import MfaManager

T = TypeVar("T")

_CONFLICTS = {
    MfaResult.ALREADY_ENABLED: "MFA is already enabled.",
    MfaResult.NOT_CONFIGURED: "MFA has not been set up.",
    MfaResult.NOT_ENABLED: "MFA is not enabled.",
}


class MfaService(BaseService):
    """
    Service facade over :class:`MfaManager`.

    Converts :class:`MfaResult` values into service errors so the HTTP layer
    only ever sees the error taxonomy.
    """

    def __init__(self, *, manager: MfaManager, clock: Clock | None = None) -> None:
        super().__init__(clock=clock)
        self.manager = manager

    @staticmethod
    def _raise_for(result: MfaResult, user_id: str) -> None:
        if result is MfaResult.OK:
            return
        if result is MfaResult.INVALID_CODE:
            raise MfaInvalidCodeError()
        if result is MfaResult.USER_NOT_FOUND:
            raise NotFoundError("User", user_id)
        raise ConflictError("MFA", _CONFLICTS[result])

    @classmethod
    def _unwrap(cls, result: MfaResult, out: T | None, user_id: str) -> T:
        cls._raise_for(result, user_id)
        if out is None:
            raise NotFoundError("User", user_id)
        return out

    def setup(self, user_id: str) -> MfaSetupOut:
        result, out = self.manager.setup(user_id)
        return self._unwrap(result, out, user_id)

    def enable(self, user_id: str, code: str) -> None:
        self._raise_for(self.manager.enable(user_id, code), user_id)

    def disable(self, user_id: str, code: str) -> None:
        self._raise_for(self.manager.disable(user_id, code), user_id)

    def verify(
        self, user_id: str, *, totp_code: str | None = None, backup_code: str | None = None
    ) -> None:
        result = self.manager.verify(user_id, totp_code=totp_code, backup_code=backup_code)
        self._raise_for(result, user_id)

    def status(self, user_id: str) -> MfaStatusOut:
        out = self.manager.status(user_id)
        if out is None:
            raise NotFoundError("User", user_id)
        return out

    def regenerate_backup_codes(self, user_id: str, code: str) -> BackupCodesOut:
        result, out = self.manager.regenerate_backup_codes(user_id, code)
        return self._unwrap(result, out, user_id)
