from sessionkeeper.services.mfa.dto import BackupCodesOut, MfaResult, MfaSetupOut, MfaStatusOut
from sessionkeeper.services.mfa.manager import MfaManager
from sessionkeeper.services.mfa.service import MfaService

__all__ = [
    "BackupCodesOut",
    "MfaManager",
    "MfaResult",
    "MfaService",
    "MfaSetupOut",
    "MfaStatusOut",
]
