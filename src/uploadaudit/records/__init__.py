from uploadaudit.records.audit import AuditLog
from uploadaudit.records.checksum import UNKNOWN_DIGEST, compute_digest
from uploadaudit.records.models import AuditRecord, FileStatus, StatusPhase
from uploadaudit.records.status import StatusStore

__all__ = [
    "UNKNOWN_DIGEST",
    "AuditLog",
    "AuditRecord",
    "FileStatus",
    "StatusPhase",
    "StatusStore",
    "compute_digest",
]
