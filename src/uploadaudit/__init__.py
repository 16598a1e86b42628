"""upload-audit — Upload files over SSH, HTTP or S3 with an audit trail."""

__version__ = "0.1.0"

from uploadaudit.config import UploadConfig
from uploadaudit.records import AuditLog, AuditRecord, FileStatus, StatusPhase, StatusStore
from uploadaudit.transfer import TransferOrchestrator, Transporter, parse_target

__all__ = [
    "__version__",
    "AuditLog",
    "AuditRecord",
    "FileStatus",
    "StatusPhase",
    "StatusStore",
    "TransferOrchestrator",
    "Transporter",
    "UploadConfig",
    "parse_target",
]
