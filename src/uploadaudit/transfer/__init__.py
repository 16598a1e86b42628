from uploadaudit.transfer.orchestrator import (
    BatchResult,
    FileOutcome,
    TransferObserver,
    TransferOrchestrator,
    collect_files,
)
from uploadaudit.transfer.progress import ProgressChannel, ProgressReporter
from uploadaudit.transfer.targets import (
    HTTPTarget,
    ObjectStoreTarget,
    SSHTarget,
    TargetParseError,
    TransferTarget,
    parse_target,
)
from uploadaudit.transfer.transport import EXIT_MISSING_TOOL, Transporter

__all__ = [
    "EXIT_MISSING_TOOL",
    "BatchResult",
    "FileOutcome",
    "HTTPTarget",
    "ObjectStoreTarget",
    "ProgressChannel",
    "ProgressReporter",
    "SSHTarget",
    "TargetParseError",
    "TransferObserver",
    "TransferOrchestrator",
    "TransferTarget",
    "Transporter",
    "collect_files",
    "parse_target",
]
