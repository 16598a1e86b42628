from __future__ import annotations

import functools
import getpass
import logging
import socket
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from uploadaudit.records.audit import AuditLog
from uploadaudit.records.checksum import UNKNOWN_DIGEST, compute_digest
from uploadaudit.records.models import AuditRecord, StatusPhase, utc_now, utc_timestamp
from uploadaudit.records.status import StatusStore
from uploadaudit.transfer.progress import ProgressChannel, ProgressReporter
from uploadaudit.transfer.transport import EXIT_FAILURE, EXIT_OK, Transporter

if TYPE_CHECKING:
    from uploadaudit.config import UploadConfig
    from uploadaudit.transfer.targets import TransferTarget

logger = logging.getLogger(__name__)


@runtime_checkable
class TransferObserver(Protocol):
    """Callback protocol for observing a batch of transfers."""

    def file_started(self, file_path: Path, total_bytes: int) -> None: ...
    def file_progress(self, file_path: Path, fraction: float) -> None: ...
    def file_done(self, outcome: FileOutcome) -> None: ...


@dataclass
class FileOutcome:
    """Result of transferring a single file."""

    filename: str
    local_path: Path
    status: StatusPhase
    exit_code: int
    size: int
    sha256: str
    duration_s: float
    error: str | None = field(default=None)

    @property
    def ok(self) -> bool:
        return self.exit_code == EXIT_OK


@dataclass
class BatchResult:
    """Outcomes of every file in a run, in processing order."""

    outcomes: list[FileOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def succeeded(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE if self.failed else EXIT_OK


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def collect_files(source: Path) -> list[Path]:
    """Resolve a file or directory into a sorted list of regular files."""
    source = Path(source)
    if source.is_file():
        files = [source.resolve()]
    elif source.is_dir():
        files = sorted(p.resolve() for p in source.rglob("*") if p.is_file())
    else:
        raise FileNotFoundError(f"Source not found: {source}")

    if not files:
        raise FileNotFoundError(f"No files collected from source: {source}")

    # Status documents are keyed by basename, so duplicates share one record.
    dupes = [name for name, n in Counter(p.name for p in files).items() if n > 1]
    for name in dupes:
        logger.warning("Several source files are named %s; their status "
                       "records will overwrite each other", name)
    return files


class TransferOrchestrator:
    """Drive each file through status, transfer and audit."""

    def __init__(
        self,
        config: UploadConfig,
        target: TransferTarget,
        *,
        transporter: Transporter | None = None,
        status_store: StatusStore | None = None,
        audit_log: AuditLog | None = None,
        observer: TransferObserver | None = None,
    ) -> None:
        self.config = config
        self.target = target
        self.transporter = transporter or Transporter(config)
        self.status = status_store or StatusStore(config.status_dir)
        self.audit = audit_log or AuditLog(config.audit_log)
        self.observer = observer
        self._user = _current_user()
        self._host = socket.gethostname()

    def run(self, file_paths: list[Path]) -> BatchResult:
        """Transfer every file in order; one failure never stops the batch."""
        result = BatchResult()
        for file_path in file_paths:
            logger.info("Processing: %s", file_path)
            result.outcomes.append(self.transfer(file_path))

        if result.failed:
            logger.warning(
                "Some transfers failed. See audit log: %s and status files in %s",
                self.config.audit_log, self.config.status_dir,
            )
        else:
            logger.info("All transfers finished OK.")
        return result

    def transfer(self, file_path: Path) -> FileOutcome:
        filename = file_path.name
        error: str | None = None
        try:
            size = file_path.stat().st_size
        except OSError as exc:
            logger.error("Cannot stat %s: %s", file_path, exc)
            size = 0
            error = str(exc)

        self.status.init(filename, size)
        if self.observer:
            self.observer.file_started(file_path, size)

        digest = UNKNOWN_DIGEST
        if error is None:
            try:
                digest = compute_digest(file_path)
            except OSError as exc:
                logger.error("Cannot read %s: %s", file_path, exc)
                error = str(exc)
        started_at = utc_now()
        start = time.monotonic()

        if error is not None:
            exit_code = EXIT_FAILURE
            phase = StatusPhase.FAILED
        elif self.config.dry_run:
            logger.info("[DRY-RUN] would transfer %s -> %s:%s",
                        file_path, self.target.kind, self.target.spec)
            exit_code = EXIT_OK
            phase = StatusPhase.DRY_RUN
        else:
            try:
                exit_code = self._send(file_path, size)
            except Exception as exc:
                logger.error("Failed to send %s: %s", file_path, exc)
                exit_code = EXIT_FAILURE
                error = str(exc)
            phase = StatusPhase.SUCCESS if exit_code == EXIT_OK else StatusPhase.FAILED

        duration = round(time.monotonic() - start, 3)
        self.status.finalize(filename, phase, exit_code, duration, digest, size)
        self.audit.append(
            AuditRecord(
                file=filename,
                local_path=str(file_path),
                target_type=self.target.kind,
                target_spec=self.target.spec,
                size=size,
                sha256=digest,
                start_ts=utc_timestamp(started_at),
                end_ts=utc_timestamp(),
                duration_s=duration,
                exit_code=exit_code,
                user=self._user,
                host=self._host,
            )
        )

        outcome = FileOutcome(
            filename=filename,
            local_path=file_path,
            status=phase,
            exit_code=exit_code,
            size=size,
            sha256=digest,
            duration_s=duration,
            error=error,
        )
        if self.observer:
            self.observer.file_done(outcome)
        return outcome

    def _send(self, file_path: Path, size: int) -> int:
        if not self.config.stream_progress:
            return self.transporter.send(file_path, self.target)

        listener = None
        if self.observer:
            listener = functools.partial(self.observer.file_progress, file_path)

        reporter = ProgressReporter(self.status, file_path.name, size, listener)
        with ProgressChannel(reporter) as channel:
            return self.transporter.send(
                file_path, self.target, on_progress=channel.publish,
            )
