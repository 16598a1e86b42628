from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from uploadaudit.records.models import AuditRecord

try:
    import fcntl
except ImportError:  # pragma: no cover - non-POSIX platforms
    fcntl = None

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only JSON Lines log with one record per transfer attempt.

    Appends hold an exclusive ``flock`` on ``<log>.lock`` so that concurrent
    writers never interleave partial lines. Without ``fcntl`` the append is
    unlocked and may race with other processes writing the same log.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._warned_unlocked = False

    def append(self, record: AuditRecord) -> None:
        line = record.model_dump_json() + "\n"
        if fcntl is None:
            if not self._warned_unlocked:
                logger.warning(
                    "File locking unavailable; appending to %s without a lock",
                    self.path,
                )
                self._warned_unlocked = True
            self._write_line(line)
            return

        with open(self.lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                self._write_line(line)
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def records(self) -> Iterator[AuditRecord]:
        """Iterate over the records currently in the log, oldest first."""
        if not self.path.exists():
            return
        with open(self.path, encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    yield AuditRecord.model_validate_json(line)

    def _write_line(self, line: str) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)
