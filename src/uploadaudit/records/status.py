from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path

from uploadaudit.records.models import FileStatus, StatusPhase

STATUS_SUFFIX = ".status.json"


class StatusStore:
    """Per-file status documents for progress frontends.

    Every write replaces the whole record for that file. Records are keyed by
    basename, so two sources with the same name share one document.
    """

    def __init__(self, status_dir: Path) -> None:
        self.status_dir = Path(status_dir)
        self.status_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, filename: str) -> Path:
        return self.status_dir / f"{filename}{STATUS_SUFFIX}"

    def init(self, filename: str, size: int) -> FileStatus:
        record = FileStatus(file=filename, status=StatusPhase.STARTING, size=size)
        self._write(record)
        return record

    def update(
        self,
        filename: str,
        percent: int,
        transferred: int,
        size: int,
        message: str | None = None,
    ) -> FileStatus:
        record = FileStatus(
            file=filename,
            status=StatusPhase.TRANSFERRING,
            percent=percent,
            transferred=transferred,
            size=size,
            msg=message,
        )
        self._write(record)
        return record

    def finalize(
        self,
        filename: str,
        outcome: StatusPhase,
        exit_code: int,
        duration_s: float,
        digest: str,
        size: int,
    ) -> FileStatus:
        outcome = StatusPhase(outcome)
        if not outcome.terminal:
            raise ValueError(f"Not a terminal status: {outcome.value}")
        record = FileStatus(
            file=filename,
            status=outcome,
            exit_code=exit_code,
            duration_s=duration_s,
            sha256=digest,
            size=size,
        )
        self._write(record)
        return record

    def read(self, filename: str) -> FileStatus | None:
        path = self.path_for(filename)
        if not path.exists():
            return None
        return FileStatus.model_validate_json(path.read_text(encoding="utf-8"))

    def _write(self, record: FileStatus) -> None:
        target = self.path_for(record.file)
        with self._lock:
            # Rename over the old document so readers never see a partial one.
            fd, tmp_name = tempfile.mkstemp(
                dir=self.status_dir, prefix=f".{record.file}.", suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(record.to_json() + "\n")
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
