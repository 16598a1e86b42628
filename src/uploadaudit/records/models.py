from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp(moment: datetime | None = None) -> str:
    """Format a moment (default: now) as a second-precision UTC timestamp."""
    moment = moment or utc_now()
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


class StatusPhase(str, Enum):
    """Lifecycle phases of a per-file status record."""
    STARTING = "starting"
    TRANSFERRING = "transferring"
    SUCCESS = "success"
    FAILED = "failed"
    DRY_RUN = "dry-run"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_PHASES


TERMINAL_PHASES = frozenset(
    {StatusPhase.SUCCESS, StatusPhase.FAILED, StatusPhase.DRY_RUN}
)


class FileStatus(BaseModel):
    """Live status record for one file, as read by progress frontends."""
    file: str
    status: StatusPhase
    percent: int | None = None
    transferred: int | None = None
    size: int | None = None
    msg: str | None = None
    exit_code: int | None = None
    duration_s: float | None = None
    sha256: str | None = None
    ts: str = Field(default_factory=utc_timestamp)

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class AuditRecord(BaseModel):
    """One line of the audit log; never changed once written."""
    file: str
    local_path: str
    target_type: str
    target_spec: str
    size: int
    sha256: str
    start_ts: str
    end_ts: str
    duration_s: float
    exit_code: int
    user: str
    host: str

    model_config = {"frozen": True}
