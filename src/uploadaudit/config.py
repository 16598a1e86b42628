from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_AUDIT_LOG = "./upload_audit.log"
DEFAULT_STATUS_DIR = "/tmp/upload_status"
DEFAULT_CHUNK_SIZE = 1_048_576
DEFAULT_HTTP_TIMEOUT = 3600.0


def default_audit_log() -> str:
    return os.environ.get("UPLOAD_AUDIT_LOG", DEFAULT_AUDIT_LOG)


def default_status_dir() -> str:
    return os.environ.get("UPLOAD_STATUS_DIR", DEFAULT_STATUS_DIR)


class UploadConfig(BaseModel):
    """Settings for one upload run, built once by the CLI."""

    audit_log: Path = Field(default=Path(DEFAULT_AUDIT_LOG))
    status_dir: Path = Field(default=Path(DEFAULT_STATUS_DIR))
    dry_run: bool = False
    quiet: bool = False
    stream_progress: bool = Field(
        default=True,
        description="Stream files in chunks and report progress samples",
    )
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)

    model_config = {"frozen": True}
