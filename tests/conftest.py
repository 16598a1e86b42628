from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from uploadaudit.config import UploadConfig
from uploadaudit.records.audit import AuditLog
from uploadaudit.records.status import StatusStore

FAKE_SSH = """#!/bin/sh
# ssh HOST COMMAND: run the remote command locally.
exec /bin/sh -c "$2"
"""

FAKE_SCP = """#!/bin/sh
# scp LOCAL HOST:PATH
cp "$1" "${2#*:}"
"""

FAKE_AWS = """#!/bin/sh
# aws s3 cp SRC s3://BUCKET/KEY ...
dest="$FAKE_S3_ROOT/${4#s3://}"
mkdir -p "$(dirname "$dest")"
if [ "$3" = "-" ]; then
    cat > "$dest"
else
    cp "$3" "$dest"
fi
"""

FAKE_FAILING = """#!/bin/sh
exit 255
"""


@pytest.fixture()
def sample_files(tmp_path) -> Path:
    """Directory with a few files, including one in a subdirectory."""
    d = tmp_path / "source"
    d.mkdir()
    (d / "a.txt").write_bytes(b"a" * 1000)
    (d / "b.txt").write_bytes(b"hello world\n")
    sub = d / "sub"
    sub.mkdir()
    (sub / "c.bin").write_bytes(bytes(range(256)) * 4)
    return d


@pytest.fixture()
def status_dir(tmp_path) -> Path:
    return tmp_path / "status"


@pytest.fixture()
def audit_path(tmp_path) -> Path:
    return tmp_path / "logs" / "upload_audit.log"


@pytest.fixture()
def make_config(status_dir, audit_path):
    """Factory for UploadConfig pointed at the temporary status/audit paths."""

    def factory(**overrides) -> UploadConfig:
        values = {"audit_log": audit_path, "status_dir": status_dir}
        values.update(overrides)
        return UploadConfig(**values)

    return factory


@pytest.fixture()
def status_store(status_dir) -> StatusStore:
    return StatusStore(status_dir)


@pytest.fixture()
def audit_log(audit_path) -> AuditLog:
    return AuditLog(audit_path)


def _write_script(path: Path, body: str) -> None:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.fixture()
def fake_bin(tmp_path, monkeypatch) -> Path:
    """Put fake ssh/scp/aws executables first on PATH.

    The fake aws client stores objects under ``$FAKE_S3_ROOT/<bucket>/<key>``.
    """
    if sys.platform == "win32":
        pytest.skip("fake clients are POSIX shell scripts")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    _write_script(bin_dir / "ssh", FAKE_SSH)
    _write_script(bin_dir / "scp", FAKE_SCP)
    _write_script(bin_dir / "aws", FAKE_AWS)

    s3_root = tmp_path / "s3"
    s3_root.mkdir()
    monkeypatch.setenv("FAKE_S3_ROOT", str(s3_root))
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return bin_dir


@pytest.fixture()
def failing_bin(fake_bin) -> Path:
    """Replace every fake client with one that exits 255 immediately."""
    for name in ("ssh", "scp", "aws"):
        _write_script(fake_bin / name, FAKE_FAILING)
    return fake_bin
