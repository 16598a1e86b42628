"""Tests for checksums, the status store and the audit log."""

from __future__ import annotations

import hashlib
import json
import re
from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import ValidationError

from uploadaudit.records import audit as audit_module
from uploadaudit.records.audit import AuditLog
from uploadaudit.records.checksum import UNKNOWN_DIGEST, compute_digest
from uploadaudit.records.models import AuditRecord, FileStatus, StatusPhase, utc_timestamp

TS_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")


def _record(**overrides) -> AuditRecord:
    values = {
        "file": "a.txt",
        "local_path": "/data/a.txt",
        "target_type": "s3",
        "target_spec": "bucket/prefix/",
        "size": 1000,
        "sha256": "abc",
        "start_ts": "2024-01-01T00:00:00Z",
        "end_ts": "2024-01-01T00:00:01Z",
        "duration_s": 1.0,
        "exit_code": 0,
        "user": "tester",
        "host": "box",
    }
    values.update(overrides)
    return AuditRecord(**values)


# ---------------------------------------------------------------------------
# compute_digest
# ---------------------------------------------------------------------------


class TestComputeDigest:
    def test_sha256_matches_hashlib(self, tmp_path):
        f = tmp_path / "data.bin"
        content = b"x" * 5000
        f.write_bytes(content)
        assert compute_digest(f) == hashlib.sha256(content).hexdigest()

    def test_small_chunks_same_digest(self, tmp_path):
        f = tmp_path / "data.bin"
        f.write_bytes(b"abcdefghij")
        assert compute_digest(f, chunk_size=3) == hashlib.sha256(b"abcdefghij").hexdigest()

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty"
        f.write_bytes(b"")
        assert compute_digest(f) == hashlib.sha256(b"").hexdigest()

    def test_unavailable_algorithm_is_unknown(self, tmp_path):
        f = tmp_path / "data.bin"
        f.write_bytes(b"abc")
        assert compute_digest(f, algorithm="no-such-hash") == UNKNOWN_DIGEST


# ---------------------------------------------------------------------------
# models
# ---------------------------------------------------------------------------


class TestModels:
    def test_timestamp_format(self):
        assert TS_PATTERN.match(utc_timestamp())

    def test_status_json_omits_absent_fields(self):
        record = FileStatus(file="a.txt", status=StatusPhase.STARTING, size=10)
        data = json.loads(record.to_json())
        assert data["status"] == "starting"
        assert set(data) == {"file", "status", "size", "ts"}

    def test_terminal_phases(self):
        assert StatusPhase.SUCCESS.terminal
        assert StatusPhase.FAILED.terminal
        assert StatusPhase.DRY_RUN.terminal
        assert not StatusPhase.STARTING.terminal
        assert not StatusPhase.TRANSFERRING.terminal

    def test_audit_record_is_frozen(self):
        record = _record()
        with pytest.raises(ValidationError):
            record.exit_code = 1


# ---------------------------------------------------------------------------
# StatusStore
# ---------------------------------------------------------------------------


class TestStatusStore:
    def test_creates_directory(self, status_store, status_dir):
        assert status_dir.is_dir()

    def test_path_for(self, status_store, status_dir):
        assert status_store.path_for("a.txt") == status_dir / "a.txt.status.json"

    def test_init_writes_starting(self, status_store):
        status_store.init("a.txt", 1000)
        data = json.loads(status_store.path_for("a.txt").read_text())
        assert data["file"] == "a.txt"
        assert data["status"] == "starting"
        assert data["size"] == 1000
        assert TS_PATTERN.match(data["ts"])

    def test_update_replaces_record(self, status_store):
        status_store.init("a.txt", 1000)
        status_store.update("a.txt", 50, 500, 1000, message="halfway")
        data = json.loads(status_store.path_for("a.txt").read_text())
        assert data["status"] == "transferring"
        assert data["percent"] == 50
        assert data["transferred"] == 500
        assert data["size"] == 1000
        assert data["msg"] == "halfway"

    def test_last_write_wins_even_if_not_monotonic(self, status_store):
        status_store.update("a.txt", 80, 800, 1000)
        status_store.update("a.txt", 20, 200, 1000)
        assert status_store.read("a.txt").percent == 20

    def test_finalize_replaces_progress_fields(self, status_store):
        status_store.update("a.txt", 99, 990, 1000)
        status_store.finalize("a.txt", StatusPhase.SUCCESS, 0, 1.5, "deadbeef", 1000)
        data = json.loads(status_store.path_for("a.txt").read_text())
        assert data["status"] == "success"
        assert data["exit_code"] == 0
        assert data["duration_s"] == 1.5
        assert data["sha256"] == "deadbeef"
        assert "percent" not in data
        assert "transferred" not in data

    def test_finalize_accepts_string_outcome(self, status_store):
        record = status_store.finalize("a.txt", "dry-run", 0, 0.0, "x", 3)
        assert record.status is StatusPhase.DRY_RUN

    def test_finalize_rejects_non_terminal(self, status_store):
        with pytest.raises(ValueError, match="terminal"):
            status_store.finalize("a.txt", StatusPhase.TRANSFERRING, 0, 0.0, "x", 1)

    def test_read_missing(self, status_store):
        assert status_store.read("nope.txt") is None

    def test_no_temp_files_left_behind(self, status_store, status_dir):
        for pct in range(0, 101, 10):
            status_store.update("a.txt", pct, pct * 10, 1000)
        assert [p.name for p in status_dir.iterdir()] == ["a.txt.status.json"]

    def test_records_are_independent_per_file(self, status_store):
        status_store.init("a.txt", 1)
        status_store.finalize("b.txt", StatusPhase.FAILED, 127, 0.1, "x", 2)
        assert status_store.read("a.txt").status is StatusPhase.STARTING
        assert status_store.read("b.txt").exit_code == 127


# ---------------------------------------------------------------------------
# AuditLog
# ---------------------------------------------------------------------------


class TestAuditLog:
    def test_creates_parent_directory(self, audit_log, audit_path):
        assert audit_path.parent.is_dir()

    def test_append_writes_one_json_line(self, audit_log, audit_path):
        audit_log.append(_record())
        lines = audit_path.read_text().splitlines()
        assert len(lines) == 1
        data = json.loads(lines[0])
        assert set(data) == {
            "file", "local_path", "target_type", "target_spec", "size", "sha256",
            "start_ts", "end_ts", "duration_s", "exit_code", "user", "host",
        }
        assert data["exit_code"] == 0

    def test_appends_preserve_order(self, audit_log):
        for name in ("a.txt", "b.txt", "c.txt"):
            audit_log.append(_record(file=name))
        assert [r.file for r in audit_log.records()] == ["a.txt", "b.txt", "c.txt"]

    def test_existing_content_kept(self, audit_path):
        audit_path.parent.mkdir(parents=True)
        audit_path.write_text('{"other": "writer"}\n')
        AuditLog(audit_path).append(_record())
        lines = audit_path.read_text().splitlines()
        assert lines[0] == '{"other": "writer"}'
        assert json.loads(lines[1])["file"] == "a.txt"

    def test_records_on_missing_log(self, tmp_path):
        log = AuditLog(tmp_path / "never.log")
        assert list(log.records()) == []

    def test_uses_lock_file(self, audit_log):
        audit_log.append(_record())
        if audit_module.fcntl is not None:
            assert audit_log.lock_path.exists()

    def test_concurrent_appends_do_not_interleave(self, audit_path):
        # Separate AuditLog instances act like independent writers.
        big = "x" * 20_000

        def write(i: int) -> None:
            AuditLog(audit_path).append(_record(file=f"f{i}.txt", sha256=big))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(write, range(40)))

        lines = audit_path.read_text().splitlines()
        assert len(lines) == 40
        names = {json.loads(line)["file"] for line in lines}
        assert names == {f"f{i}.txt" for i in range(40)}

    def test_degrades_without_fcntl(self, audit_log, audit_path, monkeypatch, caplog):
        monkeypatch.setattr(audit_module, "fcntl", None)
        audit_log.append(_record(file="a.txt"))
        audit_log.append(_record(file="b.txt"))
        assert len(audit_path.read_text().splitlines()) == 2
        warnings = [r for r in caplog.records if "without a lock" in r.getMessage()]
        assert len(warnings) == 1
