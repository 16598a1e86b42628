from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from uploadaudit.transfer.targets import (
    HTTPTarget,
    ObjectStoreTarget,
    SSHTarget,
    TransferTarget,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from uploadaudit.config import UploadConfig

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
# HTTP failures use the exit codes curl reports for the same conditions.
EXIT_CONNECT_ERROR = 7
EXIT_HTTP_ERROR = 22
EXIT_TIMEOUT = 28
EXIT_MISSING_TOOL = 127


def _file_chunk_generator(
    file_path: Path,
    chunk_size: int = 1_048_576,
    callback: Callable[[int], None] | None = None,
):
    """Read a file in chunks, calling callback with each chunk's size."""
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            if callback:
                callback(len(chunk))
            yield chunk


def _fraction_callback(
    total_bytes: int,
    on_progress: Callable[[float], None] | None,
) -> Callable[[int], None] | None:
    """Convert per-chunk byte counts into cumulative fractions."""
    if on_progress is None or total_bytes <= 0:
        return None
    sent = 0

    def cb(delta: int) -> None:
        nonlocal sent
        sent += delta
        on_progress(sent / total_bytes)

    return cb


class Transporter:
    """Move one local file to a destination and report an exit status.

    With ``on_progress`` the file is streamed in chunks and every chunk sent
    produces a progress sample; without it a single whole-file transfer runs.
    """

    def __init__(
        self,
        config: UploadConfig,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.http_transport = http_transport

    def send(
        self,
        file_path: Path,
        target: TransferTarget,
        on_progress: Callable[[float], None] | None = None,
    ) -> int:
        if isinstance(target, SSHTarget):
            return self._send_ssh(file_path, target, on_progress)
        if isinstance(target, HTTPTarget):
            return self._send_http(file_path, target, on_progress)
        if isinstance(target, ObjectStoreTarget):
            return self._send_s3(file_path, target, on_progress)
        raise TypeError(f"Unsupported target: {target!r}")

    # --- SSH ---

    def _send_ssh(
        self,
        file_path: Path,
        target: SSHTarget,
        on_progress: Callable[[float], None] | None,
    ) -> int:
        remote = target.resolve(file_path.name)
        if on_progress is None:
            logger.info("Uploading (ssh) %s -> %s via scp", file_path, remote)
            return self._run(["scp", str(file_path), remote])

        remote_path = target.remote_path(file_path.name)
        logger.info("Uploading (ssh) %s -> %s", file_path, remote)
        return self._run_streaming(
            ["ssh", target.host, f"cat > {shlex.quote(remote_path)}"],
            file_path,
            on_progress,
        )

    # --- HTTP ---

    def _send_http(
        self,
        file_path: Path,
        target: HTTPTarget,
        on_progress: Callable[[float], None] | None,
    ) -> int:
        url = target.resolve(file_path.name)
        size = file_path.stat().st_size
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(size),
        }
        stream = _file_chunk_generator(
            file_path,
            chunk_size=self.config.chunk_size,
            callback=_fraction_callback(size, on_progress),
        )
        logger.info("Uploading (http) %s -> %s", file_path, url)

        timeout = httpx.Timeout(self.config.http_timeout, connect=10.0)
        try:
            with httpx.Client(timeout=timeout, transport=self.http_transport) as client:
                resp = client.put(url, headers=headers, content=stream)
        except httpx.ConnectError as exc:
            logger.error("Cannot connect to %s: %s", url, exc)
            return EXIT_CONNECT_ERROR
        except httpx.TimeoutException:
            logger.error("Upload to %s timed out", url)
            return EXIT_TIMEOUT
        except httpx.HTTPError as exc:
            logger.error("Upload to %s failed: %s", url, exc)
            return EXIT_FAILURE

        if not resp.is_success:
            logger.error("PUT %s returned HTTP %d", url, resp.status_code)
            return EXIT_HTTP_ERROR
        return EXIT_OK

    # --- S3 ---

    def _send_s3(
        self,
        file_path: Path,
        target: ObjectStoreTarget,
        on_progress: Callable[[float], None] | None,
    ) -> int:
        dest = target.resolve_url(file_path.name)
        if shutil.which("aws") is None:
            logger.error("aws CLI not found; cannot upload to s3")
            return EXIT_MISSING_TOOL

        if on_progress is None:
            logger.info("Uploading (s3) %s -> %s", file_path, dest)
            return self._run(
                ["aws", "s3", "cp", str(file_path), dest, "--only-show-errors"]
            )

        logger.info("Uploading (s3) %s -> %s from stdin", file_path, dest)
        size = file_path.stat().st_size
        return self._run_streaming(
            [
                "aws", "s3", "cp", "-", dest,
                "--only-show-errors", "--expected-size", str(size),
            ],
            file_path,
            on_progress,
        )

    # --- subprocess helpers ---

    def _run(self, cmd: list[str]) -> int:
        if shutil.which(cmd[0]) is None:
            logger.error("%s not found; cannot upload", cmd[0])
            return EXIT_MISSING_TOOL
        logger.debug("running: %s", shlex.join(cmd))
        return subprocess.run(cmd).returncode

    def _run_streaming(
        self,
        cmd: list[str],
        file_path: Path,
        on_progress: Callable[[float], None],
    ) -> int:
        """Feed the file to ``cmd`` on stdin, reporting each chunk written."""
        if shutil.which(cmd[0]) is None:
            logger.error("%s not found; cannot upload", cmd[0])
            return EXIT_MISSING_TOOL
        logger.debug("running: %s", shlex.join(cmd))

        report = _fraction_callback(file_path.stat().st_size, on_progress)
        closed_early = False
        with subprocess.Popen(cmd, stdin=subprocess.PIPE) as proc:
            try:
                for chunk in _file_chunk_generator(file_path, self.config.chunk_size):
                    proc.stdin.write(chunk)
                    if report:
                        report(len(chunk))
            except BrokenPipeError:
                closed_early = True
            finally:
                try:
                    proc.stdin.close()
                except BrokenPipeError:
                    closed_early = True

        if closed_early:
            logger.warning("%s stopped reading before %s was fully sent",
                           cmd[0], file_path.name)
            if proc.returncode == EXIT_OK:
                return EXIT_FAILURE
        return proc.returncode
