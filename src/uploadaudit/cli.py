from __future__ import annotations

import argparse
import math
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

from rich.live import Live
from rich.table import Table

from uploadaudit.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_HTTP_TIMEOUT,
    UploadConfig,
    default_audit_log,
    default_status_dir,
)
from uploadaudit.log import (
    console,
    make_file_progress,
    make_overall_progress,
    resolve_level,
    setup_logging,
)
from uploadaudit.records.models import StatusPhase
from uploadaudit.transfer.orchestrator import (
    FileOutcome,
    TransferOrchestrator,
    collect_files,
)
from uploadaudit.transfer.targets import TargetParseError, parse_target

if TYPE_CHECKING:
    from rich.progress import TaskID

EXIT_USAGE = 1
EXIT_BAD_TARGET = 2

_OUTCOME_STYLE = {
    StatusPhase.SUCCESS: "green",
    StatusPhase.DRY_RUN: "yellow",
    StatusPhase.FAILED: "red",
}


class _ArgumentParser(argparse.ArgumentParser):
    """Exit 1 on usage errors; exit 2 is reserved for bad targets."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


class UploadProgressDisplay:
    """Rich-based implementation of TransferObserver for the CLI."""

    def __init__(self, total_files: int) -> None:
        self.overall = make_overall_progress()
        self.files = make_file_progress()
        self.overall_task = self.overall.add_task("Uploading", total=total_files)
        self.table = Table.grid()
        self.table.add_row(self.overall)
        self.table.add_row(self.files)
        self._task_ids: dict[Path, TaskID] = {}
        self._totals: dict[Path, int] = {}

    def file_started(self, file_path: Path, total_bytes: int) -> None:
        task_id = self.files.add_task(file_path.name, total=total_bytes)
        self._task_ids[file_path] = task_id
        self._totals[file_path] = total_bytes

    def file_progress(self, file_path: Path, fraction: float) -> None:
        completed = math.floor(fraction * self._totals[file_path])
        self.files.update(self._task_ids[file_path], completed=completed)

    def file_done(self, outcome: FileOutcome) -> None:
        task_id = self._task_ids[outcome.local_path]
        desc = self.files.tasks[task_id].description
        style = _OUTCOME_STYLE[outcome.status]
        if outcome.ok:
            self.files.update(task_id, completed=outcome.size)
        self.files.update(task_id, description=f"[{style}]{desc}")
        self.overall.advance(self.overall_task)


def print_summary(outcomes: list[FileOutcome], config: UploadConfig) -> None:
    ok = sum(1 for o in outcomes if o.ok)
    fail = len(outcomes) - ok
    if fail:
        console.print(f"\n[green]{ok} succeeded[/], [red]{fail} failed[/]")
        for o in outcomes:
            if o.ok:
                continue
            detail = o.error or f"exit code {o.exit_code}"
            console.print(f"  [red]- {o.filename}: {detail}")
        console.print(
            f"See audit log [cyan]{config.audit_log}[/] and status files in "
            f"[cyan]{config.status_dir}[/]"
        )
    elif config.dry_run:
        console.print(f"\n[yellow]Dry run: {ok} file(s) would be uploaded.")
    else:
        console.print(f"\n[green]All {ok} file(s) uploaded successfully.")


def cmd_upload(args: argparse.Namespace) -> NoReturn:
    setup_logging(resolve_level(quiet=args.quiet, verbose=args.verbose))

    # Parse the target before touching the filesystem.
    try:
        target = parse_target(args.target)
    except TargetParseError as exc:
        console.print(f"[red]{exc}")
        sys.exit(EXIT_BAD_TARGET)

    config = UploadConfig(
        audit_log=args.audit_log,
        status_dir=args.status_dir,
        dry_run=args.dry_run,
        quiet=args.quiet,
        stream_progress=not args.no_progress,
        chunk_size=args.chunk_size,
        http_timeout=args.timeout,
    )

    try:
        file_paths = collect_files(Path(args.source))
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}")
        sys.exit(1)

    if not config.quiet:
        console.print(
            f"Found [bold]{len(file_paths)}[/] file(s) to upload to "
            f"[cyan]{target.kind}:{target.spec}[/]"
        )

    if config.quiet:
        result = TransferOrchestrator(config, target).run(file_paths)
    else:
        display = UploadProgressDisplay(len(file_paths))
        orchestrator = TransferOrchestrator(config, target, observer=display)
        with Live(display.table, console=console, refresh_per_second=10):
            result = orchestrator.run(file_paths)
        print_summary(result.outcomes, config)

    sys.exit(result.exit_code)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="upload-audit",
        description=(
            "Upload files to SSH, HTTP or S3 destinations with an audit log "
            "and per-file status files"
        ),
        epilog=(
            "Target forms: ssh:user@host:/remote/path, "
            "https://example.com/upload/, s3:bucket/path/prefix/"
        ),
    )
    parser.add_argument(
        "--source",
        required=True,
        help="Local file or directory to upload (directories are walked recursively)",
    )
    parser.add_argument("--target", required=True, help="Destination descriptor")
    parser.add_argument(
        "--audit-log",
        default=default_audit_log(),
        help="Audit log file (JSON Lines) (default: %(default)s)",
    )
    parser.add_argument(
        "--status-dir",
        default=default_status_dir(),
        help="Directory for per-file status JSON (default: %(default)s)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print actions but do not transfer",
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce output")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Send each file in one transfer without progress updates",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help="Streaming chunk size in bytes (default: 1048576)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_HTTP_TIMEOUT,
        help="HTTP upload timeout in seconds (default: %(default)s)",
    )
    parser.set_defaults(func=cmd_upload)
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.chunk_size <= 0:
        parser.error("--chunk-size must be positive")
    if args.timeout <= 0:
        parser.error("--timeout must be positive")
    args.func(args)
