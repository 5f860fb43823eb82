from __future__ import annotations

import json
import logging
import subprocess
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from rich.filesize import decimal

from .errors import UpdownError
from .options import BackupParameters, GlobalOptions, RestoreParameters

LOG = logging.getLogger(__name__)

OUTPUT_TAIL_LINES = 20


class StatusHandle(Protocol):
    def print(self, text: str) -> None:
        ...

    def error(self, text: str) -> None:
        ...

    def set_status(self, lines: Sequence[str]) -> None:
        ...


class OperationFailure(UpdownError):
    """Raised when the backup or restore process fails."""

    def __init__(self, operation: str, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.returncode = returncode


def map_targets(root: Optional[Path], targets: Sequence[str]) -> List[str]:
    """Interpret absolute target paths relative to ``root``."""
    if root is None:
        return list(targets)
    return [str(Path(root, target.lstrip("/"))) for target in targets]


def build_backup_command(params: BackupParameters) -> List[str]:
    options = params.options
    cmd = [params.global_options.restic_binary, "backup", *_global_args(params.global_options), "--json"]
    if options.host:
        cmd += ["--host", options.host]
    for pattern in options.excludes:
        cmd += ["--exclude", pattern]
    if options.ignore_inode:
        cmd.append("--ignore-inode")
    cmd += map_targets(options.root, params.targets)
    return cmd


def build_restore_command(params: RestoreParameters) -> List[str]:
    options = params.options
    cmd = [params.global_options.restic_binary, "restore", *_global_args(params.global_options)]
    if options.host:
        cmd += ["--host", options.host]
    if options.target is not None:
        cmd += ["--target", str(options.target)]
    cmd += list(params.snapshots)
    return cmd


def run_backup(params: BackupParameters, status: StatusHandle) -> None:
    cmd = build_backup_command(params)
    LOG.info("Running backup of %s", params.options.root)
    LOG.debug("Command: %s", " ".join(cmd))

    tail: "deque[str]" = deque(maxlen=OUTPUT_TAIL_LINES)
    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as exc:
        raise OperationFailure("backup", f"cannot run {cmd[0]}: {exc}") from exc

    with process:
        for line in process.stdout:
            _report_backup_line(line.rstrip("\n"), status, tail)
        returncode = process.wait()

    if returncode != 0:
        detail = "\n".join(tail) or f"exit status {returncode}"
        status.error(f"backup exited with status {returncode}")
        raise OperationFailure("backup", detail, returncode)
    LOG.info("Backup of %s completed", params.options.root)


def _report_backup_line(line: str, status: StatusHandle, tail: "deque[str]") -> None:
    try:
        message = json.loads(line)
    except ValueError:
        message = None
    if not isinstance(message, dict):
        if line:
            tail.append(line)
            status.print(line)
        return

    kind = message.get("message_type")
    if kind == "status":
        status.set_status([format_progress(message)])
    elif kind == "summary":
        status.print(format_summary(message))
    elif kind == "error":
        text = _error_text(message)
        tail.append(text)
        status.error(text)
    elif kind == "verbose_status":
        status.print(f"{message.get('action', '')} {message.get('item', '')}".strip())


def format_progress(message: Dict[str, Any]) -> str:
    percent = float(message.get("percent_done", 0.0))
    parts = [f"{percent:.2%}"]
    files_done, total_files = message.get("files_done", 0), message.get("total_files")
    parts.append(f"{files_done} / {total_files} files" if total_files else f"{files_done} files")
    bytes_done, total_bytes = message.get("bytes_done", 0), message.get("total_bytes")
    if total_bytes:
        parts.append(f"{decimal(bytes_done)} / {decimal(total_bytes)}")
    else:
        parts.append(decimal(bytes_done))
    if message.get("error_count"):
        parts.append(f"{message['error_count']} errors")
    return ", ".join(parts)


def format_summary(message: Dict[str, Any]) -> str:
    processed = message.get("total_bytes_processed", 0)
    snapshot = message.get("snapshot_id", "")
    return (
        f"snapshot {snapshot[:8]} saved: "
        f"{message.get('files_new', 0)} new, {message.get('files_changed', 0)} changed, "
        f"{message.get('files_unmodified', 0)} unmodified files, {decimal(processed)} processed"
    )


def _error_text(message: Dict[str, Any]) -> str:
    error = message.get("error")
    if isinstance(error, dict):
        error = error.get("message", "")
    item = message.get("item")
    return f"error: {item}: {error}" if item else f"error: {error}"


def run_restore(params: RestoreParameters) -> None:
    cmd = build_restore_command(params)
    LOG.info("Restoring %s into %s", ", ".join(params.snapshots), params.options.target)
    LOG.debug("Command: %s", " ".join(cmd))
    try:
        subprocess.run(cmd, check=True, capture_output=True, text=True)
    except OSError as exc:
        raise OperationFailure("restore", f"cannot run {cmd[0]}: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        LOG.error("restic restore failed: %s", detail)
        raise OperationFailure("restore", detail, exc.returncode) from exc
    LOG.info("Restore into %s completed", params.options.target)


def _global_args(options: GlobalOptions) -> List[str]:
    args: List[str] = []
    if options.repo:
        args += ["--repo", options.repo]
    if options.password_file:
        args += ["--password-file", options.password_file]
    if options.quiet:
        args.append("--quiet")
    return args
