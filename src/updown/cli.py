from __future__ import annotations

import argparse
import os
import sys
from typing import Optional, Sequence

from .dispatcher import CommandDispatcher, UsageError
from .errors import UpdownError
from .logger import configure_logging, get_logger
from .options import BackupOptions, GlobalOptions, RestoreOptions

LOG = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="updown",
        description="Back up or restore a directory based on its .restic.yaml config.",
    )
    parser.add_argument(
        "-r",
        "--repo",
        default=os.getenv("RESTIC_REPOSITORY"),
        help="Repository location, overridden by 'remote' in the directory config.",
    )
    parser.add_argument(
        "-p",
        "--password-file",
        default=os.getenv("RESTIC_PASSWORD_FILE"),
        help="File containing the repository password.",
    )
    parser.add_argument(
        "--restic-binary",
        default=os.getenv("RESTIC_BINARY", "restic"),
        help="restic executable to run (default restic).",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress progress output.")
    parser.add_argument(
        "--strict-config",
        action="store_true",
        help="Fail when the directory has no .restic.yaml instead of using defaults.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Log level (default INFO).",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    up = commands.add_parser("up", help="backup based on .restic.yaml config")
    up.add_argument("--host", help="Host label, overridden by 'host' in the directory config.")
    up.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Exclude pattern (can be specified multiple times); replaced by 'excludes' in the config.",
    )
    up.add_argument("dir", nargs="*", help="Directory to back up (default: current directory).")

    down = commands.add_parser("down", help="restore based on .restic.yaml config")
    down.add_argument("--host", help="Host label, overridden by 'host' in the directory config.")
    down.add_argument("dir", nargs="*", help="Directory to restore into (default: current directory).")

    return parser.parse_args(argv)


def build_dispatcher(args: argparse.Namespace) -> CommandDispatcher:
    global_options = GlobalOptions(
        repo=args.repo,
        password_file=args.password_file,
        restic_binary=args.restic_binary,
        quiet=args.quiet,
    )
    backup_options = BackupOptions(host=getattr(args, "host", None), excludes=tuple(getattr(args, "exclude", [])))
    restore_options = RestoreOptions(host=getattr(args, "host", None))
    return CommandDispatcher(
        global_options,
        backup_options,
        restore_options,
        strict_config=args.strict_config,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    dispatcher = build_dispatcher(args)
    command = dispatcher.up if args.command == "up" else dispatcher.down

    try:
        command(args.dir)
    except UsageError as exc:
        LOG.error("%s: %s", args.command, exc)
        return EXIT_USAGE
    except UpdownError as exc:
        LOG.error("%s failed: %s", args.command, exc)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
