"""Command-line interface: run a job only where the ZooKeeper lock is held."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
import time
from typing import Iterable

from .client import CoordinationClient, SessionError, join_path
from .config import (
    DEFAULT_CONNECT_TIMEOUT_MS,
    DEFAULT_HOLD_SECS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_RETRY,
    DEFAULT_ON_BLOCKED,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_SESSION_TIMEOUT_MS,
    DEFAULT_WAIT_TIMEOUT_MS,
    ON_BLOCKED_CHOICES,
    LockConfig,
    SessionConfig,
)
from .lock import SequentialLock
from .session import SessionStateTracker
from .version import get_version

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_SESSION = 2
EXIT_NOT_FOUND = 127

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
POLL_SECONDS = 1.0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zkcron",
        usage="%(prog)s [options] hosts path [-- command ...]",
        description="Take an exclusive ZooKeeper lock, then run a command (or sleep) while holding it.",
    )
    parser.add_argument("--version", action="version", version=f"zkcron {get_version()}")
    parser.add_argument("hosts", help="ZooKeeper connection string, e.g. zk1:2181,zk2:2181")
    parser.add_argument("path", help="Lock path, e.g. /cron/nightly-report")
    parser.add_argument("--session-timeout-ms", type=int, default=DEFAULT_SESSION_TIMEOUT_MS)
    parser.add_argument("--connect-timeout-ms", type=int, default=DEFAULT_CONNECT_TIMEOUT_MS)
    parser.add_argument("--max-retry", type=int, default=DEFAULT_MAX_RETRY)
    parser.add_argument("--retry-delay-ms", type=int, default=DEFAULT_RETRY_DELAY_MS)
    parser.add_argument(
        "--hold-secs",
        type=int,
        default=DEFAULT_HOLD_SECS,
        help="How long to hold the lock when no command is given",
    )
    parser.add_argument(
        "--on-blocked",
        choices=ON_BLOCKED_CHOICES,
        default=DEFAULT_ON_BLOCKED,
        help="Exit right away or wait for the lock when another process holds it",
    )
    parser.add_argument(
        "--wait-timeout-ms",
        type=int,
        default=DEFAULT_WAIT_TIMEOUT_MS,
        help="Give up waiting after this long (only with --on-blocked wait)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=DEFAULT_LOG_LEVEL.upper() if DEFAULT_LOG_LEVEL.upper() in LOG_LEVELS else "WARNING",
    )
    return parser


def _split_command(argv: Iterable[str] | None) -> tuple[list[str], list[str]]:
    args = list(sys.argv[1:] if argv is None else argv)
    if "--" not in args:
        return args, []
    index = args.index("--")
    return args[:index], args[index + 1 :]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("kazoo").setLevel(getattr(logging, level))


def _hold(hold_secs: int, tracker: SessionStateTracker) -> int:
    deadline = time.monotonic() + hold_secs
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return EXIT_OK
        if tracker.fatal:
            logger.error("session lost while holding the lock")
            return EXIT_FAILED
        time.sleep(min(POLL_SECONDS, remaining))


def _run_command(command: list[str], tracker: SessionStateTracker) -> int:
    try:
        proc = subprocess.Popen(command)
    except FileNotFoundError:
        logger.error("command not found: %s", command[0])
        return EXIT_NOT_FOUND
    while True:
        try:
            return proc.wait(timeout=POLL_SECONDS)
        except subprocess.TimeoutExpired:
            pass
        if tracker.fatal:
            logger.error("session lost while running %s, terminating it", command[0])
            proc.terminate()
            proc.wait()
            return EXIT_FAILED


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args_list, command = _split_command(argv)
    args = parser.parse_args(args_list)
    _configure_logging(args.log_level)

    try:
        lock_config = LockConfig(
            path=args.path,
            max_retry=args.max_retry,
            retry_delay_ms=args.retry_delay_ms,
            on_blocked=args.on_blocked,
            wait_timeout_ms=args.wait_timeout_ms,
        )
    except ValueError as exc:
        parser.error(str(exc))
    session_config = SessionConfig(
        hosts=args.hosts,
        session_timeout_ms=args.session_timeout_ms,
        connect_timeout_ms=args.connect_timeout_ms,
    )

    tracker = SessionStateTracker()
    try:
        client = CoordinationClient.connect(session_config, on_event=tracker.publish)
    except SessionError as exc:
        logger.error("%s", exc)
        return EXIT_SESSION

    with client:
        decision = SequentialLock(client, lock_config, tracker).acquire()
        if decision.blocked:
            print(f"LOCKED: {join_path(lock_config.path, decision.predecessor)}", flush=True)
            return EXIT_OK
        if not decision.held:
            return EXIT_FAILED
        if command:
            return _run_command(command, tracker)
        return _hold(args.hold_secs, tracker)
