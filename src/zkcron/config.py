"""Shared config defaults for zkcron lock attempts."""

from __future__ import annotations

import os
from dataclasses import dataclass

ON_BLOCKED_EXIT = "exit"
ON_BLOCKED_WAIT = "wait"
ON_BLOCKED_CHOICES = (ON_BLOCKED_EXIT, ON_BLOCKED_WAIT)


def _parse_int(value: str | None, default: int | None) -> int | None:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


DEFAULT_HOSTS = os.environ.get("ZKCRON_HOSTS", "127.0.0.1:2181")
DEFAULT_SESSION_TIMEOUT_MS = _parse_int(os.environ.get("ZKCRON_SESSION_TIMEOUT_MS"), 30000)
DEFAULT_CONNECT_TIMEOUT_MS = _parse_int(os.environ.get("ZKCRON_CONNECT_TIMEOUT_MS"), 15000)
DEFAULT_MAX_RETRY = _parse_int(os.environ.get("ZKCRON_MAX_RETRY"), 5)
DEFAULT_RETRY_DELAY_MS = _parse_int(os.environ.get("ZKCRON_RETRY_DELAY_MS"), 500)
DEFAULT_HOLD_SECS = _parse_int(os.environ.get("ZKCRON_HOLD_SECS"), 10)
DEFAULT_WAIT_TIMEOUT_MS = _parse_int(os.environ.get("ZKCRON_WAIT_TIMEOUT_MS"), None)
DEFAULT_LOG_LEVEL = os.environ.get("ZKCRON_LOG_LEVEL", "WARNING")

_on_blocked = os.environ.get("ZKCRON_ON_BLOCKED", ON_BLOCKED_EXIT)
DEFAULT_ON_BLOCKED = _on_blocked if _on_blocked in ON_BLOCKED_CHOICES else ON_BLOCKED_EXIT


@dataclass(frozen=True)
class SessionConfig:
    hosts: str = DEFAULT_HOSTS
    session_timeout_ms: int = DEFAULT_SESSION_TIMEOUT_MS
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS


@dataclass(frozen=True)
class LockConfig:
    path: str
    max_retry: int = DEFAULT_MAX_RETRY
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    on_blocked: str = DEFAULT_ON_BLOCKED
    wait_timeout_ms: int | None = DEFAULT_WAIT_TIMEOUT_MS

    def __post_init__(self) -> None:
        if not self.path.startswith("/") or (len(self.path) > 1 and self.path.endswith("/")):
            raise ValueError(f"lock path must be absolute without a trailing slash: {self.path!r}")
        if self.max_retry < 1:
            raise ValueError("max_retry must be at least 1")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must not be negative")
        if self.on_blocked not in ON_BLOCKED_CHOICES:
            raise ValueError(f"on_blocked must be one of {', '.join(ON_BLOCKED_CHOICES)}")

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000.0

    @property
    def wait_timeout_seconds(self) -> float | None:
        if self.wait_timeout_ms is None:
            return None
        return self.wait_timeout_ms / 1000.0
