"""ZooKeeper client binding with typed call outcomes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from kazoo.client import KazooClient
from kazoo.exceptions import (
    AuthFailedError,
    ConnectionLoss,
    KazooException,
    NoAuthError,
    NodeExistsError,
    NoNodeError,
    OperationTimeoutError,
    SessionExpiredError,
)
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import KazooState, KeeperState

from .config import SessionConfig
from .session import SessionEvent, SessionState

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """Raised when a session with the coordination service cannot be established."""


class CallStatus(Enum):
    OK = "ok"
    CONNECTION_LOSS = "connection_loss"
    NO_NODE = "no_node"
    NODE_EXISTS = "node_exists"
    AUTH_FAILED = "auth_failed"
    SESSION_EXPIRED = "session_expired"
    ERROR = "error"

    @property
    def transient(self) -> bool:
        return self is CallStatus.CONNECTION_LOSS


@dataclass(frozen=True)
class CallResult:
    status: CallStatus
    value: Any = None
    attempts: int = 1
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is CallStatus.OK


def join_path(parent: str, name: str) -> str:
    return f"{parent.rstrip('/')}/{name}"


def node_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


class CoordinationClient:
    def __init__(self, zk: KazooClient) -> None:
        self._zk = zk

    @classmethod
    def connect(
        cls,
        config: SessionConfig,
        on_event: Callable[[SessionEvent], None] | None = None,
        zk: KazooClient | None = None,
    ) -> "CoordinationClient":
        if zk is None:
            zk = KazooClient(hosts=config.hosts, timeout=config.session_timeout_ms / 1000.0)
        client = cls(zk)
        if on_event is not None:
            zk.add_listener(client._make_listener(on_event))
        try:
            zk.start(timeout=config.connect_timeout_ms / 1000.0)
        except (KazooException, KazooTimeoutError) as exc:
            raise SessionError(f"could not connect to {config.hosts}: {exc}") from exc
        logger.debug("connected to %s", config.hosts)
        return client

    def _make_listener(self, on_event: Callable[[SessionEvent], None]) -> Callable[[str], None]:
        def listener(state: str) -> None:
            if state == KazooState.CONNECTED:
                on_event(SessionEvent(SessionState.CONNECTED, self.session_id()))
            elif state == KazooState.SUSPENDED:
                on_event(SessionEvent(SessionState.CONNECTING))
            elif self._zk.client_state == KeeperState.AUTH_FAILED:
                on_event(SessionEvent(SessionState.AUTH_FAILED))
            elif self._zk.client_state == KeeperState.CLOSED:
                on_event(SessionEvent(SessionState.CLOSED))
            else:
                on_event(SessionEvent(SessionState.EXPIRED))

        return listener

    def _call(self, op: Callable[..., Any], *args: Any, **kwargs: Any) -> CallResult:
        try:
            return CallResult(CallStatus.OK, op(*args, **kwargs))
        except (ConnectionLoss, OperationTimeoutError) as exc:
            return CallResult(CallStatus.CONNECTION_LOSS, error=repr(exc))
        except NoNodeError as exc:
            return CallResult(CallStatus.NO_NODE, error=repr(exc))
        except NodeExistsError as exc:
            return CallResult(CallStatus.NODE_EXISTS, error=repr(exc))
        except (AuthFailedError, NoAuthError) as exc:
            return CallResult(CallStatus.AUTH_FAILED, error=repr(exc))
        except SessionExpiredError as exc:
            return CallResult(CallStatus.SESSION_EXPIRED, error=repr(exc))
        except KazooException as exc:
            logger.debug("%s failed: %r", getattr(op, "__name__", op), exc)
            return CallResult(CallStatus.ERROR, error=repr(exc))

    def exists(self, path: str, watch: Callable[[Any], None] | None = None) -> CallResult:
        result = self._call(self._zk.exists, path, watch=watch)
        if result.ok and result.value is None:
            return CallResult(CallStatus.NO_NODE)
        return result

    def create(
        self,
        path: str,
        ephemeral: bool = False,
        sequence: bool = False,
        makepath: bool = False,
    ) -> CallResult:
        return self._call(
            self._zk.create,
            path,
            b"",
            ephemeral=ephemeral,
            sequence=sequence,
            makepath=makepath,
        )

    def get_children(self, path: str) -> CallResult:
        return self._call(self._zk.get_children, path)

    def session_id(self) -> int | None:
        client_id = self._zk.client_id
        if not client_id:
            return None
        return client_id[0]

    def close(self) -> None:
        try:
            self._zk.stop()
        finally:
            self._zk.close()

    def __enter__(self) -> "CoordinationClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
