"""In-memory stand-in for kazoo's KazooClient, shared through an ensemble."""

from __future__ import annotations

from collections import defaultdict

from kazoo.exceptions import NodeExistsError, NoNodeError
from kazoo.protocol.states import EventType, KazooState, KeeperState, WatchedEvent


def _parent(path: str) -> str:
    parent = path.rsplit("/", 1)[0]
    return parent or "/"


class FakeEnsemble:
    def __init__(self) -> None:
        self.nodes: dict[str, int | None] = {"/": None}
        self.counters: dict[str, int] = defaultdict(int)
        self.watches: dict[str, list] = defaultdict(list)

    def children(self, path: str) -> list[str]:
        prefix = path.rstrip("/") + "/"
        names = []
        for node in self.nodes:
            if node == "/" or not node.startswith(prefix):
                continue
            rest = node[len(prefix) :]
            if "/" not in rest:
                names.append(rest)
        return names

    def add(self, path: str, owner: int | None = None) -> None:
        self.nodes[path] = owner
        self._fire(path, EventType.CREATED)

    def remove(self, path: str) -> None:
        del self.nodes[path]
        self._fire(path, EventType.DELETED)

    def drop_session(self, session_id: int) -> None:
        for path in [p for p, owner in self.nodes.items() if owner == session_id]:
            self.remove(path)

    def _fire(self, path: str, event_type: str) -> None:
        for watch in self.watches.pop(path, []):
            watch(WatchedEvent(event_type, KeeperState.CONNECTED, path))


class FakeZooKeeper:
    """Enough of KazooClient for zkcron: exists, create, get_children, listeners.

    ``fail(method, exc)`` makes the next call raise ``exc`` before doing
    anything; ``fail_after(method, exc)`` performs the call and then raises,
    as when a reply is lost on the wire. A queued ``None`` lets one call
    through untouched.
    """

    def __init__(self, ensemble: FakeEnsemble | None = None, session_id: int = 0x1234) -> None:
        self.ensemble = ensemble or FakeEnsemble()
        self.client_id = (session_id, b"secret")
        self.client_state = KeeperState.CONNECTING
        self.listeners: list = []
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[str, list[tuple[Exception, bool]]] = defaultdict(list)
        self.stopped = False
        self.closed = False

    @property
    def session_id(self) -> int:
        return self.client_id[0]

    def fail(self, method: str, *excs: Exception) -> None:
        self._failures[method].extend((exc, False) for exc in excs)

    def fail_after(self, method: str, *excs: Exception) -> None:
        self._failures[method].extend((exc, True) for exc in excs)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _enter(self, method: str, path: str) -> Exception | None:
        self.calls.append((method, path))
        if not self._failures[method]:
            return None
        exc, after = self._failures[method].pop(0)
        if exc is None:
            return None
        if not after:
            raise exc
        return exc

    def _notify(self, state: str) -> None:
        for listener in self.listeners:
            listener(state)

    def add_listener(self, listener) -> None:
        self.listeners.append(listener)

    def start(self, timeout: float = 15) -> None:
        self.client_state = KeeperState.CONNECTED
        self._notify(KazooState.CONNECTED)

    def stop(self) -> None:
        self.stopped = True
        self.client_state = KeeperState.CLOSED
        self.ensemble.drop_session(self.session_id)
        self._notify(KazooState.LOST)

    def close(self) -> None:
        self.closed = True

    def expire(self) -> None:
        self.client_state = KeeperState.EXPIRED_SESSION
        self.ensemble.drop_session(self.session_id)
        self._notify(KazooState.LOST)

    def exists(self, path: str, watch=None):
        late = self._enter("exists", path)
        if watch is not None:
            self.ensemble.watches[path].append(watch)
        stat = {"path": path} if path in self.ensemble.nodes else None
        if late is not None:
            raise late
        return stat

    def create(self, path, value=b"", acl=None, ephemeral=False, sequence=False, makepath=False):
        late = self._enter("create", path)
        parent = _parent(path)
        if parent not in self.ensemble.nodes:
            if not makepath:
                raise NoNodeError()
            missing = []
            while parent not in self.ensemble.nodes:
                missing.append(parent)
                parent = _parent(parent)
            for node in reversed(missing):
                self.ensemble.add(node)
        if sequence:
            parent = _parent(path)
            path = f"{path}{self.ensemble.counters[parent]:010d}"
            self.ensemble.counters[parent] += 1
        if path in self.ensemble.nodes:
            raise NodeExistsError()
        self.ensemble.add(path, self.session_id if ephemeral else None)
        if late is not None:
            raise late
        return path

    def get_children(self, path: str) -> list[str]:
        late = self._enter("get_children", path)
        if path not in self.ensemble.nodes:
            raise NoNodeError()
        children = self.ensemble.children(path)
        if late is not None:
            raise late
        return children
