"""Typed session-state events and the tracker that consumes them."""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class SessionState(Enum):
    CONNECTING = "CONNECTING_STATE"
    CONNECTED = "CONNECTED_STATE"
    EXPIRED = "EXPIRED_SESSION_STATE"
    AUTH_FAILED = "AUTH_FAILED_STATE"
    CLOSED = "CLOSED_STATE"

    @property
    def fatal(self) -> bool:
        return self in (SessionState.EXPIRED, SessionState.AUTH_FAILED)


@dataclass(frozen=True)
class SessionEvent:
    state: SessionState
    session_id: int | None = None


class SessionStateTracker:
    """Consumes session events published from the client's event thread.

    ``publish`` is the only method safe to call from another thread; the
    attempt loop calls ``poll`` between coordination calls to apply and log
    whatever has arrived.
    """

    def __init__(self) -> None:
        self._events: queue.Queue[SessionEvent] = queue.Queue()
        self.state = SessionState.CONNECTING
        self.session_id: int | None = None
        self.fatal_state: SessionState | None = None

    def publish(self, event: SessionEvent) -> None:
        self._events.put(event)

    def poll(self) -> SessionState:
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return self.state
            self._apply(event)

    @property
    def fatal(self) -> bool:
        self.poll()
        return self.fatal_state is not None

    def _apply(self, event: SessionEvent) -> None:
        self.state = event.state
        if event.state is SessionState.CONNECTED:
            if event.session_id is not None and event.session_id != self.session_id:
                self.session_id = event.session_id
                logger.info("Got a new session id: 0x%x", event.session_id)
            else:
                logger.info("Session state = %s", event.state.value)
        elif event.state is SessionState.AUTH_FAILED:
            logger.error("Authentication failure. Shutting down...")
        elif event.state is SessionState.EXPIRED:
            logger.error("Session expired. Shutting down...")
        else:
            logger.info("Session state = %s", event.state.value)
        if event.state.fatal and self.fatal_state is None:
            self.fatal_state = event.state
