"""Exclusive lock over sequential ephemeral znodes.

Every process creates one ephemeral, sequence-suffixed candidate under the
lock path. The candidate with the lowest sequence number holds the lock;
every other candidate is blocked behind its immediate predecessor.
Candidates are never deleted here: ZooKeeper removes them when the owning
session ends.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from .client import CallResult, CallStatus, CoordinationClient, join_path, node_name
from .config import ON_BLOCKED_WAIT, LockConfig
from .retry import RetryPolicy
from .sequence import sequence_of, sort_candidates
from .session import SessionStateTracker

logger = logging.getLogger(__name__)

FATAL_STATUSES = (CallStatus.AUTH_FAILED, CallStatus.SESSION_EXPIRED)
WAIT_SLICE_SECONDS = 1.0


class Outcome(Enum):
    HELD = "held"
    BLOCKED = "blocked"
    RETRY = "retry"
    FAILED = "failed"


@dataclass(frozen=True)
class LockDecision:
    outcome: Outcome
    candidate: str | None = None
    holder: str | None = None
    predecessor: str | None = None
    reason: str | None = None

    @property
    def held(self) -> bool:
        return self.outcome is Outcome.HELD

    @property
    def blocked(self) -> bool:
        return self.outcome is Outcome.BLOCKED


def session_prefix(session_id: int) -> str:
    # kazoo reads the id as a signed 64-bit value
    return f"x-{session_id & 0xFFFFFFFFFFFFFFFF:016x}-"


def find_candidate(children: Iterable[str], prefix: str) -> str | None:
    for child in children:
        if child.startswith(prefix):
            return child
    return None


def decide(siblings: Iterable[str], candidate: str) -> LockDecision:
    """Decide whether ``candidate`` holds the lock among ``siblings``.

    The holder is the sibling with the lowest sequence number. A blocked
    candidate is told about its immediate predecessor only, so a release
    wakes one waiter instead of all of them.
    """
    try:
        ordered = sort_candidates(siblings)
    except ValueError as exc:
        return LockDecision(Outcome.FAILED, candidate=candidate, reason=str(exc))
    if not ordered:
        return LockDecision(Outcome.FAILED, candidate=candidate, reason="no candidates under lock path")
    sequences = [sequence_of(name) for name in ordered]
    if len(set(sequences)) != len(sequences):
        return LockDecision(Outcome.FAILED, candidate=candidate, reason="duplicate sequence numbers")
    if candidate not in ordered:
        return LockDecision(Outcome.FAILED, candidate=candidate, reason="own candidate is missing")

    holder = ordered[0]
    index = ordered.index(candidate)
    if index == 0:
        return LockDecision(Outcome.HELD, candidate=candidate, holder=holder)
    return LockDecision(
        Outcome.BLOCKED,
        candidate=candidate,
        holder=holder,
        predecessor=ordered[index - 1],
    )


class DirectoryEnsurer:
    def __init__(self, client: CoordinationClient, policy: RetryPolicy) -> None:
        self._client = client
        self._policy = policy

    def ensure(self, path: str) -> CallResult:
        found = self._policy.call(self._client.exists, path)
        if found.status is not CallStatus.NO_NODE:
            if not found.ok:
                logger.error("Could not check %s: %s", path, found.status.value)
            return found

        created = self._policy.call(self._client.create, path, makepath=True)
        attempts = found.attempts + created.attempts
        if created.ok or created.status is CallStatus.NODE_EXISTS:
            logger.debug("lock path %s is present", path)
            return CallResult(CallStatus.OK, path, attempts=attempts)
        logger.error("Could not create %s: %s", path, created.status.value)
        return CallResult(created.status, attempts=attempts, error=created.error)


class CandidateRegistrar:
    def __init__(self, client: CoordinationClient, policy: RetryPolicy) -> None:
        self._client = client
        self._policy = policy

    def register_or_find(self, path: str, prefix: str) -> CallResult:
        """Return this session's candidate under ``path``, creating it if absent.

        The create itself is never retried: a lost reply may hide a create
        that succeeded, and the next call finds that node by its prefix
        instead of adding a second one.
        """
        listed = self._policy.call(self._client.get_children, path)
        if not listed.ok:
            logger.warning("Could not enumerate folder %s", path)
            return listed

        existing = find_candidate(listed.value, prefix)
        if existing is not None:
            logger.debug("found existing candidate %s", existing)
            return CallResult(CallStatus.OK, existing, attempts=listed.attempts)

        requested = join_path(path, prefix)
        created = self._client.create(requested, ephemeral=True, sequence=True)
        if not created.ok:
            logger.warning("Could not create locking node %s", requested)
            return created
        name = node_name(created.value)
        logger.debug("created candidate %s", name)
        return CallResult(CallStatus.OK, name)


class SequentialLock:
    def __init__(
        self,
        client: CoordinationClient,
        config: LockConfig,
        tracker: SessionStateTracker | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.config = config
        self.tracker = tracker
        self._sleep = sleep
        self._policy = RetryPolicy(config.max_retry, config.retry_delay_seconds, sleep)
        self.ensurer = DirectoryEnsurer(client, self._policy)
        self.registrar = CandidateRegistrar(client, self._policy)

    def acquire(self) -> LockDecision:
        path = self.config.path
        ensured = self.ensurer.ensure(path)
        if not ensured.ok:
            return LockDecision(Outcome.FAILED, reason=f"could not create {path}")

        deadline = None
        if self.config.wait_timeout_seconds is not None:
            deadline = time.monotonic() + self.config.wait_timeout_seconds
        while True:
            decision = self._acquire_once()
            if not decision.blocked or self.config.on_blocked != ON_BLOCKED_WAIT:
                return decision
            interrupted = self._wait_for_predecessor(decision, deadline)
            if interrupted is not None:
                return interrupted

    def _acquire_once(self) -> LockDecision:
        decision = LockDecision(Outcome.RETRY)
        for _ in range(self.config.max_retry):
            self._sleep(self.config.retry_delay_seconds)
            if self._session_lost():
                return LockDecision(Outcome.FAILED, reason="session lost")
            decision = self._attempt()
            if decision.outcome is not Outcome.RETRY:
                self._report(decision)
                return decision
        logger.error("Too many retries while trying to lock %s", self.config.path)
        return LockDecision(Outcome.FAILED, candidate=decision.candidate, reason="too many retries")

    def _attempt(self) -> LockDecision:
        path = self.config.path
        session_id = self.client.session_id()
        if session_id is None:
            return LockDecision(Outcome.RETRY, reason="no session")

        registered = self.registrar.register_or_find(path, session_prefix(session_id))
        if not registered.ok:
            return self._not_ok(registered)
        candidate = registered.value

        listed = self._policy.call(self.client.get_children, path)
        if not listed.ok:
            logger.warning("Could not enumerate folder %s", path)
            return self._not_ok(listed, candidate)
        return decide(listed.value, candidate)

    @staticmethod
    def _not_ok(result: CallResult, candidate: str | None = None) -> LockDecision:
        if result.status in FATAL_STATUSES:
            return LockDecision(Outcome.FAILED, candidate=candidate, reason=result.status.value)
        return LockDecision(Outcome.RETRY, candidate=candidate, reason=result.status.value)

    def _wait_for_predecessor(self, decision: LockDecision, deadline: float | None) -> LockDecision | None:
        """Block until the predecessor changes; None means try again."""
        changed = threading.Event()
        watched = self._policy.call(
            self.client.exists,
            join_path(self.config.path, decision.predecessor),
            watch=lambda event: changed.set(),
        )
        if watched.status is CallStatus.NO_NODE:
            return None
        if not watched.ok:
            return LockDecision(
                Outcome.FAILED,
                candidate=decision.candidate,
                reason=f"could not watch {decision.predecessor}: {watched.status.value}",
            )

        logger.info("waiting for %s to go away", decision.predecessor)
        while not changed.is_set():
            if self._session_lost():
                return LockDecision(Outcome.FAILED, candidate=decision.candidate, reason="session lost")
            timeout = WAIT_SLICE_SECONDS
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.info("gave up waiting for %s", decision.predecessor)
                    return decision
                timeout = min(timeout, remaining)
            changed.wait(timeout)
        return None

    def _session_lost(self) -> bool:
        return self.tracker is not None and self.tracker.fatal

    def _report(self, decision: LockDecision) -> None:
        if decision.held:
            logger.info("acquired %s as %s", self.config.path, decision.candidate)
        elif decision.blocked:
            logger.info(
                "%s is held by %s, predecessor is %s",
                self.config.path,
                decision.holder,
                decision.predecessor,
            )
        else:
            logger.error("lock attempt on %s failed: %s", self.config.path, decision.reason)
