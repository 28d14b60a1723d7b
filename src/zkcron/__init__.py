"""zkcron: exclusive locks for cron jobs over ZooKeeper sequential nodes."""

from .client import CallResult, CallStatus, CoordinationClient, SessionError
from .config import LockConfig, SessionConfig
from .lock import (
    CandidateRegistrar,
    DirectoryEnsurer,
    LockDecision,
    Outcome,
    SequentialLock,
    decide,
    session_prefix,
)
from .retry import RetryPolicy
from .sequence import compare, sort_candidates
from .session import SessionEvent, SessionState, SessionStateTracker
from .cli import main as zkcron_main

__all__ = [
    "CallResult",
    "CallStatus",
    "CoordinationClient",
    "SessionError",
    "LockConfig",
    "SessionConfig",
    "CandidateRegistrar",
    "DirectoryEnsurer",
    "LockDecision",
    "Outcome",
    "SequentialLock",
    "decide",
    "session_prefix",
    "RetryPolicy",
    "compare",
    "sort_candidates",
    "SessionEvent",
    "SessionState",
    "SessionStateTracker",
    "zkcron_main",
]
