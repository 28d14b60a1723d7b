"""Bounded retry-with-delay around coordination-service calls."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from .client import CallResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    delay_seconds: float
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def call(self, op: Callable[..., CallResult], *args: Any, **kwargs: Any) -> CallResult:
        """Run ``op`` until it stops reporting a transient failure.

        Only connection loss is retried. Any other outcome, success or
        permanent failure, is returned after the attempt that produced it.
        The returned result carries the number of attempts made.
        """
        attempts = 0
        while True:
            attempts += 1
            result = op(*args, **kwargs)
            if not result.status.transient:
                return replace(result, attempts=attempts)
            if attempts >= self.max_attempts:
                logger.warning(
                    "giving up on %s after %d attempts: connection loss",
                    getattr(op, "__name__", op),
                    attempts,
                )
                return replace(result, attempts=attempts)
            logger.debug("connection loss to the server, retrying in %.3fs", self.delay_seconds)
            self.sleep(self.delay_seconds)
