"""
inventory_services.refresh -- Last-request-wins sequencing of dashboard refreshes.

Responsibility:
    Issue a monotonically increasing token per refresh request and accept a
    computed result only if its token is still the latest one issued, so
    that a slow earlier computation can never overwrite a newer view.

Architecture position:
    Services -- stateful, thread-safe coordinator.

Invariants enforced:
    - Tokens strictly increase within one sequencer.
    - ``commit(token, value)`` succeeds iff ``token`` is the latest issued
      token and no later result has been committed.
    - Stale results are discarded and logged at INFO, never raised.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from inventory_kernel.logging_config import get_logger

logger = get_logger("services.refresh")

V = TypeVar("V")


class RefreshSequencer(Generic[V]):
    """Token issuer and holder of the latest committed result."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issued = 0
        self._committed_token = 0
        self._current: V | None = None

    def begin(self) -> int:
        """Issue the next token."""
        with self._lock:
            self._issued += 1
            return self._issued

    @property
    def latest_token(self) -> int:
        return self._issued

    @property
    def current(self) -> V | None:
        """The most recently committed result (None before the first commit)."""
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._issued

    def commit(self, token: int, value: V) -> bool:
        """
        Publish ``value`` if ``token`` is still the latest request.

        Returns:
            True if the value became current, False if it was discarded.
        """
        with self._lock:
            if token != self._issued or token <= self._committed_token:
                logger.info("refresh_result_discarded", extra={
                    "token": token,
                    "latest_token": self._issued,
                })
                return False
            self._committed_token = token
            self._current = value
        logger.debug("refresh_result_committed", extra={"token": token})
        return True
