"""
Active job registry.

Every streamed playlist import holds a JobSession for the lifetime of its
HTTP connection. The session carries the cancellation token the progress
callback checks, so a client disconnect unwinds the importer.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .exceptions import JobCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation flag.

    Set from the event loop, read from whatever thread runs the importer.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "client disconnected") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self, job_id: str = "") -> None:
        if self._event.is_set():
            raise JobCancelledError(job_id)


@dataclass
class JobSession:
    """Bookkeeping for one in-flight streamed import."""

    id: str
    owner_id: str
    created_at: float
    token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def is_active(self) -> bool:
        return not self.token.cancelled


class JobRegistry:
    """Process-wide map of active job sessions."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._sessions: dict[str, JobSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._sessions

    def open(self, owner_id: str) -> JobSession:
        """Create and register a session keyed by owner and creation time."""
        now = self._clock()
        job_id = f"{owner_id}_{int(now * 1000)}"
        suffix = 1
        while job_id in self._sessions:
            suffix += 1
            job_id = f"{owner_id}_{int(now * 1000)}_{suffix}"
        session = JobSession(id=job_id, owner_id=owner_id, created_at=now)
        self._sessions[job_id] = session
        logger.debug(f"Opened job session {job_id}")
        return session

    def get(self, job_id: str) -> Optional[JobSession]:
        return self._sessions.get(job_id)

    def active_for(self, owner_id: str) -> list[JobSession]:
        return [s for s in self._sessions.values() if s.owner_id == owner_id]

    def release(self, job_id: str) -> None:
        session = self._sessions.pop(job_id, None)
        if session is not None:
            logger.debug(f"Released job session {job_id}")

    def cancel_all(self, reason: str = "server shutdown") -> int:
        """Cancel every active session (used at shutdown)."""
        sessions = list(self._sessions.values())
        for session in sessions:
            session.token.cancel(reason)
        return len(sessions)
