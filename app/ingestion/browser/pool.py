"""
Bounded pool of automation sessions.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager

from app.ingestion.browser.session import AutomationSession, DriverFactory, SessionHealth
from app.ingestion.errors import (
    PoolExhausted,
    PoolShuttingDown,
    SessionCrashed,
    SessionLaunchFailed,
)
from app.ingestion.logging_utils import log_event

logger = logging.getLogger(__name__)


class SessionPool:
    """
    Hands out automation sessions to concurrent callers.

    All bookkeeping happens under one condition variable. Browser processes
    are started and stopped outside the lock; a reserved slot counter keeps
    ``live + launching`` within ``max_sessions`` while a launch is in flight.
    Waiters are served strictly in arrival order.
    """

    def __init__(
        self,
        *,
        driver_factory: DriverFactory,
        max_sessions: int,
        probe_timeout_seconds: float = 5.0,
        max_session_age_seconds: float = 300.0,
        max_session_uses: int = 50,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self._driver_factory = driver_factory
        self._max_sessions = max_sessions
        self._probe_timeout_seconds = probe_timeout_seconds
        self._max_session_age_seconds = max_session_age_seconds
        self._max_session_uses = max_session_uses

        self._cond = threading.Condition(threading.Lock())
        self._sessions: dict[str, AutomationSession] = {}
        self._idle: deque[AutomationSession] = deque()
        self._waiters: deque[object] = deque()
        self._launching = 0
        self._closed = False

    @property
    def max_sessions(self) -> int:
        return self._max_sessions

    @property
    def closed(self) -> bool:
        return self._closed

    def acquire(self, timeout: float) -> AutomationSession:
        """
        Check out a session, launching one if below capacity.

        Raises PoolExhausted if nothing frees up within ``timeout`` seconds,
        PoolShuttingDown if the pool closes first.
        """

        deadline = time.monotonic() + max(0.0, timeout)
        ticket = object()
        retired: list[AutomationSession] = []
        session: AutomationSession | None = None
        launch = False

        try:
            with self._cond:
                if self._closed:
                    raise PoolShuttingDown("session pool is shut down")
                self._waiters.append(ticket)
                try:
                    while True:
                        if self._closed:
                            raise PoolShuttingDown("session pool is shutting down")
                        if self._waiters[0] is ticket:
                            session = self._pop_idle(retired)
                            if session is not None:
                                session.mark_checked_out()
                                break
                            if len(self._sessions) + self._launching < self._max_sessions:
                                self._launching += 1
                                launch = True
                                break
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            raise PoolExhausted(
                                f"no session available within {timeout:.1f}s "
                                f"(max_sessions={self._max_sessions})"
                            )
                        self._cond.wait(remaining)
                finally:
                    self._waiters.remove(ticket)
                    self._cond.notify_all()
        finally:
            self._destroy_all(retired, reason="expired")

        if launch:
            session = self._launch()
        if session is None:
            raise RuntimeError("session pool produced no session")
        log_event(logger, logging.DEBUG, "session_acquired", session_id=session.id)
        return session

    def release(self, session: AutomationSession, *, crashed: bool = False) -> None:
        """
        Return a session. Crashed or unhealthy sessions are destroyed and
        replaced lazily by a later acquire.
        """

        if crashed:
            session.health = SessionHealth.DEAD
        elif not self._closed:
            # Caller still owns the session here, so probing needs no lock.
            session.probe(timeout_seconds=self._probe_timeout_seconds)

        destroy = False
        with self._cond:
            tracked = self._sessions.get(session.id)
            if tracked is not session or not session.checked_out:
                log_event(
                    logger,
                    logging.WARNING,
                    "session_release_ignored",
                    session_id=session.id,
                    reason="not checked out from this pool",
                )
                return
            session.checked_out = False
            if self._closed or session.health is not SessionHealth.HEALTHY:
                del self._sessions[session.id]
                destroy = True
            else:
                session.mark_idle()
                self._idle.append(session)
            self._cond.notify_all()

        if destroy:
            reason = "crashed" if crashed else session.health.value
            self._destroy(session, reason=reason)

    @contextmanager
    def session(self, timeout: float) -> Iterator[AutomationSession]:
        """
        Acquire/release pair. A SessionCrashed from the body forces destruction.
        """

        session = self.acquire(timeout)
        crashed = False
        try:
            yield session
        except SessionCrashed:
            crashed = True
            raise
        finally:
            self.release(session, crashed=crashed)

    def shutdown(self) -> None:
        """
        Destroy every session, idle or checked out. Waiting callers get
        PoolShuttingDown; later releases are ignored.
        """

        with self._cond:
            if self._closed and not self._sessions:
                return
            self._closed = True
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._idle.clear()
            self._cond.notify_all()

        log_event(logger, logging.INFO, "session_pool_shutdown", sessions=len(sessions))
        self._destroy_all(sessions, reason="shutdown")

    def stats(self) -> dict[str, int]:
        with self._cond:
            checked_out = sum(1 for item in self._sessions.values() if item.checked_out)
            return {
                "total": len(self._sessions),
                "idle": len(self._idle),
                "checked_out": checked_out,
                "launching": self._launching,
                "waiting": len(self._waiters),
                "max_sessions": self._max_sessions,
            }

    def _pop_idle(self, retired: list[AutomationSession]) -> AutomationSession | None:
        while self._idle:
            candidate = self._idle.popleft()
            if candidate.health is SessionHealth.HEALTHY and not candidate.is_expired():
                return candidate
            del self._sessions[candidate.id]
            retired.append(candidate)
        return None

    def _launch(self) -> AutomationSession:
        try:
            driver = self._driver_factory()
        except Exception as exc:
            with self._cond:
                self._launching -= 1
                self._cond.notify_all()
            log_event(logger, logging.ERROR, "session_launch_failed", error=str(exc))
            raise SessionLaunchFailed(f"failed to launch browser session: {exc}") from exc

        session = AutomationSession(
            driver=driver,
            max_age_seconds=self._max_session_age_seconds,
            max_uses=self._max_session_uses,
        )
        session.mark_checked_out()
        orphaned = False
        with self._cond:
            self._launching -= 1
            if self._closed:
                orphaned = True
            else:
                self._sessions[session.id] = session
            self._cond.notify_all()

        if orphaned:
            self._destroy(session, reason="shutdown")
            raise PoolShuttingDown("session pool shut down during launch")

        log_event(
            logger,
            logging.INFO,
            "session_spawned",
            session_id=session.id,
            max_sessions=self._max_sessions,
        )
        return session

    def _destroy_all(self, sessions: list[AutomationSession], *, reason: str) -> None:
        for session in sessions:
            self._destroy(session, reason=reason)

    @staticmethod
    def _destroy(session: AutomationSession, *, reason: str) -> None:
        try:
            session.close()
        except Exception as exc:  # noqa: BLE001
            session.health = SessionHealth.DEAD
            log_event(
                logger,
                logging.WARNING,
                "session_destroy_failed",
                session_id=session.id,
                reason=reason,
                error=str(exc),
            )
            return
        log_event(logger, logging.INFO, "session_destroyed", session_id=session.id, reason=reason)
