"""
Session Store
-------------
In-memory store of user sessions with a sliding idle timeout.

Every successful read or update moves the session's last activity to now and
re-arms its single expiry timer. A timer that fires re-checks the current last
activity before deleting anything: if the session was used after the timer
was armed, the timer is re-armed for the remaining time instead. A periodic
sweep removes anything that slipped through.

The clock and the scheduler are injected so that tests can move time by hand.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from datamerge.core.exceptions import SessionNotFoundError
from datamerge.models.data_models import Session

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = timedelta(minutes=15)
SWEEP_INTERVAL = timedelta(minutes=5)
# Shortest delay before an expiry timer looks at a session again
EXPIRY_RECHECK = timedelta(seconds=1)

Clock = Callable[[], datetime]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    """Runs callbacks on daemon threading.Timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay, 0.0), callback)
        timer.daemon = True
        timer.start()
        return timer


class SessionStore:
    """
    Owns every session, keyed by session id.

    Sessions handed out are frozen snapshots; the only way to change one is
    through update(). All access to the session map and the timer table runs
    under one re-entrant lock, because requests and timer callbacks run on
    different threads.
    """

    def __init__(
        self,
        timeout: timedelta = SESSION_TIMEOUT,
        sweep_interval: timedelta = SWEEP_INTERVAL,
        clock: Clock = datetime.now,
        scheduler: Optional[Scheduler] = None,
    ):
        self.timeout = timeout
        self.sweep_interval = sweep_interval
        self.clock = clock
        self.scheduler = scheduler or ThreadingScheduler()
        self._sessions: Dict[str, Session] = {}
        self._timers: Dict[str, Tuple[object, TimerHandle]] = {}
        self._sweep_handle: Optional[TimerHandle] = None
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    # --- lifecycle ---

    def create(self) -> Session:
        """Create an empty session with a fresh unguessable id and arm its expiry."""
        now = self.clock()
        session = Session(id=str(uuid.uuid4()), created_at=now, last_activity=now)
        with self._lock:
            self._sessions[session.id] = session
            self._arm(session.id, self.timeout)
        logger.info(f"Session {session.id} created")
        return session

    def get(self, session_id: str) -> Optional[Session]:
        """
        Fetch a session and extend its life.

        Returns:
            Optional[Session]: The refreshed session, or None if it is unknown or
            has been idle longer than the timeout (a stale session is deleted)
        """
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return None
            session = session.model_copy(update={"last_activity": self.clock()})
            self._sessions[session_id] = session
            self._arm(session_id, self.timeout)
            return session

    def require(self, session_id: str) -> Session:
        """Like get(), but raise SessionNotFoundError instead of returning None."""
        session = self.get(session_id) if session_id else None
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def peek(self, session_id: str) -> Optional[Session]:
        """Fetch a live session without extending its life."""
        with self._lock:
            return self._live(session_id)

    def update(
        self,
        session_id: str,
        changes: Dict[str, Any],
        last_activity: Optional[datetime] = None,
    ) -> bool:
        """
        Merge changes into the stored session.

        The stored session is read directly rather than through get(), so the
        only activity timestamp written is the one given here (or now).

        Args:
            session_id: The session to change
            changes: Field name -> new value; the id can not be changed
            last_activity: Activity timestamp to record, defaults to now

        Returns:
            bool: False if the session is unknown or expired
        """
        unknown = set(changes) - set(Session.model_fields)
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")

        with self._lock:
            session = self._live(session_id)
            if session is None:
                return False
            update = {key: value for key, value in changes.items() if key != "id"}
            update["last_activity"] = last_activity or self.clock()
            self._sessions[session_id] = session.model_copy(update=update)
            self._arm(session_id, self.timeout)
            return True

    def delete(self, session_id: str) -> bool:
        """
        Cancel the session's timer and remove it.

        Returns:
            bool: True if a session was removed, False if there was none
        """
        with self._lock:
            timer = self._timers.pop(session_id, None)
            if timer is not None:
                timer[1].cancel()
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info(f"Session {session_id} deleted")
        return removed

    # --- expiry ---

    def idle_time(self, session: Session) -> timedelta:
        return self.clock() - session.last_activity

    def remaining_time(self, session: Session) -> timedelta:
        return max(self.timeout - self.idle_time(session), timedelta(0))

    def cleanup_expired(self) -> int:
        """
        Delete every session idle longer than the timeout.

        Returns:
            int: Number of sessions deleted
        """
        with self._lock:
            expired = [
                session_id for session_id, session in self._sessions.items()
                if self.idle_time(session) > self.timeout
            ]
            for session_id in expired:
                self.delete(session_id)
        logger.info(f"Cleaned up {len(expired)} expired sessions")
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the periodic sweep for expired sessions."""
        with self._lock:
            if self._sweep_handle is None:
                self._sweep_handle = self.scheduler.call_later(
                    self.sweep_interval.total_seconds(), self._sweep
                )

    def stop_sweeper(self) -> None:
        with self._lock:
            if self._sweep_handle is not None:
                self._sweep_handle.cancel()
                self._sweep_handle = None

    def shutdown(self) -> None:
        """Stop the sweep and cancel every pending expiry timer."""
        self.stop_sweeper()
        with self._lock:
            for _, handle in self._timers.values():
                handle.cancel()
            self._timers.clear()

    def stats(self) -> Dict[str, Any]:
        """Session counts and flags for monitoring. Does not extend any session."""
        with self._lock:
            sessions = list(self._sessions.values())
        return {
            "total_sessions": len(sessions),
            "sessions": [
                {
                    "id": session.id,
                    "created_at": session.created_at,
                    "last_activity": session.last_activity,
                    "has_dataset_a": session.dataset_a is not None,
                    "has_dataset_b": session.dataset_b is not None,
                    "has_result": session.result is not None,
                }
                for session in sessions
            ],
        }

    # --- internals, called with the lock held ---

    def _live(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self.idle_time(session) > self.timeout:
            logger.info(f"Session {session_id} expired")
            self.delete(session_id)
            return None
        return session

    def _arm(self, session_id: str, delay: timedelta) -> None:
        previous = self._timers.pop(session_id, None)
        if previous is not None:
            previous[1].cancel()
        token = object()
        handle = self.scheduler.call_later(
            delay.total_seconds(), partial(self._on_expiry, session_id, token)
        )
        self._timers[session_id] = (token, handle)

    def _on_expiry(self, session_id: str, token: object) -> None:
        with self._lock:
            current = self._timers.get(session_id)
            if current is None or current[0] is not token:
                # A newer timer replaced this one
                return
            del self._timers[session_id]

            session = self._sessions.get(session_id)
            if session is None:
                return
            idle = self.idle_time(session)
            if idle > self.timeout:
                self.delete(session_id)
            else:
                self._arm(session_id, max(self.timeout - idle, EXPIRY_RECHECK))

    def _sweep(self) -> None:
        try:
            self.cleanup_expired()
        finally:
            with self._lock:
                if self._sweep_handle is not None:
                    self._sweep_handle = self.scheduler.call_later(
                        self.sweep_interval.total_seconds(), self._sweep
                    )
