"""In-memory session store.

Each session owns one evaluator.  Every key press goes through the
store, which checks the resulting state against the contract's state
rules and keeps timestamp bookkeeping.
"""
from __future__ import annotations

import logging
from typing import Iterable

from contract import ValidationReport, validate_state
from evaluator import Evaluator
from models import DisplayState, Key, Session, SessionCreate, _new_id, _utcnow, parse_key

logger = logging.getLogger(f"calculator.{__name__}")

DEFAULT_MAX_SESSIONS = 1000


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class SessionNotFoundError(Exception):
    """Raised when a session lookup fails."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionLimitError(Exception):
    """Raised when the store already holds ``max_sessions`` sessions."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Session limit reached: {limit}")


class SessionStateError(Exception):
    """Raised when a key press leaves the evaluator in an invalid state."""

    def __init__(self, session_id: str, report: ValidationReport) -> None:
        self.session_id = session_id
        self.report = report
        super().__init__(report.summary())


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------

class SessionStore:
    """In-memory store of calculator sessions."""

    def __init__(self, max_sessions: int = DEFAULT_MAX_SESSIONS) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_sessions = max_sessions
        self._sessions: dict[str, Session] = {}
        self._evaluators: dict[str, Evaluator] = {}

    # -- lifecycle ----------------------------------------------------------

    def create(self, payload: SessionCreate | None = None) -> Session:
        """Open a new session with a fresh evaluator."""
        if len(self._sessions) >= self.max_sessions:
            logger.warning("session limit %d reached", self.max_sessions)
            raise SessionLimitError(self.max_sessions)

        payload = payload or SessionCreate()
        now = _utcnow()
        evaluator = Evaluator()
        session = Session(
            id=_new_id(),
            label=payload.label,
            state=evaluator.state,
            key_count=0,
            created_at=now,
            updated_at=now,
        )
        self._sessions[session.id] = session
        self._evaluators[session.id] = evaluator
        logger.info("opened session %s", session.id)
        return session

    def get(self, session_id: str) -> Session:
        """Retrieve a session by id."""
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def list(self, *, offset: int = 0, limit: int = 50) -> list[Session]:
        """List sessions, newest first."""
        items = list(self._sessions.values())
        items.sort(key=lambda s: s.created_at, reverse=True)
        return items[offset : offset + limit]

    def delete(self, session_id: str) -> Session:
        """Delete a session and return the deleted record."""
        session = self.get(session_id)
        del self._sessions[session_id]
        del self._evaluators[session_id]
        logger.info("closed session %s", session_id)
        return session

    def count(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        """Remove all sessions (useful for testing)."""
        self._sessions.clear()
        self._evaluators.clear()

    # -- key presses --------------------------------------------------------

    def press(self, session_id: str, key: Key | str) -> DisplayState:
        """Apply one key to a session's evaluator.

        Raises ``UnknownKeyError`` for a bad label before touching state.
        """
        return self.press_many(session_id, [key])

    def press_many(self, session_id: str, keys: Iterable[Key | str]) -> DisplayState:
        """Apply keys in order; all labels are parsed before any is applied."""
        session = self.get(session_id)
        parsed = [parse_key(k) for k in keys]
        evaluator = self._evaluators[session_id]

        state = evaluator.state
        for key in parsed:
            state = evaluator.handle_input(key)
            report = validate_state(state)
            if not report.passed:
                logger.error(
                    "session %s left in invalid state after %r:\n%s",
                    session_id, key.value, report.summary(),
                )
                # Roll the evaluator back to the last committed state
                self._evaluators[session_id] = Evaluator.from_state(session.state)
                raise SessionStateError(session_id, report)

        self._sessions[session_id] = session.model_copy(update={
            "state": state,
            "key_count": session.key_count + len(parsed),
            "updated_at": _utcnow(),
        })
        return state
