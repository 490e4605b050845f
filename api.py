"""FastAPI REST endpoints for calculator sessions.

Routes
------
POST   /sessions                 Open a new session
GET    /sessions                 List sessions
GET    /sessions/{id}            Retrieve a single session
POST   /sessions/{id}/keys       Press one key
POST   /sessions/{id}/sequence   Press several keys in order
DELETE /sessions/{id}            Close a session
GET    /keypad                   Keypad layout
"""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from models import (
    DisplayState,
    KeyPress,
    KeySequence,
    Session,
    SessionCreate,
    UnknownKeyError,
    keypad_rows,
)
from store import (
    SessionLimitError,
    SessionNotFoundError,
    SessionStateError,
    SessionStore,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])
keypad_router = APIRouter(tags=["keypad"])

# The store instance is injected by the app factory (see app.py).
_store: SessionStore | None = None


def set_store(store: SessionStore) -> None:
    """Inject the store instance. Called once at app startup."""
    global _store
    _store = store


def get_store() -> SessionStore:
    assert _store is not None, "Store not initialized"
    return _store


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

class SessionListResponse(BaseModel):
    items: list[Session]
    total: int


class KeypadResponse(BaseModel):
    rows: list[list[str]]


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Session not found: {session_id}")


def _press(session_id: str, keys: list[str]) -> DisplayState:
    store = get_store()
    try:
        return store.press_many(session_id, keys)
    except SessionNotFoundError:
        raise _not_found(session_id)
    except UnknownKeyError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except SessionStateError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=Session, status_code=201)
def create_session(payload: SessionCreate | None = None) -> Session:
    """Open a new calculator session."""
    store = get_store()
    try:
        return store.create(payload)
    except SessionLimitError as e:
        raise HTTPException(status_code=429, detail=str(e)) from e


@router.get("", response_model=SessionListResponse)
def list_sessions(
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    limit: int = Query(default=50, ge=1, le=200, description="Pagination limit"),
) -> SessionListResponse:
    """List open sessions."""
    store = get_store()
    items = store.list(offset=offset, limit=limit)
    return SessionListResponse(items=items, total=store.count())


@router.get("/{session_id}", response_model=Session)
def get_session(session_id: str) -> Session:
    """Retrieve a single session by id."""
    store = get_store()
    try:
        return store.get(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/{session_id}/keys", response_model=DisplayState)
def press_key(session_id: str, payload: KeyPress) -> DisplayState:
    """Press one key and return the new display state."""
    return _press(session_id, [payload.key])


@router.post("/{session_id}/sequence", response_model=DisplayState)
def press_sequence(session_id: str, payload: KeySequence) -> DisplayState:
    """Press keys in order and return the final display state.

    Labels are all checked first, so an unknown label presses nothing.
    """
    return _press(session_id, payload.keys)


@router.delete("/{session_id}", response_model=Session)
def delete_session(session_id: str) -> Session:
    """Close a session and return its last record."""
    store = get_store()
    try:
        return store.delete(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@keypad_router.get("/keypad", response_model=KeypadResponse)
def get_keypad(
    clear_label: str = Query(default="AC", pattern=r"^(AC|C)$"),
) -> KeypadResponse:
    """Button rows as laid out on the keypad."""
    return KeypadResponse(rows=keypad_rows(clear_label))
