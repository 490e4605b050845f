"""Application factory and entry point.

Run with:
    uvicorn app:app --reload

Environment
-----------
CALCULATOR_LOG_LEVEL      logging level name (default INFO)
CALCULATOR_MAX_SESSIONS   open sessions allowed at once (default 1000)
"""
from __future__ import annotations

import os

from fastapi import FastAPI

from api import keypad_router, router, set_store
from logging_config import setup_logging
from store import DEFAULT_MAX_SESSIONS, SessionStore

DEFAULT_LOG_LEVEL = "INFO"


def create_app(
    store: SessionStore | None = None,
    log_level: str | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Accepts an optional store and log level for testing; otherwise both
    come from the environment.
    """
    setup_logging(log_level or os.environ.get("CALCULATOR_LOG_LEVEL", DEFAULT_LOG_LEVEL))

    if store is None:
        max_sessions = int(
            os.environ.get("CALCULATOR_MAX_SESSIONS", DEFAULT_MAX_SESSIONS)
        )
        store = SessionStore(max_sessions=max_sessions)

    set_store(store)

    app = FastAPI(
        title="Keypad Calculator API",
        description=(
            "Drives four-function keypad calculators over HTTP. Each session "
            "holds one evaluator; send button labels and read back the "
            "display state after every press."
        ),
        version="0.1.0",
    )
    app.include_router(router)
    app.include_router(keypad_router)
    return app


# Default app instance for `uvicorn app:app`
app = create_app()
