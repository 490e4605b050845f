"""Shared fixtures for calculator tests."""
from __future__ import annotations

import pytest

from evaluator import Evaluator
from models import DisplayState, Operator, Phase
from store import SessionStore


@pytest.fixture
def ev() -> Evaluator:
    return Evaluator()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def error_evaluator() -> Evaluator:
    """An evaluator already in the error phase (5 / 0 =)."""
    ev = Evaluator()
    for label in ["5", "/", "0", "="]:
        ev.handle_input(label)
    assert ev.state.phase is Phase.ERROR
    return ev


@pytest.fixture
def pending_add_state() -> DisplayState:
    """First operand 12, '+' pending, second operand 3 being typed."""
    return DisplayState(
        display="3",
        first_operand="12",
        second_operand="3",
        operator=Operator.ADD,
        phase=Phase.ENTERING_SECOND,
        clear_label="C",
    )
