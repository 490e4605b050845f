"""Keypad evaluator.

A small state machine fed one key at a time.  It owns the display
buffer, the two operand strings, the pending operator and the entry
phase, and returns a ``DisplayState`` snapshot after every key.

Calculator failures (divide by zero, a number that does not parse, a
result that overflows) are not raised: they move the evaluator into the
error phase, which only clear-all leaves.

Decision branches are annotated with their branch-IDs (see
``contract.build_contract``) so white-box tests can trace coverage.
"""
from __future__ import annotations

import logging
import operator as _op
from typing import Callable, Iterable

from contract import (
    CLEAR_LABEL_ALL,
    CLEAR_LABEL_ENTRY,
    ERROR_MARKER,
    INITIAL_DISPLAY,
)
from display import MAX_DISPLAY_LENGTH, format_result, parse_operand
from models import DisplayState, Key, KeyKind, Operator, Phase, parse_key

logger = logging.getLogger(f"calculator.{__name__}")

OPERATIONS: dict[Operator, Callable[[float, float], float]] = {
    Operator.ADD: _op.add,
    Operator.SUBTRACT: _op.sub,
    Operator.MULTIPLY: _op.mul,
    Operator.DIVIDE: _op.truediv,
}


class Evaluator:
    """Input-accumulation and evaluation state machine."""

    def __init__(self) -> None:
        self._reset()
        self._handlers: dict[KeyKind, Callable[[Key], None]] = {
            KeyKind.DIGIT: self._enter,
            KeyKind.POINT: self._enter,
            KeyKind.OPERATOR: self._apply_operator,
            KeyKind.EQUALS: self._equals,
            KeyKind.CLEAR_ALL: self._clear_all,
            KeyKind.CLEAR_ENTRY: self._clear_entry,
            KeyKind.TOGGLE_SIGN: self._toggle_sign,
            KeyKind.PERCENT: self._percent,
        }

    @classmethod
    def from_state(cls, state: DisplayState) -> Evaluator:
        """Rebuild an evaluator positioned at ``state``."""
        ev = cls()
        ev._display = state.display
        ev._first = state.first_operand
        ev._second = state.second_operand
        ev._operator = state.operator
        ev._phase = state.phase
        ev._clear_label = state.clear_label
        return ev

    @property
    def state(self) -> DisplayState:
        return DisplayState(
            display=self._display,
            first_operand=self._first,
            second_operand=self._second,
            operator=self._operator,
            phase=self._phase,
            clear_label=self._clear_label,
        )

    @property
    def display(self) -> str:
        return self._display

    # -- public operations --------------------------------------------------

    def handle_input(self, key: Key | str) -> DisplayState:
        """Apply one key press and return the resulting snapshot.

        Branches: ERR-IGNORE, ERR-RECOVER
        """
        key = parse_key(key)

        if self._phase is Phase.ERROR:
            if key is not Key.CLEAR_ALL:                          # ERR-IGNORE
                logger.debug("ignored %s in error state", key.value)
                return self.state
            logger.info("recovered from error state")             # ERR-RECOVER

        if not key.is_entry:
            self._clear_label = CLEAR_LABEL_ALL

        self._handlers[key.kind](key)
        logger.debug(
            "key=%s display=%r phase=%s", key.value, self._display, self._phase.value
        )
        return self.state

    def press(self, label: str) -> str:
        """Apply a key by button label and return the display string."""
        return self.handle_input(label).display

    def press_many(self, labels: Iterable[Key | str]) -> DisplayState:
        """Apply keys in order and return the final snapshot."""
        state = self.state
        for label in labels:
            state = self.handle_input(label)
        return state

    # -- internal helpers ---------------------------------------------------

    def _reset(self) -> None:
        self._display = INITIAL_DISPLAY
        self._first = ""
        self._second = ""
        self._operator: Operator | None = None
        self._phase = Phase.ENTERING_FIRST
        self._clear_label = CLEAR_LABEL_ALL

    def _set_active(self, text: str) -> None:
        if self._phase is Phase.ENTERING_SECOND:
            self._second = text
        else:
            self._first = text

    def _fail(self, reason: str) -> None:
        logger.info("entering error state: %s", reason)
        self._display = ERROR_MARKER
        self._first = ""
        self._second = ""
        self._operator = None
        self._phase = Phase.ERROR
        self._clear_label = CLEAR_LABEL_ALL

    # -- key handlers -------------------------------------------------------

    def _enter(self, key: Key) -> None:
        """Digit or decimal point.

        Branches: ENTRY-FULL, ENTRY-DUP-POINT, ENTRY-REPLACE, ENTRY-APPEND
        """
        if len(self._display) >= MAX_DISPLAY_LENGTH:              # ENTRY-FULL
            self._clear_label = CLEAR_LABEL_ALL
            return

        self._clear_label = CLEAR_LABEL_ENTRY

        if key is Key.POINT and "." in self._display:             # ENTRY-DUP-POINT
            return

        if self._display == INITIAL_DISPLAY:                      # ENTRY-REPLACE
            self._display = key.value
        else:                                                     # ENTRY-APPEND
            self._display += key.value
        self._set_active(self._display)

    def _apply_operator(self, key: Key) -> None:
        """Branches: OP-NO-OPERAND, OP-ACCEPT, OP-REPLACE"""
        if not self._first:                                       # OP-NO-OPERAND
            return

        if self._phase is Phase.ENTERING_SECOND:                  # OP-REPLACE
            logger.debug("operator %s replaces %s", key.value, self._operator.value)
        # OP-ACCEPT
        self._operator = key.operator
        self._phase = Phase.ENTERING_SECOND
        self._second = ""
        self._display = ""

    def _equals(self, key: Key) -> None:
        """Branches: EQ-INCOMPLETE, EQ-BAD-OPERAND, EQ-DIV-ZERO, EQ-NONFINITE, EQ-OK"""
        if self._operator is None or not self._first or not self._second:
            return                                                # EQ-INCOMPLETE

        try:
            a = parse_operand(self._first)
            b = parse_operand(self._second)
        except ValueError as e:                                   # EQ-BAD-OPERAND
            self._fail(str(e))
            return

        if self._operator is Operator.DIVIDE and b == 0:          # EQ-DIV-ZERO
            self._fail("division by zero")
            return

        try:
            text = format_result(OPERATIONS[self._operator](a, b))
        except ValueError as e:                                   # EQ-NONFINITE
            self._fail(str(e))
            return

        # EQ-OK
        self._display = text
        self._first = text
        self._second = ""
        self._operator = None
        self._phase = Phase.ENTERING_FIRST

    def _clear_all(self, key: Key) -> None:
        """Branch: CLEAR-ALL"""
        self._reset()

    def _clear_entry(self, key: Key) -> None:
        """Branches: CE-TRIM, CE-RESET"""
        trimmed = self._display[:-1]
        if trimmed in ("", "-"):                                  # CE-RESET
            self._display = INITIAL_DISPLAY
            self._set_active("")
        else:                                                     # CE-TRIM
            self._display = trimmed
            self._set_active(trimmed)

    def _toggle_sign(self, key: Key) -> None:
        """Branches: SIGN-NOOP, SIGN-ADD, SIGN-STRIP"""
        if self._display in (INITIAL_DISPLAY, ""):                # SIGN-NOOP
            return

        if self._display.startswith("-"):                         # SIGN-STRIP
            self._display = self._display[1:]
        else:                                                     # SIGN-ADD
            self._display = "-" + self._display
        self._set_active(self._display)

    def _percent(self, key: Key) -> None:
        """Branches: PCT-BAD-BUFFER, PCT-OK"""
        try:
            value = parse_operand(self._display)
        except ValueError as e:                                   # PCT-BAD-BUFFER
            self._fail(f"cannot take percent of {self._display!r}: {e}")
            return

        # PCT-OK
        self._display = format_result(value / 100)
        self._set_active(self._display)
