"""Calculator models.

Enums for keys, operators and phases, the immutable ``DisplayState``
snapshot returned after every key press, and the request/response
payloads used by the session API.  No arithmetic lives here -- only
structure and label parsing.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

class KeyKind(str, Enum):
    DIGIT = "digit"
    POINT = "point"
    OPERATOR = "operator"
    EQUALS = "equals"
    CLEAR_ALL = "clear_all"
    CLEAR_ENTRY = "clear_entry"
    TOGGLE_SIGN = "toggle_sign"
    PERCENT = "percent"


class Operator(str, Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"


class Key(str, Enum):
    """One button on the keypad.  Values are the canonical labels."""

    ZERO = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    POINT = "."
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    EQUALS = "="
    CLEAR_ALL = "AC"
    CLEAR_ENTRY = "C"
    TOGGLE_SIGN = "+/-"
    PERCENT = "%"

    @property
    def kind(self) -> KeyKind:
        if self.value.isdigit():
            return KeyKind.DIGIT
        return _NON_DIGIT_KINDS[self]

    @property
    def operator(self) -> Operator | None:
        if self.kind is not KeyKind.OPERATOR:
            return None
        return Operator(self.value)

    @property
    def is_entry(self) -> bool:
        """True for keys that append to the buffer (digits and the point)."""
        return self.kind in (KeyKind.DIGIT, KeyKind.POINT)


_NON_DIGIT_KINDS: dict[Key, KeyKind] = {
    Key.POINT: KeyKind.POINT,
    Key.ADD: KeyKind.OPERATOR,
    Key.SUBTRACT: KeyKind.OPERATOR,
    Key.MULTIPLY: KeyKind.OPERATOR,
    Key.DIVIDE: KeyKind.OPERATOR,
    Key.EQUALS: KeyKind.EQUALS,
    Key.CLEAR_ALL: KeyKind.CLEAR_ALL,
    Key.CLEAR_ENTRY: KeyKind.CLEAR_ENTRY,
    Key.TOGGLE_SIGN: KeyKind.TOGGLE_SIGN,
    Key.PERCENT: KeyKind.PERCENT,
}

DIGIT_KEYS: tuple[Key, ...] = tuple(k for k in Key if k.kind is KeyKind.DIGIT)
OPERATOR_KEYS: tuple[Key, ...] = (Key.ADD, Key.SUBTRACT, Key.MULTIPLY, Key.DIVIDE)

# Printed labels that differ from the canonical ones.
KEY_ALIASES: dict[str, Key] = {
    "x": Key.MULTIPLY,
    "X": Key.MULTIPLY,
    "×": Key.MULTIPLY,
    "÷": Key.DIVIDE,
    "−": Key.SUBTRACT,
    "±": Key.TOGGLE_SIGN,
    "ac": Key.CLEAR_ALL,
    "c": Key.CLEAR_ENTRY,
}


class UnknownKeyError(ValueError):
    """Raised when a label does not name any keypad button."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Unknown key: {label!r}")


def parse_key(label: str | Key) -> Key:
    """Map a button label (``"÷"``, ``"x"``, ``"AC"`` ...) to a ``Key``."""
    if isinstance(label, Key):
        return label
    text = label.strip()
    if text in KEY_ALIASES:
        return KEY_ALIASES[text]
    try:
        return Key(text)
    except ValueError:
        raise UnknownKeyError(label) from None


# Button rows as printed on the keypad.  The first cell is the clear
# button; its label follows DisplayState.clear_label.
KEYPAD_LAYOUT: list[list[str]] = [
    ["AC", "+/-", "%", "÷"],
    ["7", "8", "9", "x"],
    ["4", "5", "6", "-"],
    ["1", "2", "3", "+"],
    ["0", ".", "="],
]


def keypad_rows(clear_label: str = "AC") -> list[list[str]]:
    rows = [list(row) for row in KEYPAD_LAYOUT]
    rows[0][0] = clear_label
    return rows


# ---------------------------------------------------------------------------
# Evaluator state
# ---------------------------------------------------------------------------

class Phase(str, Enum):
    ENTERING_FIRST = "entering_first"
    ENTERING_SECOND = "entering_second"
    ERROR = "error"


class DisplayState(BaseModel):
    """Snapshot of the evaluator after a key press."""

    model_config = ConfigDict(frozen=True)

    display: str = "0"
    first_operand: str = ""
    second_operand: str = ""
    operator: Operator | None = None
    phase: Phase = Phase.ENTERING_FIRST
    clear_label: str = "AC"

    @property
    def is_error(self) -> bool:
        return self.phase is Phase.ERROR

    @property
    def active_operand(self) -> str:
        """Operand the buffer mirrors; empty in the error state."""
        if self.phase is Phase.ENTERING_FIRST:
            return self.first_operand
        if self.phase is Phase.ENTERING_SECOND:
            return self.second_operand
        return ""


# ---------------------------------------------------------------------------
# Session API payloads
# ---------------------------------------------------------------------------

class SessionCreate(BaseModel):
    """Payload for opening a new calculator session."""

    label: str = Field(default="", max_length=128)

    @field_validator("label")
    @classmethod
    def label_stripped(cls, v: str) -> str:
        return v.strip()


class Session(BaseModel):
    """Session record as held by the store."""

    id: str = Field(default_factory=_new_id)
    label: str = ""
    state: DisplayState = Field(default_factory=DisplayState)
    key_count: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class KeyPress(BaseModel):
    """A single button press, by label."""

    key: str = Field(..., min_length=1, max_length=8)


class KeySequence(BaseModel):
    """Several button presses applied in order."""

    keys: list[str] = Field(..., min_length=1, max_length=256)
