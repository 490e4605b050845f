"""Number text helpers for the display buffer.

``parse_operand`` turns buffer text into a float and ``format_result``
turns a float back into buffer text that fits the display.
"""
from __future__ import annotations

import math

MAX_DISPLAY_LENGTH = 9


def parse_operand(text: str) -> float:
    """Parse buffer text as a number.

    A bare point (``"."`` or ``"-."``) reads as zero, the way a leading
    point is typed on the keypad.  Raises ``ValueError`` for anything
    else that is not a finite number.
    """
    if text.lstrip("-") == ".":
        return 0.0
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"not a finite number: {text!r}")
    return value


def format_result(value: float, max_length: int = MAX_DISPLAY_LENGTH) -> str:
    """Render a result for the display.

    Shortest round-trip text, trailing ``.0`` dropped for whole numbers,
    then cut to ``max_length`` characters (truncation, not rounding).
    """
    if not math.isfinite(value):
        raise ValueError(f"cannot display {value!r}")
    if value == 0:
        value = 0.0  # drops the sign of -0.0

    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]

    if len(text) > max_length:
        text = text[:max_length]
        if text.endswith("."):
            text = text[:-1]
    return text
