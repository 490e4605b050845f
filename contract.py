"""Executable contract for the keypad evaluator.

The contract is machine-readable.  Tests and the counterexample search
iterate over it instead of hand-writing one assertion per behaviour.

Layers
------
Rule              invariant every reachable DisplayState must satisfy
Postcondition     relation between (before, key, after) for one key press
KeySpec           postconditions for one kind of key
BranchSpec        every decision point that white-box tests must cover
EvaluatorContract the full contract
build_contract()  constructs the EvaluatorContract
validate_state()  runs every Rule against a state
"""
from __future__ import annotations

import operator as _op
from dataclasses import dataclass
from typing import Callable

from display import MAX_DISPLAY_LENGTH, format_result, parse_operand
from models import DisplayState, Key, KeyKind, Operator, Phase

INITIAL_DISPLAY = "0"
ERROR_MARKER = "Error"
CLEAR_LABEL_ALL = "AC"
CLEAR_LABEL_ENTRY = "C"

# Toggle-sign may push a full buffer one character past the entry limit.
MAX_SIGNED_LENGTH = MAX_DISPLAY_LENGTH + 1

DISPLAY_CHARS = frozenset("0123456789.-+e")


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rule:
    """A named invariant over a single state."""

    id: str
    name: str
    description: str
    check: Callable[[DisplayState], bool]


@dataclass(frozen=True)
class Postcondition:
    name: str
    description: str
    check: Callable[[DisplayState, Key, DisplayState], bool]


@dataclass(frozen=True)
class KeySpec:
    kind: KeyKind
    postconditions: list[Postcondition]


@dataclass(frozen=True)
class BranchSpec:
    """A decision point in the evaluator that must be exercised."""

    id: str
    description: str
    condition: str      # human-readable boolean expression
    operation: str      # which handler this belongs to


@dataclass(frozen=True)
class EvaluatorContract:
    rules: list[Rule]
    keys: dict[KeyKind, KeySpec]
    global_postconditions: list[Postcondition]
    branches: list[BranchSpec]

    def postconditions_for(self, key: Key) -> list[Postcondition]:
        return self.global_postconditions + self.keys[key.kind].postconditions

    @property
    def all_postconditions(self) -> list[tuple[str, Postcondition]]:
        out: list[tuple[str, Postcondition]] = [
            ("*", post) for post in self.global_postconditions
        ]
        for kind, key_spec in self.keys.items():
            for post in key_spec.postconditions:
                out.append((kind.value, post))
        return out

    @property
    def branch_ids(self) -> set[str]:
        return {b.id for b in self.branches}


# ---------------------------------------------------------------------------
# State invariants
# ---------------------------------------------------------------------------

def _marker_iff_error(s: DisplayState) -> bool:
    return (s.display == ERROR_MARKER) == s.is_error


def _error_state_cleared(s: DisplayState) -> bool:
    if not s.is_error:
        return True
    return s.first_operand == "" and s.second_operand == "" and s.operator is None


def _buffer_mirrors_active_operand(s: DisplayState) -> bool:
    if s.is_error:
        return True
    active = s.active_operand
    return active == s.display or (active == "" and s.display in ("0", ""))


def _empty_buffer_only_for_second(s: DisplayState) -> bool:
    return s.display != "" or s.phase is Phase.ENTERING_SECOND


def _first_phase_has_no_pending(s: DisplayState) -> bool:
    if s.phase is not Phase.ENTERING_FIRST:
        return True
    return s.second_operand == "" and s.operator is None


def _second_phase_has_first_and_operator(s: DisplayState) -> bool:
    if s.phase is not Phase.ENTERING_SECOND:
        return True
    return s.first_operand != "" and s.operator is not None


def _single_point(s: DisplayState) -> bool:
    return s.display.count(".") <= 1


def _length_bounded(s: DisplayState) -> bool:
    return len(s.display) <= MAX_SIGNED_LENGTH


def _display_chars(s: DisplayState) -> bool:
    return s.is_error or set(s.display) <= DISPLAY_CHARS


def _clear_label_known(s: DisplayState) -> bool:
    return s.clear_label in (CLEAR_LABEL_ALL, CLEAR_LABEL_ENTRY)


STATE_RULES: list[Rule] = [
    Rule(
        id="ST-MARKER",
        name="marker_iff_error",
        description="Display shows the error marker exactly in the error phase",
        check=_marker_iff_error,
    ),
    Rule(
        id="ST-ERROR-CLEARED",
        name="error_state_cleared",
        description="Error phase holds no operands and no pending operator",
        check=_error_state_cleared,
    ),
    Rule(
        id="ST-MIRROR",
        name="buffer_mirrors_active_operand",
        description="Buffer equals the active operand, or both are untouched",
        check=_buffer_mirrors_active_operand,
    ),
    Rule(
        id="ST-EMPTY-BUFFER",
        name="empty_buffer_only_for_second",
        description="An empty buffer only appears while entering the second operand",
        check=_empty_buffer_only_for_second,
    ),
    Rule(
        id="ST-FIRST-PHASE",
        name="first_phase_has_no_pending",
        description="Entering the first operand means no second operand and no operator",
        check=_first_phase_has_no_pending,
    ),
    Rule(
        id="ST-SECOND-PHASE",
        name="second_phase_has_first_and_operator",
        description="Entering the second operand requires a first operand and an operator",
        check=_second_phase_has_first_and_operator,
    ),
    Rule(
        id="ST-POINT",
        name="single_point",
        description="Buffer holds at most one decimal point",
        check=_single_point,
    ),
    Rule(
        id="ST-LENGTH",
        name="length_bounded",
        description=f"Buffer holds at most {MAX_SIGNED_LENGTH} characters",
        check=_length_bounded,
    ),
    Rule(
        id="ST-CHARS",
        name="display_chars",
        description="Buffer holds only number characters outside the error phase",
        check=_display_chars,
    ),
    Rule(
        id="ST-CLEAR-LABEL",
        name="clear_label_known",
        description="Clear button label is AC or C",
        check=_clear_label_known,
    ),
]


@dataclass(frozen=True)
class ValidationResult:
    rule_id: str
    rule_name: str
    passed: bool
    description: str


@dataclass(frozen=True)
class ValidationReport:
    results: list[ValidationResult]

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> list[ValidationResult]:
        return [r for r in self.results if not r.passed]

    def summary(self) -> str:
        total = len(self.results)
        failed = len(self.failures)
        if failed == 0:
            return f"All {total} rules passed"
        lines = [f"{failed}/{total} rules failed:"]
        for f in self.failures:
            lines.append(f"  [{f.rule_id}] {f.rule_name}: {f.description}")
        return "\n".join(lines)


def validate_state(state: DisplayState) -> ValidationReport:
    """Run all state rules against a snapshot and return a report."""
    results = []
    for rule in STATE_RULES:
        try:
            passed = rule.check(state)
        except Exception:
            passed = False
        results.append(
            ValidationResult(
                rule_id=rule.id,
                rule_name=rule.name,
                passed=passed,
                description=rule.description,
            )
        )
    return ValidationReport(results=results)


# ---------------------------------------------------------------------------
# Helpers used inside the postcondition predicates
# ---------------------------------------------------------------------------

_REFERENCE_OPS: dict[Operator, Callable[[float, float], float]] = {
    Operator.ADD: _op.add,
    Operator.SUBTRACT: _op.sub,
    Operator.MULTIPLY: _op.mul,
    Operator.DIVIDE: _op.truediv,
}


def expected_result(state: DisplayState) -> str | None:
    """Display text ``=`` should produce, or None when it should error.

    Independent of the evaluator: recomputes from the operand strings.
    """
    assert state.operator is not None
    try:
        a = parse_operand(state.first_operand)
        b = parse_operand(state.second_operand)
    except ValueError:
        return None
    if state.operator is Operator.DIVIDE and b == 0:
        return None
    try:
        return format_result(_REFERENCE_OPS[state.operator](a, b))
    except (ValueError, OverflowError):
        return None


def expected_percent(display: str) -> str | None:
    try:
        return format_result(parse_operand(display) / 100)
    except ValueError:
        return None


def expected_clear_entry(display: str) -> str:
    trimmed = display[:-1]
    if trimmed in ("", "-"):
        return INITIAL_DISPLAY
    return trimmed


def equals_ready(s: DisplayState) -> bool:
    return (
        s.operator is not None
        and s.first_operand != ""
        and s.second_operand != ""
    )


def _entry_accepted(before: DisplayState, key: Key) -> bool:
    if len(before.display) >= MAX_DISPLAY_LENGTH:
        return False
    return not (key is Key.POINT and "." in before.display)


def _unchanged_but_label(before: DisplayState, after: DisplayState) -> bool:
    return after == before.model_copy(update={"clear_label": CLEAR_LABEL_ALL})


def _live(check):
    """Wrap a predicate so it holds trivially when ``before`` is in error."""

    def wrapped(before: DisplayState, key: Key, after: DisplayState) -> bool:
        if before.is_error:
            return True
        return check(before, key, after)

    return wrapped


# ---------------------------------------------------------------------------
# Contract builder
# ---------------------------------------------------------------------------

def build_contract() -> EvaluatorContract:
    """Construct the full evaluator contract."""

    global_posts = [
        Postcondition(
            "error_absorbing",
            "In the error phase every key but clear-all is ignored",
            lambda b, k, a: (
                not b.is_error or k is Key.CLEAR_ALL or a == b
            ),
        ),
        Postcondition(
            "state_rules_hold",
            "The resulting state satisfies every state rule",
            lambda b, k, a: validate_state(a).passed,
        ),
        Postcondition(
            "label_resets_on_command",
            "Non-entry keys show AC on the clear button",
            _live(lambda b, k, a: k.is_entry or a.clear_label == CLEAR_LABEL_ALL),
        ),
    ]

    # ------------------------------------------------------------ entry
    entry_posts = [
        Postcondition(
            "full_buffer_rejects",
            f"A buffer of {MAX_DISPLAY_LENGTH} characters ignores entry keys",
            _live(lambda b, k, a: (
                len(b.display) < MAX_DISPLAY_LENGTH
                or (a.display == b.display and a.clear_label == CLEAR_LABEL_ALL)
            )),
        ),
        Postcondition(
            "duplicate_point_rejects",
            "A second decimal point is ignored",
            _live(lambda b, k, a: (
                not (k is Key.POINT and "." in b.display)
                or a.display == b.display
            )),
        ),
        Postcondition(
            "entry_applied",
            "An untouched '0' is replaced, anything else is appended to",
            _live(lambda b, k, a: (
                not _entry_accepted(b, k)
                or a.display == (
                    k.value if b.display == INITIAL_DISPLAY
                    else b.display + k.value
                )
            )),
        ),
        Postcondition(
            "entry_keeps_phase",
            "Entry keys never change phase or operator",
            _live(lambda b, k, a: (
                a.phase is b.phase and a.operator is b.operator
            )),
        ),
    ]

    # ------------------------------------------------------------ operator
    operator_posts = [
        Postcondition(
            "operator_requires_first",
            "Without a first operand an operator key changes nothing",
            _live(lambda b, k, a: (
                b.first_operand != "" or _unchanged_but_label(b, a)
            )),
        ),
        Postcondition(
            "operator_recorded",
            "The operator is pending and a fresh second operand starts",
            _live(lambda b, k, a: (
                b.first_operand == ""
                or (
                    a.operator is k.operator
                    and a.phase is Phase.ENTERING_SECOND
                    and a.display == ""
                    and a.second_operand == ""
                    and a.first_operand == b.first_operand
                )
            )),
        ),
    ]

    # ------------------------------------------------------------ equals
    equals_posts = [
        Postcondition(
            "equals_requires_both_operands",
            "Without both operands and an operator '=' changes nothing",
            _live(lambda b, k, a: equals_ready(b) or _unchanged_but_label(b, a)),
        ),
        Postcondition(
            "equals_result",
            "The formatted result becomes the display and the first operand",
            _live(lambda b, k, a: (
                not equals_ready(b)
                or (
                    a.display == ERROR_MARKER
                    if expected_result(b) is None
                    else (
                        a.display == expected_result(b)
                        and a.first_operand == a.display
                        and a.second_operand == ""
                        and a.operator is None
                        and a.phase is Phase.ENTERING_FIRST
                    )
                )
            )),
        ),
        Postcondition(
            "divide_by_zero_errors",
            "Dividing by zero enters the error phase",
            _live(lambda b, k, a: (
                not (equals_ready(b) and b.operator is Operator.DIVIDE)
                or expected_result(b) is not None
                or a.is_error
            )),
        ),
    ]

    # ------------------------------------------------------------ clear
    clear_all_posts = [
        Postcondition(
            "clear_all_resets",
            "Clear-all always yields the initial state",
            lambda b, k, a: a == DisplayState(),
        ),
    ]

    clear_entry_posts = [
        Postcondition(
            "clear_entry_trims",
            "The last buffer character is removed, an emptied buffer shows '0'",
            _live(lambda b, k, a: a.display == expected_clear_entry(b.display)),
        ),
        Postcondition(
            "clear_entry_keeps_committed",
            "The committed first operand survives clear-entry on the second",
            _live(lambda b, k, a: (
                b.phase is not Phase.ENTERING_SECOND
                or (
                    a.first_operand == b.first_operand
                    and a.operator is b.operator
                )
            )),
        ),
    ]

    # ------------------------------------------------------------ sign
    toggle_posts = [
        Postcondition(
            "toggle_noop_on_zero",
            "Toggle-sign leaves '0' and an empty buffer alone",
            _live(lambda b, k, a: (
                b.display not in (INITIAL_DISPLAY, "") or a.display == b.display
            )),
        ),
        Postcondition(
            "toggle_flips_sign",
            "Toggle-sign adds or strips the leading '-'",
            _live(lambda b, k, a: (
                b.display in (INITIAL_DISPLAY, "")
                or a.display == (
                    b.display[1:] if b.display.startswith("-")
                    else "-" + b.display
                )
            )),
        ),
    ]

    # ------------------------------------------------------------ percent
    percent_posts = [
        Postcondition(
            "percent_divides_by_hundred",
            "Percent shows buffer / 100, or errors on an unparsable buffer",
            _live(lambda b, k, a: (
                a.is_error if expected_percent(b.display) is None
                else a.display == expected_percent(b.display)
            )),
        ),
    ]

    keys = {
        KeyKind.DIGIT: KeySpec(KeyKind.DIGIT, entry_posts),
        KeyKind.POINT: KeySpec(KeyKind.POINT, entry_posts),
        KeyKind.OPERATOR: KeySpec(KeyKind.OPERATOR, operator_posts),
        KeyKind.EQUALS: KeySpec(KeyKind.EQUALS, equals_posts),
        KeyKind.CLEAR_ALL: KeySpec(KeyKind.CLEAR_ALL, clear_all_posts),
        KeyKind.CLEAR_ENTRY: KeySpec(KeyKind.CLEAR_ENTRY, clear_entry_posts),
        KeyKind.TOGGLE_SIGN: KeySpec(KeyKind.TOGGLE_SIGN, toggle_posts),
        KeyKind.PERCENT: KeySpec(KeyKind.PERCENT, percent_posts),
    }

    # -------------------------------------------------------------- branches
    branches = [
        BranchSpec("ERR-IGNORE", "Key ignored in the error phase",
                   "phase == ERROR and key != AC", "handle_input"),
        BranchSpec("ERR-RECOVER", "Clear-all leaves the error phase",
                   "phase == ERROR and key == AC", "handle_input"),
        BranchSpec("ENTRY-FULL", "Entry key rejected on a full buffer",
                   f"len(display) >= {MAX_DISPLAY_LENGTH}", "entry"),
        BranchSpec("ENTRY-DUP-POINT", "Second decimal point rejected",
                   "key == '.' and '.' in display", "entry"),
        BranchSpec("ENTRY-REPLACE", "Untouched '0' replaced by the key",
                   "display == '0'", "entry"),
        BranchSpec("ENTRY-APPEND", "Key appended to the buffer",
                   "display != '0'", "entry"),
        BranchSpec("OP-NO-OPERAND", "Operator ignored without a first operand",
                   "first_operand == ''", "operator"),
        BranchSpec("OP-ACCEPT", "Operator starts the second operand",
                   "phase == ENTERING_FIRST and first_operand != ''", "operator"),
        BranchSpec("OP-REPLACE", "Pending operator overwritten",
                   "phase == ENTERING_SECOND", "operator"),
        BranchSpec("EQ-INCOMPLETE", "Equals ignored without both operands",
                   "operator is None or an operand is ''", "equals"),
        BranchSpec("EQ-BAD-OPERAND", "Operand does not parse",
                   "parse_operand raises", "equals"),
        BranchSpec("EQ-DIV-ZERO", "Division by zero",
                   "operator == '/' and second == 0", "equals"),
        BranchSpec("EQ-NONFINITE", "Result overflows to a non-finite value",
                   "not isfinite(result)", "equals"),
        BranchSpec("EQ-OK", "Result shown and kept as first operand",
                   "otherwise", "equals"),
        BranchSpec("CLEAR-ALL", "Every field reset",
                   "key == AC", "clear_all"),
        BranchSpec("CE-TRIM", "Last character removed",
                   "display[:-1] not in ('', '-')", "clear_entry"),
        BranchSpec("CE-RESET", "Buffer emptied, back to '0'",
                   "display[:-1] in ('', '-')", "clear_entry"),
        BranchSpec("SIGN-NOOP", "Nothing to negate",
                   "display in ('0', '')", "toggle_sign"),
        BranchSpec("SIGN-ADD", "Leading '-' added",
                   "not display.startswith('-')", "toggle_sign"),
        BranchSpec("SIGN-STRIP", "Leading '-' removed",
                   "display.startswith('-')", "toggle_sign"),
        BranchSpec("PCT-BAD-BUFFER", "Buffer does not parse",
                   "parse_operand raises", "percent"),
        BranchSpec("PCT-OK", "Buffer divided by 100",
                   "otherwise", "percent"),
    ]

    return EvaluatorContract(
        rules=STATE_RULES,
        keys=keys,
        global_postconditions=global_posts,
        branches=branches,
    )
