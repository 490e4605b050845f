"""Counterexample search -- discovers gaps in the evaluator or its tests.

This module runs independently of the test suite.  It drives fresh
evaluators with random key sequences and checks, after every key:

1. State rule violations: a reachable state breaks an invariant.
2. Postcondition violations: the (before, key, after) triple breaks a
   postcondition of that key's kind.
3. Unexpected errors: ``handle_input`` raised instead of moving to the
   error phase.

Run directly::

    python -m validation.counterexample_search --trials 2000 --seed 7
"""
from __future__ import annotations

import random
import sys
from argparse import ArgumentParser
from dataclasses import dataclass, field

from contract import EvaluatorContract, build_contract, validate_state
from evaluator import Evaluator
from models import DIGIT_KEYS, Key


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class Counterexample:
    category: str
    keys: tuple[str, ...]
    expected: str
    actual: str
    description: str


@dataclass
class SearchReport:
    counterexamples: list[Counterexample] = field(default_factory=list)
    checks_run: int = 0
    sequences_run: int = 0

    @property
    def passed(self) -> bool:
        return len(self.counterexamples) == 0

    def summary(self) -> str:
        lines = [
            "Counterexample Search Report",
            "=" * 40,
            f"Sequences: {self.sequences_run}",
            f"Total checks: {self.checks_run}",
            f"Counterexamples found: {len(self.counterexamples)}",
        ]
        if self.counterexamples:
            lines.append("")
            for i, cx in enumerate(self.counterexamples, 1):
                lines.append(f"  [{i}] {cx.category}")
                lines.append(f"      Keys:     {' '.join(cx.keys)}")
                lines.append(f"      Expected: {cx.expected}")
                lines.append(f"      Actual:   {cx.actual}")
                lines.append(f"      {cx.description}")
        else:
            lines.append("\nNo counterexamples found -- all checks passed.")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Key sequence generation
# ---------------------------------------------------------------------------

# Digits dominate real input; weight them so sequences reach full
# buffers and multi-digit operands.
_WEIGHTS: dict[Key, int] = {k: 6 for k in DIGIT_KEYS}
_WEIGHTS.update({
    Key.POINT: 3,
    Key.ADD: 3,
    Key.SUBTRACT: 3,
    Key.MULTIPLY: 3,
    Key.DIVIDE: 3,
    Key.EQUALS: 4,
    Key.CLEAR_ALL: 1,
    Key.CLEAR_ENTRY: 2,
    Key.TOGGLE_SIGN: 2,
    Key.PERCENT: 2,
})


def random_sequence(rng: random.Random, length: int) -> list[Key]:
    keys = list(_WEIGHTS)
    weights = [_WEIGHTS[k] for k in keys]
    return rng.choices(keys, weights=weights, k=length)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

def check_sequence(
    keys: list[Key],
    contract: EvaluatorContract,
) -> tuple[list[Counterexample], int]:
    """Replay one key sequence on a fresh evaluator, checking every step."""
    cxs: list[Counterexample] = []
    checks = 0
    evaluator = Evaluator()
    before = evaluator.state

    for i, key in enumerate(keys):
        prefix = tuple(k.value for k in keys[: i + 1])
        try:
            after = evaluator.handle_input(key)
        except Exception as e:
            cxs.append(Counterexample(
                category="unexpected_error",
                keys=prefix,
                expected="no exception",
                actual=f"{type(e).__name__}: {e}",
                description="handle_input raised instead of entering the error phase",
            ))
            return cxs, checks + 1

        report = validate_state(after)
        checks += 1
        for failure in report.failures:
            cxs.append(Counterexample(
                category="rule_violation",
                keys=prefix,
                expected=failure.description,
                actual=after.model_dump_json(),
                description=f"Rule '{failure.rule_id}' violated",
            ))

        for post in contract.postconditions_for(key):
            checks += 1
            if not post.check(before, key, after):
                cxs.append(Counterexample(
                    category="postcondition_violation",
                    keys=prefix,
                    expected=post.description,
                    actual=f"{before.display!r} -> {after.display!r}",
                    description=f"Postcondition '{post.name}' violated",
                ))
        before = after

    return cxs, checks


def run_search(
    trials: int = 500,
    length: int = 30,
    seed: int | None = 0,
    contract: EvaluatorContract | None = None,
) -> SearchReport:
    """Run ``trials`` random sequences of ``length`` keys."""
    contract = contract or build_contract()
    rng = random.Random(seed)
    report = SearchReport()

    for _ in range(trials):
        cxs, checks = check_sequence(random_sequence(rng, length), contract)
        report.counterexamples.extend(cxs)
        report.checks_run += checks
        report.sequences_run += 1

    return report


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser = ArgumentParser(description="Search key sequences for contract violations")
    parser.add_argument("--trials", type=int, default=500)
    parser.add_argument("--length", type=int, default=30)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args(argv)

    report = run_search(trials=args.trials, length=args.length, seed=args.seed)
    print(report.summary())
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
