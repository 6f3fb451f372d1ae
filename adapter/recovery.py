"""
Result Recovery

Ordered chain of parse strategies that pull a structure out of noisy
backend text.

ORDER:
======
1. direct         - the whole text is JSON
2. braced_block   - outermost {...} span
3. trailing_comma - braced span (or whole text) with trailing commas removed
4. fenced_block   - contents of a ``` fenced code block

Each strategy returns a ParseOutcome; nothing raises. The first success wins.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple
import json
import re

BRACED_BLOCK = re.compile(r"\{[\s\S]*\}")
TRAILING_COMMA = re.compile(r",(\s*[}\]])")
FENCED_BLOCK = re.compile(r"```(?:[A-Za-z0-9_-]+)?\s*\n?([\s\S]*?)```")


@dataclass(frozen=True)
class ParseOutcome:
    """Tagged success/failure of one parse strategy."""
    ok: bool
    strategy: str
    value: Any = None
    error: Optional[str] = None

    @staticmethod
    def success(strategy: str, value: Any) -> 'ParseOutcome':
        return ParseOutcome(ok=True, strategy=strategy, value=value)

    @staticmethod
    def failure(strategy: str, error: str) -> 'ParseOutcome':
        return ParseOutcome(ok=False, strategy=strategy, error=error)


def _loads(strategy: str, text: str) -> ParseOutcome:
    try:
        return ParseOutcome.success(strategy, json.loads(text))
    except (ValueError, RecursionError) as e:
        return ParseOutcome.failure(strategy, str(e))


def parse_direct(text: str) -> ParseOutcome:
    return _loads("direct", text.strip())


def parse_braced_block(text: str) -> ParseOutcome:
    match = BRACED_BLOCK.search(text)
    if match is None:
        return ParseOutcome.failure("braced_block", "no braced block")
    return _loads("braced_block", match.group(0))


def parse_trailing_comma(text: str) -> ParseOutcome:
    match = BRACED_BLOCK.search(text)
    candidate = match.group(0) if match else text.strip()
    repaired = TRAILING_COMMA.sub(r"\1", candidate)
    if repaired == candidate:
        return ParseOutcome.failure("trailing_comma", "nothing to repair")
    return _loads("trailing_comma", repaired)


def parse_fenced_block(text: str) -> ParseOutcome:
    match = FENCED_BLOCK.search(text)
    if match is None:
        return ParseOutcome.failure("fenced_block", "no fenced block")
    block = match.group(1).strip()
    outcome = _loads("fenced_block", block)
    if not outcome.ok:
        repaired = TRAILING_COMMA.sub(r"\1", block)
        if repaired != block:
            outcome = _loads("fenced_block", repaired)
    return outcome


STRATEGIES: Tuple[Callable[[str], ParseOutcome], ...] = (
    parse_direct,
    parse_braced_block,
    parse_trailing_comma,
    parse_fenced_block,
)


def recover_structure(text: str) -> ParseOutcome:
    """Try each strategy in order; return the first success or a combined failure."""
    errors: List[str] = []
    for strategy in STRATEGIES:
        outcome = strategy(text)
        if outcome.ok:
            return outcome
        errors.append(f"{outcome.strategy}: {outcome.error}")
    return ParseOutcome.failure("none", "; ".join(errors))
