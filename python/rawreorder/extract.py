import re
from functools import lru_cache
from typing import Iterator, Optional, Pattern, Tuple

import structlog

from rawreorder.errors import InvalidRuleError
from rawreorder.models import ExtractionRule, Match

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=256)
def compile_pattern(source: str) -> Pattern[str]:
    try:
        return re.compile(source, re.IGNORECASE)
    except re.error as e:
        raise InvalidRuleError(source, str(e)) from e


def _captured_value(m: "re.Match[str]") -> Tuple[str, int]:
    """First capture group that took part in the match, else the whole match."""
    for idx in range(1, (m.re.groups or 0) + 1):
        if m.group(idx):
            return m.group(idx), m.start(idx)
    return m.group(0), m.start(0)


def _scan(stages: Tuple[Pattern[str], ...], text: str, offset: int) -> Iterator[Match]:
    pattern, rest = stages[0], stages[1:]
    for m in pattern.finditer(text):
        if not m.group(0):
            continue
        value, value_pos = _captured_value(m)
        if not value:
            continue
        if rest:
            yield from _scan(rest, value, offset + value_pos)
        else:
            yield Match(
                text=m.group(0),
                start=offset + m.start(),
                value=value,
                value_start=offset + value_pos,
            )


def iter_matches(rule: ExtractionRule, text: Optional[str]) -> Iterator[Match]:
    """
    Lazily yields every non-overlapping match of `rule` in `text`, left to right.

    Narrowing stages are applied inside the value captured by the previous stage;
    offsets always refer to the original `text`.
    """
    if not text:
        return
    stages = tuple(compile_pattern(source) for source in rule.stages)
    yield from _scan(stages, text, 0)


class MatchSet:
    """Restartable view of the matches of one rule over one text."""

    def __init__(self, rule: ExtractionRule, text: str):
        self.rule = rule
        self.text = text

    def __iter__(self) -> Iterator[Match]:
        return iter_matches(self.rule, self.text)

    def __repr__(self) -> str:
        return f"MatchSet(pattern={self.rule.pattern!r}, length={len(self.text)})"
