"""Ordered, tagged matcher tables.

A matcher is a pure predicate over precomputed line features plus the
metadata to report when it fires. Tables are evaluated in order and the
first matcher whose predicate holds wins.
"""

import re
from typing import Callable, Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel

from causalgraph.text import count_words, strip_punctuation, word_tokens

ACTION_VERBS = frozenset(
    """
    try attempt search examine inspect look open pull push take grab move touch cast read
    listen sneak hide pick investigate attack use roll check
    """.split()
)

ROLL_OR_ACTION_KEYWORD_RE = re.compile(
    r"\b(roll|check|attack|cast|spell|investigate|inspect|search|open|unlock|sneak|hide|persuade|deceive)\b",
    re.IGNORECASE,
)


class LineFeatures(BaseModel):
    """Features of one line computed once and shared by every matcher."""

    model_config = {"frozen": True}

    text: str
    stripped: str
    word_count: int
    tokens: tuple[str, ...]
    has_keyword: bool

    @classmethod
    def of(cls, text: str) -> "LineFeatures":
        stripped = strip_punctuation(text)
        return cls(
            text=text,
            stripped=stripped,
            word_count=count_words(stripped),
            tokens=tuple(word_tokens(text)),
            has_keyword=bool(ROLL_OR_ACTION_KEYWORD_RE.search(text)),
        )

    def action_verb_within(self, max_distance: int) -> bool:
        """True if one of the first `max_distance + 1` words is an action verb."""
        return any(t in ACTION_VERBS for t in self.tokens[: max_distance + 1])


def pattern(regex: str) -> Callable[[LineFeatures], bool]:
    compiled = re.compile(regex, re.IGNORECASE)
    return lambda f: bool(compiled.search(f.text))


def any_pattern(*regexes: str) -> Callable[[LineFeatures], bool]:
    compiled = [re.compile(r, re.IGNORECASE) for r in regexes]
    return lambda f: any(c.search(f.text) for c in compiled)


T = TypeVar("T")


class Matcher(BaseModel, Generic[T]):
    """One row of a matcher table.

    Attributes:
        tag: Name reported on the detection when this matcher fires.
        label: The cause or effect type assigned on a match.
        predicate: Pure test over line features.
        mass: Mass reported when `boosted` is false.
        boosted_mass: Mass reported when `boosted` holds.
        boosted: Optional test selecting `boosted_mass`.
    """

    model_config = {"frozen": True}

    tag: str
    label: T
    predicate: Callable[[LineFeatures], bool]
    mass: float
    boosted_mass: Optional[float] = None
    boosted: Optional[Callable[[LineFeatures], bool]] = None

    def mass_for(self, features: LineFeatures) -> float:
        if self.boosted is not None and self.boosted_mass is not None and self.boosted(features):
            return self.boosted_mass
        return self.mass


def first_match(table: Sequence[Matcher[T]], features: LineFeatures) -> Optional[Matcher[T]]:
    for matcher in table:
        if matcher.predicate(features):
            return matcher
    return None
