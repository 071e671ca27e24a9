"""Cause detection: does a line express a question, request, proposal or declared action?

Precedence, first match wins:

1. Strong interrogative opener with a trailing "?", at least four words, or
   an action verb near the start. Question, 0.9 with a roll/action cue, else 0.75.
2. Request opener with an action verb within three words. Request, 0.95 / 0.85.
3. "I <action verb> ..." with at least four words. Declare, 1.0 / 0.9.
4. Weak fallbacks: any "?", "please", or a proposal opener. 0.65 / 0.45.

Lines with fewer than six alphanumeric characters are never causes.
"""

import re

from causalgraph.detect.matchers import ACTION_VERBS, LineFeatures, Matcher, any_pattern, first_match, pattern
from causalschema.detection import CauseDetection, CauseType

STRONG_QUESTION_STARTERS = (
    "can i",
    "can we",
    "do i",
    "do we",
    "is there",
    "are there",
    "what do i",
    "what do we",
    "how do i",
    "where is",
    "does it look",
    "did it look",
    "could i",
    "could we",
    "would i be able to",
    "what if i",
    "what if we",
)

MIN_CAUSE_CHARS = 6

_STRONG_QUESTION_RE = re.compile(
    r"^\s*(" + "|".join(re.escape(p) for p in STRONG_QUESTION_STARTERS) + r")\b", re.IGNORECASE
)
_TRAILING_QUESTION_RE = re.compile(r"\?\s*$")

_is_request_opener = any_pattern(
    r"^\s*(can i|can we|may i|could i|could we|would i|would i be able to)\b",
    r"^\s*(i want to|i'd like to|i would like to|i'm going to|i am going to|i kind of want to|i sorta want to)\b",
)
_is_declaration = pattern(r"^\s*i\s+(" + "|".join(sorted(ACTION_VERBS)) + r")\b")


def _strong_question(f: LineFeatures) -> bool:
    if not _STRONG_QUESTION_RE.search(f.text):
        return False
    return bool(_TRAILING_QUESTION_RE.search(f.text)) or f.word_count >= 4 or f.action_verb_within(6)


def _has_keyword(f: LineFeatures) -> bool:
    return f.has_keyword


CAUSE_MATCHERS: tuple[Matcher[CauseType], ...] = (
    Matcher[CauseType](
        tag="strong_question",
        label=CauseType.QUESTION,
        predicate=_strong_question,
        mass=0.75,
        boosted_mass=0.9,
        boosted=lambda f: f.has_keyword or f.action_verb_within(6),
    ),
    Matcher[CauseType](
        tag="request",
        label=CauseType.REQUEST,
        predicate=lambda f: _is_request_opener(f) and f.action_verb_within(3),
        mass=0.85,
        boosted_mass=0.95,
        boosted=_has_keyword,
    ),
    Matcher[CauseType](
        tag="declare",
        label=CauseType.DECLARE,
        predicate=lambda f: _is_declaration(f) and f.word_count >= 4,
        mass=0.9,
        boosted_mass=1.0,
        boosted=_has_keyword,
    ),
    Matcher[CauseType](
        tag="weak_question",
        label=CauseType.QUESTION,
        predicate=pattern(r"\?"),
        mass=0.45,
        boosted_mass=0.65,
        boosted=_has_keyword,
    ),
    Matcher[CauseType](
        tag="weak_request",
        label=CauseType.REQUEST,
        predicate=pattern(r"\bplease\b"),
        mass=0.45,
        boosted_mass=0.65,
        boosted=_has_keyword,
    ),
    Matcher[CauseType](
        tag="weak_propose",
        label=CauseType.PROPOSE,
        predicate=pattern(r"^\s*(let's|we should|we could|how about)\b"),
        mass=0.45,
        boosted_mass=0.65,
        boosted=_has_keyword,
    ),
)

NO_CAUSE = CauseDetection(is_match=False)


def detect_cause(text: str) -> CauseDetection:
    """Classify a line as a cause. Never raises; a non-match is `NO_CAUSE`."""
    features = LineFeatures.of(text)
    if len(features.stripped) < MIN_CAUSE_CHARS:
        return NO_CAUSE
    matcher = first_match(CAUSE_MATCHERS, features)
    if matcher is None:
        return NO_CAUSE
    return CauseDetection(
        is_match=True,
        cause_type=matcher.label,
        mass=matcher.mass_for(features),
        rule=matcher.tag,
    )
