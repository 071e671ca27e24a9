"""Pattern-table classifiers for causes, effects and roll types."""

from causalgraph.detect.cause import CAUSE_MATCHERS, NO_CAUSE, detect_cause
from causalgraph.detect.effect import EFFECT_MATCHERS, NO_EFFECT, detect_effect
from causalgraph.detect.matchers import LineFeatures, Matcher, first_match
from causalgraph.detect.roll import RollMatch, detect_roll_type

__all__ = [
    "CAUSE_MATCHERS",
    "EFFECT_MATCHERS",
    "LineFeatures",
    "Matcher",
    "NO_CAUSE",
    "NO_EFFECT",
    "RollMatch",
    "detect_cause",
    "detect_effect",
    "detect_roll_type",
    "first_match",
]
