"""Effect detection: does a line resolve something a cause set in motion?

Precedence, first match wins: roll vocabulary (1.0, with roll type),
information reveal (0.7), deterministic outcome (0.85), commitment (0.8).
Short yes/no answers count as information.
"""

from causalgraph.detect.matchers import LineFeatures, Matcher, any_pattern, first_match
from causalgraph.detect.roll import detect_roll_type
from causalschema.detection import EffectDetection, EffectType

EFFECT_MATCHERS: tuple[Matcher[EffectType], ...] = (
    Matcher[EffectType](
        tag="information",
        label=EffectType.INFORMATION,
        predicate=any_pattern(
            r"\byou (see|notice|find|learn|realize|spot|smell|hear|feel|remember|recognize|discover)\b",
            r"\b(it seems|it looks like|it appears)\b",
            r"^\s*(yes|no|not really|you don't|you do not|you can't|you cannot|you're able to)\b",
            r"\byou can (see|do|try|attempt|make|roll)\b",
        ),
        mass=0.7,
    ),
    Matcher[EffectType](
        tag="deterministic",
        label=EffectType.DETERMINISTIC,
        predicate=any_pattern(
            r"^\s*you\s+(open|move|pull|push|unlock|enter|walk|pick up|lift)\b",
            r"\byou (succeed|fail|manage|push|force|open|break)\b",
            r"\bthe door (opens|breaks|gives way)\b",
            r"\bit (works|fails)\b",
            r"\b(it won't budge|it doesn't budge|it is stuck|it is blocked)\b",
        ),
        mass=0.85,
    ),
    Matcher[EffectType](
        tag="commitment",
        label=EffectType.COMMITMENT,
        predicate=any_pattern(r"\byou (agree|promise|commit|decide)\b", r"\bwe will\b"),
        mass=0.8,
    ),
)

NO_EFFECT = EffectDetection(is_match=False, effect_type=EffectType.OTHER)


def detect_effect(text: str) -> EffectDetection:
    """Classify a line as an effect. Never raises; a non-match is `NO_EFFECT`."""
    roll = detect_roll_type(text)
    if roll is not None:
        return EffectDetection(
            is_match=True,
            effect_type=EffectType.ROLL,
            mass=1.0,
            roll_type=roll.roll_type,
            roll_subtype=roll.roll_subtype,
            rule="roll",
        )
    features = LineFeatures.of(text)
    matcher = first_match(EFFECT_MATCHERS, features)
    if matcher is None:
        return NO_EFFECT
    return EffectDetection(
        is_match=True,
        effect_type=matcher.label,
        mass=matcher.mass_for(features),
        rule=matcher.tag,
    )
