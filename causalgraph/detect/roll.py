"""Roll vocabulary: initiative, attacks, damage, saving throws and skill checks."""

import re
from typing import Optional

from pydantic import BaseModel

from causalschema.detection import RollType

ABILITIES = ("strength", "dexterity", "constitution", "intelligence", "wisdom", "charisma")

_INITIATIVE_RE = re.compile(r"\binitiative\b", re.IGNORECASE)
_ATTACK_RE = re.compile(r"\b(attack roll|to hit)\b", re.IGNORECASE)
_DAMAGE_RE = re.compile(r"\broll\b.*\bdamage\b|\bdamage roll\b", re.IGNORECASE)
_SAVE_RE = re.compile(r"\b(" + "|".join(ABILITIES) + r")\s+saving throw\b", re.IGNORECASE)

SKILL_PATTERNS: tuple[tuple[RollType, re.Pattern[str]], ...] = tuple(
    (roll_type, re.compile(rf"\b{phrase}\b", re.IGNORECASE))
    for roll_type, phrase in (
        (RollType.ACROBATICS, "acrobatics"),
        (RollType.ANIMAL_HANDLING, "animal handling"),
        (RollType.ARCANA, "arcana"),
        (RollType.ATHLETICS, "athletics"),
        (RollType.DECEPTION, "deception"),
        (RollType.HISTORY, "history"),
        (RollType.INSIGHT, "insight"),
        (RollType.INTIMIDATION, "intimidation"),
        (RollType.INVESTIGATION, "investigation"),
        (RollType.MEDICINE, "medicine"),
        (RollType.NATURE, "nature"),
        (RollType.PERCEPTION, "perception"),
        (RollType.PERFORMANCE, "performance"),
        (RollType.PERSUASION, "persuasion"),
        (RollType.RELIGION, "religion"),
        (RollType.SLEIGHT_OF_HAND, "sleight of hand"),
        (RollType.STEALTH, "stealth"),
        (RollType.SURVIVAL, "survival"),
    )
)


class RollMatch(BaseModel):
    model_config = {"frozen": True}

    roll_type: RollType
    roll_subtype: Optional[str] = None


def detect_roll_type(text: str) -> Optional[RollMatch]:
    """Return the roll a line asks for, or None.

    Bare "roll" is not enough; only initiative, attack, damage, saving
    throw and skill vocabulary count.
    """
    if _INITIATIVE_RE.search(text):
        return RollMatch(roll_type=RollType.INITIATIVE)
    if _ATTACK_RE.search(text):
        return RollMatch(roll_type=RollType.ATTACK_ROLL)
    if _DAMAGE_RE.search(text):
        return RollMatch(roll_type=RollType.DAMAGE_ROLL)
    save = _SAVE_RE.search(text)
    if save:
        return RollMatch(roll_type=RollType.SAVING_THROW, roll_subtype=save.group(1).capitalize())
    for roll_type, skill_re in SKILL_PATTERNS:
        if skill_re.search(text):
            return RollMatch(roll_type=roll_type)
    return None
