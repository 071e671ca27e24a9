"""Classifier result types.

Detections are derived per line and never persisted. A detection with
`is_match=False` is a legitimate "nothing here" answer, not an error.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class CauseType(str, Enum):
    QUESTION = "question"
    REQUEST = "request"
    PROPOSE = "propose"
    DECLARE = "declare"


class EffectType(str, Enum):
    ROLL = "roll"
    INFORMATION = "information"
    DETERMINISTIC = "deterministic"
    COMMITMENT = "commitment"
    DM_STATEMENT = "dm_statement"
    OTHER = "other"


class RollType(str, Enum):
    """Dice roll categories recognized in effect lines."""

    ACROBATICS = "Acrobatics"
    ANIMAL_HANDLING = "AnimalHandling"
    ARCANA = "Arcana"
    ATHLETICS = "Athletics"
    DECEPTION = "Deception"
    HISTORY = "History"
    INSIGHT = "Insight"
    INTIMIDATION = "Intimidation"
    INVESTIGATION = "Investigation"
    MEDICINE = "Medicine"
    NATURE = "Nature"
    PERCEPTION = "Perception"
    PERFORMANCE = "Performance"
    PERSUASION = "Persuasion"
    RELIGION = "Religion"
    SLEIGHT_OF_HAND = "SleightOfHand"
    STEALTH = "Stealth"
    SURVIVAL = "Survival"
    ATTACK_ROLL = "AttackRoll"
    SAVING_THROW = "SavingThrow"
    DAMAGE_ROLL = "DamageRoll"
    INITIATIVE = "Initiative"


class CauseDetection(BaseModel):
    """Result of classifying a line as a potential cause."""

    model_config = {"frozen": True}

    is_match: bool
    cause_type: Optional[CauseType] = None
    mass: float = Field(default=0.0, ge=0.0, le=1.0)
    rule: Optional[str] = Field(default=None, description="Tag of the matcher that fired.")


class EffectDetection(BaseModel):
    """Result of classifying a line as a potential effect."""

    model_config = {"frozen": True}

    is_match: bool
    effect_type: Optional[EffectType] = None
    mass: float = Field(default=0.0, ge=0.0, le=1.0)
    roll_type: Optional[RollType] = None
    roll_subtype: Optional[str] = None
    rule: Optional[str] = None
