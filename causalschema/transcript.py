"""Transcript input models for causal extraction.

This module defines the read-only inputs consumed by the engine:

- **TranscriptLine**: One utterance in a session, addressed by its 0-based
  ordinal. Line order is the ground truth for every downstream span.
- **Actor**: A participant with a canonical name and aliases, used to
  attribute links to the speaking character or player.
- **RegimeSpan**: An inclusive `[start, end]` range of lines tagged as
  out-of-character or combat, produced by an upstream regime classifier.

All models are frozen. The engine never mutates a transcript; the
eligibility mask is built fresh for every run.
"""

from enum import Enum

from pydantic import BaseModel, Field


class RegimeReason(str, Enum):
    """Why a span of transcript lines is excluded from causal analysis."""

    OOC_HARD = "ooc_hard"
    """Clearly out-of-character talk (rules lookups, scheduling). Never reconsidered."""

    OOC_SOFT = "ooc_soft"
    """Probably out-of-character. Callers may re-include these lines."""

    COMBAT = "combat"
    """Turn-by-turn combat. Never reconsidered."""


class TranscriptLine(BaseModel):
    """A single line of a session transcript.

    Attributes:
        line_index: Stable 0-based position within the session.
        author_name: Display name of the speaker as captured by the transcript provider.
        content: Normalized text of the utterance.
        timestamp_ms: Capture time in milliseconds since the epoch.
    """

    model_config = {"frozen": True}

    line_index: int = Field(ge=0, description="0-based ordinal of the line within its session.")
    author_name: str = Field(description="Speaker display name.")
    content: str = Field(description="Normalized utterance text.")
    timestamp_ms: int = Field(default=0, ge=0, description="Capture timestamp in milliseconds.")


class Actor(BaseModel):
    """A session participant that links can be attributed to."""

    model_config = {"frozen": True}

    actor_id: str = Field(description="Stable participant identifier.")
    canonical_name: str = Field(description="Primary name of the participant.")
    aliases: tuple[str, ...] = Field(default=(), description="Alternative names the participant speaks under.")

    def names(self) -> tuple[str, ...]:
        return (self.canonical_name, *self.aliases)


class RegimeSpan(BaseModel):
    """An inclusive range of transcript lines excluded for a single reason.

    Bounds are checked against the transcript by the mask builder, which
    raises on malformed spans instead of clamping them.
    """

    model_config = {"frozen": True}

    start_index: int
    end_index: int
    reason: RegimeReason
