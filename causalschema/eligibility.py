"""Eligibility mask model.

The mask is a parallel boolean array over transcript lines plus the list of
ranges that were excluded and why. Only eligible lines can anchor a cause
or an effect.
"""

from pydantic import BaseModel, Field

from causalschema.transcript import RegimeReason


class ExcludedRange(BaseModel):
    """An inclusive range of lines removed from analysis."""

    model_config = {"frozen": True}

    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    reason: RegimeReason


class EligibilityMask(BaseModel):
    """Per-line eligibility for one session.

    Attributes:
        session_id: Session the mask was built for.
        eligible: One flag per transcript line, in line order.
        excluded_ranges: Ranges that were marked ineligible, in input order.
    """

    model_config = {"frozen": True}

    session_id: str
    eligible: tuple[bool, ...]
    excluded_ranges: tuple[ExcludedRange, ...] = ()

    @property
    def line_count(self) -> int:
        return len(self.eligible)

    def eligible_count(self) -> int:
        return sum(1 for flag in self.eligible if flag)
