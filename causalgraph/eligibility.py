"""Eligibility mask builder and lookup helpers.

The mask is built once per run, before any detection. Hard out-of-character
and combat spans are never re-included; soft out-of-character spans can be
re-included by passing `include_ooc_soft=True`. That flag is the only way
a mask changes after spans are applied.
"""

from typing import Sequence

from causalgraph.errors import InputShapeError
from causalgraph.logging import setup_logging
from causalschema.eligibility import EligibilityMask, ExcludedRange
from causalschema.transcript import RegimeReason, RegimeSpan, TranscriptLine

logger = setup_logging()

_NON_OVERRIDABLE = (RegimeReason.OOC_HARD, RegimeReason.COMBAT)


def _check_span(span: RegimeSpan, line_count: int) -> None:
    if span.start_index < 0 or span.end_index < 0:
        raise InputShapeError(f"regime span has a negative index: {span.start_index}-{span.end_index}")
    if span.start_index > span.end_index:
        raise InputShapeError(f"regime span starts after it ends: {span.start_index}-{span.end_index}")
    if span.end_index >= line_count:
        raise InputShapeError(
            f"regime span {span.start_index}-{span.end_index} exceeds transcript of {line_count} lines"
        )


def build_eligibility_mask(
    session_id: str,
    transcript: Sequence[TranscriptLine],
    spans: Sequence[RegimeSpan],
    include_ooc_soft: bool = False,
) -> EligibilityMask:
    """Mark transcript lines covered by regime spans as ineligible.

    Args:
        session_id: Session the transcript belongs to.
        transcript: Lines in order.
        spans: Inclusive regime spans over the same indexing.
        include_ooc_soft: Re-include lines excluded only by `ooc_soft` spans
            and drop those spans from the excluded ranges.

    Returns:
        The eligibility mask.

    Raises:
        InputShapeError: If a span is negative, inverted or out of range.
    """
    line_count = len(transcript)
    for span in spans:
        _check_span(span, line_count)

    eligible = [True] * line_count
    hard = [False] * line_count
    ranges: list[ExcludedRange] = []
    for span in spans:
        for i in range(span.start_index, span.end_index + 1):
            eligible[i] = False
            if span.reason in _NON_OVERRIDABLE:
                hard[i] = True
        ranges.append(ExcludedRange(start_index=span.start_index, end_index=span.end_index, reason=span.reason))

    if include_ooc_soft:
        for span in spans:
            if span.reason != RegimeReason.OOC_SOFT:
                continue
            for i in range(span.start_index, span.end_index + 1):
                if not hard[i]:
                    eligible[i] = True
        ranges = [r for r in ranges if r.reason != RegimeReason.OOC_SOFT]

    mask = EligibilityMask(session_id=session_id, eligible=tuple(eligible), excluded_ranges=tuple(ranges))
    logger.debug(
        {
            "message": "Built eligibility mask",
            "session_id": session_id,
            "lines": line_count,
            "eligible": mask.eligible_count(),
            "excluded_ranges": len(ranges),
            "include_ooc_soft": include_ooc_soft,
        }
    )
    return mask


def validate_mask(mask: EligibilityMask, transcript: Sequence[TranscriptLine]) -> None:
    """Fail fast when a mask and transcript do not describe the same lines.

    Raises:
        InputShapeError: On length mismatch or a line whose index is not its position.
    """
    if mask.line_count != len(transcript):
        raise InputShapeError(
            f"eligibility mask covers {mask.line_count} lines but transcript has {len(transcript)}"
        )
    for position, line in enumerate(transcript):
        if line.line_index != position:
            raise InputShapeError(f"transcript line at position {position} has line_index {line.line_index}")


def is_line_eligible(mask: EligibilityMask, line_index: int) -> bool:
    if line_index < 0 or line_index >= mask.line_count:
        return False
    return mask.eligible[line_index]


def exclusion_reasons(mask: EligibilityMask, line_index: int) -> list[RegimeReason]:
    """Reasons of every excluded range covering a line, in range order."""
    return [r.reason for r in mask.excluded_ranges if r.start_index <= line_index <= r.end_index]


def find_next_eligible_line(mask: EligibilityMask, start_index: int, max_lines: int = 10) -> int | None:
    """First eligible line after `start_index`, looking at most `max_lines` ahead."""
    stop = min(mask.line_count, start_index + max_lines + 1)
    for i in range(start_index + 1, stop):
        if mask.eligible[i]:
            return i
    return None


def count_consecutive_eligible(mask: EligibilityMask, start_index: int) -> int:
    """Length of the run of eligible lines beginning at `start_index`."""
    count = 0
    for i in range(max(0, start_index), mask.line_count):
        if not mask.eligible[i]:
            break
        count += 1
    return count
