"""Level-1 causal link extraction.

The kernel is a pure function of the transcript, eligibility mask and
`GraphParams`:

1. **Yes/no bundles** (`bundle_yes_no`): a DM yes/no prompt and the
   player answer that follows become one request cause at the answer line.
   Both lines are consumed and skipped by steps 2 to 4.
2. **Causes**: every eligible line the cause classifier matches, from any
   speaker.
3. **Pattern effects**: every eligible line the effect classifier matches.
   These lines are claimed.
4. **DM proximity effects**: every eligible, unclaimed DM line that follows
   a cause by at most `dm_proximity` lines becomes a low-mass
   `dm_statement` effect. The claimed set from step 3 is passed in and the
   extended set passed back out.
5. **Scoring**: candidate edges inside the `max_back` window, top-K per
   effect, then backward reweighting (see `causalgraph.scoring`).
6. **Emission**: one claimed level-1 link per retained edge, then unclaimed
   singletons for causes and effects no edge retained.
7. **Mass boost** (`ambient_mass_boost`): every node gains a damped share
   of the mass of nearby claimed links.
"""

from typing import Optional, Sequence

from pydantic import BaseModel

from causalgraph.actors import attribute_actor, build_dm_name_set, detect_dm_speaker, is_dm_speaker
from causalgraph.bundles import YesNoBundle, bundle_yes_no
from causalgraph.detect import detect_cause, detect_effect
from causalgraph.eligibility import is_line_eligible, validate_mask
from causalgraph.errors import InputShapeError
from causalgraph.ids import cause_singleton_id, effect_singleton_id, link_id
from causalgraph.logging import setup_logging
from causalgraph.scoring import (
    CandidateEdge,
    ScoredLine,
    boost_link_masses,
    reweight_backward,
    score_candidates,
    select_top_k,
)
from causalgraph.text import CorpusStats
from causalschema.detection import CauseType, EffectType, RollType
from causalschema.eligibility import EligibilityMask
from causalschema.link import CausalLink, NodeKind
from causalschema.params import GraphParams
from causalschema.transcript import Actor, TranscriptLine

KERNEL_VERSION = "ce-topk-v1"
BUNDLE_MASS = 0.85

logger = setup_logging()


class CauseCandidate(ScoredLine):
    actor: str
    cause_type: CauseType
    mass: float
    rule: Optional[str] = None


class EffectCandidate(ScoredLine):
    actor: str
    effect_type: EffectType
    mass: float
    roll_type: Optional[RollType] = None
    roll_subtype: Optional[str] = None
    source: str = "pattern"


class KernelResult(BaseModel):
    """Everything the kernel produced for one session.

    Attributes:
        session_id: Session extracted.
        links: Level-1 links followed by cause and effect singletons.
        causes: Detected causes in line order.
        effects: Detected effects (pattern and DM proximity) in line order.
        candidates: Every scored edge before top-K selection.
        edges: Retained edges after reweighting.
        unclaimed_effects: Effects no retained edge points to.
        dm_names: Lowercase author names treated as the DM.
        bundles: Yes/no bundles that became causes.
    """

    model_config = {"frozen": True}

    session_id: str
    links: tuple[CausalLink, ...]
    causes: tuple[CauseCandidate, ...] = ()
    effects: tuple[EffectCandidate, ...] = ()
    candidates: tuple[CandidateEdge, ...] = ()
    edges: tuple[CandidateEdge, ...] = ()
    unclaimed_effects: tuple[EffectCandidate, ...] = ()
    dm_names: frozenset[str] = frozenset()
    bundles: tuple[YesNoBundle, ...] = ()


def _detect_causes(
    transcript: Sequence[TranscriptLine],
    mask: EligibilityMask,
    actors: Sequence[Actor],
    consumed: frozenset[int] = frozenset(),
) -> list[CauseCandidate]:
    causes: list[CauseCandidate] = []
    for line in transcript:
        if line.line_index in consumed or not is_line_eligible(mask, line.line_index):
            continue
        detection = detect_cause(line.content)
        if not detection.is_match:
            continue
        causes.append(
            CauseCandidate(
                index=line.line_index,
                text=line.content,
                actor=attribute_actor(line.author_name, actors),
                cause_type=detection.cause_type,
                mass=detection.mass,
                rule=detection.rule,
            )
        )
    return causes


def _bundled_causes(
    session_id: str,
    transcript: Sequence[TranscriptLine],
    mask: EligibilityMask,
    actors: Sequence[Actor],
    dm_names: frozenset[str],
) -> tuple[list[YesNoBundle], list[CauseCandidate], frozenset[int]]:
    eligible = [
        b
        for b in bundle_yes_no(session_id, transcript, actors, dm_names).bundles
        if is_line_eligible(mask, b.prompt_index) and is_line_eligible(mask, b.answer_index)
    ]
    causes = [
        CauseCandidate(
            index=b.answer_index,
            text=b.text,
            actor=b.actor_id,
            cause_type=CauseType.REQUEST,
            mass=BUNDLE_MASS,
            rule="yes_no_bundle",
        )
        for b in eligible
    ]
    consumed = frozenset(i for b in eligible for i in (b.prompt_index, b.answer_index))
    return eligible, causes, consumed


def _detect_pattern_effects(
    transcript: Sequence[TranscriptLine],
    mask: EligibilityMask,
    actors: Sequence[Actor],
    claimed: frozenset[int],
) -> tuple[list[EffectCandidate], frozenset[int]]:
    effects: list[EffectCandidate] = []
    for line in transcript:
        if line.line_index in claimed or not is_line_eligible(mask, line.line_index):
            continue
        detection = detect_effect(line.content)
        if not detection.is_match:
            continue
        effects.append(
            EffectCandidate(
                index=line.line_index,
                text=line.content,
                actor=attribute_actor(line.author_name, actors),
                effect_type=detection.effect_type,
                mass=detection.mass,
                roll_type=detection.roll_type,
                roll_subtype=detection.roll_subtype,
            )
        )
    return effects, claimed | {e.index for e in effects}


def _detect_dm_proximity_effects(
    transcript: Sequence[TranscriptLine],
    mask: EligibilityMask,
    actors: Sequence[Actor],
    causes: Sequence[CauseCandidate],
    dm_names: frozenset[str],
    params: GraphParams,
    claimed: frozenset[int],
) -> tuple[list[EffectCandidate], frozenset[int]]:
    cause_indexes = {c.index for c in causes}
    effects: list[EffectCandidate] = []
    for line in transcript:
        j = line.line_index
        if j in claimed or not is_line_eligible(mask, j):
            continue
        if not is_dm_speaker(line.author_name, dm_names):
            continue
        if not any((j - d) in cause_indexes for d in range(1, params.dm_proximity + 1)):
            continue
        effects.append(
            EffectCandidate(
                index=j,
                text=line.content,
                actor=attribute_actor(line.author_name, actors),
                effect_type=EffectType.DM_STATEMENT,
                mass=params.dm_statement_mass,
                source="dm_proximity",
            )
        )
    return effects, claimed | {e.index for e in effects}


def _link_from_edge(session_id: str, edge: CandidateEdge, cause: CauseCandidate, effect: EffectCandidate) -> CausalLink:
    return CausalLink(
        id=link_id(session_id, edge.cause_index, edge.effect_index),
        session_id=session_id,
        actor=cause.actor,
        cause_anchor_index=edge.cause_index,
        effect_anchor_index=edge.effect_index,
        cause_text=cause.text,
        effect_text=effect.text,
        cause_type=cause.cause_type,
        effect_type=effect.effect_type,
        roll_type=effect.roll_type,
        mass=cause.mass + effect.mass,
        base_strength=edge.base_score,
        strength=edge.adjusted_score,
        strength_internal=edge.adjusted_score,
        claimed=True,
        node_kind=NodeKind.LINK,
        level=1,
        center_index=(edge.cause_index + edge.effect_index) / 2,
        span_start_index=edge.cause_index,
        span_end_index=edge.effect_index,
    )


def _cause_singleton(session_id: str, cause: CauseCandidate) -> CausalLink:
    return CausalLink(
        id=cause_singleton_id(session_id, cause.index),
        session_id=session_id,
        actor=cause.actor,
        cause_anchor_index=cause.index,
        cause_text=cause.text,
        cause_type=cause.cause_type,
        mass=cause.mass,
        node_kind=NodeKind.SINGLETON,
        center_index=float(cause.index),
        span_start_index=cause.index,
        span_end_index=cause.index,
    )


def _effect_singleton(session_id: str, effect: EffectCandidate) -> CausalLink:
    return CausalLink(
        id=effect_singleton_id(session_id, effect.index),
        session_id=session_id,
        actor=effect.actor,
        effect_anchor_index=effect.index,
        effect_text=effect.text,
        effect_type=effect.effect_type,
        roll_type=effect.roll_type,
        mass=effect.mass,
        node_kind=NodeKind.SINGLETON,
        center_index=float(effect.index),
        span_start_index=effect.index,
        span_end_index=effect.index,
    )


def extract_causal_links(
    session_id: str,
    transcript: Sequence[TranscriptLine],
    mask: EligibilityMask,
    params: Optional[GraphParams] = None,
    actors: Sequence[Actor] = (),
    dm_names: Optional[frozenset[str]] = None,
) -> KernelResult:
    """Extract level-1 causal links for one session.

    Args:
        session_id: Session being extracted; must match the mask.
        transcript: Lines in order, with `line_index` equal to position.
        mask: Eligibility mask built for this transcript.
        params: Scoring parameters; defaults to `GraphParams()`.
        actors: Participants used to attribute each link's actor.
        dm_names: Lowercase DM author names. Detected from the transcript
            when omitted.

    Returns:
        The kernel result.

    Raises:
        InputShapeError: If the mask does not describe the transcript.
    """
    params = params or GraphParams()
    if mask.session_id != session_id:
        raise InputShapeError(f"eligibility mask is for session {mask.session_id!r}, not {session_id!r}")
    validate_mask(mask, transcript)

    if dm_names is None:
        authors = list(dict.fromkeys(line.author_name for line in transcript))
        dm_names = build_dm_name_set(detect_dm_speaker(authors), params.dm_speakers)

    bundles: list[YesNoBundle] = []
    consumed: frozenset[int] = frozenset()
    bundle_causes: list[CauseCandidate] = []
    if params.bundle_yes_no:
        bundles, bundle_causes, consumed = _bundled_causes(session_id, transcript, mask, actors, dm_names)
    causes = sorted(_detect_causes(transcript, mask, actors, consumed) + bundle_causes, key=lambda c: c.index)
    pattern_effects, claimed = _detect_pattern_effects(transcript, mask, actors, consumed)
    dm_effects: list[EffectCandidate] = []
    if params.dm_fallback:
        dm_effects, claimed = _detect_dm_proximity_effects(
            transcript, mask, actors, causes, dm_names, params, claimed
        )
    effects = sorted(pattern_effects + dm_effects, key=lambda e: e.index)

    stats = None
    if params.idf_weighting:
        stats = CorpusStats.build(
            line.content for line in transcript if is_line_eligible(mask, line.line_index)
        )
    candidates = score_candidates(causes, effects, params, stats)
    retained = select_top_k(candidates, params.top_k)
    edges = reweight_backward(retained, params.beta, params.iters, params.reweight_floor)

    cause_by_index = {c.index: c for c in causes}
    effect_by_index = {e.index: e for e in effects}
    links = [
        _link_from_edge(session_id, edge, cause_by_index[edge.cause_index], effect_by_index[edge.effect_index])
        for edge in sorted(edges, key=lambda e: (e.cause_index, e.effect_index))
    ]
    linked_causes = {e.cause_index for e in edges}
    linked_effects = {e.effect_index for e in edges}
    unclaimed_effects = [e for e in effects if e.index not in linked_effects]
    links.extend(_cause_singleton(session_id, c) for c in causes if c.index not in linked_causes)
    links.extend(_effect_singleton(session_id, e) for e in unclaimed_effects)
    if params.ambient_mass_boost:
        links = boost_link_masses(links, params)

    logger.debug(
        {
            "message": "Kernel extraction complete",
            "session_id": session_id,
            "causes": len(causes),
            "pattern_effects": len(pattern_effects),
            "dm_proximity_effects": len(dm_effects),
            "yes_no_bundles": len(bundles),
            "candidates": len(candidates),
            "edges": len(edges),
            "singletons": len(links) - len(edges),
        }
    )
    return KernelResult(
        session_id=session_id,
        links=tuple(links),
        causes=tuple(causes),
        effects=tuple(effects),
        candidates=tuple(candidates),
        edges=tuple(edges),
        unclaimed_effects=tuple(unclaimed_effects),
        dm_names=dm_names,
        bundles=tuple(bundles),
    )
