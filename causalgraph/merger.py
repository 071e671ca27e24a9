"""Hierarchical merging of links into composites.

Round 1 (`phase="link"`) is the kernel output. Each later round
(`phase="anneal"`) pairs top-level nodes of the same level:

- Nodes are ordered by `(center_index, id)`. Each node looks at most
  `k_local_links` nodes ahead within `merge_window` lines.
- A pair's strength is the kernel formula applied to node centers and the
  concatenated cause and effect text.
- A pair qualifies when its strength reaches
  `min_bridge + growth_resistance * ln(1 + sqrt(mass_a * mass_b))`.
- Qualifying pairs merge greedily, strongest first. A node joins at most
  one composite per round and a consumed node never returns to the top level.

A composite is one level above its children. Its mass is their sum. Its
`strength` is the bridging strength and `strength_internal` adds the
children's internal strength, so internal strength grows with level.

With `stop_when_stable`, annealing ends after the first round that forms
no composite and absorbs no context, since later rounds would see the
same top level.
"""

import math
from typing import Optional

from pydantic import BaseModel

from causalgraph.absorb import apply_absorptions, find_absorptions
from causalgraph.errors import MergeConsistencyError
from causalgraph.ids import composite_id
from causalgraph.kernel import KernelResult
from causalgraph.logging import setup_logging
from causalgraph.metrics import build_round_metrics
from causalgraph.text import hill, lexical_overlap
from causalschema.link import CausalLink, NodeKind
from causalschema.metrics import RoundMetrics, RoundPhase
from causalschema.params import HierarchyParams

logger = setup_logging()

ROUND_LABELS = {1: "kernel links", 2: "anneal pass 1", 3: "anneal pass 2"}


class MergeCandidate(BaseModel):
    model_config = {"frozen": True}

    left_id: str
    right_id: str
    distance: float
    left_center: float
    strength: float
    threshold: float


class HierarchyResult(BaseModel):
    """Merger output.

    Attributes:
        session_id: Session merged.
        nodes: Every node, kernel output first then composites in formation order.
        top_level_ids: Ids of nodes not consumed by any composite or absorption.
        rounds: Metrics for each round that ran.
    """

    model_config = {"frozen": True}

    session_id: str
    nodes: tuple[CausalLink, ...]
    top_level_ids: tuple[str, ...]
    rounds: tuple[RoundMetrics, ...]

    def node_map(self) -> dict[str, CausalLink]:
        return {n.id: n for n in self.nodes}

    def top_level(self) -> list[CausalLink]:
        by_id = self.node_map()
        return [by_id[i] for i in self.top_level_ids]

    @property
    def final_round(self) -> int:
        return self.rounds[-1].round if self.rounds else 0


def merge_threshold(mass_a: float, mass_b: float, params: HierarchyParams) -> float:
    return params.min_bridge + params.growth_resistance * math.log(1.0 + math.sqrt(max(0.0, mass_a * mass_b)))


def bridge_strength(a: CausalLink, b: CausalLink, params: HierarchyParams) -> float:
    distance = abs(b.center_index - a.center_index)
    lex = lexical_overlap(a.text(), b.text())
    return hill(distance, params.dist_tau, params.dist_p) * (1.0 + params.beta_lex * lex.score)


def find_merge_candidates(nodes: list[CausalLink], params: HierarchyParams) -> list[MergeCandidate]:
    """Score forward neighbours of each mergeable node and keep qualifying pairs.

    Returns:
        Qualifying pairs sorted in greedy order: strength, then shorter
        distance, then earlier left center, then ids.
    """
    by_level: dict[int, list[CausalLink]] = {}
    for node in nodes:
        if node.node_kind == NodeKind.SINGLETON and not params.include_singletons:
            continue
        by_level.setdefault(node.level, []).append(node)

    candidates: list[MergeCandidate] = []
    for level in sorted(by_level):
        ordered = sorted(by_level[level], key=lambda n: (n.center_index, n.id))
        for i, left in enumerate(ordered):
            for right in ordered[i + 1 : i + 1 + params.k_local_links]:
                distance = right.center_index - left.center_index
                if distance > params.merge_window:
                    break
                strength = bridge_strength(left, right, params)
                threshold = merge_threshold(left.mass, right.mass, params)
                if strength < threshold:
                    continue
                candidates.append(
                    MergeCandidate(
                        left_id=left.id,
                        right_id=right.id,
                        distance=distance,
                        left_center=left.center_index,
                        strength=strength,
                        threshold=threshold,
                    )
                )
    candidates.sort(key=lambda c: (-c.strength, c.distance, c.left_center, c.left_id, c.right_id))
    return candidates


def build_composite(
    session_id: str,
    a: CausalLink,
    b: CausalLink,
    bridge: float,
    round_no: int,
) -> CausalLink:
    left, right = sorted((a, b), key=lambda n: (n.center_index, n.id))
    level = left.level + 1
    mass = left.mass + right.mass
    start = min(left.span_start_index, right.span_start_index)
    end = max(left.span_end_index, right.span_end_index)
    if mass > 0:
        center = (left.center_index * left.mass + right.center_index * right.mass) / mass
    else:
        center = (left.center_index + right.center_index) / 2
    return CausalLink(
        id=composite_id(session_id, level, start, end, left.id, right.id),
        session_id=session_id,
        actor=left.actor or right.actor,
        cause_anchor_index=start,
        effect_anchor_index=end,
        cause_text=f"{left.cause_text} {right.cause_text}".strip(),
        effect_text=f"{left.effect_text} {right.effect_text}".strip(),
        cause_type=left.cause_type or right.cause_type,
        effect_type=right.effect_type or left.effect_type,
        mass=mass,
        strength=bridge,
        strength_internal=bridge + left.strength_internal + right.strength_internal,
        claimed=True,
        node_kind=NodeKind.COMPOSITE,
        level=level,
        members=(left.id, right.id),
        round_formed=round_no,
        center_index=center,
        span_start_index=start,
        span_end_index=end,
    )


def _absorb(arena: dict[str, CausalLink], top: list[str], params: HierarchyParams) -> tuple[list[str], int]:
    absorptions = find_absorptions([arena[i] for i in top], params)
    apply_absorptions(arena, absorptions)
    absorbed = {a.singleton_id for a in absorptions}
    return [i for i in top if i not in absorbed], len(absorptions)


def run_hierarchy(
    kernel: KernelResult,
    params: Optional[HierarchyParams] = None,
) -> HierarchyResult:
    """Run the kernel round and up to `max_round - 1` anneal rounds.

    Args:
        kernel: Level-1 output of `extract_causal_links`.
        params: Merge parameters; defaults to `HierarchyParams()`.

    Returns:
        All nodes, the top-level ids and per-round metrics.

    Raises:
        MergeConsistencyError: If a node would be merged twice, or the
            finished node set breaks composite structure.
    """
    params = params or HierarchyParams()
    session_id = kernel.session_id
    arena: dict[str, CausalLink] = {}
    for link in kernel.links:
        if link.id in arena:
            raise MergeConsistencyError(f"duplicate node id {link.id}")
        arena[link.id] = link
    top = list(arena)
    consumed: set[str] = set()

    extra: dict[str, int] = {}
    if params.absorb_context:
        top, extra["absorptions"] = _absorb(arena, top, params)
    rounds = [build_round_metrics(1, RoundPhase.LINK, ROUND_LABELS[1], [arena[i] for i in top], extra)]

    for round_no in range(2, params.max_round + 1):
        candidates = find_merge_candidates([arena[i] for i in top], params)
        used: set[str] = set()
        formed: list[CausalLink] = []
        for candidate in candidates:
            if candidate.left_id in used or candidate.right_id in used:
                continue
            if candidate.left_id in consumed or candidate.right_id in consumed:
                raise MergeConsistencyError(
                    f"round {round_no} tried to reuse consumed node {candidate.left_id} or {candidate.right_id}"
                )
            left, right = arena[candidate.left_id], arena[candidate.right_id]
            composite = build_composite(session_id, left, right, candidate.strength, round_no)
            if composite.id in arena:
                raise MergeConsistencyError(f"composite {composite.id} already exists")
            for child in (left, right):
                if not child.claimed:
                    arena[child.id] = child.model_copy(update={"claimed": True})
            arena[composite.id] = composite
            used.update((candidate.left_id, candidate.right_id))
            formed.append(composite)

        consumed |= used
        top = [i for i in top if i not in used] + [c.id for c in formed]
        mergeable = sum(
            1 for i in top if arena[i].node_kind != NodeKind.SINGLETON or params.include_singletons
        )
        extra = {
            "pairs_formed": len(formed),
            "candidates": len(candidates),
            "unpaired": mergeable - len(formed),
        }
        if params.absorb_context:
            top, extra["absorptions"] = _absorb(arena, top, params)
        rounds.append(
            build_round_metrics(round_no, RoundPhase.ANNEAL, ROUND_LABELS[round_no], [arena[i] for i in top], extra)
        )
        logger.debug({"message": "Anneal round complete", "session_id": session_id, "round": round_no, **extra})
        if params.stop_when_stable and not formed and not extra.get("absorptions"):
            break

    nodes = tuple(arena.values())
    validate_hierarchy(nodes)
    return HierarchyResult(
        session_id=session_id,
        nodes=nodes,
        top_level_ids=tuple(top),
        rounds=tuple(rounds),
    )


def validate_hierarchy(nodes: list[CausalLink] | tuple[CausalLink, ...]) -> None:
    """Check composite structure over a complete node set.

    Every composite must have two members that exist and sit at a strictly
    lower level, and no node may be a member of two composites.

    Raises:
        MergeConsistencyError: On the first violation found.
    """
    by_id = {n.id: n for n in nodes}
    parent_of: dict[str, str] = {}
    for node in nodes:
        if node.level < 2:
            continue
        if node.members is None or len(node.members) != 2:
            raise MergeConsistencyError(f"composite {node.id} must have exactly two members")
        for member_id in node.members:
            child = by_id.get(member_id)
            if child is None:
                raise MergeConsistencyError(f"composite {node.id} references missing member {member_id}")
            if child.level >= node.level:
                raise MergeConsistencyError(
                    f"composite {node.id} (level {node.level}) has member {member_id} at level {child.level}"
                )
            if member_id in parent_of:
                raise MergeConsistencyError(
                    f"member {member_id} is shared by composites {parent_of[member_id]} and {node.id}"
                )
            parent_of[member_id] = node.id
