"""Candidate edge scoring, top-K selection and backward reweighting.

An edge from the cause at line `i` to the effect at line `j` (with
`0 < j - i <= max_back`) scores

    hill(j - i, dist_tau, dist_p) * (1 + beta_lex * lexical_overlap)

Only the `top_k` best incoming edges of each effect survive. Backward
reweighting then runs `iters` rounds per effect: the strongest edge keeps
its weight and every other edge is scaled by
`max(reweight_floor, 1 - beta * gap / top)`, where `gap` is its distance
below the strongest edge. The scaling preserves order, so the strongest
edge stays strongest and further rounds never change it.

Optionally, `boost_link_masses` lets nearby claimed links lend each other
mass, so dense stretches of play weigh more in the merger.
"""

from bisect import bisect_left, bisect_right
from collections import defaultdict
from typing import Optional, Sequence

import numpy as np
from pydantic import BaseModel, Field

from causalgraph.text import CorpusStats, hill, lexical_overlap
from causalschema.link import CausalLink
from causalschema.params import GraphParams


class CandidateEdge(BaseModel):
    """A scored cause-to-effect pairing.

    Attributes:
        cause_index: Line index of the cause.
        effect_index: Line index of the effect.
        distance: `effect_index - cause_index`, always >= 1.
        distance_score: Hill kernel value for `distance`.
        lexical_score: Token overlap between cause and effect text.
        idf_weighted: Whether the overlap was IDF-weighted.
        shared_terms: Tokens the two lines share (at most eight).
        base_score: Score before reweighting.
        adjusted_score: Score after reweighting.
    """

    model_config = {"frozen": True}

    cause_index: int
    effect_index: int
    distance: int = Field(ge=1)
    distance_score: float
    lexical_score: float
    idf_weighted: bool = False
    shared_terms: tuple[str, ...] = ()
    base_score: float
    adjusted_score: float

    @property
    def rank_key(self) -> tuple[float, int, int]:
        return (-self.base_score, self.distance, self.cause_index)


class ScoredLine(BaseModel):
    """Minimal view of a detected line used for scoring."""

    model_config = {"frozen": True}

    index: int
    text: str


def score_candidates(
    causes: Sequence[ScoredLine],
    effects: Sequence[ScoredLine],
    params: GraphParams,
    stats: Optional[CorpusStats] = None,
) -> list[CandidateEdge]:
    """Score every cause/effect pair inside the forward window.

    Causes are located by binary search, so each effect only visits the
    causes inside its window.

    Args:
        causes: Detected causes.
        effects: Detected effects.
        params: Window, kernel shape and lexical weight.
        stats: Session corpus stats; enables IDF weighting when given.

    Returns:
        Candidate edges grouped by effect in effect order, each group in
        cause order. Edges below `params.min_edge_score` are dropped.
    """
    edges: list[CandidateEdge] = []
    ordered = sorted(causes, key=lambda c: c.index)
    cause_indices = [c.index for c in ordered]
    for effect in sorted(effects, key=lambda e: e.index):
        lo = bisect_left(cause_indices, effect.index - params.max_back)
        hi = bisect_left(cause_indices, effect.index)
        for cause in ordered[lo:hi]:
            distance = effect.index - cause.index
            distance_score = hill(distance, params.dist_tau, params.dist_p)
            lex = lexical_overlap(cause.text, effect.text, stats, params.keyword_dominance)
            score = distance_score * (1.0 + params.beta_lex * lex.score)
            if score < params.min_edge_score:
                continue
            edges.append(
                CandidateEdge(
                    cause_index=cause.index,
                    effect_index=effect.index,
                    distance=distance,
                    distance_score=distance_score,
                    lexical_score=lex.score,
                    idf_weighted=lex.idf_weighted,
                    shared_terms=lex.shared[:8],
                    base_score=score,
                    adjusted_score=score,
                )
            )
    return edges


def _by_effect(edges: Sequence[CandidateEdge]) -> dict[int, list[CandidateEdge]]:
    groups: dict[int, list[CandidateEdge]] = defaultdict(list)
    for edge in edges:
        groups[edge.effect_index].append(edge)
    return dict(sorted(groups.items()))


def select_top_k(edges: Sequence[CandidateEdge], top_k: int) -> list[CandidateEdge]:
    """Keep the `top_k` best incoming edges per effect.

    Ranking is by base score, then shorter distance, then earlier cause.
    """
    kept: list[CandidateEdge] = []
    for group in _by_effect(edges).values():
        kept.extend(sorted(group, key=lambda e: e.rank_key)[:top_k])
    return kept


def reweight_backward(
    edges: Sequence[CandidateEdge],
    beta: float,
    iters: int,
    floor: float = 0.2,
) -> list[CandidateEdge]:
    """Scale down non-dominant incoming edges of each effect.

    Returns:
        Edges in the same order as given, with `adjusted_score` updated.
    """
    adjusted: dict[tuple[int, int], float] = {}
    for effect_index, group in _by_effect(edges).items():
        weights = np.array([e.adjusted_score for e in group], dtype=float)
        for _ in range(iters):
            top = weights.max()
            if len(weights) < 2 or top <= 0.0:
                break
            factor = np.maximum(floor, 1.0 - beta * (top - weights) / top)
            factor[weights >= top] = 1.0
            weights = weights * factor
        for edge, weight in zip(group, weights):
            adjusted[(edge.cause_index, effect_index)] = float(weight)
    return [
        e.model_copy(update={"adjusted_score": adjusted[(e.cause_index, e.effect_index)]})
        for e in edges
    ]


def boost_link_masses(links: Sequence[CausalLink], params: GraphParams) -> list[CausalLink]:
    """Add a damped share of neighbouring link mass to every node.

    Each neighbour within `link_window` center lines contributes its base
    mass times the link-to-link strength
    `hill(d, dist_tau, dist_p) * (1 + beta_lex * lexical_overlap)`.
    Only claimed neighbours count when `require_claimed_neighbors` is set.
    Bonuses are computed from base masses, so the order of `links` does not
    matter.

    Returns:
        Links in the same order, with `mass` raised by `mass_boost`.
    """
    order = sorted(range(len(links)), key=lambda i: links[i].center_index)
    centers = [links[i].center_index for i in order]
    base = np.array([link.mass for link in links], dtype=float)
    boosted: list[CausalLink] = []
    for i, link in enumerate(links):
        lo = bisect_left(centers, link.center_index - params.link_window)
        hi = bisect_right(centers, link.center_index + params.link_window)
        bonus = 0.0
        for j in order[lo:hi]:
            neighbour = links[j]
            if j == i or (params.require_claimed_neighbors and not neighbour.claimed):
                continue
            distance = abs(link.center_index - neighbour.center_index)
            lex = lexical_overlap(link.text(), neighbour.text())
            bonus += hill(distance, params.dist_tau, params.dist_p) * (1.0 + params.beta_lex * lex.score) * base[j]
        boost = float(params.link_boost_damping * bonus)
        boosted.append(link.model_copy(update={"mass": float(base[i]) + boost, "mass_boost": boost}))
    return boosted
