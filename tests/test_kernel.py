"""Tests for level-1 causal link extraction.

Covers the three reference scenarios (question and short answer, an
effect beyond the window, competing effects), the top-K cap, backward
reweighting, determinism, eligibility containment, the DM proximity
pass, yes/no bundling, the link mass boost and input-shape errors.
"""

from collections import Counter

import pytest
from pydantic import ValidationError

from causalgraph import scoring
from causalgraph.eligibility import build_eligibility_mask
from causalgraph.errors import InputShapeError
from causalgraph.kernel import KERNEL_VERSION, extract_causal_links
from causalgraph.scoring import (
    CandidateEdge,
    ScoredLine,
    boost_link_masses,
    reweight_backward,
    score_candidates,
    select_top_k,
)
from causalgraph.text import hill
from causalschema.detection import CauseType, EffectType
from causalschema.link import CausalLink, NodeKind
from causalschema.params import GraphParams
from causalschema.transcript import RegimeReason, RegimeSpan


def run_kernel(transcript, params=None, spans=(), include_ooc_soft=False, actors=(), session_id="s"):
    mask = build_eligibility_mask(session_id, transcript, spans, include_ooc_soft=include_ooc_soft)
    return extract_causal_links(session_id, transcript, mask, params, actors)


def edge(cause: int, effect: int, score: float) -> CandidateEdge:
    return CandidateEdge(
        cause_index=cause,
        effect_index=effect,
        distance=effect - cause,
        distance_score=score,
        lexical_score=0.0,
        base_score=score,
        adjusted_score=score,
    )


class TestScenarios:
    """Reference scenarios for the kernel."""

    def test_simple_question_and_answer(self, lines) -> None:
        """A question answered with 'Yes.' yields one level-1 link from line 0 to line 1."""
        transcript = lines([("DM", "Do you want to search the room?"), ("PC", "Yes.")])
        result = run_kernel(transcript)

        links = [l for l in result.links if l.node_kind == NodeKind.LINK]
        assert len(links) == 1
        link = links[0]
        assert link.level == 1
        assert link.cause_type == CauseType.QUESTION
        assert link.effect_type == EffectType.INFORMATION
        assert link.cause_anchor_index == 0
        assert link.effect_anchor_index == 1
        assert link.claimed is True
        assert link.id == "L:s:0:1"
        assert link.mass == pytest.approx(0.65 + 0.7)
        assert link.strength == pytest.approx(hill(1, 6.0, 2.2))
        assert link.center_index == 0.5
        assert [l for l in result.links if l.node_kind == NodeKind.SINGLETON] == []

    def test_distant_effect_is_not_linked(self, lines) -> None:
        """An effect beyond max_back leaves both sides as unclaimed singletons."""
        params = GraphParams()
        filler = [("Alice", "Mhm.")] * (params.max_back + 4)
        transcript = lines(
            [("Alice", "I search the old chest for traps.")] + filler + [("DM", "You find a rusted key.")]
        )
        assert transcript[-1].line_index == params.max_back + 5

        result = run_kernel(transcript, params)

        assert result.edges == ()
        assert result.candidates == ()
        ids = {l.id for l in result.links}
        assert ids == {"S:cause:s:0", f"S:effect:s:{params.max_back + 5}"}
        cause = next(l for l in result.links if l.id == "S:cause:s:0")
        assert cause.node_kind == NodeKind.SINGLETON
        assert cause.claimed is False
        assert cause.effect_anchor_index is None
        assert cause.strength == 0.0
        assert [e.index for e in result.unclaimed_effects] == [params.max_back + 5]

    def test_competing_effects_nearer_dominates(self, lines) -> None:
        """With equal lexical overlap the distance-1 edge strictly dominates the distance-2 edge."""
        transcript = lines(
            [
                ("Alice", "I search the old chest for traps."),
                ("DM", "You find a rusted key."),
                ("DM", "You find a faded map."),
            ]
        )
        result = run_kernel(transcript)
        by_effect = {e.effect_index: e for e in result.edges}

        assert set(by_effect) == {1, 2}
        assert by_effect[1].lexical_score == by_effect[2].lexical_score
        assert by_effect[1].adjusted_score > by_effect[2].adjusted_score


class TestSampleScene:
    """Kernel output over the sample scene."""

    def test_counts(self, sample_transcript) -> None:
        result = run_kernel(sample_transcript)
        assert [c.index for c in result.causes] == [1, 5, 7, 9, 11, 13]
        assert [e.index for e in result.effects] == [2, 4, 6, 8, 10, 12, 14]
        assert len(result.candidates) == 21
        assert len(result.edges) == 16
        assert all(l.node_kind == NodeKind.LINK for l in result.links)

    def test_dm_proximity_effect(self, sample_transcript) -> None:
        """An unmatched DM line right after a cause becomes a dm_statement effect."""
        result = run_kernel(sample_transcript)
        effect = next(e for e in result.effects if e.index == 14)
        assert effect.effect_type == EffectType.DM_STATEMENT
        assert effect.source == "dm_proximity"
        assert effect.mass == pytest.approx(0.35)

    def test_dm_proximity_can_be_disabled(self, sample_transcript) -> None:
        result = run_kernel(sample_transcript, GraphParams(dm_fallback=False))
        assert 14 not in {e.index for e in result.effects}
        assert "S:cause:s:13" in {l.id for l in result.links}

    def test_dm_proximity_window(self, lines) -> None:
        """A DM line further than dm_proximity from every cause stays a non-effect."""
        transcript = lines(
            [
                ("Alice", "Can we rest here for the night?"),
                ("Bob", "Mhm."),
                ("Bob", "Mhm."),
                ("DM", "The wind howls outside."),
            ]
        )
        assert 3 in {e.index for e in run_kernel(transcript, GraphParams(dm_proximity=3)).effects}
        assert 3 not in {e.index for e in run_kernel(transcript, GraphParams(dm_proximity=2)).effects}

    def test_actor_attribution(self, sample_transcript, actors) -> None:
        result = run_kernel(sample_transcript, actors=actors)
        by_id = {l.id: l for l in result.links}
        assert by_id["L:s:1:2"].actor == "pc-alice"
        assert by_id["L:s:5:6"].actor == "pc-bob"

    @pytest.mark.parametrize("top_k", [1, 2, 3, 5])
    def test_top_k_cap(self, sample_transcript, top_k: int) -> None:
        """No effect keeps more than top_k incoming edges."""
        result = run_kernel(sample_transcript, GraphParams(top_k=top_k))
        incoming = Counter(l.effect_anchor_index for l in result.links if l.node_kind == NodeKind.LINK)
        assert max(incoming.values()) <= top_k
        assert incoming[12] == min(top_k, 5)

    def test_reweight_monotonicity(self, sample_transcript) -> None:
        """Top-base edge never falls below another edge; others never rise above base."""
        result = run_kernel(sample_transcript, GraphParams(iters=5, beta=0.9))
        groups: dict[int, list[CandidateEdge]] = {}
        for e in result.edges:
            groups.setdefault(e.effect_index, []).append(e)
        for group in groups.values():
            if len(group) < 2:
                continue
            top = min(group, key=lambda e: e.rank_key)
            assert top.adjusted_score == pytest.approx(top.base_score)
            for other in group:
                assert top.adjusted_score >= other.adjusted_score
                assert other.adjusted_score <= other.base_score + 1e-12

    def test_link_strength_is_adjusted_score(self, sample_transcript) -> None:
        result = run_kernel(sample_transcript)
        by_pair = {(e.cause_index, e.effect_index): e for e in result.edges}
        for link in result.links:
            e = by_pair[(link.cause_anchor_index, link.effect_anchor_index)]
            assert link.strength == e.adjusted_score
            assert link.strength_internal == e.adjusted_score
            assert link.base_strength == e.base_score
            assert link.effect_anchor_index >= link.cause_anchor_index

    def test_determinism(self, sample_transcript) -> None:
        """Two runs produce byte-identical links and edges."""
        first = run_kernel(sample_transcript)
        second = run_kernel(sample_transcript)
        assert [l.model_dump_json() for l in first.links] == [l.model_dump_json() for l in second.links]
        assert [e.model_dump_json() for e in first.edges] == [e.model_dump_json() for e in second.edges]

    def test_ids_unique(self, sample_transcript) -> None:
        result = run_kernel(sample_transcript, GraphParams(top_k=1))
        ids = [l.id for l in result.links]
        assert len(ids) == len(set(ids))


class TestEligibilityContainment:
    """Links never anchor on lines excluded by hard OOC or combat spans."""

    SPANS = (
        RegimeSpan(start_index=2, end_index=4, reason=RegimeReason.COMBAT),
        RegimeSpan(start_index=10, end_index=10, reason=RegimeReason.OOC_HARD),
        RegimeSpan(start_index=12, end_index=14, reason=RegimeReason.OOC_SOFT),
    )

    def anchors(self, result) -> set[int]:
        out = set()
        for link in result.links:
            for idx in (link.cause_anchor_index, link.effect_anchor_index):
                if idx is not None:
                    out.add(idx)
        return out

    def test_excluded_lines_not_anchored(self, sample_transcript) -> None:
        result = run_kernel(sample_transcript, spans=self.SPANS)
        assert self.anchors(result).isdisjoint({2, 3, 4, 10, 12, 13, 14})

    def test_soft_override_reincludes_only_soft(self, sample_transcript) -> None:
        result = run_kernel(sample_transcript, spans=self.SPANS, include_ooc_soft=True)
        anchors = self.anchors(result)
        assert anchors.isdisjoint({2, 3, 4, 10})
        assert {12, 13, 14} <= anchors


class TestScoreCandidates:
    """Windowed candidate scoring."""

    def test_only_window_pairs_are_scored(self, monkeypatch) -> None:
        """Each effect compares against the causes inside its window and nothing else."""
        calls: list[tuple[str, str]] = []
        real_overlap = scoring.lexical_overlap

        def counting_overlap(cause_text, effect_text, *args):
            calls.append((cause_text, effect_text))
            return real_overlap(cause_text, effect_text, *args)

        monkeypatch.setattr(scoring, "lexical_overlap", counting_overlap)
        causes = [ScoredLine(index=i, text=f"cause {i}") for i in range(0, 2000, 2)]
        effects = [ScoredLine(index=i, text=f"effect {i}") for i in range(1, 2000, 2)]
        edges = score_candidates(causes, effects, GraphParams(max_back=3))

        # effect 1 sees cause 0; every later effect sees two causes
        assert len(calls) == len(edges) == 1 + 2 * (len(effects) - 1)
        assert all(1 <= e.distance <= 3 for e in edges)

    def test_order_is_effect_then_cause(self) -> None:
        causes = [ScoredLine(index=i, text="open the door") for i in (4, 0, 2)]
        effects = [ScoredLine(index=i, text="the door opens") for i in (5, 3)]
        edges = score_candidates(causes, effects, GraphParams(max_back=5))
        assert [(e.cause_index, e.effect_index) for e in edges] == [(0, 3), (2, 3), (0, 5), (2, 5), (4, 5)]

    def test_same_line_is_never_paired(self) -> None:
        lines = [ScoredLine(index=3, text="roll the dice")]
        assert score_candidates(lines, lines, GraphParams()) == []


class TestReweightBackward:
    """Unit tests for backward reweighting."""

    def test_top_edge_unchanged_and_others_scaled(self) -> None:
        edges = [edge(1, 3, 1.0), edge(2, 3, 0.5)]
        out = reweight_backward(edges, beta=0.35, iters=1, floor=0.2)
        assert out[0].adjusted_score == 1.0
        assert out[1].adjusted_score == pytest.approx(0.5 * (1 - 0.35 * 0.5))
        assert out[1].base_score == 0.5

    def test_floor_bounds_the_factor(self) -> None:
        edges = [edge(1, 3, 1.0), edge(2, 3, 0.1)]
        out = reweight_backward(edges, beta=1.0, iters=1, floor=0.2)
        assert out[1].adjusted_score == pytest.approx(0.1 * 0.2)

    def test_zero_iterations_is_identity(self) -> None:
        edges = [edge(1, 3, 1.0), edge(2, 3, 0.5)]
        assert reweight_backward(edges, beta=0.35, iters=0) == edges

    def test_extra_iterations_leave_dominant_edge(self) -> None:
        edges = [edge(0, 4, 0.9), edge(1, 4, 0.7), edge(2, 4, 0.4)]
        for iters in (1, 2, 10):
            out = reweight_backward(edges, beta=0.35, iters=iters)
            assert out[0].adjusted_score == 0.9
            assert out[0].adjusted_score > out[1].adjusted_score > out[2].adjusted_score

    def test_effects_are_independent(self) -> None:
        edges = [edge(0, 2, 1.0), edge(1, 3, 0.3)]
        out = reweight_backward(edges, beta=0.35, iters=3)
        assert [e.adjusted_score for e in out] == [1.0, 0.3]

    def test_select_top_k_tie_breaks(self) -> None:
        """Equal scores prefer the shorter distance, then the earlier cause."""
        edges = [edge(0, 5, 0.5), edge(3, 5, 0.5), edge(4, 5, 0.5), edge(1, 5, 0.9)]
        kept = select_top_k(edges, 2)
        assert [(e.cause_index, e.effect_index) for e in kept] == [(1, 5), (4, 5)]


class TestYesNoBundling:
    """DM yes/no prompts paired with the answer become one cause."""

    SCENE = (
        ("Sam (DM)", "Are you sure you want to open the chest?"),
        ("Alice", "Yes."),
        ("Sam (DM)", "The lid creaks open and you see gold."),
    )

    def test_bundle_becomes_request_cause(self, lines, actors) -> None:
        result = run_kernel(lines(self.SCENE), GraphParams(bundle_yes_no=True), actors=actors)

        assert [(b.prompt_index, b.answer_index) for b in result.bundles] == [(0, 1)]
        assert [c.index for c in result.causes] == [1]
        cause = result.causes[0]
        assert cause.cause_type == CauseType.REQUEST
        assert cause.rule == "yes_no_bundle"
        assert cause.actor == "pc-alice"
        assert [e.index for e in result.effects] == [2]
        assert [l.id for l in result.links] == ["L:s:1:2"]
        assert result.links[0].cause_text.startswith("DM prompt: Are you sure")

    def test_off_by_default(self, lines, actors) -> None:
        result = run_kernel(lines(self.SCENE), actors=actors)
        assert result.bundles == ()
        assert 0 in {c.index for c in result.causes}

    def test_masked_bundle_is_dropped(self, lines, actors) -> None:
        spans = [RegimeSpan(start_index=0, end_index=0, reason=RegimeReason.OOC_HARD)]
        result = run_kernel(lines(self.SCENE), GraphParams(bundle_yes_no=True), spans=spans, actors=actors)
        assert result.bundles == ()


class TestLinkMassBoost:
    """Nearby claimed links lend each other mass."""

    def node(self, cause: int, effect: int, text: str, mass: float = 1.0) -> CausalLink:
        return CausalLink(
            id=f"L:s:{cause}:{effect}",
            session_id="s",
            cause_anchor_index=cause,
            effect_anchor_index=effect,
            cause_text=text,
            mass=mass,
            claimed=True,
            center_index=(cause + effect) / 2,
            span_start_index=cause,
            span_end_index=effect,
        )

    def test_neighbours_within_window_contribute(self) -> None:
        params = GraphParams(ambient_mass_boost=True)
        a = self.node(0, 2, "Ravens circle overhead.")
        b = self.node(2, 4, "Lanterns gutter out.", mass=2.0)
        far = self.node(40, 42, "Bells toll distantly.")
        out = boost_link_masses([a, b, far], params)

        strength = hill(2.0, params.dist_tau, params.dist_p)
        assert out[0].mass_boost == pytest.approx(params.link_boost_damping * strength * 2.0)
        assert out[1].mass_boost == pytest.approx(params.link_boost_damping * strength * 1.0)
        assert out[0].mass == pytest.approx(1.0 + out[0].mass_boost)
        assert out[2].mass_boost == 0.0
        assert out[2].mass == 1.0

    def test_unclaimed_neighbours_do_not_contribute(self) -> None:
        params = GraphParams(ambient_mass_boost=True)
        a = self.node(0, 2, "Ravens circle overhead.")
        loose = self.node(2, 4, "Lanterns gutter out.").model_copy(update={"claimed": False})
        out = boost_link_masses([a, loose], params)
        assert out[0].mass_boost == 0.0
        assert out[1].mass_boost > 0.0
        everyone = boost_link_masses([a, loose], params.model_copy(update={"require_claimed_neighbors": False}))
        assert everyone[0].mass_boost > 0.0

    def test_kernel_applies_boost(self, sample_transcript) -> None:
        plain = run_kernel(sample_transcript)
        boosted = run_kernel(sample_transcript, GraphParams(ambient_mass_boost=True))
        assert [l.id for l in boosted.links] == [l.id for l in plain.links]
        for before, after in zip(plain.links, boosted.links):
            assert after.mass == pytest.approx(before.mass + after.mass_boost)
            assert after.mass_boost > 0.0


class TestInputShape:
    """Kernel fails fast on malformed input."""

    def test_mask_length_mismatch(self, sample_transcript) -> None:
        mask = build_eligibility_mask("s", sample_transcript[:5], [])
        with pytest.raises(InputShapeError):
            extract_causal_links("s", sample_transcript, mask)

    def test_session_mismatch(self, sample_transcript) -> None:
        mask = build_eligibility_mask("other", sample_transcript, [])
        with pytest.raises(InputShapeError):
            extract_causal_links("s", sample_transcript, mask)

    @pytest.mark.parametrize(
        "field, value",
        [("max_back", 0), ("max_back", -3), ("top_k", 0), ("dist_tau", 0.0), ("iters", -1), ("beta", 1.5)],
    )
    def test_invalid_params(self, field: str, value) -> None:
        with pytest.raises(ValidationError):
            GraphParams(**{field: value})

    def test_params_are_frozen(self) -> None:
        params = GraphParams()
        with pytest.raises(ValidationError):
            params.top_k = 10

    def test_kernel_version(self) -> None:
        assert KERNEL_VERSION == "ce-topk-v1"
