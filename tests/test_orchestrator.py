"""End-to-end tests: mask, kernel, merger, snapshot, persistence and rendering."""

import json

import pytest

from causalgraph import CausalExtractionOrchestrator, InputShapeError
from causalgraph.config import DM_SPEAKER_ENV_VAR, CausalConfig, load_causal_config
from causalgraph.errors import SnapshotExistsError
from causalgraph.ids import link_id
from causalgraph.merger import validate_hierarchy
from causalgraph.render import HEADER
from causalschema.params import GraphParams, HierarchyParams
from causalschema.storage import ConflictPolicy
from causalschema.transcript import RegimeReason, RegimeSpan


@pytest.fixture
def orchestrator(memory_store, fixed_clock, actors) -> CausalExtractionOrchestrator:
    return CausalExtractionOrchestrator(store=memory_store, clock=fixed_clock, actors=tuple(actors))


class TestExtract:
    def test_pipeline_output(self, orchestrator, sample_transcript, session_id, fixed_clock) -> None:
        result = orchestrator.extract(session_id, sample_transcript)

        assert result.session_id == session_id
        assert result.written is False
        assert result.mask.eligible_count() == len(sample_transcript)
        assert len(result.kernel.edges) == 16
        assert result.snapshot.extracted_at == fixed_clock.now
        assert result.snapshot.links == result.hierarchy.nodes
        assert result.snapshot.round_metrics == result.hierarchy.rounds
        assert result.hierarchy.rounds[0].counts["links"] == 16
        validate_hierarchy(result.snapshot.links)

    def test_repeat_runs_identical(self, orchestrator, sample_transcript, session_id) -> None:
        first = orchestrator.extract(session_id, sample_transcript)
        second = orchestrator.extract(session_id, sample_transcript)
        assert first.snapshot.model_dump_json() == second.snapshot.model_dump_json()

    def test_spans_are_applied(self, orchestrator, sample_transcript, session_id) -> None:
        spans = [RegimeSpan(start_index=0, end_index=4, reason=RegimeReason.OOC_HARD)]
        result = orchestrator.extract(session_id, sample_transcript, spans)
        assert all(e.cause_index > 4 for e in result.kernel.edges)

    def test_bad_span_raises(self, orchestrator, sample_transcript, session_id) -> None:
        spans = [RegimeSpan(start_index=10, end_index=99, reason=RegimeReason.COMBAT)]
        with pytest.raises(InputShapeError):
            orchestrator.extract(session_id, sample_transcript, spans)

    def test_from_config(self, sample_transcript, session_id) -> None:
        config = CausalConfig(graph=GraphParams(top_k=1), hierarchy=HierarchyParams(max_round=1))
        orchestrator = CausalExtractionOrchestrator.from_config(config)
        result = orchestrator.extract(session_id, sample_transcript)
        assert len(result.kernel.edges) == 7
        assert len(result.hierarchy.rounds) == 1
        assert orchestrator.store is None


class TestRun:
    async def test_writes_snapshot(self, orchestrator, memory_store, sample_transcript, session_id) -> None:
        result = await orchestrator.run(session_id, sample_transcript)
        assert result.written is True
        stored = await memory_store.get(session_id, result.snapshot.param_hash)
        assert stored == result.snapshot
        assert await memory_store.latest(session_id) == result.snapshot

    async def test_conflict_policies(self, orchestrator, sample_transcript, session_id) -> None:
        await orchestrator.run(session_id, sample_transcript)
        skipped = await orchestrator.run(session_id, sample_transcript, policy=ConflictPolicy.SKIP)
        assert skipped.written is False
        with pytest.raises(SnapshotExistsError):
            await orchestrator.run(session_id, sample_transcript, policy=ConflictPolicy.ERROR)

    async def test_changed_params_store_separately(self, memory_store, fixed_clock, sample_transcript, session_id) -> None:
        a = CausalExtractionOrchestrator(store=memory_store, clock=fixed_clock)
        b = CausalExtractionOrchestrator(store=memory_store, clock=fixed_clock, graph_params=GraphParams(top_k=1))
        await a.run(session_id, sample_transcript)
        await b.run(session_id, sample_transcript)
        assert await memory_store.count() == 2

    async def test_requires_store(self, sample_transcript, session_id) -> None:
        with pytest.raises(ValueError):
            await CausalExtractionOrchestrator().run(session_id, sample_transcript)

    async def test_json_store_round_trip(self, json_store, fixed_clock, sample_transcript, session_id) -> None:
        orchestrator = CausalExtractionOrchestrator(store=json_store, clock=fixed_clock)
        result = await orchestrator.run(session_id, sample_transcript)
        assert await json_store.get(session_id, result.snapshot.param_hash) == result.snapshot


class TestRenderAndSummarize:
    def test_render(self, orchestrator, sample_transcript, session_id) -> None:
        result = orchestrator.extract(session_id, sample_transcript)
        outline = orchestrator.render(result, sample_transcript)
        assert outline.startswith(f"{HEADER}\n\n")
        for line in sample_transcript:
            assert f'L{line.line_index} ({line.author_name}): "{line.content}"' in outline
        assert "[L1 " in outline

    def test_render_hierarchy(self, orchestrator, sample_transcript, session_id) -> None:
        result = orchestrator.extract(session_id, sample_transcript)
        outline = orchestrator.render_hierarchy(result, sample_transcript, top_k=2)
        assert outline.startswith("# Hierarchy Outline (Top 2, mode=composites_only)\n\n")
        assert outline.count("\n- [L") == 2
        assert " composite m=" in outline

    def test_summarize(self, orchestrator, sample_transcript, session_id) -> None:
        result = orchestrator.extract(session_id, sample_transcript)
        summary = orchestrator.summarize(result)
        assert summary.startswith("Round 1 (link) kernel links\n")
        assert "  counts: nodes_total=16 links=16 singletons=0 composites=0\n" in summary
        assert summary.count("Round ") == len(result.hierarchy.rounds)


NARRATED_SCENE = (
    ("Alice", "Can I climb the wall?"),
    ("Narrator", "The stones are slick with rain tonight."),
)


class TestDmNamesInParamHash:
    """Snapshots with the same parameter hash carry the same link ids."""

    def link_ids(self, result) -> set[str]:
        return {node.id for node in result.snapshot.links}

    def test_environment_does_not_change_extraction(self, lines, session_id, monkeypatch) -> None:
        transcript = lines(NARRATED_SCENE)
        orchestrator = CausalExtractionOrchestrator()
        before = orchestrator.extract(session_id, transcript)
        monkeypatch.setenv(DM_SPEAKER_ENV_VAR, "Narrator")
        after = orchestrator.extract(session_id, transcript)
        assert before.snapshot.param_hash == after.snapshot.param_hash
        assert self.link_ids(before) == self.link_ids(after)

    def test_dm_override_changes_hash_and_links(self, lines, session_id, tmp_path, monkeypatch) -> None:
        transcript = lines(NARRATED_SCENE)
        plain = CausalExtractionOrchestrator.from_config(load_causal_config([tmp_path / "absent.toml"]))
        monkeypatch.setenv(DM_SPEAKER_ENV_VAR, "Narrator")
        narrated = CausalExtractionOrchestrator.from_config(load_causal_config([tmp_path / "absent.toml"]))

        a = plain.extract(session_id, transcript)
        b = narrated.extract(session_id, transcript)
        assert b.kernel.dm_names == frozenset({"narrator"})
        assert link_id(session_id, 0, 1) in self.link_ids(b)
        assert link_id(session_id, 0, 1) not in self.link_ids(a)
        assert a.snapshot.param_hash != b.snapshot.param_hash

    def test_resolved_dm_names_recorded(self, sample_transcript, session_id) -> None:
        result = CausalExtractionOrchestrator().extract(session_id, sample_transcript)
        assert json.loads(result.snapshot.kernel_params_json)["dm_names"] == ["dm"]
