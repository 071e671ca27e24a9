"""End-to-end causal extraction for one session.

`extract()` is synchronous and pure: mask, kernel, merger and snapshot
assembly. `run()` additionally persists the snapshot to the configured
provenance store under the caller's conflict policy.
"""

from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict

from causalgraph.clock import ExtractionClock
from causalgraph.config import CausalConfig, load_causal_config
from causalgraph.eligibility import build_eligibility_mask
from causalgraph.kernel import KernelResult, extract_causal_links
from causalgraph.logging import setup_logging
from causalgraph.merger import HierarchyResult, run_hierarchy
from causalgraph.metrics import format_round_metrics
from causalgraph.provenance import build_snapshot
from causalgraph.render import OutlineMode, render_hierarchy_outline, render_timeline_outline
from causalschema.eligibility import EligibilityMask
from causalschema.params import GraphParams, HierarchyParams
from causalschema.storage import ConflictPolicy, LinkSnapshot, ProvenanceStoreInterface
from causalschema.transcript import Actor, RegimeSpan, TranscriptLine

logger = setup_logging()


class ExtractionResult(BaseModel):
    """Result of extracting one session.

    Attributes:
        session_id: Session extracted.
        mask: Eligibility mask used.
        kernel: Level-1 kernel output.
        hierarchy: Merger output, including round metrics.
        snapshot: The snapshot assembled for persistence.
        written: True if `run()` stored the snapshot.
    """

    model_config = {"frozen": True}

    session_id: str
    mask: EligibilityMask
    kernel: KernelResult
    hierarchy: HierarchyResult
    snapshot: LinkSnapshot
    written: bool = False


class CausalExtractionOrchestrator(BaseModel):
    """Runs masking, extraction, merging and persistence for sessions.

    Attributes:
        graph_params: Kernel parameters.
        hierarchy_params: Merge parameters.
        store: Provenance store used by `run()`.
        clock: Fixed extraction clock; the current UTC time when None.
        actors: Participants used for actor attribution.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    graph_params: GraphParams = GraphParams()
    hierarchy_params: HierarchyParams = HierarchyParams()
    store: Optional[ProvenanceStoreInterface] = None
    clock: Optional[ExtractionClock] = None
    actors: tuple[Actor, ...] = ()

    @classmethod
    def from_config(
        cls,
        config: Optional[CausalConfig] = None,
        store: Optional[ProvenanceStoreInterface] = None,
        actors: Sequence[Actor] = (),
    ) -> "CausalExtractionOrchestrator":
        config = config or load_causal_config()
        return cls(
            graph_params=config.graph,
            hierarchy_params=config.hierarchy,
            store=store,
            actors=tuple(actors),
        )

    def extract(
        self,
        session_id: str,
        transcript: Sequence[TranscriptLine],
        spans: Sequence[RegimeSpan] = (),
        include_ooc_soft: bool = False,
    ) -> ExtractionResult:
        """Extract and merge links for a session without persisting them.

        Raises:
            InputShapeError: If the transcript or spans are malformed.
            MergeConsistencyError: If merging violates composite invariants.
        """
        mask = build_eligibility_mask(session_id, transcript, spans, include_ooc_soft=include_ooc_soft)
        kernel = extract_causal_links(session_id, transcript, mask, self.graph_params, self.actors)
        hierarchy = run_hierarchy(kernel, self.hierarchy_params)
        snapshot = build_snapshot(
            session_id,
            hierarchy.nodes,
            hierarchy.rounds,
            self.graph_params,
            self.hierarchy_params,
            self.clock,
            dm_names=kernel.dm_names,
        )
        logger.debug(
            {
                "message": "Extraction complete",
                "session_id": session_id,
                "param_hash": snapshot.param_hash,
                "nodes": len(hierarchy.nodes),
                "rounds": hierarchy.final_round,
            }
        )
        return ExtractionResult(
            session_id=session_id,
            mask=mask,
            kernel=kernel,
            hierarchy=hierarchy,
            snapshot=snapshot,
        )

    async def run(
        self,
        session_id: str,
        transcript: Sequence[TranscriptLine],
        spans: Sequence[RegimeSpan] = (),
        include_ooc_soft: bool = False,
        policy: ConflictPolicy = ConflictPolicy.OVERWRITE,
    ) -> ExtractionResult:
        """Extract a session and write its snapshot to the store.

        Raises:
            ValueError: If the orchestrator has no store.
            SnapshotExistsError: If the snapshot exists and policy is ERROR.
        """
        if self.store is None:
            raise ValueError("run() requires a provenance store; use extract() to skip persistence")
        result = self.extract(session_id, transcript, spans, include_ooc_soft)
        written = await self.store.write(result.snapshot, policy)
        logger.info(
            {
                "message": "Snapshot written" if written else "Snapshot skipped",
                "session_id": session_id,
                "param_hash": result.snapshot.param_hash,
                "policy": policy.value,
            }
        )
        return result.model_copy(update={"written": written})

    def render(self, result: ExtractionResult, transcript: Sequence[TranscriptLine]) -> str:
        """Timeline outline of the top-level nodes of a result."""
        return render_timeline_outline(result.hierarchy.top_level(), transcript, result.hierarchy.node_map())

    def render_hierarchy(
        self,
        result: ExtractionResult,
        transcript: Sequence[TranscriptLine],
        top_k: int = 10,
        mode: OutlineMode = OutlineMode.COMPOSITES_ONLY,
    ) -> str:
        """Hierarchy outline of the heaviest nodes of a result."""
        return render_hierarchy_outline(result.hierarchy.nodes, transcript, top_k, mode, result.hierarchy.node_map())

    def summarize(self, result: ExtractionResult) -> str:
        return format_round_metrics(result.hierarchy.rounds)
