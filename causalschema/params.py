"""Parameter bundles for the kernel and the hierarchical merger.

Both models are frozen and validated at construction: zero or negative
windows and out-of-range weights raise a pydantic `ValidationError`
before any extraction starts. A bundle is supplied once per run and
serialized verbatim into the provenance snapshot.
"""

from pydantic import BaseModel, Field


class GraphParams(BaseModel):
    """Scoring parameters for level-1 cause/effect extraction.

    Attributes:
        max_back: Maximum line distance from a cause to a candidate effect.
        dist_tau: Distance at which the Hill kernel drops to half strength.
        dist_p: Steepness of the Hill kernel.
        beta_lex: Weight of lexical overlap relative to distance.
        beta: Strength of backward reweighting.
        iters: Number of backward reweighting rounds.
        top_k: Maximum incoming edges retained per effect.
        bundle_yes_no: Whether DM yes/no prompts and their answers become
            one bundled request.
        ambient_mass_boost: Whether nearby claimed links raise each other's mass.
    """

    model_config = {"frozen": True}

    max_back: int = Field(default=12, gt=0, description="Forward window from cause to effect, in lines.")
    dist_tau: float = Field(default=6.0, gt=0.0, description="Half-strength distance of the Hill kernel.")
    dist_p: float = Field(default=2.2, gt=0.0, description="Hill kernel steepness.")
    beta_lex: float = Field(default=0.6, ge=0.0, description="Lexical overlap weight.")
    beta: float = Field(default=0.35, ge=0.0, le=1.0, description="Backward reweighting strength.")
    iters: int = Field(default=2, ge=0, description="Backward reweighting rounds.")
    top_k: int = Field(default=3, ge=1, description="Incoming edges kept per effect.")
    dm_proximity: int = Field(default=5, ge=1, description="Lines after a cause within which a DM line becomes a fallback effect.")
    dm_fallback: bool = Field(default=True, description="Whether to run the DM proximity effect pass.")
    dm_statement_mass: float = Field(default=0.35, ge=0.0, le=1.0, description="Mass of DM proximity effects.")
    idf_weighting: bool = Field(default=True, description="IDF-weight overlap when trigger keywords dominate it.")
    keyword_dominance: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Share of overlapping tokens that must be trigger keywords before IDF weighting applies.",
    )
    reweight_floor: float = Field(default=0.2, ge=0.0, le=1.0, description="Lower bound of the reweighting factor.")
    min_edge_score: float = Field(default=0.0, ge=0.0, description="Candidate edges scoring below this are dropped.")
    dm_speakers: tuple[str, ...] = Field(default=(), description="Additional author names treated as the DM.")
    bundle_yes_no: bool = Field(default=False, description="Pair DM yes/no prompts with player answers before detection.")
    ambient_mass_boost: bool = Field(default=False, description="Add a damped share of neighbouring link mass to each node.")
    link_window: float = Field(default=18.0, gt=0.0, description="Center distance within which links boost each other.")
    link_boost_damping: float = Field(default=0.15, ge=0.0, description="Scale applied to the summed neighbour bonus.")
    require_claimed_neighbors: bool = Field(default=True, description="Only claimed links contribute to the boost.")


class HierarchyParams(BaseModel):
    """Parameters for merging links into composites across rounds.

    The merge threshold grows with the masses of the pair:
    `min_bridge + growth_resistance * ln(1 + sqrt(mass_a * mass_b))`.
    """

    model_config = {"frozen": True}

    max_round: int = Field(default=3, ge=1, le=3, description="Highest round to run; round 1 is the kernel.")
    merge_window: float = Field(default=18.0, gt=0.0, description="Maximum center distance between merge partners.")
    k_local_links: int = Field(default=4, ge=1, description="Forward neighbours considered per node.")
    dist_tau: float = Field(default=8.0, gt=0.0)
    dist_p: float = Field(default=2.2, gt=0.0)
    beta_lex: float = Field(default=0.8, ge=0.0)
    min_bridge: float = Field(default=0.5, ge=0.0, description="Base merge threshold.")
    growth_resistance: float = Field(default=0.15, ge=0.0, description="Threshold growth with pair mass.")
    include_singletons: bool = False
    stop_when_stable: bool = True
    absorb_context: bool = False
    radius_base: float = Field(default=2.0, ge=0.0)
    radius_per_mass: float = Field(default=1.0, ge=0.0)
    cap_base: float = Field(default=1.0, ge=0.0)
    cap_per_mass: float = Field(default=1.0, ge=0.0)
    min_ctx_strength: float = Field(default=0.5, ge=0.0)
