"""Causal link model, the persisted unit of extraction.

A `CausalLink` is one node of the causal graph:

- **singleton**: a detected cause or effect that found no partner. Exactly
  one anchor is set and the node is unclaimed.
- **link**: a level-1 cause/effect pair produced by the kernel.
- **composite**: a level >= 2 bundle of exactly two lower-level nodes
  produced by the hierarchical merger.

IDs are derived from the session and anchor indices (never random), so
re-running extraction on unchanged input yields identical IDs.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from causalschema.detection import CauseType, EffectType, RollType


class NodeKind(str, Enum):
    SINGLETON = "singleton"
    LINK = "link"
    COMPOSITE = "composite"


class CausalLink(BaseModel):
    """A node in the causal graph for one session.

    Attributes:
        id: Deterministic identifier derived from session, role and anchors.
        session_id: Session the node belongs to.
        actor: Participant associated with the cause side (effect side for
            effect-only singletons).
        cause_anchor_index: Line index of the cause, if any.
        effect_anchor_index: Line index of the effect, if any.
        mass: Cause mass plus effect mass, or the sum of children for composites.
        mass_boost: Share of `mass` contributed by neighbouring links.
        strength: Kernel edge weight for links, bridging strength for composites.
        strength_internal: Accumulated strength, equal to `strength` at level 1.
        claimed: True once the node has been consumed by a link.
        level: 1 for kernel output, >= 2 for merged composites.
        members: Exactly two child ids when `level >= 2`.
        center_index: Representative timeline position.
    """

    model_config = {"frozen": True}

    id: str
    session_id: str
    actor: str = ""
    cause_anchor_index: Optional[int] = Field(default=None, ge=0)
    effect_anchor_index: Optional[int] = Field(default=None, ge=0)
    cause_text: str = ""
    effect_text: str = ""
    cause_type: Optional[CauseType] = None
    effect_type: Optional[EffectType] = None
    roll_type: Optional[RollType] = None
    mass: float = Field(default=0.0, ge=0.0)
    mass_boost: float = Field(default=0.0, ge=0.0)
    base_strength: float = Field(default=0.0, ge=0.0)
    strength: float = Field(default=0.0, ge=0.0)
    strength_internal: float = Field(default=0.0, ge=0.0)
    claimed: bool = False
    node_kind: NodeKind = NodeKind.LINK
    level: int = Field(default=1, ge=1)
    members: Optional[tuple[str, str]] = None
    round_formed: int = Field(default=1, ge=1)
    center_index: float = 0.0
    span_start_index: int = Field(default=0, ge=0)
    span_end_index: int = Field(default=0, ge=0)
    context_ids: tuple[str, ...] = ()

    @model_validator(mode="after")
    def check_shape(self) -> "CausalLink":
        if self.cause_anchor_index is None and self.effect_anchor_index is None:
            raise ValueError(f"{self.id}: at least one anchor index is required")
        if (
            self.cause_anchor_index is not None
            and self.effect_anchor_index is not None
            and self.effect_anchor_index < self.cause_anchor_index
        ):
            raise ValueError(f"{self.id}: effect anchor precedes cause anchor")
        if self.level >= 2:
            if self.members is None:
                raise ValueError(f"{self.id}: level {self.level} node requires two members")
            if self.node_kind != NodeKind.COMPOSITE:
                raise ValueError(f"{self.id}: level {self.level} node must be a composite")
        elif self.members is not None:
            raise ValueError(f"{self.id}: level 1 node cannot have members")
        if self.span_end_index < self.span_start_index:
            raise ValueError(f"{self.id}: span end precedes span start")
        return self

    @property
    def is_composite(self) -> bool:
        return self.level >= 2

    def text(self) -> str:
        """Cause and effect text joined, as used for link-to-link scoring."""
        return f"{self.cause_text} {self.effect_text}".strip()
