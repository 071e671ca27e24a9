"""
Causal Graph Schema - Base Models and Interfaces

This package contains only Pydantic models and ABC interfaces with no
functional code. It defines:

- Transcript lines, actors and regime spans (inputs)
- Eligibility mask
- Cause/effect detection results
- Causal links (singletons, links, composites)
- Kernel and hierarchy parameter bundles
- Round metrics
- Provenance snapshot and storage interface

These are used by causalgraph (extraction) and by any collaborator that
consumes or persists extraction output.
"""

from causalschema.detection import (
    CauseDetection,
    CauseType,
    EffectDetection,
    EffectType,
    RollType,
)
from causalschema.eligibility import EligibilityMask, ExcludedRange
from causalschema.link import CausalLink, NodeKind
from causalschema.metrics import MetricStats, RoundMetrics, RoundPhase
from causalschema.params import GraphParams, HierarchyParams
from causalschema.storage import ConflictPolicy, LinkSnapshot, ProvenanceStoreInterface
from causalschema.transcript import Actor, RegimeReason, RegimeSpan, TranscriptLine

__all__ = [
    "Actor",
    "CausalLink",
    "CauseDetection",
    "CauseType",
    "ConflictPolicy",
    "EffectDetection",
    "EffectType",
    "EligibilityMask",
    "ExcludedRange",
    "GraphParams",
    "HierarchyParams",
    "LinkSnapshot",
    "MetricStats",
    "NodeKind",
    "ProvenanceStoreInterface",
    "RegimeReason",
    "RegimeSpan",
    "RollType",
    "RoundMetrics",
    "RoundPhase",
    "TranscriptLine",
]

__version__ = "0.1.0"
