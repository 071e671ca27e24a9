"""
Causal Graph - Cause/Effect Extraction and Hierarchical Bundling for Session Transcripts.

Infers a weighted graph of causal relationships between utterances of a
multi-party tabletop session: which lines express an intent (question,
request, proposal, declared action) and which later lines resolve it
(information, a roll, an outcome, a commitment, a DM statement). Links
are merged into higher-level composites over labeled rounds, persisted as
versioned snapshots and rendered as a timeline outline.

This module uses lazy imports so that the pure text and classifier
helpers can be used without loading numpy:

    # This does NOT import numpy:
    from causalgraph import detect_cause, build_eligibility_mask

    # This DOES import numpy (when the symbol is accessed):
    from causalgraph import CausalExtractionOrchestrator
"""

from typing import TYPE_CHECKING

from causalgraph.actors import build_dm_name_set, detect_dm_speaker, match_actor
from causalgraph.bundles import YesNoBundle, bundle_yes_no
from causalgraph.clock import ExtractionClock
from causalgraph.config import CausalConfig, load_causal_config
from causalgraph.detect import detect_cause, detect_effect, detect_roll_type
from causalgraph.eligibility import build_eligibility_mask
from causalgraph.errors import (
    CausalGraphError,
    InputShapeError,
    MergeConsistencyError,
    SnapshotExistsError,
)

if TYPE_CHECKING:
    from causalgraph.kernel import KERNEL_VERSION, KernelResult, extract_causal_links
    from causalgraph.merger import HierarchyResult, run_hierarchy
    from causalgraph.orchestrator import CausalExtractionOrchestrator, ExtractionResult
    from causalgraph.render import OutlineMode, render_hierarchy_outline, render_timeline_outline

__all__ = [
    "build_dm_name_set",
    "build_eligibility_mask",
    "bundle_yes_no",
    "CausalConfig",
    "CausalExtractionOrchestrator",
    "CausalGraphError",
    "detect_cause",
    "detect_dm_speaker",
    "detect_effect",
    "detect_roll_type",
    "extract_causal_links",
    "ExtractionClock",
    "ExtractionResult",
    "HierarchyResult",
    "InputShapeError",
    "KERNEL_VERSION",
    "KernelResult",
    "load_causal_config",
    "match_actor",
    "MergeConsistencyError",
    "OutlineMode",
    "render_hierarchy_outline",
    "render_timeline_outline",
    "run_hierarchy",
    "SnapshotExistsError",
    "YesNoBundle",
]

__version__ = "0.1.0"

_LAZY = {
    "KERNEL_VERSION": "causalgraph.kernel",
    "KernelResult": "causalgraph.kernel",
    "extract_causal_links": "causalgraph.kernel",
    "HierarchyResult": "causalgraph.merger",
    "run_hierarchy": "causalgraph.merger",
    "CausalExtractionOrchestrator": "causalgraph.orchestrator",
    "ExtractionResult": "causalgraph.orchestrator",
    "OutlineMode": "causalgraph.render",
    "render_hierarchy_outline": "causalgraph.render",
    "render_timeline_outline": "causalgraph.render",
}


def __getattr__(name: str):
    """Lazy import for modules that pull in numpy."""
    if name in _LAZY:
        import importlib

        return getattr(importlib.import_module(_LAZY[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
