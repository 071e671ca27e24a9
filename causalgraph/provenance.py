"""Snapshot assembly and parameter hashing.

The parameter payload is serialized as canonical JSON (sorted keys, no
whitespace) so the same parameters always hash the same. The resolved DM
name set is part of the payload: it decides which lines become DM proximity
effects, so two snapshots with the same hash always carry the same links.
"""

import hashlib
import json
from typing import Iterable, Optional, Sequence

from causalgraph.clock import ExtractionClock
from causalgraph.kernel import KERNEL_VERSION
from causalschema.link import CausalLink
from causalschema.metrics import RoundMetrics
from causalschema.params import GraphParams, HierarchyParams
from causalschema.storage import LinkSnapshot

PARAM_HASH_LENGTH = 12


def kernel_params_json(
    graph: GraphParams,
    hierarchy: Optional[HierarchyParams] = None,
    dm_names: Optional[Iterable[str]] = None,
) -> str:
    payload: dict = {"graph": graph.model_dump(mode="json")}
    if hierarchy is not None:
        payload["hierarchy"] = hierarchy.model_dump(mode="json")
    if dm_names is not None:
        payload["dm_names"] = sorted(dm_names)
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def param_hash(params_json: str) -> str:
    return hashlib.sha256(params_json.encode("utf-8")).hexdigest()[:PARAM_HASH_LENGTH]


def build_snapshot(
    session_id: str,
    links: Sequence[CausalLink],
    round_metrics: Sequence[RoundMetrics],
    graph: GraphParams,
    hierarchy: Optional[HierarchyParams] = None,
    clock: Optional[ExtractionClock] = None,
    dm_names: Optional[Iterable[str]] = None,
) -> LinkSnapshot:
    """Assemble an immutable snapshot tagged with version and parameter hash.

    Args:
        session_id: Session the links belong to.
        links: Every node to persist.
        round_metrics: Metrics of each round that ran.
        graph: Kernel parameters used.
        hierarchy: Merge parameters used, if the merger ran.
        clock: Source of `extracted_at`; defaults to the current UTC time.
        dm_names: DM author names the kernel resolved, if known.
    """
    params_json = kernel_params_json(graph, hierarchy, dm_names)
    clock = clock or ExtractionClock.utc_now()
    return LinkSnapshot(
        session_id=session_id,
        kernel_version=KERNEL_VERSION,
        kernel_params_json=params_json,
        param_hash=param_hash(params_json),
        extracted_at=clock.now,
        links=tuple(links),
        round_metrics=tuple(round_metrics),
    )
