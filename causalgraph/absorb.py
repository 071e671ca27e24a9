"""Attach nearby unclaimed singletons to links and composites as context.

A singleton is absorbed by the best host whose center lies within
`radius_base + radius_per_mass * host.mass` lines and whose scoring
strength reaches `min_ctx_strength`. Each host takes at most
`floor(cap_base + cap_per_mass * host.mass)` context nodes. Absorbed
singletons become claimed and leave the top level; their ids are
recorded on the host's `context_ids`.
"""

import math
from typing import Sequence

from pydantic import BaseModel

from causalgraph.text import hill, lexical_overlap
from causalschema.link import CausalLink, NodeKind
from causalschema.params import HierarchyParams


class Absorption(BaseModel):
    model_config = {"frozen": True}

    host_id: str
    singleton_id: str
    distance: float
    strength: float


def find_absorptions(nodes: Sequence[CausalLink], params: HierarchyParams) -> list[Absorption]:
    """Choose singleton-to-host attachments among top-level nodes.

    Greedy by strength, then distance, then ids. Each singleton is absorbed
    at most once.
    """
    hosts = [n for n in nodes if n.node_kind != NodeKind.SINGLETON]
    singletons = [n for n in nodes if n.node_kind == NodeKind.SINGLETON and not n.claimed]
    options: list[Absorption] = []
    for host in hosts:
        radius = params.radius_base + params.radius_per_mass * host.mass
        for single in singletons:
            distance = abs(single.center_index - host.center_index)
            if distance > radius:
                continue
            lex = lexical_overlap(host.text(), single.text())
            strength = hill(distance, params.dist_tau, params.dist_p) * (1.0 + params.beta_lex * lex.score)
            if strength < params.min_ctx_strength:
                continue
            options.append(Absorption(host_id=host.id, singleton_id=single.id, distance=distance, strength=strength))

    options.sort(key=lambda a: (-a.strength, a.distance, a.host_id, a.singleton_id))
    capacity = {
        h.id: max(0, math.floor(params.cap_base + params.cap_per_mass * h.mass) - len(h.context_ids)) for h in hosts
    }
    taken: set[str] = set()
    chosen: list[Absorption] = []
    for option in options:
        if option.singleton_id in taken or capacity[option.host_id] <= 0:
            continue
        taken.add(option.singleton_id)
        capacity[option.host_id] -= 1
        chosen.append(option)
    return chosen


def apply_absorptions(arena: dict[str, CausalLink], absorptions: Sequence[Absorption]) -> None:
    """Record absorptions in the node arena, replacing the affected nodes."""
    for absorption in absorptions:
        host = arena[absorption.host_id]
        arena[host.id] = host.model_copy(update={"context_ids": host.context_ids + (absorption.singleton_id,)})
        single = arena[absorption.singleton_id]
        arena[single.id] = single.model_copy(update={"claimed": True})
