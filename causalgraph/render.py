"""Timeline outline: a nested, human-readable view of links over the transcript.

Every level-1 link with an effect and every composite becomes a span
marker::

    - [L2 m=3.40 s=2.71 span L3-L9 center=L6.1]

Transcript lines are emitted in order between the markers, indented by
the number of distinct levels of spans open on that line.

`render_hierarchy_outline` is the tree view: the heaviest nodes, each
expanded into its members with the cause, effect and context lines of
every level-1 node::

    - [L2 composite m=3.40 s=2.71 span L3-L9 center=L6.1]
      - [L1 link m=1.70 s=0.98 span L3-L5 center=L4]
        - L3 (Alice): "I try the door."
        - L5 (DM): "It opens."
"""

from collections import defaultdict
from enum import Enum
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel

from causalgraph.errors import MergeConsistencyError
from causalschema.link import CausalLink, NodeKind
from causalschema.transcript import TranscriptLine

HEADER = "# Timeline Outline"
HIERARCHY_HEADER = "# Hierarchy Outline"
INDENT = "  "


class SpanItem(BaseModel):
    model_config = {"frozen": True}

    id: str
    level: int
    start: int
    end: int
    center: float
    mass: float
    strength: float
    parent_id: Optional[str] = None

    @property
    def length(self) -> int:
        return self.end - self.start


def collect_descendants(roots: Sequence[CausalLink], arena: Mapping[str, CausalLink]) -> list[CausalLink]:
    """Roots and all of their descendants, in depth-first encounter order.

    Raises:
        MergeConsistencyError: If a member is missing from the arena or does
            not sit at a strictly lower level (which also rules out cycles).
    """
    out: list[CausalLink] = []
    seen: set[str] = set()
    for root in roots:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            out.append(node)
            if node.level < 2 or not node.members:
                continue
            children = []
            for member_id in node.members:
                child = arena.get(member_id)
                if child is None:
                    raise MergeConsistencyError(f"composite {node.id} references missing member {member_id}")
                if child.level >= node.level:
                    raise MergeConsistencyError(f"composite {node.id} has member {member_id} at level {child.level}")
                children.append(child)
            stack.extend(reversed(children))
    return out


def assign_parents(nodes: Sequence[CausalLink], arena: Mapping[str, CausalLink]) -> dict[str, str]:
    """Map each child id to its lowest-level enclosing composite.

    Ties keep the composite encountered first.
    """
    parent_of: dict[str, str] = {}
    for node in nodes:
        if node.level < 2 or not node.members:
            continue
        for member_id in node.members:
            child = arena[member_id]
            if child.level >= node.level:
                continue
            current = parent_of.get(member_id)
            if current is None or node.level < arena[current].level:
                parent_of[member_id] = node.id
    return parent_of


def _spans(nodes: Sequence[CausalLink], parent_of: Mapping[str, str]) -> list[SpanItem]:
    spans = []
    for node in nodes:
        if node.node_kind == NodeKind.SINGLETON:
            continue
        if node.level == 1 and node.effect_anchor_index is None:
            continue
        spans.append(
            SpanItem(
                id=node.id,
                level=node.level,
                start=node.span_start_index,
                end=node.span_end_index,
                center=node.center_index,
                mass=node.mass,
                strength=node.strength_internal,
                parent_id=parent_of.get(node.id),
            )
        )
    return spans


def render_timeline_outline(
    nodes: Sequence[CausalLink],
    transcript: Sequence[TranscriptLine],
    node_map: Optional[Mapping[str, CausalLink]] = None,
) -> str:
    """Render nodes over the transcript as an indented outline.

    Args:
        nodes: Nodes to show; composites are expanded to their descendants.
        transcript: Lines in order.
        node_map: Full id-to-node map used to resolve members. Defaults to
            a map of `nodes`.

    Returns:
        The outline text, ending in a newline.

    Raises:
        MergeConsistencyError: If a composite references an unknown member.
    """
    arena = dict(node_map) if node_map is not None else {}
    for node in nodes:
        arena.setdefault(node.id, node)
    relevant = collect_descendants(nodes, arena)
    parent_of = assign_parents(relevant, arena)
    spans = _spans(relevant, parent_of)
    span_by_id = {s.id: s for s in spans}

    starts: dict[int, list[SpanItem]] = defaultdict(list)
    for span in spans:
        starts[span.start].append(span)
    for opening in starts.values():
        opening.sort(key=lambda s: (s.parent_id is not None, -s.level, -s.length, s.center, s.id))

    active: list[SpanItem] = []

    def active_ancestors(span: SpanItem) -> int:
        active_ids = {s.id for s in active}
        count = 0
        visited: set[str] = set()
        parent_id = span.parent_id
        while parent_id and parent_id not in visited:
            visited.add(parent_id)
            if parent_id in active_ids:
                count += 1
            parent = span_by_id.get(parent_id)
            parent_id = parent.parent_id if parent else None
        return count

    def higher_active_levels(level: int) -> int:
        return len({s.level for s in active if s.level > level})

    lines = [HEADER, ""]
    for line in transcript:
        i = line.line_index
        active = [s for s in active if s.end >= i]
        for span in starts.get(i, []):
            depth = max(active_ancestors(span), higher_active_levels(span.level))
            lines.append(
                f"{INDENT * depth}- [L{span.level} m={span.mass:.2f} s={span.strength:.2f} "
                f"span L{span.start}-L{span.end} center=L{span.center:g}]"
            )
            active.append(span)
        depth = len({s.level for s in active})
        lines.append(f'{INDENT * depth}- L{i} ({line.author_name}): "{line.content}"')
        active = [s for s in active if s.end > i]

    lines.append("")
    return "\n".join(lines)


class OutlineMode(str, Enum):
    COMPOSITES_ONLY = "composites_only"
    ALL_NODES = "all_nodes"


def _format_center(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _format_line(by_index: Mapping[int, TranscriptLine], index: Optional[int]) -> str:
    line = by_index.get(index) if index is not None else None
    if line is None:
        return f"L{index if index is not None else '?'} [missing]"
    return f'L{line.line_index} ({line.author_name}): "{line.content}"'


def select_top_nodes(nodes: Sequence[CausalLink], top_k: int, mode: OutlineMode) -> list[CausalLink]:
    """The `top_k` heaviest nodes for a hierarchy outline.

    In `composites_only` mode, composites come first and multi-line level-1
    links fill any remaining places.
    """
    if mode == OutlineMode.ALL_NODES:
        return sorted(nodes, key=lambda n: -n.mass)[:top_k]
    composites = sorted((n for n in nodes if n.is_composite), key=lambda n: -n.mass)
    leaves = sorted(
        (n for n in nodes if n.level == 1 and n.span_start_index != n.span_end_index),
        key=lambda n: -n.mass,
    )
    return (composites + leaves)[:top_k]


def _expand(
    node: CausalLink,
    arena: Mapping[str, CausalLink],
    by_index: Mapping[int, TranscriptLine],
    lines: list[str],
    depth: int,
    max_depth: int,
    seen: frozenset[str],
) -> None:
    if depth > max_depth or node.id in seen:
        return
    seen = seen | {node.id}
    indent = INDENT * depth
    boost = f" boost={node.mass_boost:.2f}" if node.mass_boost > 0 else ""
    lines.append(
        f"{indent}- [L{node.level} {node.node_kind.value} m={node.mass:.2f} s={node.strength_internal:.2f} "
        f"span L{node.span_start_index}-L{node.span_end_index} center=L{_format_center(node.center_index)}{boost}]"
    )
    if not node.is_composite:
        for index in (node.cause_anchor_index, node.effect_anchor_index):
            if index is not None:
                lines.append(f"{indent}{INDENT}- {_format_line(by_index, index)}")
        for context_id in node.context_ids:
            context = arena.get(context_id)
            index = None
            if context is not None:
                index = context.cause_anchor_index if context.cause_anchor_index is not None else context.effect_anchor_index
            lines.append(f"{indent}{INDENT * 2}- ctx {_format_line(by_index, index)}")
        return
    for member_id in node.members or ():
        member = arena.get(member_id)
        if member is not None:
            _expand(member, arena, by_index, lines, depth + 1, max_depth, seen)


def render_hierarchy_outline(
    nodes: Sequence[CausalLink],
    transcript: Sequence[TranscriptLine],
    top_k: int = 10,
    mode: OutlineMode = OutlineMode.COMPOSITES_ONLY,
    node_map: Optional[Mapping[str, CausalLink]] = None,
    max_depth: int = 3,
) -> str:
    """Render the heaviest nodes as expanded trees, one block per node.

    Each block shows the node marker, then its members indented one step
    per level down to `max_depth`. Level-1 nodes list their cause and effect
    lines and any absorbed context lines.

    Args:
        nodes: Candidate nodes, usually every node of a hierarchy result.
        transcript: Lines in order.
        top_k: Number of blocks to render.
        mode: Which nodes qualify; see `select_top_nodes`.
        node_map: Full id-to-node map used to resolve members. Defaults to
            a map of `nodes`.
        max_depth: Deepest member level expanded below each block root.
    """
    mode = OutlineMode(mode)
    arena = dict(node_map) if node_map is not None else {n.id: n for n in nodes}
    by_index = {line.line_index: line for line in transcript}
    selected = select_top_nodes(nodes, top_k, mode)

    lines = [f"{HIERARCHY_HEADER} (Top {top_k}, mode={mode.value})", ""]
    for node in selected:
        _expand(node, arena, by_index, lines, 0, max_depth, frozenset())
        lines.append("")
    if not selected:
        lines.extend(["- No nodes available for this mode.", ""])
    return "\n".join(lines)
