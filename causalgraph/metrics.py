"""Round metrics: counts and order statistics over the top-level nodes."""

import math
from typing import Iterable, Mapping, Sequence

import numpy as np

from causalschema.link import CausalLink, NodeKind
from causalschema.metrics import MetricStats, RoundMetrics, RoundPhase

STAT_FIELDS = ("mass", "strength", "strength_internal")


def percentile(sorted_values: np.ndarray, p: float) -> float:
    """Lower nearest-rank percentile of an already sorted array."""
    if sorted_values.size == 0:
        return 0.0
    idx = min(sorted_values.size - 1, math.floor(p / 100.0 * sorted_values.size))
    return float(sorted_values[idx])


def metric_stats(values: Iterable[float]) -> MetricStats:
    arr = np.sort(np.fromiter(values, dtype=float))
    if arr.size == 0:
        return MetricStats()
    return MetricStats(
        min=float(arr[0]),
        p50=percentile(arr, 50),
        p90=percentile(arr, 90),
        max=float(arr[-1]),
    )


def node_counts(nodes: Sequence[CausalLink]) -> dict[str, int]:
    return {
        "nodes_total": len(nodes),
        "links": sum(1 for n in nodes if n.node_kind == NodeKind.LINK),
        "singletons": sum(1 for n in nodes if n.node_kind == NodeKind.SINGLETON),
        "composites": sum(1 for n in nodes if n.node_kind == NodeKind.COMPOSITE),
    }


def build_round_metrics(
    round_no: int,
    phase: RoundPhase,
    label: str,
    nodes: Sequence[CausalLink],
    extra_counts: Mapping[str, int] | None = None,
) -> RoundMetrics:
    """Summarize the top-level nodes at the end of a round.

    Args:
        round_no: Round number (1 for the kernel).
        phase: `link` for the kernel round, `anneal` for merge rounds.
        label: Human-readable round label.
        nodes: Nodes not consumed by any composite.
        extra_counts: Round-specific counts such as pairs formed.
    """
    counts = node_counts(nodes)
    if extra_counts:
        counts.update(extra_counts)
    return RoundMetrics(
        round=round_no,
        phase=phase,
        label=label,
        counts=counts,
        stats={name: metric_stats(getattr(n, name) for n in nodes) for name in STAT_FIELDS},
    )


def format_round_metrics(rounds: Sequence[RoundMetrics]) -> str:
    """Plain-text summary of round metrics, one block per round."""
    lines: list[str] = []
    for metrics in rounds:
        lines.append(f"Round {metrics.round} ({metrics.phase.value}) {metrics.label}")
        counts = " ".join(f"{k}={v}" for k, v in metrics.counts.items())
        lines.append(f"  counts: {counts}")
        for name, stats in metrics.stats.items():
            lines.append(
                f"  {name}: min={stats.min:.3f} p50={stats.p50:.3f} p90={stats.p90:.3f} max={stats.max:.3f}"
            )
    return "\n".join(lines) + ("\n" if lines else "")
