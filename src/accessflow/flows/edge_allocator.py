"""Flow decomposition and allocation of origin flows onto path edges."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from accessflow.access.accessibility import AccessibilityResult, OriginAccessibility
from accessflow.network.domain_types import Zone
from accessflow.network.shortest_paths import ODCostResult

logger = logging.getLogger(__name__)


@dataclass
class OriginContribution:
    """Everything a single origin adds to the run, built privately by one worker."""

    origin_index: int
    origin_zone: Hashable
    accessibility: float
    costs: np.ndarray
    impedance: np.ndarray
    shares: np.ndarray
    flows: np.ndarray
    paths: List[Optional[Tuple[int, ...]]]
    edge_flows: Dict[int, float] = field(default_factory=dict)

    @property
    def reachable_destinations(self) -> int:
        reachable = np.isfinite(self.costs)
        reachable[self.origin_index] = False
        return int(reachable.sum())

    @property
    def allocated_flow(self) -> float:
        return float(self.flows.sum())


def allocate_origin(
    zones: Sequence[Zone],
    access: OriginAccessibility,
    costs: np.ndarray,
    paths: Sequence[Optional[Tuple[int, ...]]],
) -> OriginContribution:
    """Scale an origin's shares by its population and push them onto its paths."""
    i = access.origin_index
    origin = zones[i]
    flows = float(origin.population) * access.shares
    edge_flows: Dict[int, float] = defaultdict(float)
    for j, flow in enumerate(flows):
        if j == i or flow == 0.0:
            continue
        path = paths[j]
        if path is None:
            continue
        for edge_id in path:
            edge_flows[edge_id] += float(flow)
    return OriginContribution(
        origin_index=i,
        origin_zone=origin.zone_id,
        accessibility=access.accessibility,
        costs=np.asarray(costs, dtype=float),
        impedance=access.impedance,
        shares=access.shares,
        flows=flows,
        paths=list(paths),
        edge_flows=dict(edge_flows),
    )


class EdgeFlowAccumulator:
    """Per-edge betweenness-accessibility, total and broken down by origin zone.

    Only :meth:`merge` mutates the accumulator; callers reduce per-origin
    partials into it one at a time.
    """

    def __init__(self, edge_ids: Iterable[int]) -> None:
        self.edge_ids: List[int] = sorted(int(e) for e in edge_ids)
        self._known = set(self.edge_ids)
        self.totals: Dict[int, float] = {edge_id: 0.0 for edge_id in self.edge_ids}
        self.by_origin: Dict[int, Dict[Hashable, float]] = {edge_id: {} for edge_id in self.edge_ids}
        self.origins: List[Hashable] = []

    def merge(self, contribution: OriginContribution) -> None:
        origin = contribution.origin_zone
        for edge_id, flow in contribution.edge_flows.items():
            if edge_id not in self._known:
                raise KeyError(f"Contribution from zone {origin!r} references unknown edge {edge_id}")
            breakdown = self.by_origin[edge_id]
            breakdown[origin] = breakdown.get(origin, 0.0) + flow
            self.totals[edge_id] += flow
        self.origins.append(origin)

    def total(self, edge_id: int) -> float:
        return self.totals[int(edge_id)]

    @property
    def merged_origins(self) -> int:
        return len(self.origins)

    def breakdown(self, edge_id: int) -> Dict[Hashable, float]:
        """Flow on ``edge_id`` for every merged origin, 0.0 where it contributed nothing."""
        flows = self.by_origin[int(edge_id)]
        return {origin: flows.get(origin, 0.0) for origin in self.origins}

    def grand_total(self) -> float:
        return float(sum(self.totals.values()))

    def to_origin_dataframe(self) -> pd.DataFrame:
        """Long table ``edge_id, origin_zone, flow`` for non-zero contributions."""
        rows = [
            {"edge_id": edge_id, "origin_zone": origin, "flow": flow}
            for edge_id in self.edge_ids
            for origin, flow in self.by_origin[edge_id].items()
        ]
        return pd.DataFrame(rows, columns=["edge_id", "origin_zone", "flow"])


def allocate_edge_flows(
    edge_ids: Iterable[int],
    zones: Sequence[Zone],
    od: ODCostResult,
    access: AccessibilityResult,
) -> EdgeFlowAccumulator:
    """Batch allocation over precomputed OD and accessibility matrices."""
    accumulator = EdgeFlowAccumulator(edge_ids)
    for i, origin in enumerate(zones):
        row = OriginAccessibility(
            origin_index=i,
            impedance=access.impedance[i],
            accessibility=float(access.accessibility[i]),
            shares=access.shares[i],
        )
        paths = [od.paths.edges_for(origin.zone_id, dest.zone_id) for dest in zones]
        accumulator.merge(allocate_origin(zones, row, od.costs[i], paths))
    logger.debug("Allocated flows for %s origins onto %s edges", len(zones), len(accumulator.edge_ids))
    return accumulator


__all__ = [
    "EdgeFlowAccumulator",
    "OriginContribution",
    "allocate_edge_flows",
    "allocate_origin",
]
