"""Least-cost paths between zone anchors.

Dijkstra with a binary heap, run once per origin anchor. Ties between
equal-cost paths follow a fixed policy so repeated runs agree edge for edge:

* neighbours are scanned in ascending edge-id order;
* when a node is reached again at exactly its current best cost, the
  predecessor edge with the lower edge id wins;
* heap entries with equal cost pop in insertion order.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np

from accessflow.errors import InvalidZone, UnknownAnchorNode

from .domain_types import Path, Zone
from .road_graph import RoadGraph

logger = logging.getLogger(__name__)


@dataclass
class SingleSourceResult:
    """Settled costs and predecessor edges from one Dijkstra run."""

    source: Hashable
    dist: Dict[Hashable, float]
    pred: Dict[Hashable, Tuple[Hashable, int]]

    def cost_to(self, target: Hashable) -> float:
        return self.dist.get(target, math.inf)

    def path_to(self, target: Hashable) -> Optional[Tuple[int, ...]]:
        """Edge ids from source to ``target``; ``None`` if unreachable."""
        if target == self.source:
            return ()
        if target not in self.dist:
            return None
        edges: List[int] = []
        node = target
        while node != self.source:
            prev, edge_id = self.pred[node]
            edges.append(edge_id)
            node = prev
        edges.reverse()
        return tuple(edges)


def single_source_dijkstra(
    graph: RoadGraph,
    source: Hashable,
    targets: Optional[Iterable[Hashable]] = None,
) -> SingleSourceResult:
    """Run Dijkstra from ``source``, stopping once every target is settled."""
    dist: Dict[Hashable, float] = {source: 0.0}
    pred: Dict[Hashable, Tuple[Hashable, int]] = {}
    settled: Set[Hashable] = set()
    counter = itertools.count()
    heap: List[Tuple[float, int, Hashable]] = [(0.0, next(counter), source)]

    remaining: Optional[Set[Hashable]] = None
    if targets is not None:
        remaining = set(targets)
        remaining.discard(source)
        if not remaining:
            return SingleSourceResult(source=source, dist=dist, pred=pred)

    while heap:
        d_u, _, u = heapq.heappop(heap)
        if u in settled:
            continue
        settled.add(u)
        if remaining is not None:
            remaining.discard(u)
            if not remaining:
                break
        for v, edge_id, cost in graph.neighbors(u):
            if v in settled:
                continue
            candidate = d_u + cost
            current = dist.get(v)
            if current is None or candidate < current:
                dist[v] = candidate
                pred[v] = (u, edge_id)
                heapq.heappush(heap, (candidate, next(counter), v))
            elif candidate == current and edge_id < pred[v][1]:
                pred[v] = (u, edge_id)

    # Drop tentative labels of nodes that were never settled (early exit).
    if remaining is not None and len(settled) < len(dist):
        dist = {node: value for node, value in dist.items() if node in settled}
        pred = {node: value for node, value in pred.items() if node in settled}
    return SingleSourceResult(source=source, dist=dist, pred=pred)


@dataclass
class PathTable:
    """Flat store of least-cost paths keyed by ``(origin_zone, destination_zone)``."""

    paths: Dict[Tuple[Hashable, Hashable], Path] = field(default_factory=dict)

    def add(self, path: Path) -> None:
        self.paths[(path.origin_zone, path.destination_zone)] = path

    def get(self, origin_zone: Hashable, destination_zone: Hashable) -> Optional[Path]:
        return self.paths.get((origin_zone, destination_zone))

    def edges_for(self, origin_zone: Hashable, destination_zone: Hashable) -> Optional[Tuple[int, ...]]:
        path = self.get(origin_zone, destination_zone)
        return path.edges if path is not None else None

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths.values())

    def __len__(self) -> int:
        return len(self.paths)


@dataclass
class ODCostResult:
    """Zone-by-zone least-cost matrix plus the concrete paths behind it."""

    zone_ids: List[Hashable]
    costs: np.ndarray
    paths: PathTable

    def index_of(self, zone_id: Hashable) -> int:
        return self.zone_ids.index(zone_id)


def validate_anchors(graph: RoadGraph, zones: Sequence[Zone]) -> None:
    """Fail fast on duplicate zone ids or anchors missing from the graph."""
    seen: Set[Hashable] = set()
    anchors: Dict[Hashable, Hashable] = {}
    for zone in zones:
        if zone.zone_id in seen:
            raise InvalidZone(f"duplicate zone id {zone.zone_id!r}")
        seen.add(zone.zone_id)
        if not graph.has_node(zone.anchor_node):
            raise UnknownAnchorNode(zone.zone_id, zone.anchor_node)
        other = anchors.get(zone.anchor_node)
        if other is not None:
            logger.warning(
                "Zones %r and %r share anchor node %r; their interaction is treated as self-potential",
                other,
                zone.zone_id,
                zone.anchor_node,
            )
        else:
            anchors[zone.anchor_node] = zone.zone_id


def origin_paths(
    graph: RoadGraph, origin: Zone, zones: Sequence[Zone]
) -> Tuple[np.ndarray, List[Optional[Tuple[int, ...]]]]:
    """Cost row and edge sequences from ``origin`` to every zone, in zone order."""
    result = single_source_dijkstra(graph, origin.anchor_node, (z.anchor_node for z in zones))
    costs = np.empty(len(zones), dtype=float)
    edges: List[Optional[Tuple[int, ...]]] = []
    for j, destination in enumerate(zones):
        if destination.zone_id == origin.zone_id:
            costs[j] = 0.0
            edges.append(())
            continue
        costs[j] = result.cost_to(destination.anchor_node)
        edges.append(result.path_to(destination.anchor_node))
    return costs, edges


def compute_od_costs(graph: RoadGraph, zones: Sequence[Zone]) -> ODCostResult:
    """All-pairs least costs and paths restricted to zone anchors."""
    validate_anchors(graph, zones)
    n = len(zones)
    costs = np.zeros((n, n), dtype=float)
    table = PathTable()
    for i, origin in enumerate(zones):
        row, edges = origin_paths(graph, origin, zones)
        costs[i, :] = row
        for j, destination in enumerate(zones):
            table.add(
                Path(
                    origin_zone=origin.zone_id,
                    destination_zone=destination.zone_id,
                    cost=float(row[j]),
                    edges=edges[j],
                )
            )
    unreachable = int(np.isinf(costs).sum())
    if unreachable:
        logger.info("%s of %s zone pairs are unreachable", unreachable, n * (n - 1))
    return ODCostResult(zone_ids=[z.zone_id for z in zones], costs=costs, paths=table)


__all__ = [
    "ODCostResult",
    "PathTable",
    "SingleSourceResult",
    "compute_od_costs",
    "origin_paths",
    "single_source_dijkstra",
    "validate_anchors",
]
