"""Network package exports."""

from .domain_types import DEFAULT_OPPORTUNITY_ATTRIBUTE, EdgeRecord, Path, Zone
from .road_graph import RoadGraph
from .shortest_paths import (
    ODCostResult,
    PathTable,
    SingleSourceResult,
    compute_od_costs,
    origin_paths,
    single_source_dijkstra,
    validate_anchors,
)

__all__ = [
    "DEFAULT_OPPORTUNITY_ATTRIBUTE",
    "EdgeRecord",
    "ODCostResult",
    "Path",
    "PathTable",
    "RoadGraph",
    "SingleSourceResult",
    "Zone",
    "compute_od_costs",
    "origin_paths",
    "single_source_dijkstra",
    "validate_anchors",
]
