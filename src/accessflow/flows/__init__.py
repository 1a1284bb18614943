"""Flow decomposition, edge allocation and run orchestration exports."""

from .edge_allocator import (
    EdgeFlowAccumulator,
    OriginContribution,
    allocate_edge_flows,
    allocate_origin,
)
from .service import (
    BetweennessAccessibilityResult,
    BetweennessAccessibilityService,
    RunContext,
    compute_origin,
)

__all__ = [
    "BetweennessAccessibilityResult",
    "BetweennessAccessibilityService",
    "EdgeFlowAccumulator",
    "OriginContribution",
    "RunContext",
    "allocate_edge_flows",
    "allocate_origin",
    "compute_origin",
]
