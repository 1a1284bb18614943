"""Exception taxonomy for betweenness-accessibility runs.

Structural input problems (bad edges, unknown anchors, malformed zones or
configuration) are fatal and abort a run before any output is produced.
Unreachable pairs and zero-accessibility origins are not errors; they simply
contribute nothing downstream.
"""

from __future__ import annotations

from typing import Hashable, Optional


class AccessflowError(Exception):
    """Base class for all errors raised by :mod:`accessflow`."""


class InvalidEdgeCost(AccessflowError, ValueError):
    """Edge travel cost is not a finite positive number."""

    def __init__(self, u: Hashable, v: Hashable, cost: object, edge_id: Optional[int] = None):
        self.u = u
        self.v = v
        self.cost = cost
        self.edge_id = edge_id
        label = f"edge {edge_id} " if edge_id is not None else "edge "
        super().__init__(
            f"{label}({u!r}, {v!r}) has invalid cost {cost!r}; costs must be finite and > 0"
        )


class UnknownAnchorNode(AccessflowError, ValueError):
    """Zone anchor node does not exist in the road graph."""

    def __init__(self, zone_id: Hashable, node: Hashable):
        self.zone_id = zone_id
        self.node = node
        super().__init__(f"zone {zone_id!r} is anchored to node {node!r}, which is not in the graph")


class InvalidZone(AccessflowError, ValueError):
    """Zone attributes violate the data model (negative counts, duplicate ids, ...)."""


class InvalidDecayFunction(AccessflowError, ValueError):
    """Unknown decay function name or out-of-range decay parameter."""


class ConfigError(AccessflowError, ValueError):
    """Malformed run configuration."""


class RunCancelled(AccessflowError, RuntimeError):
    """Run stopped cooperatively (timeout or cancel event); partial results discarded."""

    def __init__(self, reason: str, completed: int = 0, total: int = 0):
        self.reason = reason
        self.completed = completed
        self.total = total
        super().__init__(f"run cancelled after {completed}/{total} origins: {reason}")


__all__ = [
    "AccessflowError",
    "ConfigError",
    "InvalidDecayFunction",
    "InvalidEdgeCost",
    "InvalidZone",
    "RunCancelled",
    "UnknownAnchorNode",
]
