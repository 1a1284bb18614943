"""Core dataclasses shared across the network package."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Hashable, Optional, Tuple

from accessflow.errors import InvalidZone

DEFAULT_OPPORTUNITY_ATTRIBUTE = "opportunity"


@dataclass(frozen=True)
class EdgeRecord:
    """Single road segment. ``cost`` drives path search, ``length`` is reporting only."""

    edge_id: int
    u: Hashable
    v: Hashable
    cost: float
    length: float = 0.0

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.edge_id}:{self.u}-{self.v}"


@dataclass(frozen=True)
class Zone:
    """Analysis zone bound to a single anchor node of the road graph."""

    zone_id: Hashable
    anchor_node: Hashable
    population: float = 0.0
    opportunity: float = 0.0
    attributes: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_count(self.zone_id, "population", self.population)
        _check_count(self.zone_id, DEFAULT_OPPORTUNITY_ATTRIBUTE, self.opportunity)

    def opportunity_value(self, attribute: str = DEFAULT_OPPORTUNITY_ATTRIBUTE) -> float:
        """Return the destination weight used for accessibility."""
        if attribute == DEFAULT_OPPORTUNITY_ATTRIBUTE:
            return float(self.opportunity)
        if attribute == "population":
            return float(self.population)
        if attribute not in self.attributes:
            raise InvalidZone(
                f"zone {self.zone_id!r} has no opportunity attribute {attribute!r}"
            )
        value = float(self.attributes[attribute])
        _check_count(self.zone_id, attribute, value)
        return value


@dataclass(frozen=True)
class Path:
    """Least-cost path between two zone anchors.

    ``edges`` is ``None`` when the destination is unreachable and empty for a
    self pair.
    """

    origin_zone: Hashable
    destination_zone: Hashable
    cost: float
    edges: Optional[Tuple[int, ...]]

    @property
    def exists(self) -> bool:
        return self.edges is not None


def _check_count(zone_id: Hashable, label: str, value: object) -> None:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidZone(f"zone {zone_id!r} has non-numeric {label} {value!r}") from exc
    if math.isnan(number) or number < 0:
        raise InvalidZone(f"zone {zone_id!r} has invalid {label} {value!r}; must be >= 0")


def normalize_node_id(value: object) -> Hashable:
    """Integral floats (pandas upcasts) become ints; numpy scalars become Python scalars."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if hasattr(value, "item"):
        return value.item()
    return value  # type: ignore[return-value]
