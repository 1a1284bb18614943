"""Gravity-type accessibility and its decomposition into destination shares."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, List, Sequence

import numpy as np

from accessflow.network.domain_types import DEFAULT_OPPORTUNITY_ATTRIBUTE, Zone
from accessflow.network.shortest_paths import ODCostResult

from .decay import DecayFunction

logger = logging.getLogger(__name__)


@dataclass
class OriginAccessibility:
    """Accessibility of one origin zone and the per-destination shares behind it."""

    origin_index: int
    impedance: np.ndarray
    accessibility: float
    shares: np.ndarray

    @property
    def degenerate(self) -> bool:
        return self.accessibility <= 0.0


@dataclass
class AccessibilityResult:
    """Matrix form of the accessibility stage, rows indexed by origin zone."""

    zone_ids: List[Hashable]
    impedance: np.ndarray
    accessibility: np.ndarray
    shares: np.ndarray


class AccessibilityCalculator:
    """Turns least-cost rows into impedances, accessibility and destination shares.

    ``impedance[i][j] = decay(cost[i][j])`` for reachable pairs of distinct
    anchors and 0 otherwise; ``accessibility[i] = sum_j impedance[i][j] * O_j``;
    ``share[i][j] = impedance[i][j] * O_j / accessibility[i]``, all zero when
    the origin has no accessibility.
    """

    def __init__(
        self,
        decay: DecayFunction | None = None,
        *,
        opportunity_attribute: str = DEFAULT_OPPORTUNITY_ATTRIBUTE,
    ) -> None:
        self.decay = decay or DecayFunction()
        self.opportunity_attribute = opportunity_attribute

    def opportunities(self, zones: Sequence[Zone]) -> np.ndarray:
        return np.array(
            [zone.opportunity_value(self.opportunity_attribute) for zone in zones], dtype=float
        )

    def origin_row(
        self,
        origin_index: int,
        costs: np.ndarray,
        zones: Sequence[Zone],
        opportunities: np.ndarray | None = None,
    ) -> OriginAccessibility:
        """Accessibility for a single origin given its cost row (zone order)."""
        if opportunities is None:
            opportunities = self.opportunities(zones)
        impedance = self.decay(costs)
        origin_anchor = zones[origin_index].anchor_node
        for j, zone in enumerate(zones):
            if zone.anchor_node == origin_anchor:
                impedance[j] = 0.0

        weighted = impedance * opportunities
        accessibility = float(weighted.sum())
        if accessibility > 0.0:
            shares = weighted / accessibility
        else:
            shares = np.zeros_like(weighted)
            logger.debug(
                "Zone %r has zero accessibility; it contributes no flow",
                zones[origin_index].zone_id,
            )
        return OriginAccessibility(
            origin_index=origin_index,
            impedance=impedance,
            accessibility=accessibility,
            shares=shares,
        )

    def compute(self, od: ODCostResult, zones: Sequence[Zone]) -> AccessibilityResult:
        """Matrix form over a full OD cost result."""
        if [z.zone_id for z in zones] != list(od.zone_ids):
            raise ValueError("Zones must be given in the same order as the OD cost matrix.")
        opportunities = self.opportunities(zones)
        n = len(zones)
        impedance = np.zeros((n, n), dtype=float)
        shares = np.zeros((n, n), dtype=float)
        accessibility = np.zeros(n, dtype=float)
        for i in range(n):
            row = self.origin_row(i, od.costs[i], zones, opportunities)
            impedance[i] = row.impedance
            shares[i] = row.shares
            accessibility[i] = row.accessibility
        if n and not opportunities.any():
            logger.warning(
                "Opportunity attribute %r is zero for every zone; all accessibility is zero",
                self.opportunity_attribute,
            )
        return AccessibilityResult(
            zone_ids=list(od.zone_ids),
            impedance=impedance,
            accessibility=accessibility,
            shares=shares,
        )


__all__ = ["AccessibilityCalculator", "AccessibilityResult", "OriginAccessibility"]
