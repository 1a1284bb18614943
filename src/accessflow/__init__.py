"""Betweenness-accessibility: gravity accessibility between zones attributed to road edges."""

from .access import AccessibilityCalculator, DecayFunction, negative_exponential
from .config import AccessibilityConfig
from .errors import (
    AccessflowError,
    ConfigError,
    InvalidDecayFunction,
    InvalidEdgeCost,
    InvalidZone,
    RunCancelled,
    UnknownAnchorNode,
)
from .flows import BetweennessAccessibilityResult, BetweennessAccessibilityService
from .network import RoadGraph, Zone

__all__ = [
    "AccessflowError",
    "AccessibilityCalculator",
    "AccessibilityConfig",
    "BetweennessAccessibilityResult",
    "BetweennessAccessibilityService",
    "ConfigError",
    "DecayFunction",
    "InvalidDecayFunction",
    "InvalidEdgeCost",
    "InvalidZone",
    "RoadGraph",
    "RunCancelled",
    "UnknownAnchorNode",
    "Zone",
    "negative_exponential",
]
