"""Accessibility package exports."""

from .accessibility import AccessibilityCalculator, AccessibilityResult, OriginAccessibility
from .decay import (
    DEFAULT_BETA,
    DEFAULT_DECAY,
    DecayFunction,
    available_decay_functions,
    cumulative,
    gaussian,
    negative_exponential,
    power,
)

__all__ = [
    "AccessibilityCalculator",
    "AccessibilityResult",
    "DEFAULT_BETA",
    "DEFAULT_DECAY",
    "DecayFunction",
    "OriginAccessibility",
    "available_decay_functions",
    "cumulative",
    "gaussian",
    "negative_exponential",
    "power",
]
