"""Distance-decay (impedance) functions mapping travel cost into [0, 1]."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping

import numpy as np

from accessflow.errors import InvalidDecayFunction

DEFAULT_DECAY = "negative_exponential"
DEFAULT_BETA = 0.05


def _negative_exponential(costs: np.ndarray, beta: float) -> np.ndarray:
    return np.exp(-beta * costs)


def _power(costs: np.ndarray, gamma: float) -> np.ndarray:
    # c^-gamma exceeds 1 below c = 1; flat at 1 there.
    return np.power(np.maximum(costs, 1.0), -gamma)


def _cumulative(costs: np.ndarray, threshold: float) -> np.ndarray:
    return (costs <= threshold).astype(float)


def _gaussian(costs: np.ndarray, sigma: float) -> np.ndarray:
    return np.exp(-(costs * costs) / (2.0 * sigma * sigma))


# name -> (kernel, parameter name, validator for the parameter)
_REGISTRY: Dict[str, tuple] = {
    "negative_exponential": (_negative_exponential, "beta", lambda value: value >= 0.0),
    "power": (_power, "gamma", lambda value: value >= 0.0),
    "cumulative": (_cumulative, "threshold", lambda value: value >= 0.0),
    "gaussian": (_gaussian, "sigma", lambda value: value > 0.0),
}

_DEFAULT_PARAMS: Dict[str, float] = {
    "negative_exponential": DEFAULT_BETA,
    "power": 1.0,
    "cumulative": 30.0,
    "gaussian": 20.0,
}


@dataclass(frozen=True)
class DecayFunction:
    """Named, parameterised decay function.

    Values are monotonically non-increasing in cost and lie in [0, 1]; infinite
    costs (unreachable pairs) always map to 0.
    """

    name: str = DEFAULT_DECAY
    params: Mapping[str, float] = field(default_factory=lambda: {"beta": DEFAULT_BETA})

    def __post_init__(self) -> None:
        if self.name not in _REGISTRY:
            raise InvalidDecayFunction(
                f"Unknown decay function {self.name!r}; expected one of {', '.join(available_decay_functions())}"
            )
        _, param_name, check = _REGISTRY[self.name]
        if param_name not in self.params:
            raise InvalidDecayFunction(f"Decay function {self.name!r} requires parameter {param_name!r}")
        extra = set(self.params).difference({param_name})
        if extra:
            raise InvalidDecayFunction(
                f"Unexpected parameters for {self.name!r}: {', '.join(sorted(extra))}"
            )
        value = float(self.params[param_name])
        if math.isnan(value) or math.isinf(value) or not check(value):
            raise InvalidDecayFunction(
                f"Invalid value {self.params[param_name]!r} for {self.name!r} parameter {param_name!r}"
            )
        object.__setattr__(self, "params", {param_name: value})

    @property
    def parameter(self) -> float:
        return next(iter(self.params.values()))

    def __call__(self, costs: np.ndarray) -> np.ndarray:
        kernel: Callable[[np.ndarray, float], np.ndarray] = _REGISTRY[self.name][0]
        costs = np.asarray(costs, dtype=float)
        finite = np.isfinite(costs)
        values = np.zeros_like(costs, dtype=float)
        if finite.any():
            values[finite] = kernel(costs[finite], self.parameter)
        return values

    def to_dict(self) -> Dict[str, object]:
        return {"function": self.name, **{key: float(val) for key, val in self.params.items()}}

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> "DecayFunction":
        """Build from ``{"function": name, <param>: value}``."""
        data = dict(payload)
        name = str(data.pop("function", DEFAULT_DECAY))
        if not data:
            return cls.with_defaults(name)
        try:
            params = {str(key): float(value) for key, value in data.items()}
        except (TypeError, ValueError) as exc:
            raise InvalidDecayFunction(f"Decay parameters must be numeric: {payload!r}") from exc
        return cls(name=name, params=params)

    @classmethod
    def with_defaults(cls, name: str) -> "DecayFunction":
        if name not in _REGISTRY:
            raise InvalidDecayFunction(f"Unknown decay function {name!r}")
        param_name = _REGISTRY[name][1]
        return cls(name=name, params={param_name: _DEFAULT_PARAMS[name]})


def negative_exponential(beta: float = DEFAULT_BETA) -> DecayFunction:
    return DecayFunction("negative_exponential", {"beta": beta})


def power(gamma: float = 1.0) -> DecayFunction:
    return DecayFunction("power", {"gamma": gamma})


def cumulative(threshold: float) -> DecayFunction:
    return DecayFunction("cumulative", {"threshold": threshold})


def gaussian(sigma: float) -> DecayFunction:
    return DecayFunction("gaussian", {"sigma": sigma})


def decay_parameter_name(name: str) -> str:
    if name not in _REGISTRY:
        raise InvalidDecayFunction(f"Unknown decay function {name!r}")
    return _REGISTRY[name][1]


def available_decay_functions() -> list:
    return sorted(_REGISTRY)


__all__ = [
    "DEFAULT_BETA",
    "DEFAULT_DECAY",
    "DecayFunction",
    "available_decay_functions",
    "cumulative",
    "decay_parameter_name",
    "gaussian",
    "negative_exponential",
    "power",
]
