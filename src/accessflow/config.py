from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from accessflow.access.decay import DecayFunction
from accessflow.errors import ConfigError, InvalidDecayFunction
from accessflow.network.domain_types import DEFAULT_OPPORTUNITY_ATTRIBUTE

logger = logging.getLogger(__name__)

_KNOWN_KEYS = {
    "decay",
    "opportunity_attribute",
    "directed",
    "num_workers",
    "timeout_seconds",
    "log_every",
}


@dataclass(frozen=True)
class AccessibilityConfig:
    """Run configuration for a betweenness-accessibility computation.

    Example YAML::

        decay:
          function: negative_exponential
          beta: 0.05
        opportunity_attribute: employment
        directed: false
        num_workers: 4
        timeout_seconds: 600
    """

    decay: DecayFunction = field(default_factory=DecayFunction)
    opportunity_attribute: str = DEFAULT_OPPORTUNITY_ATTRIBUTE
    directed: bool = False
    num_workers: Optional[int] = 1
    timeout_seconds: Optional[float] = None
    log_every: int = 100

    def __post_init__(self) -> None:
        if not self.opportunity_attribute or not str(self.opportunity_attribute).strip():
            raise ConfigError("opportunity_attribute cannot be empty")
        if self.num_workers is not None and int(self.num_workers) < 1:
            raise ConfigError("num_workers must be >= 1 when provided")
        if self.timeout_seconds is not None and float(self.timeout_seconds) <= 0:
            raise ConfigError("timeout_seconds must be positive when provided")
        if int(self.log_every) < 0:
            raise ConfigError("log_every cannot be negative")

    # --------------------------------------------------------------------- I/O --
    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "AccessibilityConfig":
        if not isinstance(data, Mapping):
            raise ConfigError("Accessibility config must be a mapping at the top level")
        unknown = set(data).difference(_KNOWN_KEYS)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(map(str, unknown))))

        decay_section = data.get("decay") or {}
        if not isinstance(decay_section, Mapping):
            raise ConfigError("'decay' must be a mapping with a 'function' entry and its parameter")
        try:
            decay = DecayFunction.from_mapping(decay_section) if decay_section else DecayFunction()
        except InvalidDecayFunction as exc:
            raise ConfigError(str(exc)) from exc

        directed = data.get("directed", False)
        if not isinstance(directed, bool):
            raise ConfigError(f"'directed' must be true or false, got {directed!r}")
        num_workers = data.get("num_workers", 1)
        timeout = data.get("timeout_seconds")
        try:
            return cls(
                decay=decay,
                opportunity_attribute=str(data.get("opportunity_attribute") or DEFAULT_OPPORTUNITY_ATTRIBUTE),
                directed=directed,
                num_workers=int(num_workers) if num_workers is not None else None,
                timeout_seconds=float(timeout) if timeout is not None else None,
                log_every=int(data.get("log_every", 100)),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid accessibility config: {exc}") from exc

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AccessibilityConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Accessibility config YAML not found at {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        return cls.from_mapping(data)

    def to_dict(self) -> Dict[str, object]:
        output: Dict[str, object] = {
            "decay": self.decay.to_dict(),
            "opportunity_attribute": self.opportunity_attribute,
            "directed": bool(self.directed),
            "log_every": int(self.log_every),
            # None is written as null and reloads as the cpu_count - 1 default.
            "num_workers": int(self.num_workers) if self.num_workers is not None else None,
        }
        if self.timeout_seconds is not None:
            output["timeout_seconds"] = float(self.timeout_seconds)
        return output

    def to_yaml(self, path: str | Path) -> None:
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(self.to_dict(), handle, sort_keys=True)

    def with_overrides(self, **overrides: object) -> "AccessibilityConfig":
        """Copy with every non-``None`` override applied (CLI flags win over YAML)."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


__all__ = ["AccessibilityConfig"]
