from __future__ import annotations

import textwrap

import pytest

from accessflow.access.decay import DecayFunction, negative_exponential
from accessflow.config import AccessibilityConfig
from accessflow.errors import ConfigError


def test_defaults():
    config = AccessibilityConfig()
    assert config.decay == negative_exponential(0.05)
    assert config.opportunity_attribute == "opportunity"
    assert config.directed is False
    assert config.num_workers == 1


def test_config_yaml_roundtrip(tmp_path):
    yaml_text = textwrap.dedent(
        """
        decay:
          function: power
          gamma: 1.5
        opportunity_attribute: employment
        directed: true
        num_workers: 3
        timeout_seconds: 120
        """
    ).strip()
    config_path = tmp_path / "run.yaml"
    config_path.write_text(yaml_text, encoding="utf-8")

    config = AccessibilityConfig.from_yaml(config_path)
    assert config.decay == DecayFunction("power", {"gamma": 1.5})
    assert config.opportunity_attribute == "employment"
    assert config.directed is True
    assert config.num_workers == 3
    assert config.timeout_seconds == pytest.approx(120.0)

    roundtrip_path = tmp_path / "nested" / "roundtrip.yaml"
    config.to_yaml(roundtrip_path)
    assert AccessibilityConfig.from_yaml(roundtrip_path) == config


def test_config_rejects_bad_decay_and_workers(tmp_path):
    with pytest.raises(ConfigError):
        AccessibilityConfig.from_mapping({"decay": {"function": "negative_exponential", "beta": -1}})
    with pytest.raises(ConfigError):
        AccessibilityConfig.from_mapping({"decay": "exp"})
    with pytest.raises(ConfigError):
        AccessibilityConfig.from_mapping({"num_workers": 0})
    with pytest.raises(ConfigError):
        AccessibilityConfig.from_mapping({"timeout_seconds": "soon"})
    with pytest.raises(FileNotFoundError):
        AccessibilityConfig.from_yaml(tmp_path / "missing.yaml")


def test_with_overrides_skips_none():
    config = AccessibilityConfig(opportunity_attribute="jobs")
    updated = config.with_overrides(opportunity_attribute=None, directed=True)
    assert updated.opportunity_attribute == "jobs"
    assert updated.directed is True
    assert config.with_overrides(directed=None) is config


def test_auto_worker_count_survives_yaml_roundtrip(tmp_path):
    config = AccessibilityConfig(num_workers=None)
    path = tmp_path / "auto.yaml"
    config.to_yaml(path)

    assert "num_workers: null" in path.read_text(encoding="utf-8")
    reloaded = AccessibilityConfig.from_yaml(path)
    assert reloaded.num_workers is None
    assert reloaded == config


def test_directed_requires_a_real_boolean(tmp_path):
    assert AccessibilityConfig.from_mapping({"directed": False}).directed is False
    with pytest.raises(ConfigError, match="directed"):
        AccessibilityConfig.from_mapping({"directed": "false"})
    with pytest.raises(ConfigError, match="directed"):
        AccessibilityConfig.from_mapping({"directed": 1})

    config_path = tmp_path / "quoted.yaml"
    config_path.write_text('directed: "false"\n', encoding="utf-8")
    with pytest.raises(ConfigError):
        AccessibilityConfig.from_yaml(config_path)
