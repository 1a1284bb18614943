from __future__ import annotations

import pandas as pd
import pytest

from accessflow.errors import InvalidZone
from accessflow.io import load_zones_csv, zones_from_dataframe


def test_zones_keep_extra_numeric_columns(tmp_path):
    df = pd.DataFrame(
        {
            "zone_id": ["north", "south"],
            "anchor_node": [1.0, 2.0],
            "population": [120, None],
            "employment": [40.0, 15.0],
            "label": ["N", "S"],
        }
    )
    path = tmp_path / "zones.csv"
    df.to_csv(path, index=False)

    zones = load_zones_csv(str(path), opportunity_attribute="employment")

    assert [z.zone_id for z in zones] == ["north", "south"]
    assert zones[0].anchor_node == 1
    assert zones[1].population == 0.0
    assert zones[0].opportunity == 0.0
    assert zones[1].opportunity_value("employment") == pytest.approx(15.0)
    assert "label" not in zones[0].attributes


def test_zone_table_validation():
    with pytest.raises(ValueError, match="anchor_node"):
        zones_from_dataframe(pd.DataFrame({"zone_id": [1], "population": [1]}))
    with pytest.raises(InvalidZone):
        zones_from_dataframe(
            pd.DataFrame({"zone_id": [1], "anchor_node": [1], "population": [1]}),
            opportunity_attribute="jobs",
        )
    with pytest.raises(InvalidZone):
        zones_from_dataframe(
            pd.DataFrame(
                {"zone_id": [1], "anchor_node": [1], "population": [-5], "opportunity": [1]}
            )
        )
