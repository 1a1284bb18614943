"""CSV loaders for zones and writers for the result tables."""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

import pandas as pd

from accessflow.errors import InvalidZone
from accessflow.flows.service import BetweennessAccessibilityResult
from accessflow.network.domain_types import DEFAULT_OPPORTUNITY_ATTRIBUTE, Zone, normalize_node_id

logger = logging.getLogger(__name__)

ZONE_COLUMNS = ("zone_id", "anchor_node", "population")


def zones_from_dataframe(
    df: pd.DataFrame, *, opportunity_attribute: str = DEFAULT_OPPORTUNITY_ATTRIBUTE
) -> List[Zone]:
    """Build zones from ``zone_id, anchor_node, population`` plus opportunity columns.

    Numeric columns other than the required ones are kept as zone attributes so
    any of them can be selected as the opportunity attribute.
    """
    missing = set(ZONE_COLUMNS).difference(df.columns)
    if missing:
        raise ValueError(f"Zone table missing columns: {', '.join(sorted(missing))}")
    if opportunity_attribute not in df.columns and opportunity_attribute != "population":
        raise InvalidZone(f"Zone table has no opportunity column {opportunity_attribute!r}")

    reserved = set(ZONE_COLUMNS) | {DEFAULT_OPPORTUNITY_ATTRIBUTE}
    extra_columns = [
        col
        for col in df.columns
        if col not in reserved and pd.api.types.is_numeric_dtype(df[col])
    ]
    has_opportunity = DEFAULT_OPPORTUNITY_ATTRIBUTE in df.columns

    zones: List[Zone] = []
    for record in df.to_dict(orient="records"):
        attributes: Dict[str, float] = {}
        for col in extra_columns:
            value = record.get(col)
            attributes[col] = 0.0 if value is None or pd.isna(value) else float(value)
        opportunity = record.get(DEFAULT_OPPORTUNITY_ATTRIBUTE) if has_opportunity else 0.0
        zones.append(
            Zone(
                zone_id=normalize_node_id(record["zone_id"]),
                anchor_node=normalize_node_id(record["anchor_node"]),
                population=_count(record["population"]),
                opportunity=_count(opportunity),
                attributes=attributes,
            )
        )
    return zones


def load_zones_csv(
    path: str, *, opportunity_attribute: str = DEFAULT_OPPORTUNITY_ATTRIBUTE
) -> List[Zone]:
    df = pd.read_csv(path)
    if df.empty:
        logger.warning("Zone table at %s is empty", path)
    zones = zones_from_dataframe(df, opportunity_attribute=opportunity_attribute)
    logger.info("Loaded %s zones from %s", f"{len(zones):,}", path)
    return zones


def _count(value: object) -> float:
    # Missing counts are treated as zero; negatives are rejected by Zone.
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return 0.0
    return value  # type: ignore[return-value]


def write_result_tables(
    result: BetweennessAccessibilityResult,
    *,
    zones_path: Optional[str] = None,
    edges_path: Optional[str] = None,
    edge_origins_path: Optional[str] = None,
    od_path: Optional[str] = None,
) -> Dict[str, str]:
    """Write the requested tables as CSV and return ``{table: path}``."""
    targets = {
        "zones": (zones_path, result.zone_table),
        "edges": (edges_path, result.edge_table),
        "edge_origins": (edge_origins_path, result.edge_origin_table),
        "od": (od_path, result.od_table),
    }
    written: Dict[str, str] = {}
    for name, (path, build) in targets.items():
        if not path:
            continue
        out_dir = os.path.dirname(path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        df = build()
        df.to_csv(path, index=False)
        logger.info("Wrote %s table (%s rows) to %s", name, f"{len(df):,}", path)
        written[name] = path
    return written


__all__ = ["load_zones_csv", "write_result_tables", "zones_from_dataframe"]
