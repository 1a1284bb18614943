from __future__ import annotations

import numpy as np
import pytest

from accessflow.access.accessibility import AccessibilityCalculator, OriginAccessibility
from accessflow.access.decay import negative_exponential
from accessflow.flows.edge_allocator import (
    EdgeFlowAccumulator,
    allocate_edge_flows,
    allocate_origin,
)
from accessflow.network.domain_types import Zone
from accessflow.network.road_graph import RoadGraph
from accessflow.network.shortest_paths import compute_od_costs


def _chain_inputs():
    graph = RoadGraph.from_edges([(1, 2, 1.0), (2, 3, 1.0)])
    zones = [
        Zone(1, 1, population=100.0, opportunity=10.0),
        Zone(2, 2, population=100.0, opportunity=10.0),
        Zone(3, 3, population=100.0, opportunity=10.0),
    ]
    return graph, zones


def test_allocate_origin_pushes_population_onto_paths():
    zones = [Zone("o", 1, population=80.0), Zone("d1", 2), Zone("d2", 3)]
    access = OriginAccessibility(
        origin_index=0,
        impedance=np.array([0.0, 1.0, 1.0]),
        accessibility=4.0,
        shares=np.array([0.0, 0.25, 0.75]),
    )
    costs = np.array([0.0, 1.0, 2.0])
    contribution = allocate_origin(zones, access, costs, [(), (5,), (5, 6)])

    np.testing.assert_allclose(contribution.flows, [0.0, 20.0, 60.0])
    assert contribution.edge_flows == {5: pytest.approx(80.0), 6: pytest.approx(60.0)}
    assert contribution.allocated_flow == pytest.approx(80.0)
    assert contribution.reachable_destinations == 2


def test_unreachable_pairs_allocate_nothing():
    zones = [Zone("o", 1, population=80.0), Zone("d", 2)]
    access = OriginAccessibility(0, np.zeros(2), 0.0, np.zeros(2))
    contribution = allocate_origin(zones, access, np.array([0.0, np.inf]), [(), None])
    assert contribution.edge_flows == {}
    assert contribution.reachable_destinations == 0


def test_accumulator_merge_tracks_totals_and_breakdown():
    graph, zones = _chain_inputs()
    od = compute_od_costs(graph, zones)
    access = AccessibilityCalculator(negative_exponential(0.0)).compute(od, zones)
    accumulator = allocate_edge_flows(graph.edge_ids(), zones, od, access)

    # Each ordered pair carries 50; edge 0 serves 1->2, 1->3, 2->1 and 3->1.
    assert accumulator.total(0) == pytest.approx(200.0)
    assert accumulator.total(1) == pytest.approx(200.0)
    assert accumulator.breakdown(0) == {
        1: pytest.approx(100.0),
        2: pytest.approx(50.0),
        3: pytest.approx(50.0),
    }
    for edge_id in accumulator.edge_ids:
        assert accumulator.total(edge_id) == pytest.approx(sum(accumulator.breakdown(edge_id).values()))
    # Flows are counted on every edge they cross, so the network total exceeds population.
    assert accumulator.grand_total() == pytest.approx(400.0)
    assert accumulator.grand_total() > sum(zone.population for zone in zones)


def test_accumulator_rejects_unknown_edges():
    zones = [Zone("o", 1, population=1.0), Zone("d", 2)]
    access = OriginAccessibility(0, np.array([0.0, 1.0]), 1.0, np.array([0.0, 1.0]))
    contribution = allocate_origin(zones, access, np.array([0.0, 1.0]), [(), (42,)])
    accumulator = EdgeFlowAccumulator([0, 1])
    with pytest.raises(KeyError):
        accumulator.merge(contribution)


def test_origin_dataframe_lists_nonzero_contributions():
    graph, zones = _chain_inputs()
    od = compute_od_costs(graph, zones)
    access = AccessibilityCalculator(negative_exponential(0.0)).compute(od, zones)
    table = allocate_edge_flows(graph.edge_ids(), zones, od, access).to_origin_dataframe()

    assert list(table.columns) == ["edge_id", "origin_zone", "flow"]
    assert len(table) == 6
    assert table.groupby("edge_id")["flow"].sum().to_dict() == {
        0: pytest.approx(200.0),
        1: pytest.approx(200.0),
    }


def test_breakdown_reports_zero_for_origins_without_flow():
    graph = RoadGraph.from_edges([(1, 2, 1.0), (3, 4, 1.0)])
    zones = [
        Zone("home", 1, population=100.0, opportunity=0.0),
        Zone("work", 2, population=0.0, opportunity=10.0),
        Zone("island", 3, population=50.0, opportunity=0.0),
    ]
    od = compute_od_costs(graph, zones)
    access = AccessibilityCalculator(negative_exponential(0.0)).compute(od, zones)
    accumulator = allocate_edge_flows(graph.edge_ids(), zones, od, access)

    assert accumulator.merged_origins == 3
    assert accumulator.breakdown(0) == {"home": pytest.approx(100.0), "work": 0.0, "island": 0.0}
    # Unused edges still list every origin.
    assert accumulator.total(1) == 0.0
    assert accumulator.breakdown(1) == {"home": 0.0, "work": 0.0, "island": 0.0}
    # The long table keeps only non-zero contributions.
    assert accumulator.to_origin_dataframe().to_dict(orient="records") == [
        {"edge_id": 0, "origin_zone": "home", "flow": pytest.approx(100.0)}
    ]
