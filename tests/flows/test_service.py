from __future__ import annotations

import math
import os
import threading
import time

import numpy as np
import pandas as pd
import pytest

from accessflow.access.accessibility import AccessibilityCalculator
from accessflow.access.decay import negative_exponential, power
from accessflow.config import AccessibilityConfig
from accessflow.errors import RunCancelled, UnknownAnchorNode
from accessflow.flows.edge_allocator import allocate_edge_flows
from accessflow.flows import service as service_module
from accessflow.flows.service import BetweennessAccessibilityService
from accessflow.network.domain_types import Zone
from accessflow.network.road_graph import RoadGraph
from accessflow.network.shortest_paths import compute_od_costs


def _grid(size: int = 4) -> RoadGraph:
    graph = RoadGraph()
    for r in range(size):
        for c in range(size):
            node = r * size + c
            if c + 1 < size:
                graph.add_edge(node, node + 1, float((r * 7 + c * 3) % 5 + 1), length=100.0)
            if r + 1 < size:
                graph.add_edge(node, node + size, float((r * 2 + c * 5) % 4 + 1), length=100.0)
    return graph


def _grid_zones():
    anchors = [0, 3, 5, 10, 12, 15]
    return [
        Zone(f"z{k}", node, population=float(10 * (k + 1)), opportunity=float((k * 13) % 7 + 1))
        for k, node in enumerate(anchors)
    ]


def _run(graph, zones, **config_kwargs):
    config = AccessibilityConfig(**config_kwargs)
    return BetweennessAccessibilityService(graph, zones, config).run()


def test_minimal_network_scenario():
    graph = RoadGraph.from_edges([(1, 2, 10.0, 850.0)])
    zones = [
        Zone(1, 1, population=100.0, opportunity=0.0),
        Zone(2, 2, population=0.0, opportunity=50.0),
    ]
    result = _run(graph, zones, decay=negative_exponential(0.05))

    assert result.accessibility[0] == pytest.approx(50.0 * math.exp(-0.5))
    assert result.accessibility[1] == 0.0
    assert result.contributions[0].shares[1] == pytest.approx(1.0)
    assert result.contributions[0].flows[1] == pytest.approx(100.0)
    assert result.accumulator.total(0) == pytest.approx(100.0)
    assert result.accumulator.breakdown(0) == {1: pytest.approx(100.0), 2: 0.0}

    edges = result.edge_table()
    assert edges.loc[0, "betweenness_accessibility"] == pytest.approx(100.0)
    assert edges.loc[0, "length"] == pytest.approx(850.0)


def test_disconnected_pair_allocates_nothing():
    graph = RoadGraph.from_edges([(1, 2, 3.0), (3, 4, 3.0)])
    zones = [
        Zone("a", 1, population=10.0, opportunity=0.0),
        Zone("b", 2, population=0.0, opportunity=5.0),
        Zone("c", 3, population=10.0, opportunity=5.0),
    ]
    result = _run(graph, zones, decay=negative_exponential(0.1))

    assert result.accessibility[0] == pytest.approx(5.0 * math.exp(-0.3))
    # Zone c reaches nothing with opportunities: degenerate, no flow.
    assert result.accessibility[2] == 0.0
    assert result.accumulator.total(1) == 0.0
    zone_table = result.zone_table()
    assert list(zone_table["zone_id"]) == ["a", "b", "c"]
    assert zone_table.loc[2, "reachable_destinations"] == 0
    od = result.od_table()
    unreachable = od[(od.origin_zone == "a") & (od.destination_zone == "c")].iloc[0]
    assert math.isinf(unreachable["cost"])
    assert unreachable["flow"] == 0.0
    assert unreachable["path_edges"] == ""


def test_three_zone_chain_double_counts_middle_edges():
    graph = RoadGraph.from_edges([(1, 2, 1.0), (2, 3, 1.0)])
    zones = [Zone(k, k, population=100.0, opportunity=10.0) for k in (1, 2, 3)]
    result = _run(graph, zones, decay=negative_exponential(0.0))

    breakdown = result.accumulator.breakdown(0)
    # Origin 1 contributes 1->2 and 1->3; origin 3 reaches 1 through this edge too.
    assert breakdown[1] == pytest.approx(100.0)
    assert breakdown[3] == pytest.approx(50.0)
    assert result.accumulator.total(0) == pytest.approx(200.0)
    assert result.accumulator.total(1) == pytest.approx(200.0)
    assert result.accumulator.grand_total() > 300.0


def test_conservation_properties_on_grid():
    graph = _grid()
    zones = _grid_zones()
    result = _run(graph, zones, decay=negative_exponential(0.15))

    for zone, contribution in zip(zones, result.contributions):
        if contribution.accessibility > 0:
            assert contribution.shares.sum() == pytest.approx(1.0)
            assert contribution.flows.sum() == pytest.approx(zone.population)
        assert contribution.impedance[contribution.origin_index] == 0.0
    for edge_id in result.accumulator.edge_ids:
        assert result.accumulator.total(edge_id) == pytest.approx(
            sum(result.accumulator.breakdown(edge_id).values())
        )
    assert len(result.edge_table()) == graph.number_of_edges()


def test_service_matches_batch_pipeline():
    graph = _grid()
    zones = _grid_zones()
    decay = power(1.2)
    result = _run(graph, zones, decay=decay)

    od = compute_od_costs(graph, zones)
    access = AccessibilityCalculator(decay).compute(od, zones)
    batch = allocate_edge_flows(graph.edge_ids(), zones, od, access)

    np.testing.assert_allclose(result.accessibility, access.accessibility)
    for edge_id in graph.edge_ids():
        assert result.accumulator.total(edge_id) == pytest.approx(batch.total(edge_id))


def test_repeated_runs_are_identical():
    graph = _grid()
    zones = _grid_zones()
    first = _run(graph, zones).edge_table()
    second = _run(graph, zones).edge_table()
    pd.testing.assert_frame_equal(first, second)


def test_parallel_run_matches_serial_run():
    graph = _grid()
    zones = _grid_zones()
    serial = _run(graph, zones, num_workers=1)
    parallel = _run(graph, zones, num_workers=3)

    pd.testing.assert_frame_equal(serial.edge_table(), parallel.edge_table())
    pd.testing.assert_frame_equal(serial.zone_table(), parallel.zone_table())
    pd.testing.assert_frame_equal(serial.edge_origin_table(), parallel.edge_origin_table())


def test_unknown_anchor_aborts_before_computation():
    graph = RoadGraph.from_edges([(1, 2, 1.0)])
    zones = [Zone("a", 1, population=1.0), Zone("b", 7, opportunity=1.0)]
    with pytest.raises(UnknownAnchorNode, match="'b'"):
        _run(graph, zones)


class _CountdownEvent:
    """Reports ``is_set`` once it has been polled ``after`` times."""

    def __init__(self, after: int):
        self.after = after
        self.polls = 0

    def is_set(self) -> bool:
        self.polls += 1
        return self.polls > self.after


def test_cancel_event_discards_partial_results():
    graph = _grid()
    zones = _grid_zones()
    service = BetweennessAccessibilityService(graph, zones, AccessibilityConfig())

    with pytest.raises(RunCancelled) as excinfo:
        service.run(cancel_event=_CountdownEvent(after=2))
    assert excinfo.value.completed == 2
    assert excinfo.value.total == len(zones)

    event = threading.Event()
    event.set()
    with pytest.raises(RunCancelled):
        service.run(cancel_event=event)


def test_cancel_event_stops_pool_run():
    graph = _grid()
    zones = _grid_zones()
    event = threading.Event()
    event.set()
    service = BetweennessAccessibilityService(graph, zones, AccessibilityConfig(num_workers=2))
    with pytest.raises(RunCancelled):
        service.run(cancel_event=event)


def test_timeout_cancels_serial_run():
    graph = _grid()
    zones = _grid_zones()
    service = BetweennessAccessibilityService(graph, zones, AccessibilityConfig(timeout_seconds=1e-9))
    with pytest.raises(RunCancelled, match="timeout") as excinfo:
        service.run()
    assert excinfo.value.reason == "timeout"
    assert excinfo.value.completed < len(zones)


def test_timeout_cancels_pool_run_before_dispatch():
    graph = _grid()
    zones = _grid_zones()
    config = AccessibilityConfig(num_workers=2, timeout_seconds=1e-9)
    with pytest.raises(RunCancelled) as excinfo:
        BetweennessAccessibilityService(graph, zones, config).run()
    assert excinfo.value.reason == "timeout"
    assert excinfo.value.total == len(zones)


@pytest.mark.skipif(os.name == "nt", reason="workers are spawned, so the slow origin is not inherited")
def test_timeout_interrupts_pool_waiting_on_slow_origin(monkeypatch):
    real_compute_origin = service_module.compute_origin

    def slow_compute_origin(context, origin_index):
        time.sleep(5.0)
        return real_compute_origin(context, origin_index)

    # Forked workers inherit the patched module global.
    monkeypatch.setattr(service_module, "compute_origin", slow_compute_origin)
    graph = _grid()
    zones = _grid_zones()
    config = AccessibilityConfig(num_workers=2, timeout_seconds=0.5)

    started = time.monotonic()
    with pytest.raises(RunCancelled) as excinfo:
        BetweennessAccessibilityService(graph, zones, config).run()
    assert excinfo.value.reason == "timeout"
    assert excinfo.value.completed == 0
    assert time.monotonic() - started < 5.0


def test_directed_graph_changes_flows():
    graph = RoadGraph(directed=True)
    graph.add_edge(1, 2, 1.0)
    graph.add_edge(2, 1, 5.0)
    graph.add_edge(2, 3, 1.0)
    graph.add_edge(3, 1, 1.0)
    zones = [
        Zone("a", 1, population=10.0, opportunity=0.0),
        Zone("b", 2, population=0.0, opportunity=10.0),
    ]
    result = _run(graph, zones, decay=negative_exponential(0.0), directed=True)
    assert result.accumulator.total(0) == pytest.approx(10.0)
    assert result.accumulator.total(1) == 0.0
