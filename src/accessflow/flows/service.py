"""High-level API computing betweenness-accessibility over a road graph.

:class:`BetweennessAccessibilityService` runs the full pipeline for a fixed
graph, zone set and :class:`~accessflow.config.AccessibilityConfig`:

1. validate zone anchors against the graph (fails fast, nothing is computed);
2. fan out one task per origin zone: Dijkstra from its anchor, the
   accessibility row and the origin's private edge-flow dict;
3. fan in by merging every per-origin partial into one
   :class:`~accessflow.flows.edge_allocator.EdgeFlowAccumulator`.

Origins are processed by a ``multiprocessing`` pool when ``num_workers > 1``;
each worker receives the read-only run context once through the pool
initializer. Partials are merged in zone order, so results do not depend on
completion order or worker count.

Cancellation is cooperative: between origins the service checks the
configured timeout and an optional ``cancel_event`` (anything with
``is_set()``). On cancellation the pool is terminated, partial results are
dropped and :class:`~accessflow.errors.RunCancelled` is raised.

Example
-------
>>> graph = RoadGraph.from_csv("edges.csv")
>>> zones = load_zones_csv("zones.csv")
>>> config = AccessibilityConfig(decay=negative_exponential(0.05))
>>> result = BetweennessAccessibilityService(graph, zones, config).run()
>>> result.edge_table().sort_values("betweenness_accessibility").tail()
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import os
from dataclasses import dataclass
from time import monotonic, perf_counter
from typing import List, Optional, Protocol, Sequence

import numpy as np
import pandas as pd
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from accessflow.access.accessibility import AccessibilityCalculator
from accessflow.config import AccessibilityConfig
from accessflow.errors import RunCancelled
from accessflow.network.domain_types import Zone
from accessflow.network.road_graph import RoadGraph
from accessflow.network.shortest_paths import origin_paths, validate_anchors

from .edge_allocator import EdgeFlowAccumulator, OriginContribution, allocate_origin

logger = logging.getLogger(__name__)


class CancelEvent(Protocol):
    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class RunContext:
    """Read-only inputs shared by every origin task."""

    graph: RoadGraph
    zones: Sequence[Zone]
    calculator: AccessibilityCalculator
    opportunities: np.ndarray


@dataclass(frozen=True)
class BetweennessAccessibilityResult:
    """Structured payload returned by :meth:`BetweennessAccessibilityService.run`."""

    graph: RoadGraph
    zones: Sequence[Zone]
    config: AccessibilityConfig
    accessibility: np.ndarray
    accumulator: EdgeFlowAccumulator
    contributions: List[OriginContribution]

    def zone_table(self) -> pd.DataFrame:
        """One row per zone with its accessibility."""
        rows = []
        for zone, contribution in zip(self.zones, self.contributions):
            rows.append(
                {
                    "zone_id": zone.zone_id,
                    "anchor_node": zone.anchor_node,
                    "population": float(zone.population),
                    "opportunity": zone.opportunity_value(self.config.opportunity_attribute),
                    "accessibility": contribution.accessibility,
                    "reachable_destinations": contribution.reachable_destinations,
                }
            )
        return pd.DataFrame(
            rows,
            columns=[
                "zone_id",
                "anchor_node",
                "population",
                "opportunity",
                "accessibility",
                "reachable_destinations",
            ],
        )

    def edge_table(self) -> pd.DataFrame:
        """One row per edge, unused edges included with a zero score."""
        rows = []
        for edge in self.graph.edges():
            rows.append(
                {
                    "edge_id": edge.edge_id,
                    "u": edge.u,
                    "v": edge.v,
                    "cost": edge.cost,
                    "length": edge.length,
                    "betweenness_accessibility": self.accumulator.total(edge.edge_id),
                }
            )
        return pd.DataFrame(
            rows, columns=["edge_id", "u", "v", "cost", "length", "betweenness_accessibility"]
        )

    def edge_origin_table(self) -> pd.DataFrame:
        return self.accumulator.to_origin_dataframe()

    def od_table(self) -> pd.DataFrame:
        """Origin-destination pairs (self pairs excluded) with cost, shares and flows."""
        rows = []
        for contribution in self.contributions:
            i = contribution.origin_index
            for j, destination in enumerate(self.zones):
                if j == i:
                    continue
                path = contribution.paths[j]
                rows.append(
                    {
                        "origin_zone": contribution.origin_zone,
                        "destination_zone": destination.zone_id,
                        "cost": float(contribution.costs[j]),
                        "impedance": float(contribution.impedance[j]),
                        "share": float(contribution.shares[j]),
                        "flow": float(contribution.flows[j]),
                        "path_edges": " ".join(str(e) for e in path) if path is not None else "",
                    }
                )
        return pd.DataFrame(
            rows,
            columns=[
                "origin_zone",
                "destination_zone",
                "cost",
                "impedance",
                "share",
                "flow",
                "path_edges",
            ],
        )


# Per-process context installed by the pool initializer.
WORKER_CONTEXT: RunContext | None = None


def _init_worker(context: RunContext) -> None:
    global WORKER_CONTEXT
    WORKER_CONTEXT = context


def _process_origin(origin_index: int) -> OriginContribution:
    """Worker target; see :func:`compute_origin`."""
    if WORKER_CONTEXT is None:
        raise RuntimeError("Worker run context not initialised.")
    return compute_origin(WORKER_CONTEXT, origin_index)


def compute_origin(context: RunContext, origin_index: int) -> OriginContribution:
    """Shortest paths, accessibility row and edge flows for one origin zone."""
    zones = context.zones
    costs, paths = origin_paths(context.graph, zones[origin_index], zones)
    access = context.calculator.origin_row(origin_index, costs, zones, context.opportunities)
    return allocate_origin(zones, access, costs, paths)


class BetweennessAccessibilityService:
    """Orchestrates path search, accessibility and edge allocation for one run."""

    def __init__(
        self,
        graph: RoadGraph,
        zones: Sequence[Zone],
        config: AccessibilityConfig | None = None,
    ) -> None:
        self._graph = graph
        self._zones = list(zones)
        self._config = config or AccessibilityConfig()
        self._calculator = AccessibilityCalculator(
            self._config.decay,
            opportunity_attribute=self._config.opportunity_attribute,
        )
        if graph.directed != self._config.directed:
            logger.warning(
                "Graph is %s but config requests %s traversal; using the graph as built",
                "directed" if graph.directed else "undirected",
                "directed" if self._config.directed else "undirected",
            )

    @property
    def config(self) -> AccessibilityConfig:
        return self._config

    def run(
        self,
        *,
        cancel_event: CancelEvent | None = None,
        show_progress: bool = False,
    ) -> BetweennessAccessibilityResult:
        """Execute the full computation and return complete zone/edge tables."""
        validate_anchors(self._graph, self._zones)
        opportunities = self._calculator.opportunities(self._zones)
        if self._zones and not opportunities.any():
            logger.warning(
                "Opportunity attribute %r is zero for every zone; all flows will be zero",
                self._config.opportunity_attribute,
            )
        context = RunContext(
            graph=self._graph,
            zones=self._zones,
            calculator=self._calculator,
            opportunities=opportunities,
        )

        total = len(self._zones)
        workers = self._worker_count(total)
        logger.info(
            "Computing betweenness-accessibility for %s zones over %s edges (decay=%s %s, workers=%s)",
            f"{total:,}",
            f"{self._graph.number_of_edges():,}",
            self._config.decay.name,
            self._config.decay.parameter,
            workers,
        )

        start = perf_counter()
        deadline = monotonic() + self._config.timeout_seconds if self._config.timeout_seconds else None
        contributions: List[Optional[OriginContribution]] = [None] * total

        progress = _make_progress(show_progress)
        with progress:
            task_id = progress.add_task(f"Origins ({total:,})", total=total or None)
            if workers <= 1:
                for index in range(total):
                    self._check_cancel(cancel_event, deadline, index, total)
                    contributions[index] = compute_origin(context, index)
                    self._record(progress, task_id, index + 1, total, contributions[index])
            else:
                self._run_pool(context, workers, contributions, cancel_event, deadline, progress, task_id)

        accumulator = EdgeFlowAccumulator(self._graph.edge_ids())
        for contribution in contributions:
            if contribution is None:  # pragma: no cover - guarded by the loops above
                raise RuntimeError("Origin result missing after fan-in.")
            accumulator.merge(contribution)

        finished: List[OriginContribution] = [c for c in contributions if c is not None]
        accessibility = np.array([c.accessibility for c in finished], dtype=float)
        degenerate = int((accessibility <= 0.0).sum())
        logger.info(
            "Finished %s origins in %.2fs | degenerate origins=%s | grand edge total=%.4f",
            f"{total:,}",
            perf_counter() - start,
            degenerate,
            accumulator.grand_total(),
        )
        return BetweennessAccessibilityResult(
            graph=self._graph,
            zones=self._zones,
            config=self._config,
            accessibility=accessibility,
            accumulator=accumulator,
            contributions=finished,
        )

    # ----------------------------------------------------------------- helpers
    def _worker_count(self, total: int) -> int:
        requested = self._config.num_workers
        if requested is None:
            cpu_total = os.cpu_count() or 1
            requested = max(1, cpu_total - 1)
        return max(1, min(int(requested), max(total, 1)))

    def _run_pool(
        self,
        context: RunContext,
        workers: int,
        contributions: List[Optional[OriginContribution]],
        cancel_event: CancelEvent | None,
        deadline: float | None,
        progress: Progress,
        task_id: int,
    ) -> None:
        total = len(contributions)
        ctx = mp.get_context("spawn" if os.name == "nt" else "fork")
        with ctx.Pool(processes=workers, initializer=_init_worker, initargs=(context,)) as pool:
            results = pool.imap_unordered(_process_origin, range(total), chunksize=1)
            for done in range(total):
                self._check_cancel(cancel_event, deadline, done, total)
                wait = None if deadline is None else max(deadline - monotonic(), 0.0)
                try:
                    contribution = results.next(timeout=wait)
                except mp.TimeoutError:
                    raise RunCancelled("timeout", completed=done, total=total) from None
                contributions[contribution.origin_index] = contribution
                self._record(progress, task_id, done + 1, total, contribution)

    def _check_cancel(
        self, cancel_event: CancelEvent | None, deadline: float | None, done: int, total: int
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Cancellation requested after %s/%s origins", done, total)
            raise RunCancelled("cancel event set", completed=done, total=total)
        if deadline is not None and monotonic() > deadline:
            logger.warning("Timeout reached after %s/%s origins", done, total)
            raise RunCancelled("timeout", completed=done, total=total)

    def _record(
        self,
        progress: Progress,
        task_id: int,
        done: int,
        total: int,
        contribution: OriginContribution | None,
    ) -> None:
        progress.advance(task_id, 1)
        if contribution is None:
            return
        logger.debug(
            "Origin %r | accessibility=%.6g | flow allocated=%.6g | edges touched=%s",
            contribution.origin_zone,
            contribution.accessibility,
            contribution.allocated_flow,
            len(contribution.edge_flows),
        )
        log_every = self._config.log_every
        if log_every and done % log_every == 0:
            logger.info("Processed %s/%s origins", f"{done:,}", f"{total:,}")


def _make_progress(enabled: bool) -> Progress:
    console = Console(stderr=True)
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(bar_width=None),
        TaskProgressColumn(),
        TextColumn("{task.completed:,} origins", justify="right"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        disable=not (enabled and console.is_terminal),
    )


__all__ = [
    "BetweennessAccessibilityResult",
    "BetweennessAccessibilityService",
    "RunContext",
    "compute_origin",
]
