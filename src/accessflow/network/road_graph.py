"""Road network container used by the shortest-path engine."""

from __future__ import annotations

import logging
import math
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple

import networkx as nx
import pandas as pd

from accessflow.errors import InvalidEdgeCost

from .domain_types import EdgeRecord, normalize_node_id

logger = logging.getLogger(__name__)

EDGE_COLUMNS = ("u", "v", "cost")


class RoadGraph:
    """Weighted multigraph of road segments keyed by integer edge ids.

    Parallel edges are kept as distinct segments and self-loops are tolerated.
    The graph is undirected unless ``directed=True``; in the undirected case a
    segment is traversable in both directions at the same cost.
    """

    def __init__(self, *, directed: bool = False) -> None:
        self.directed = bool(directed)
        self._graph: nx.MultiGraph = nx.MultiDiGraph() if self.directed else nx.MultiGraph()
        self._edges: Dict[int, EdgeRecord] = {}
        self._next_edge_id = 0
        self._adjacency_cache: Dict[Hashable, List[Tuple[Hashable, int, float]]] = {}

    # ------------------------------------------------------------------ builders
    def add_edge(
        self,
        u: Hashable,
        v: Hashable,
        cost: float,
        length: float = 0.0,
        edge_id: Optional[int] = None,
    ) -> int:
        """Insert a segment and return its edge id."""
        if edge_id is None:
            edge_id = self._next_edge_id
        edge_id = int(edge_id)
        cost_value = _validate_cost(u, v, cost, edge_id)
        if edge_id in self._edges:
            raise ValueError(f"Duplicate edge id {edge_id} for ({u!r}, {v!r}).")
        length_value = float(length) if length is not None and not pd.isna(length) else 0.0

        record = EdgeRecord(edge_id=edge_id, u=u, v=v, cost=cost_value, length=length_value)
        self._edges[edge_id] = record
        self._graph.add_edge(u, v, key=edge_id, cost=cost_value, length=length_value)
        self._next_edge_id = max(self._next_edge_id, edge_id + 1)
        self._adjacency_cache.clear()
        if u == v:
            logger.debug("Self-loop on node %r kept as edge %s", u, edge_id)
        return edge_id

    def add_node(self, node: Hashable) -> None:
        """Register an isolated node (e.g. a zone anchor with no segments)."""
        self._graph.add_node(node)
        self._adjacency_cache.pop(node, None)

    @classmethod
    def from_edges(
        cls,
        edges: Iterable[Sequence[object]],
        *,
        directed: bool = False,
    ) -> "RoadGraph":
        """Build from ``(u, v, cost)`` or ``(u, v, cost, length)`` tuples."""
        graph = cls(directed=directed)
        for item in edges:
            if len(item) == 3:
                u, v, cost = item
                length = 0.0
            elif len(item) == 4:
                u, v, cost, length = item
            else:
                raise ValueError(f"Edge tuples must have 3 or 4 fields, got {item!r}")
            graph.add_edge(u, v, cost, length)
        return graph

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, *, directed: bool = False) -> "RoadGraph":
        """Build from a table with ``u``, ``v``, ``cost`` and optional ``length``/``edge_id``."""
        missing = set(EDGE_COLUMNS).difference(df.columns)
        if missing:
            raise ValueError(f"Edge table missing columns: {', '.join(sorted(missing))}")
        has_length = "length" in df.columns
        has_edge_id = "edge_id" in df.columns

        graph = cls(directed=directed)
        for row in df.itertuples(index=False):
            graph.add_edge(
                normalize_node_id(row.u),
                normalize_node_id(row.v),
                row.cost,
                row.length if has_length else 0.0,
                edge_id=int(row.edge_id) if has_edge_id else None,
            )
        logger.info(
            "Loaded road graph with %s nodes and %s edges (%s)",
            graph.number_of_nodes(),
            graph.number_of_edges(),
            "directed" if directed else "undirected",
        )
        return graph

    @classmethod
    def from_csv(cls, path: str, *, directed: bool = False) -> "RoadGraph":
        df = pd.read_csv(path)
        return cls.from_dataframe(df, directed=directed)

    # ------------------------------------------------------------------- queries
    def has_node(self, node: Hashable) -> bool:
        return self._graph.has_node(node)

    def number_of_nodes(self) -> int:
        return self._graph.number_of_nodes()

    def number_of_edges(self) -> int:
        return len(self._edges)

    def nodes(self) -> List[Hashable]:
        return list(self._graph.nodes)

    def edge(self, edge_id: int) -> EdgeRecord:
        return self._edges[int(edge_id)]

    def edges(self) -> List[EdgeRecord]:
        """All segments in ascending edge-id order."""
        return [self._edges[key] for key in sorted(self._edges)]

    def edge_ids(self) -> List[int]:
        return sorted(self._edges)

    def neighbors(self, node: Hashable) -> Iterator[Tuple[Hashable, int, float]]:
        """Yield ``(neighbor, edge_id, cost)`` for segments leaving ``node``.

        Entries are ordered by edge id; the shortest-path tie-break relies on it.
        """
        cached = self._adjacency_cache.get(node)
        if cached is None:
            cached = self._build_adjacency(node)
            self._adjacency_cache[node] = cached
        return iter(cached)

    def _build_adjacency(self, node: Hashable) -> List[Tuple[Hashable, int, float]]:
        if not self._graph.has_node(node):
            return []
        entries: List[Tuple[Hashable, int, float]] = []
        for neighbor, keyed in self._graph.adj[node].items():
            for edge_id, data in keyed.items():
                entries.append((neighbor, int(edge_id), float(data["cost"])))
        entries.sort(key=lambda entry: entry[1])
        return entries

    def to_networkx(self) -> nx.MultiGraph:
        """Return a copy of the backing networkx graph."""
        return self._graph.copy()

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {"edge_id": e.edge_id, "u": e.u, "v": e.v, "cost": e.cost, "length": e.length}
            for e in self.edges()
        ]
        return pd.DataFrame(rows, columns=["edge_id", "u", "v", "cost", "length"])


def _validate_cost(u: Hashable, v: Hashable, cost: object, edge_id: Optional[int]) -> float:
    try:
        value = float(cost)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidEdgeCost(u, v, cost, edge_id) from exc
    if math.isnan(value) or math.isinf(value) or value <= 0.0:
        raise InvalidEdgeCost(u, v, cost, edge_id)
    return value


__all__ = ["RoadGraph"]
