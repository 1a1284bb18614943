"""Command-line entry point computing betweenness-accessibility from CSV inputs."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from typing import Iterable

from accessflow.access.decay import DecayFunction, available_decay_functions, decay_parameter_name
from accessflow.config import AccessibilityConfig
from accessflow.errors import AccessflowError
from accessflow.flows.service import BetweennessAccessibilityService
from accessflow.io import load_zones_csv, write_result_tables
from accessflow.network.road_graph import RoadGraph


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compute zone accessibility and edge betweenness-accessibility."
    )
    parser.add_argument("--edges", required=True, help="Edge CSV with u, v, cost[, length, edge_id].")
    parser.add_argument(
        "--zones",
        required=True,
        help="Zone CSV with zone_id, anchor_node, population and opportunity columns.",
    )
    parser.add_argument("--config", help="Optional YAML run configuration.")
    parser.add_argument(
        "--decay",
        choices=available_decay_functions(),
        default=None,
        help="Decay function (default: negative_exponential).",
    )
    parser.add_argument(
        "--decay-param",
        "--beta",
        dest="decay_param",
        type=float,
        default=None,
        help="Parameter of the decay function (beta, gamma, threshold or sigma).",
    )
    parser.add_argument(
        "--opportunity-attribute",
        default=None,
        help="Zone column used as destination opportunity (default: opportunity).",
    )
    parser.add_argument(
        "--directed",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Treat edges as directed u->v; --no-directed overrides a directed config (default: undirected).",
    )
    parser.add_argument(
        "--num-workers",
        type=int,
        default=None,
        help="Worker processes (defaults to config value; 0 means n_cpu - 1).",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Abort after this many seconds.")
    parser.add_argument("--output-zones", default="zone_accessibility.csv")
    parser.add_argument("--output-edges", default="edge_betweenness_accessibility.csv")
    parser.add_argument(
        "--output-edge-origins",
        default=None,
        help="Optional long table of per-origin contributions per edge.",
    )
    parser.add_argument("--output-od", default=None, help="Optional origin-destination table.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity for the CLI logger.",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def build_config(args: argparse.Namespace) -> AccessibilityConfig:
    config = AccessibilityConfig.from_yaml(args.config) if args.config else AccessibilityConfig()

    decay = None
    if args.decay is not None or args.decay_param is not None:
        name = args.decay or config.decay.name
        if args.decay_param is None:
            decay = DecayFunction.with_defaults(name) if name != config.decay.name else config.decay
        else:
            decay = DecayFunction(name, {decay_parameter_name(name): args.decay_param})

    overrides = {
        "decay": decay,
        "opportunity_attribute": args.opportunity_attribute,
        "directed": args.directed,
        "timeout_seconds": args.timeout,
    }
    config = config.with_overrides(**overrides)
    if args.num_workers is not None:
        # 0 selects the CPU-based default.
        config = replace(config, num_workers=args.num_workers or None)
    return config


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = build_config(args)
        logging.info("Loading road graph from %s", args.edges)
        graph = RoadGraph.from_csv(args.edges, directed=config.directed)
        logging.info("Loading zones from %s", args.zones)
        zones = load_zones_csv(args.zones, opportunity_attribute=config.opportunity_attribute)
        if not zones:
            raise SystemExit("No zones available; nothing to compute.")

        service = BetweennessAccessibilityService(graph, zones, config)
        result = service.run(show_progress=True)
    except AccessflowError as exc:
        raise SystemExit(f"betweenness-accessibility run failed: {exc}") from exc

    write_result_tables(
        result,
        zones_path=args.output_zones,
        edges_path=args.output_edges,
        edge_origins_path=args.output_edge_origins,
        od_path=args.output_od,
    )
    logging.info("Betweenness-accessibility run complete.")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
