#!/usr/bin/env python3
"""
Relationship detection runner for fraudlink.

Loads users and transactions from a JSON file into the configured graph
store, runs every detection rule and prints the per-rule report.

The input file holds two lists:
    {"users": [{"id": ..., "name": ..., "email": ...}, ...],
     "transactions": [{"id": ..., "originUserId": ..., "amount": ..., "type": ...}, ...]}

Usage:
    fraudlink-detect --input data.json
    fraudlink-detect --input data.json --scope user-17
    fraudlink-detect --input data.json --path user-1 user-9
    fraudlink-detect --backend neo4j --relationships user-1
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from fraudlink.config import settings
from fraudlink.exceptions import FraudLinkError, RecordValidationError
from fraudlink.graph.client import create_graph_client_from_settings
from fraudlink.service import FraudGraphService

logger = logging.getLogger(__name__)


def load_input(path: Path) -> dict[str, list[dict[str, Any]]]:
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must hold a JSON object with users and transactions")
    return {
        "users": list(data.get("users") or []),
        "transactions": list(data.get("transactions") or []),
    }


async def ingest(service: FraudGraphService, data: dict[str, list[dict]]) -> dict[str, int]:
    """Upsert every record, skipping the ones that fail validation."""
    stats = {"users": 0, "transactions": 0, "rejected": 0}

    for record in data["users"]:
        try:
            await service.upsert_user(record)
            stats["users"] += 1
        except RecordValidationError as e:
            logger.warning(f"Rejected user {record.get('id')}: {e}")
            stats["rejected"] += 1

    for record in data["transactions"]:
        try:
            await service.upsert_transaction(record)
            stats["transactions"] += 1
        except RecordValidationError as e:
            logger.warning(f"Rejected transaction {record.get('id')}: {e}")
            stats["rejected"] += 1

    logger.info(
        f"Loaded {stats['users']} users, {stats['transactions']} transactions "
        f"({stats['rejected']} rejected)"
    )
    return stats


def print_report(report, statistics: dict[str, int]) -> None:
    print("=" * 70)
    print(f"Detection report{f' (scope {report.scope})' if report.scope else ''}")
    print("=" * 70)
    print(f"{'rule':<24}{'created':>10}{'updated':>10}{'removed':>10}{'dropped':>10}")
    for rule in report.rules.values():
        marker = "  FAILED" if rule.failed else ""
        print(
            f"{rule.rule:<24}{rule.edges_created:>10}{rule.edges_updated:>10}"
            f"{rule.edges_removed:>10}{rule.pairs_dropped:>10}{marker}"
        )
    print("-" * 70)
    print(f"Total new edges: {report.total_edges_created}")
    if report.failures:
        print(f"Failures: {len(report.failures)}")
        for failure in report.failures[:20]:
            print(f"  {failure.rule}: {failure.subject or '-'}: {failure.error}")
    print("=" * 70)
    print("Graph statistics")
    for name, count in sorted(statistics.items()):
        print(f"  {name:<24}{count:>10}")


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run fraud relationship detection over users and transactions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--input",
        "-i",
        type=Path,
        help="JSON file with users and transactions to load first",
    )
    parser.add_argument(
        "--backend",
        choices=["networkx", "neo4j"],
        help=f"Graph backend (default from settings: {settings.graph_backend})",
    )
    parser.add_argument(
        "--scope",
        type=str,
        help="Only detect pairs touching this user or transaction id",
    )
    parser.add_argument(
        "--path",
        nargs=2,
        metavar=("SOURCE", "TARGET"),
        help="Print the shortest path between two users after detection",
    )
    parser.add_argument(
        "--relationships",
        type=str,
        metavar="ID",
        help="Print the projected neighborhood of an entity after detection",
    )
    parser.add_argument(
        "--parallel",
        action="store_true",
        help="Run detection rules concurrently",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    overrides = {}
    if args.backend:
        overrides["graph_backend"] = args.backend
    if args.parallel:
        overrides["parallel_detection"] = True
    run_settings = settings.model_copy(update=overrides) if overrides else settings

    if args.input is None and run_settings.graph_backend == "networkx":
        print("ERROR: the in-memory backend starts empty; pass --input")
        parser.print_help()
        return 1

    client = create_graph_client_from_settings(run_settings)
    try:
        async with client:
            service = FraudGraphService(client, run_settings)

            if args.input:
                await ingest(service, load_input(args.input))

            report = await service.run_detection(scope=args.scope)
            print_report(report, await service.get_statistics())

            if args.path:
                result = await service.shortest_path(*args.path)
                print(json.dumps(result, indent=2, default=str))

            if args.relationships:
                result = await service.get_relationships(None, args.relationships)
                print(json.dumps(result, indent=2, default=str))
    except (FraudLinkError, OSError, ValueError) as e:
        logger.error(f"Detection run failed: {e}")
        return 1

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
