"""Command line entry point.

    python -m nodeflow sort graph.json
    python -m nodeflow run graph.json --context '{"user": "ada"}'

Graph files hold ``{"nodes": [...], "connections": [...]}``; ``edges`` is
accepted in place of ``connections``. Results are printed as JSON on stdout,
logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from nodeflow.core.container import Container
from nodeflow.core.logging import configure_logging, get_logger
from nodeflow.services.execution import WorkflowCycleError, topological_sort

logger = get_logger(__name__)


def load_graph(path: str) -> Dict[str, Any]:
    """Read a graph JSON file into ``{"id", "nodes", "connections"}``."""
    graph = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(graph, dict) or not isinstance(graph.get("nodes"), list):
        raise ValueError(f"{path}: expected an object with a 'nodes' list")
    connections = graph.get("connections", graph.get("edges", []))
    return {
        "id": graph.get("id") or Path(path).stem,
        "nodes": graph["nodes"],
        "connections": connections or [],
    }


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_sort(graph: Dict[str, Any]) -> int:
    try:
        ordered = topological_sort(graph["nodes"], graph["connections"])
    except WorkflowCycleError as e:
        _print_json({"error": e.message, "cycle": e.cycle})
        return 1
    _print_json([node["id"] for node in ordered])
    return 0


async def cmd_run(container: Container, graph: Dict[str, Any],
                  initial_context: Dict[str, Any], execution_id: Optional[str]) -> int:
    cache = container.cache()
    await cache.startup()
    try:
        runner = container.workflow_runner()
        result = await runner.execute_workflow(
            graph["id"], graph["nodes"], graph["connections"],
            initial_context=initial_context, execution_id=execution_id)
    finally:
        await container.http_client().aclose()
        await cache.shutdown()

    _print_json(result.to_dict())
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nodeflow", description="Workflow graph engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sort_parser = subparsers.add_parser("sort", help="Print the execution order of a graph")
    sort_parser.add_argument("graph", help="Path to a graph JSON file")

    run_parser = subparsers.add_parser("run", help="Execute a graph and print the result")
    run_parser.add_argument("graph", help="Path to a graph JSON file")
    run_parser.add_argument("--context", default="{}", help="Initial context as a JSON object")
    run_parser.add_argument("--execution-id", default=None,
                            help="Resume an earlier run; completed steps replay from the cache")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    container = Container()
    configure_logging(container.settings())

    try:
        graph = load_graph(args.graph)
    except (OSError, ValueError) as e:
        logger.error("Could not load graph", path=args.graph, error=str(e))
        _print_json({"error": str(e)})
        return 2

    if args.command == "sort":
        return cmd_sort(graph)

    try:
        initial_context = json.loads(args.context)
    except ValueError as e:
        _print_json({"error": f"Invalid --context: {e}"})
        return 2
    if not isinstance(initial_context, dict):
        _print_json({"error": "Invalid --context: expected a JSON object"})
        return 2

    return asyncio.run(cmd_run(container, graph, initial_context, args.execution_id))


if __name__ == "__main__":
    sys.exit(main())
