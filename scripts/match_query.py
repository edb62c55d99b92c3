#!/usr/bin/env python3
"""
CLI tool to find subgraph isomorphisms of a query graph in a data graph.

Example:
    isomatch-query --graph graph_mmap --query triangle.json
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from isomatch import (
    LIMIT,
    enrich_knowledge_graph,
    lookup,
)
from isomatch.server import load_graph


def main():
    parser = argparse.ArgumentParser(
        description="Find all embeddings of a query graph in a data graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Query file format:
  {"query_graph": {
      "nodes": {"a": {"label": "C"}, "b": {"label": "O"}},
      "edges": {"e0": {"subject": "a", "object": "b"}}}}

Examples:
  # Basic query
  isomatch-query --graph graph_mmap --query query.json

  # Stop after 100 embeddings, with node attributes
  isomatch-query --graph graph_mmap --query query.json --limit 100 --enrich

  # Save results
  isomatch-query --graph graph.pkl --query query.json --output results.json
        """,
    )

    parser.add_argument(
        "--graph", "-g", required=True, type=Path,
        help="Path to graph file (.pkl) or mmap directory",
    )

    parser.add_argument(
        "--query", "-q", required=True, type=Path, help="Path to query JSON file"
    )

    parser.add_argument(
        "--output", "-o", type=Path, help="Output JSON file for results"
    )

    parser.add_argument(
        "--limit", type=int, default=LIMIT,
        help=f"Stop after this many embeddings (default: {LIMIT:,})",
    )

    parser.add_argument(
        "--undirected",
        action="store_true",
        help="Treat query edges as undirected",
    )

    parser.add_argument(
        "--enrich",
        action="store_true",
        help="Include stored node attributes in the output",
    )

    parser.add_argument(
        "--quiet", action="store_true", help="Suppress progress output"
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO, format="%(message)s"
    )

    if not args.graph.exists():
        print(f"Error: Graph not found: {args.graph}", file=sys.stderr)
        sys.exit(1)
    if not args.query.exists():
        print(f"Error: Query file not found: {args.query}", file=sys.stderr)
        sys.exit(1)

    try:
        graph = load_graph(str(args.graph))
        with open(args.query, "r", encoding="utf-8") as f:
            query = json.load(f)
    except (OSError, ValueError) as e:
        print(f"Error loading inputs: {e}", file=sys.stderr)
        sys.exit(1)

    start_time = time.time()
    try:
        response = lookup(graph, query, limit=args.limit, undirected=args.undirected)
    except ValueError as e:
        print(f"Error: invalid query: {e}", file=sys.stderr)
        sys.exit(1)
    elapsed = time.time() - start_time

    if args.enrich:
        enrich_knowledge_graph(response, graph)

    results = response["results"]
    if not args.quiet:
        print(f"\n✓ Found {len(results):,} embeddings in {elapsed:.2f} seconds")
        if len(results) >= args.limit:
            print(f"  ⚠️  Limit of {args.limit:,} reached; results may be incomplete")

    if args.output:
        response["elapsed_seconds"] = elapsed
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w") as f:
            json.dump(response, f, indent=2)
        if not args.quiet:
            print(f"Results saved to {args.output}")
    else:
        for i, result in enumerate(results[:20], 1):
            bindings = ", ".join(
                f"{qid}={nid}" for qid, nid in result["node_bindings"].items()
            )
            print(f"{i}. {bindings}")
        if len(results) > 20:
            print(f"... and {len(results) - 20:,} more embeddings")


if __name__ == "__main__":
    main()
