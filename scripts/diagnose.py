#!/usr/bin/env python3
"""
CLI tool to diagnose search-space explosion for a query.

Example:
    isomatch-diagnose --graph graph_mmap --query query.json
"""

import argparse
import json
import sys
from pathlib import Path

from isomatch import analyze_labels, build_query_graph, diagnose_search_space
from isomatch.server import load_graph


def main():
    parser = argparse.ArgumentParser(
        description="Diagnose search-space explosion for a subgraph query",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full diagnosis
  isomatch-diagnose --graph graph_mmap --query query.json

  # Skip the label histogram
  isomatch-diagnose --graph graph_mmap --query query.json --skip-labels
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
        "--undirected",
        action="store_true",
        help="Treat query edges as undirected",
    )

    parser.add_argument(
        "--skip-labels", action="store_true", help="Skip label analysis"
    )

    args = parser.parse_args()

    if not args.graph.exists():
        print(f"Error: Graph not found: {args.graph}", file=sys.stderr)
        sys.exit(1)

    try:
        graph = load_graph(str(args.graph))
        with open(args.query, "r", encoding="utf-8") as f:
            query = json.load(f)
        if not isinstance(query, dict):
            raise ValueError("query file must hold a JSON object with a 'query_graph'")
        q = build_query_graph(query.get("query_graph"), undirected=args.undirected)
    except (OSError, ValueError) as e:
        print(f"Error loading inputs: {e}", file=sys.stderr)
        sys.exit(1)

    results = diagnose_search_space(graph, q)

    if not args.skip_labels:
        analyze_labels(graph)

    # Summary recommendations
    print("=" * 70)
    print("SUMMARY")
    print("=" * 70)

    log_space = results["log10_space_refined"]
    if q.num_nodes and log_space == float("-inf"):
        print("✓ Query has no embedding; matching returns immediately.")
    elif log_space > 9:
        print("⚠️  SEVERE search space detected!")
        print("Recommended actions:")
        print("  1. Use more specific labels on query nodes")
        print("  2. Add query edges between loosely connected query nodes")
        print("  3. Run with a --limit when a sample of embeddings is enough")
    elif log_space > 5:
        print("⚠️  Large search space; matching may take a while.")
    else:
        print("✓ Small search space; matching should be fast.")
    print()


if __name__ == "__main__":
    main()
