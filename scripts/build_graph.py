#!/usr/bin/env python3
"""
CLI tool to build labeled data graphs from JSONL files.

Example:
    isomatch-build --nodes data/nodes.jsonl --edges data/edges.jsonl --output data/graph
"""

import argparse
import logging
import sys
from pathlib import Path

from isomatch import build_graph_from_jsonl


def main():
    parser = argparse.ArgumentParser(
        description="Build a labeled data graph from JSONL files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Memory-mapped directory (keeps node attributes)
  isomatch-build --nodes nodes.jsonl --edges edges.jsonl --output graph_mmap

  # Single pickle file (structure and labels only)
  isomatch-build --nodes nodes.jsonl --edges edges.jsonl --output graph.pkl

  # Store every edge in both directions
  isomatch-build --nodes nodes.jsonl --edges edges.jsonl --output graph_mmap \\
      --undirected
        """,
    )

    parser.add_argument(
        "--nodes", required=True, type=Path, help="Path to nodes JSONL file"
    )

    parser.add_argument(
        "--edges", type=Path, help="Path to edges JSONL file (optional)"
    )

    parser.add_argument(
        "--output",
        "-o",
        required=True,
        type=Path,
        help="Output path: .pkl file for pickle, anything else is an mmap directory",
    )

    parser.add_argument(
        "--undirected",
        action="store_true",
        help="Store every edge in both directions (default: directed)",
    )

    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Suppress progress output"
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO, format="%(message)s"
    )

    # Validate input files
    if not args.nodes.exists():
        print(f"Error: Node file not found: {args.nodes}", file=sys.stderr)
        sys.exit(1)

    if args.edges and not args.edges.exists():
        print(f"Error: Edge file not found: {args.edges}", file=sys.stderr)
        sys.exit(1)

    try:
        graph = build_graph_from_jsonl(
            args.nodes,
            args.edges,
            undirected=args.undirected,
        )

        if args.output.suffix == ".pkl":
            args.output.parent.mkdir(parents=True, exist_ok=True)
            graph.save(args.output)
        else:
            graph.save_mmap(args.output)

    except (OSError, ValueError) as e:
        print(f"Error building graph: {e}", file=sys.stderr)
        sys.exit(1)

    print("\n✓ Graph built successfully!")
    print(f"  Nodes: {graph.num_nodes:,}")
    print(f"  Edges: {graph.num_edges:,}")
    print(f"  Labels: {len(graph.label_to_idx):,}")


if __name__ == "__main__":
    main()
