"""CLI utility to convert graph formats."""

import argparse
import logging
import sys
from pathlib import Path

from isomatch.graph import LabeledGraph


def convert_pickle_to_mmap(pickle_path: str, output_dir: str) -> None:
    """
    Convert a pickle-format graph to memory-mapped format.

    Args:
        pickle_path: Path to existing .pkl graph file
        output_dir: Directory to save mmap-format graph
    """
    pickle_path = Path(pickle_path)
    output_dir = Path(output_dir)

    if not pickle_path.exists():
        raise FileNotFoundError(f"Pickle file not found: {pickle_path}")

    graph = LabeledGraph.load(pickle_path)
    graph.save_mmap(output_dir)


def convert_mmap_to_pickle(mmap_dir: str, output_path: str) -> None:
    """
    Convert a memory-mapped graph directory to a single pickle file.

    Node attributes (LMDB) are not carried over; pickle holds structure only.
    """
    mmap_dir = Path(mmap_dir)
    if not mmap_dir.is_dir():
        raise FileNotFoundError(f"Graph directory not found: {mmap_dir}")

    graph = LabeledGraph.load_mmap(mmap_dir, mmap_mode=None)
    graph.save(output_path)


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(
        description="Convert isomatch graphs between formats"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    pickle_to_mmap = subparsers.add_parser(
        "pickle-to-mmap",
        help="Convert pickle graph to memory-mapped format"
    )
    pickle_to_mmap.add_argument("pickle_path", help="Path to source pickle file (.pkl)")
    pickle_to_mmap.add_argument("output_dir", help="Directory for mmap output files")

    mmap_to_pickle = subparsers.add_parser(
        "mmap-to-pickle",
        help="Convert memory-mapped graph to a single pickle file"
    )
    mmap_to_pickle.add_argument("mmap_dir", help="Directory of mmap graph files")
    mmap_to_pickle.add_argument("output_path", help="Output pickle file (.pkl)")

    args = parser.parse_args()

    try:
        if args.command == "pickle-to-mmap":
            convert_pickle_to_mmap(args.pickle_path, args.output_dir)
        elif args.command == "mmap-to-pickle":
            convert_mmap_to_pickle(args.mmap_dir, args.output_path)
        else:
            parser.print_help()
            sys.exit(1)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print("\nConversion complete!")


if __name__ == "__main__":
    main()
