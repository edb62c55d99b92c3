"""Diagnose search-space explosion for subgraph isomorphism queries."""

import math

import numpy as np

from isomatch.graph import LabeledGraph
from isomatch.graph_sim import DualSimulation
from isomatch.query_planner import make_order


def _log10_product(counts):
    """log10 of the product of counts (-inf when any count is zero)."""
    if any(c == 0 for c in counts):
        return float("-inf")
    return float(sum(math.log10(c) for c in counts))


def diagnose_search_space(g: LabeledGraph, q: LabeledGraph):
    """
    Show how much dual simulation prunes each query vertex's candidates and
    how large the remaining backtracking space can get.
    """
    print("=== SEARCH SPACE DIAGNOSIS ===")
    print(f"Data graph: {g.num_nodes:,} nodes, {g.num_edges:,} edges")
    print(f"Query graph: {q.num_nodes:,} nodes, {q.num_edges:,} edges")
    print()

    sims = DualSimulation(g, q)

    # 1. Label feasibility
    print("1. LABEL FEASIBLE MATES")
    phi0 = sims.feasible_mates()
    label_counts = [len(candidates) for candidates in phi0]
    for u, count in enumerate(label_counts):
        print(f"   {q.get_node_id(u)} ({q.label(u)}): {count:,} candidates")
    print()

    # 2. Dual simulation
    print("2. AFTER DUAL SIMULATION")
    phi = sims.refine(phi0)
    if phi is None:
        refined_counts = [0] * q.num_nodes
        print("   ⚠️  No dual simulation exists: the query has no embedding")
    else:
        refined_counts = [len(candidates) for candidates in phi]
        for u, (before, after) in enumerate(zip(label_counts, refined_counts)):
            pruned_pct = 100.0 * (before - after) / before if before else 0.0
            print(
                f"   {q.get_node_id(u)}: {after:,} candidates "
                f"({pruned_pct:.1f}% pruned)"
            )
    print()

    # 3. Search order
    print("3. SEARCH ORDER")
    order = make_order(q)
    print("   " + " → ".join(str(q.get_node_id(u)) for u in order))
    print()

    # 4. Search-space bound
    print("4. SEARCH SPACE UPPER BOUND")
    log_before = _log10_product(label_counts)
    log_after = _log10_product(refined_counts)
    if q.num_nodes == 0:
        print("   Empty query: exactly one (empty) embedding")
    elif log_after == float("-inf"):
        print("   0 (some query vertex has no candidates)")
    else:
        print(f"   Label only:       ~10^{log_before:.1f}")
        print(f"   After simulation: ~10^{log_after:.1f}")
        if log_after > 9:
            print("   ⚠️  Very large search space; consider a lower limit")
    print()

    return {
        "label_candidates": label_counts,
        "refined_candidates": refined_counts,
        "order": order,
        "log10_space_label": log_before,
        "log10_space_refined": log_after,
    }


def analyze_labels(g: LabeledGraph, top=10):
    """
    Print the most common labels and degree statistics of the data graph.
    Frequent labels with high degree are what makes queries expensive.
    """
    print("=== LABEL ANALYSIS ===")

    label_stats = g.get_label_stats()
    print(f"{len(label_stats):,} distinct labels")
    for label, count in label_stats[:top]:
        print(f"  {label}: {count:,} vertices")
    print()

    out_degrees = np.diff(np.asarray(g.fwd_offsets))
    in_degrees = np.diff(np.asarray(g.rev_offsets))
    stats = {
        "labels": label_stats,
        "avg_out_degree": float(np.mean(out_degrees)) if len(out_degrees) else 0.0,
        "max_out_degree": int(np.max(out_degrees)) if len(out_degrees) else 0,
        "max_in_degree": int(np.max(in_degrees)) if len(in_degrees) else 0,
    }
    print("Degree statistics:")
    print(f"  Avg out-degree: {stats['avg_out_degree']:.1f}")
    print(f"  Max out-degree: {stats['max_out_degree']:,}")
    print(f"  Max in-degree: {stats['max_in_degree']:,}")
    print()

    return stats
