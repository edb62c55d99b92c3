"""Validation utilities for verifying match results against the graphs.

This module provides tools for development and testing to ensure that
every reported bijection really embeds the query graph in the data graph.
"""

from dataclasses import dataclass
from typing import Optional

from isomatch.graph import LabeledGraph


@dataclass
class ValidationError:
    """Represents a validation error found in a result."""
    error_type: str
    message: str
    bijection_index: Optional[int] = None
    query_vertex: Optional[int] = None


@dataclass
class ValidationResult:
    """Result of validating bijections against the graphs."""
    valid: bool
    total_bijections: int
    valid_bijections: int
    errors: list[ValidationError]

    def summary(self) -> str:
        """Return a human-readable summary."""
        lines = [
            f"Validation {'PASSED' if self.valid else 'FAILED'}",
            f"  Total bijections: {self.total_bijections}",
            f"  Valid bijections: {self.valid_bijections}",
            f"  Invalid bijections: {self.total_bijections - self.valid_bijections}",
        ]
        if self.errors:
            lines.append(f"  Errors ({len(self.errors)}):")
            for err in self.errors[:10]:  # Show first 10 errors
                lines.append(f"    - [{err.error_type}] {err.message}")
            if len(self.errors) > 10:
                lines.append(f"    ... and {len(self.errors) - 10} more errors")
        return "\n".join(lines)


def validate_bijection(
    g: LabeledGraph,
    q: LabeledGraph,
    psi,
    bijection_index: Optional[int] = None,
) -> list[ValidationError]:
    """
    Check one bijection ``psi`` (indexed by query vertex) of ``q`` into ``g``.

    Checks, in order:
    1. Length: one data vertex per query vertex
    2. Range: every data vertex exists in g
    3. Injectivity: no data vertex is used twice
    4. Labels: label(u) == label(psi[u])
    5. Edges: every query edge u -> u' maps to an edge psi[u] -> psi[u']

    Returns:
        List of errors, empty if psi is a valid embedding.
    """
    if len(psi) != q.num_nodes:
        return [
            ValidationError(
                error_type="WRONG_LENGTH",
                message=f"Expected {q.num_nodes} entries, got {len(psi)}",
                bijection_index=bijection_index,
            )
        ]

    errors = []
    out_of_range = False
    for u, v in enumerate(psi):
        if v < 0 or v >= g.num_nodes:
            out_of_range = True
            errors.append(
                ValidationError(
                    error_type="VERTEX_OUT_OF_RANGE",
                    message=f"Query vertex {u} maps to {v}, outside [0, {g.num_nodes})",
                    bijection_index=bijection_index,
                    query_vertex=u,
                )
            )
    if out_of_range:
        return errors

    first_use = {}
    for u, v in enumerate(psi):
        if v in first_use:
            errors.append(
                ValidationError(
                    error_type="NOT_INJECTIVE",
                    message=f"Query vertices {first_use[v]} and {u} both map to {v}",
                    bijection_index=bijection_index,
                    query_vertex=u,
                )
            )
        else:
            first_use[v] = u

    for u, v in enumerate(psi):
        if q.label(u) != g.label(v):
            errors.append(
                ValidationError(
                    error_type="LABEL_MISMATCH",
                    message=(
                        f"Query vertex {u} has label {q.label(u)!r} but "
                        f"data vertex {v} has label {g.label(v)!r}"
                    ),
                    bijection_index=bijection_index,
                    query_vertex=u,
                )
            )

    for u, u_next in q.edges():
        if not g.has_edge(psi[u], psi[u_next]):
            errors.append(
                ValidationError(
                    error_type="EDGE_NOT_FOUND",
                    message=(
                        f"Query edge {u} -> {u_next} maps to missing edge "
                        f"{psi[u]} -> {psi[u_next]}"
                    ),
                    bijection_index=bijection_index,
                    query_vertex=u,
                )
            )

    return errors


def validate_bijections(g: LabeledGraph, q: LabeledGraph, bijections) -> ValidationResult:
    """Validate every bijection in a collection and summarize."""
    errors = []
    valid_count = 0
    total = 0
    for idx, psi in enumerate(bijections):
        total += 1
        psi_errors = validate_bijection(g, q, psi, bijection_index=idx)
        if psi_errors:
            errors.extend(psi_errors)
        else:
            valid_count += 1

    return ValidationResult(
        valid=not errors,
        total_bijections=total,
        valid_bijections=valid_count,
        errors=errors,
    )
