"""
Isomatch - Subgraph isomorphism search over vertex-labeled graphs
"""

__version__ = "0.1.0"

from isomatch.diagnostics import analyze_labels, diagnose_search_space
from isomatch.enrichment import enrich_knowledge_graph
from isomatch.graph import LabeledGraph
from isomatch.graph_sim import DualSimulation
from isomatch.lmdb_store import LMDBPropertyStore
from isomatch.loader import build_graph_from_jsonl, build_query_graph
from isomatch.query_planner import make_order
from isomatch.search import CHECK, LIMIT, UllmannIso, lookup
from isomatch.validation import (
    ValidationError,
    ValidationResult,
    validate_bijection,
    validate_bijections,
)

__all__ = [
    # Core classes
    "LabeledGraph",
    "LMDBPropertyStore",
    # Loading
    "build_graph_from_jsonl",
    "build_query_graph",
    # Matching
    "DualSimulation",
    "make_order",
    "UllmannIso",
    "lookup",
    "LIMIT",
    "CHECK",
    # Diagnostics
    "diagnose_search_space",
    "analyze_labels",
    # Enrichment
    "enrich_knowledge_graph",
    # Validation
    "ValidationError",
    "ValidationResult",
    "validate_bijection",
    "validate_bijections",
]
