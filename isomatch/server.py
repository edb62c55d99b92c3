"""ISOMATCH HTTP service."""

import gc
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from isomatch.enrichment import enrich_knowledge_graph
from isomatch.graph import LabeledGraph
from isomatch.search import LIMIT, lookup

logger = logging.getLogger(__name__)

GRAPH = None

# Configuration via environment variables
GRAPH_PATH = os.environ.get("ISOMATCH_GRAPH_PATH", "data/graph_mmap")
GRAPH_FORMAT = os.environ.get("ISOMATCH_GRAPH_FORMAT", "auto")  # "auto", "pickle", or "mmap"


def load_graph(path: str, format: str = "auto") -> LabeledGraph:
    """
    Load graph from disk.

    Args:
        path: Path to graph file (pickle) or directory (mmap)
        format: "auto" (detect from path), "pickle", or "mmap"

    Returns:
        Loaded LabeledGraph
    """
    path = Path(path)

    # Auto-detect format
    if format == "auto":
        if path.is_dir():
            format = "mmap"
        elif path.suffix == ".pkl":
            format = "pickle"
        else:
            raise ValueError(f"Cannot auto-detect format for: {path}")

    if format == "mmap":
        return LabeledGraph.load_mmap(path)
    elif format == "pickle":
        return LabeledGraph.load(path)
    else:
        raise ValueError(f"Unknown format: {format}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the data graph on startup."""
    global GRAPH
    logger.info("Loading graph from %s (format=%s)...", GRAPH_PATH, GRAPH_FORMAT)
    GRAPH = load_graph(GRAPH_PATH, GRAPH_FORMAT)

    # The graph never changes after load; keep the cyclic GC off its objects.
    gc.collect()
    gc.freeze()
    logger.info("Server ready!")
    yield
    GRAPH = None


APP = FastAPI(
    title="ISOMATCH",
    lifespan=lifespan,
)

APP.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _run_lookup(request: dict) -> dict:
    """Run a lookup for a request body, honoring its options."""
    if GRAPH is None:
        raise HTTPException(503, "graph not loaded")
    limit = request.get("limit", LIMIT)
    # bool is an int subclass; reject it explicitly
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise HTTPException(400, "limit must be a positive integer")
    try:
        response = lookup(
            GRAPH,
            request,
            limit=limit,
            undirected=bool(request.get("undirected", False)),
        )
    except ValueError as e:
        raise HTTPException(400, str(e)) from e
    if request.get("enrich", True):
        enrich_knowledge_graph(response, GRAPH)
    return response


@APP.post("/match")
def sync_match(request: dict):
    """Find all embeddings of the query graph."""
    return _run_lookup(request)


def async_match(callback_url: str, request: dict):
    """Run a match and POST the response to the callback."""
    try:
        response = _run_lookup(request)
    except HTTPException as e:
        response = {"error": e.detail, "status_code": e.status_code}

    try:
        with httpx.Client(timeout=httpx.Timeout(timeout=600.0)) as client:
            res = client.post(callback_url, json=response)
            res.raise_for_status()
            logger.info("Posted to %s with code %d", callback_url, res.status_code)
    except httpx.HTTPError as e:
        logger.error("Callback to %s failed with: %s", callback_url, e)


@APP.post("/asyncmatch")
def async_query(
    background_tasks: BackgroundTasks,
    request: dict,
):
    """Handle asynchronous match; the response is POSTed to ``callback``."""
    callback = request.get("callback")
    if not callback:
        raise HTTPException(400, "callback is required")
    if "query_graph" not in request:
        raise HTTPException(400, "query_graph is required")

    logger.info("Doing async match for %s", callback)
    background_tasks.add_task(async_match, callback, request)
    return {"status": "accepted"}
