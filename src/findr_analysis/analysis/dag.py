"""Directed acyclic graphs from Findr probabilities.

Causal inference returns a probability for every ordered gene pair, which may
contain cycles. These functions select a subset of edges forming a DAG.
"""

from __future__ import annotations

from typing import Literal

import networkx as nx
import numpy as np
import pandas as pd

from findr_analysis.utils.config import DAG_METHODS
from findr_analysis.utils.logging import get_logger

logger = get_logger(__name__)


def _greedy_edges(edges: pd.DataFrame, source: str, target: str) -> np.ndarray:
    """Add edges by decreasing probability unless they close a cycle."""
    graph = nx.DiGraph()
    keep = np.zeros(len(edges), dtype=bool)

    for i, (u, v) in enumerate(zip(edges[source], edges[target])):
        if u == v:
            continue
        if u in graph and v in graph and nx.has_path(graph, v, u):
            continue
        graph.add_edge(u, v)
        keep[i] = True
    return keep


def _heuristic_edges(edges: pd.DataFrame, source: str, target: str, weight: str) -> np.ndarray:
    """Keep edges going from higher to lower net outgoing probability."""
    out_mass = edges.groupby(source)[weight].sum()
    in_mass = edges.groupby(target)[weight].sum()
    score = out_mass.sub(in_mass, fill_value=0.0)

    # Rank nodes by score, ties broken by name
    order = sorted(score.index, key=lambda node: (-score[node], str(node)))
    rank = {node: i for i, node in enumerate(order)}

    src_rank = edges[source].map(rank).to_numpy()
    tgt_rank = edges[target].map(rank).to_numpy()
    return src_rank < tgt_rank


def dagfindr(
    results: pd.DataFrame,
    method: Literal["greedy", "heuristic"] = "greedy",
    source: str = "Source",
    target: str = "Target",
    weight: str = "Probability",
) -> pd.DataFrame:
    """
    Mark the edges of a DAG built from a Findr result table.

    Args:
        results: Table of directed edges with probabilities.
        method: "greedy" adds edges by decreasing probability and skips those
            creating a cycle; "heuristic" orders genes by outgoing minus
            incoming probability and keeps edges that follow the order.
        source: Source column.
        target: Target column.
        weight: Probability column.

    Returns:
        Copy of the table sorted by decreasing probability with a boolean
        "inDAG" column.
    """
    for col in (source, target, weight):
        if col not in results.columns:
            raise ValueError(f"Column '{col}' not found in results")
    if method not in DAG_METHODS:
        raise ValueError(f"Unknown DAG method: {method}. Expected one of {DAG_METHODS}")

    edges = results.sort_values(weight, ascending=False, kind="stable").reset_index(drop=True)

    if method == "greedy":
        keep = _greedy_edges(edges, source, target)
    else:
        keep = _heuristic_edges(edges, source, target, weight)

    edges["inDAG"] = keep
    logger.info(f"DAG ({method}): kept {int(keep.sum())} of {len(edges)} edges")
    return edges


def dag_to_graph(
    results: pd.DataFrame,
    source: str = "Source",
    target: str = "Target",
    weight: str = "Probability",
) -> nx.DiGraph:
    """
    Build a directed graph from the edges marked in a result table.

    Rows with ``inDAG`` False are left out when the column is present.
    """
    edges = results[results["inDAG"]] if "inDAG" in results.columns else results
    graph = nx.DiGraph()
    for u, v, w in zip(edges[source], edges[target], edges[weight]):
        graph.add_edge(u, v, weight=float(w))
    return graph
