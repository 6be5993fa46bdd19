"""
bpmn_rewrite/graph/boundary.py — Boundary reachability through masked chains.

For a masked node m:
    preds(m) = unmasked nodes reached by walking incoming flows backwards from
               m, continuing only through masked nodes.
    succs(m) = the same, walking outgoing flows forwards.

An unmasked node is recorded as a frontier result and the walk does not
continue through it. A masked node with no unmasked neighbour on one side has
an empty set on that side.

Author: bpmn-rewrite contributors
"""

import logging
from collections import deque
from dataclasses import dataclass, field

import networkx as nx

logger = logging.getLogger(__name__)


@dataclass
class Boundary:
    """
    Nearest unmasked neighbours of one masked node.

    Fields:
        node:  The masked node id.
        preds: Unmasked predecessors, in BFS discovery order.
        succs: Unmasked successors, in BFS discovery order.
    """
    node: str
    preds: list[str] = field(default_factory=list)
    succs: list[str] = field(default_factory=list)


def _frontier(start: str, step, masked: set[str]) -> list[str]:
    # BFS whose interior is restricted to masked nodes.
    found: dict[str, None] = {}
    seen = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbour in step(current):
            if neighbour in masked:
                if neighbour not in seen:
                    seen.add(neighbour)
                    queue.append(neighbour)
            else:
                found.setdefault(neighbour)
    return list(found)


def boundary_neighbors(G: nx.MultiDiGraph, node: str, masked: set[str]) -> Boundary:
    """
    Compute preds/succs for a single masked node.

    Args:
        G:      Process graph (full flow adjacency, before any removal).
        node:   A member of `masked`.
        masked: All node ids being removed in this run.

    Returns:
        Boundary for `node`.
    """
    if node not in G:
        return Boundary(node)
    return Boundary(
        node,
        preds=_frontier(node, G.predecessors, masked),
        succs=_frontier(node, G.successors, masked),
    )


def resolve_boundaries(G: nx.MultiDiGraph, masked: list[str]) -> list[Boundary]:
    """
    Boundary of every masked node, in the order given.

    Must run on the graph as it was before any masked node was removed:
    the masked-only interior flows are what connect a chain to its ends.

    Complexity O(M · (V + E)) for M masked nodes.
    """
    masked_set = set(masked)
    boundaries = [boundary_neighbors(G, m, masked_set) for m in masked]
    logger.debug(
        "Resolved boundaries for %d masked nodes (%d without predecessors, %d without successors).",
        len(boundaries),
        sum(1 for b in boundaries if not b.preds),
        sum(1 for b in boundaries if not b.succs),
    )
    return boundaries
