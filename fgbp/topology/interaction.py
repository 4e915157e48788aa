"""
fgbp/topology/interaction.py

Interaction (moral) graph of a factor graph and its triangulation.

The interaction graph has one vertex per variable node and an edge between
two variables whenever some factor depends on both. Triangulating it by
variable elimination yields the cliques of a tree decomposition.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import FrozenSet, List, Set, Tuple

import networkx as nx

from fgbp.core.errors import InferenceError
from fgbp.graph.factor_graph import FactorGraph

Clique = FrozenSet[int]


@dataclass(frozen=True)
class Triangulation:
    """
    Result of variable elimination.

    Attributes:
        order: Elimination order (node handles)
        cliques: Maximal cliques of the triangulated graph, in discovery order
        fill_edges: Edges added by elimination
    """
    order: Tuple[int, ...]
    cliques: Tuple[Clique, ...]
    fill_edges: Tuple[Tuple[int, int], ...]


def build_interaction_graph(fg: FactorGraph) -> nx.Graph:
    """
    Build the interaction graph of a factor graph.

    Every node is present, including nodes no factor touches.
    """
    g = nx.Graph()
    for n in fg.nodes:
        g.add_node(n.index, dim=n.dim)
    for f in fg.factors:
        scope = sorted(set(fg.factor_scope(f.index)))
        for a, b in combinations(scope, 2):
            g.add_edge(a, b)
    return g


def _fill_in(g: nx.Graph, v: int) -> List[Tuple[int, int]]:
    nbrs = sorted(g.neighbors(v))
    return [(a, b) for a, b in combinations(nbrs, 2) if not g.has_edge(a, b)]


def min_fill_order(g: nx.Graph) -> Tuple[Tuple[int, ...], Tuple[Clique, ...], Tuple[Tuple[int, int], ...]]:
    """
    Greedy min-fill variable elimination.

    Picks the vertex whose elimination adds the fewest fill edges; ties go to
    the lower degree, then the lower handle.

    Returns:
        (order, elimination cliques, fill edges)
    """
    work = g.copy()
    order: List[int] = []
    cliques: List[Clique] = []
    fill: List[Tuple[int, int]] = []

    while work.number_of_nodes() > 0:
        best = min(work.nodes(), key=lambda v: (len(_fill_in(work, v)), work.degree(v), v))
        new_edges = _fill_in(work, best)
        work.add_edges_from(new_edges)
        fill.extend(new_edges)
        cliques.append(frozenset([best, *work.neighbors(best)]))
        order.append(best)
        work.remove_node(best)

    if len(order) != g.number_of_nodes():
        raise InferenceError("variable elimination did not cover every node")
    return tuple(order), tuple(cliques), tuple(fill)


def maximal_cliques(cliques: Tuple[Clique, ...]) -> Tuple[Clique, ...]:
    """Drop duplicates and cliques contained in another, keeping first-seen order."""
    out: List[Clique] = []
    seen: Set[Clique] = set()
    for c in cliques:
        if c in seen:
            continue
        seen.add(c)
        if any(c < other for other in cliques):
            continue
        out.append(c)
    return tuple(out)


def triangulate(fg: FactorGraph) -> Triangulation:
    """
    Triangulate the interaction graph of a factor graph.

    Args:
        fg: Factor graph

    Returns:
        Triangulation with the maximal cliques of the chordal completion
    """
    g = build_interaction_graph(fg)
    order, elim_cliques, fill = min_fill_order(g)
    return Triangulation(order=order, cliques=maximal_cliques(elim_cliques), fill_edges=fill)
