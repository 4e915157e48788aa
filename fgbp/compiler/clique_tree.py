"""
fgbp/compiler/clique_tree.py

Clique tree selection over the maximal cliques of a triangulated graph.

The clique tree is a maximum spanning forest of the clique intersection
graph, weighted by separator cardinality. For the maximal cliques of a
chordal graph this forest has the running intersection property.
"""

from __future__ import annotations

from itertools import combinations
from typing import Dict, List, Optional, Sequence, Tuple

import networkx as nx

from fgbp.topology.interaction import Clique


def build_clique_graph(cliques: Sequence[Clique]) -> nx.Graph:
    """
    Intersection graph of cliques.

    Nodes are clique indices; an edge joins two cliques with a non-empty
    separator and carries `separator` (sorted tuple) and `weight` (its size).
    """
    g = nx.Graph()
    g.add_nodes_from(range(len(cliques)))
    for i, j in combinations(range(len(cliques)), 2):
        sep = cliques[i] & cliques[j]
        if sep:
            g.add_edge(i, j, separator=tuple(sorted(sep)), weight=len(sep))
    return g


def build_clique_tree(cliques: Sequence[Clique]) -> nx.Graph:
    """
    Choose the clique tree (forest, for disconnected models).

    Weights must be separator cardinalities: weighting by log domain size
    does not guarantee running intersection.
    """
    return nx.maximum_spanning_tree(build_clique_graph(cliques), weight="weight")


def running_intersection_holds(cliques: Sequence[Clique], tree: nx.Graph) -> bool:
    """Every variable's cliques must induce a connected subtree."""
    variables = set().union(*cliques) if cliques else set()
    for v in variables:
        holders = [i for i, c in enumerate(cliques) if v in c]
        if not nx.is_connected(tree.subgraph(holders)):
            return False
    return True


def root_tree(tree: nx.Graph, root: int) -> Tuple[Dict[int, Optional[int]], Dict[int, List[int]]]:
    """
    Root one component of a tree at a given node.

    Args:
        tree: Undirected tree graph
        root: Root node

    Returns:
        (parent, children) where:
        - parent[node] = parent node (None for root)
        - children[node] = list of child nodes
    """
    parent: Dict[int, Optional[int]] = {root: None}
    children: Dict[int, List[int]] = {root: []}

    stack = [root]
    while stack:
        u = stack.pop()
        for v in sorted(tree.neighbors(u)):
            if v in parent:
                continue
            parent[v] = u
            children.setdefault(u, []).append(v)
            children.setdefault(v, [])
            stack.append(v)

    return parent, children
