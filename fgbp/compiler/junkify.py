"""
fgbp/compiler/junkify.py

Junction-tree construction ("junkify").

Converts an arbitrary built factor graph into a tree-structured factor graph
on which one scheduled sweep of belief propagation is exact:

1. Triangulate the interaction graph (min-fill) and take its maximal cliques
2. Connect the cliques by a maximum-separator spanning forest
3. Assign every original factor to the first clique containing its scope and
   sum the potentials of each clique in log-space
4. Emit one grouping node per clique (dim = product of its variables' dims),
   one unary factor per clique holding the aggregate potential, and one
   binary consistency factor per clique-tree edge

The consistency factor scores 0 where both clique assignments agree on the
separator and NEG_INF elsewhere. Factors without arguments are copied as
zero-edge factors.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import networkx as nx
import numpy as np

from fgbp.algebra.semiring import InferenceMode
from fgbp.compiler.clique_tree import build_clique_tree, root_tree, running_intersection_holds
from fgbp.core.errors import ConstructionError, InferenceError
from fgbp.graph.factor_graph import FactorGraph
from fgbp.graph.potentials import (
    NEG_INF,
    LinearPotential,
    Potential,
    TablePotential,
    combine_potentials,
    expand_potential,
    expansion_index,
)
from fgbp.topology.interaction import triangulate

logger = logging.getLogger(__name__)


@dataclass
class JunctionTree:
    """
    A junction tree and its back-references into the original graph.

    Node k of `graph` is clique k. The back-references are for lookup only;
    the junction tree owns its own nodes, factors and messages.

    Attributes:
        graph: Tree-structured factor graph over cliques
        cliques: Original node handles of each clique (sorted)
        dims: Domain sizes of each clique's variables
        node_clique: Original node handle -> first clique containing it
        factor_clique: Original factor handle -> clique it was assigned to (None if nullary)
        tree: Clique tree with `separator` edge attributes
    """
    graph: FactorGraph
    cliques: Tuple[Tuple[int, ...], ...]
    dims: Tuple[Tuple[int, ...], ...]
    node_clique: Tuple[int, ...]
    factor_clique: Tuple[Optional[int], ...]
    tree: nx.Graph

    def clique_belief(self, k: int) -> np.ndarray:
        """Belief of clique k reshaped to its variables' dims."""
        return self.graph.nodes[k].belief.reshape(self.dims[k])

    def project_belief(self, node: int, mode: InferenceMode) -> np.ndarray:
        """
        Belief of an original node, marginalized from its clique.

        Sum-product beliefs are probabilities and are summed; max-product
        beliefs are log max-marginals and are maximized.
        """
        k = self.node_clique[node]
        b = self.clique_belief(k)
        axis = self.cliques[k].index(node)
        others = tuple(i for i in range(b.ndim) if i != axis)
        if not others:
            return b.copy()
        if mode is InferenceMode.SUM_PRODUCT:
            return b.sum(axis=others)
        return b.max(axis=others)

    def decode(self) -> Tuple[int, ...]:
        """
        One jointly consistent arg-max assignment of the original nodes.

        Each clique-tree component is walked from its lowest-index clique;
        every clique takes the arg-max of its max-marginal belief with the
        variables already fixed by its ancestors held in place. Requires
        max-product beliefs on `graph`.

        Returns:
            Setting of every original node, indexed by node handle
        """
        assignment: Dict[int, int] = {}
        seen: set = set()
        for root in range(len(self.cliques)):
            if root in seen:
                continue
            parent, _ = root_tree(self.tree, root)
            # parents are discovered before their children
            for k in parent:
                seen.add(k)
                clique = self.cliques[k]
                sub = self.clique_belief(k)[tuple(assignment.get(v, slice(None)) for v in clique)]
                free = [v for v in clique if v not in assignment]
                if not free:
                    continue
                cell = np.unravel_index(int(np.argmax(sub)), sub.shape)
                for v, x in zip(free, cell):
                    assignment[v] = int(x)
        return tuple(assignment[n] for n in range(len(self.node_clique)))


def _flatten(potential: Potential, n: int) -> Potential:
    """View a potential over a clique's variables as a potential over its grouping node."""
    if isinstance(potential, TablePotential):
        return TablePotential((n,), potential.scores.reshape(n))
    if isinstance(potential, LinearPotential):
        base = None if potential.base is None else potential.base.reshape(n)
        return LinearPotential((n,), potential.stats, base)
    raise InferenceError(f"unsupported potential type {type(potential).__name__}")


def consistency_potential(
    clique_a: Sequence[int],
    clique_b: Sequence[int],
    dims_of: Mapping[int, int],
) -> TablePotential:
    """Binary potential between two grouping nodes: 0 if they agree on the separator, NEG_INF otherwise."""
    sep = tuple(sorted(set(clique_a) & set(clique_b)))
    sa = expansion_index(sep, clique_a, dims_of)
    sb = expansion_index(sep, clique_b, dims_of)
    scores = np.where(sa[:, None] == sb[None, :], 0.0, NEG_INF)
    return TablePotential(scores.shape, scores)


def junkify(fg: FactorGraph) -> JunctionTree:
    """
    Build the junction tree of a factor graph.

    Args:
        fg: A built factor graph (possibly loopy)

    Returns:
        JunctionTree whose graph is built and tree-structured
    """
    if not fg.is_built:
        raise ConstructionError("junkify requires a built factor graph")

    tri = triangulate(fg)
    logger.debug("min-fill order %s added %d fill edges", tri.order, len(tri.fill_edges))
    cliques = tuple(tuple(sorted(c)) for c in tri.cliques)
    tree = build_clique_tree(tri.cliques)
    if not running_intersection_holds(tri.cliques, tree):
        raise InferenceError("clique tree violates the running intersection property")

    dims_of = {n.index: n.dim for n in fg.nodes}
    clique_dims = tuple(tuple(dims_of[v] for v in c) for c in cliques)

    node_clique: List[Optional[int]] = [None] * len(fg.nodes)
    for k, c in enumerate(cliques):
        for v in c:
            if node_clique[v] is None:
                node_clique[v] = k
    if any(k is None for k in node_clique):
        raise InferenceError("triangulation left a node outside every clique")

    assigned: Dict[int, List[Potential]] = defaultdict(list)
    factor_clique: List[Optional[int]] = []
    nullary: List[Potential] = []
    for f in fg.factors:
        scope = fg.factor_scope(f.index)
        if not scope:
            factor_clique.append(None)
            nullary.append(f.potential)
            continue
        needed = set(scope)
        k = next((k for k, c in enumerate(cliques) if needed.issubset(c)), None)
        if k is None:
            raise InferenceError(f"no clique contains the scope of factor {f.index}")
        factor_clique.append(k)
        assigned[k].append(expand_potential(f.potential, scope, cliques[k], dims_of))

    jt = FactorGraph(weights=fg.weights.copy())
    for dims in clique_dims:
        jt.add_node(math.prod(dims))

    for k in range(len(cliques)):
        if k not in assigned:
            continue
        f = jt.add_factor()
        jt.add_edge(f, k)
        aggregate = combine_potentials(clique_dims[k], assigned[k])
        jt.set_potential(f, _flatten(aggregate, jt.nodes[k].dim))

    for a, b in sorted(tuple(sorted(e)) for e in tree.edges()):
        f = jt.add_factor()
        jt.add_edge(f, a)
        jt.add_edge(f, b)
        jt.set_potential(f, consistency_potential(cliques[a], cliques[b], dims_of))

    for p in nullary:
        f = jt.add_factor()
        jt.set_potential(f, p)

    jt.build()
    logger.debug(
        "junkify: %d nodes / %d factors -> %d cliques (max size %d), %d junction factors",
        len(fg.nodes), len(fg.factors), len(cliques),
        max((len(c) for c in cliques), default=0), len(jt.factors),
    )

    return JunctionTree(
        graph=jt,
        cliques=cliques,
        dims=clique_dims,
        node_clique=tuple(node_clique),
        factor_clique=tuple(factor_clique),
        tree=tree,
    )
