"""
fgbp/graph/factor_graph.py

Mutable message-passing factor graph.

A factor graph consists of:
- Nodes: discrete variables with a domain size and a belief
- Factors: scoring functions (potentials) over an ordered list of edges
- Edges: node-factor incidences carrying the message buffers

The graph is an arena: nodes, factors and edges live in three lists and
refer to each other by integer handle only. Structure is append-only until
build() and immutable afterwards; build() allocates the message buffers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import networkx as nx
import numpy as np
import scipy.sparse as sp

from fgbp.core.errors import ConstructionError
from fgbp.graph.potentials import Potential


@dataclass
class Messages:
    """
    Message buffers of one edge, all in log-space.

    Attributes:
        n2f: Node-to-factor message
        f2n: Factor-to-node message
        f2n_old: Previous f2n, kept for residual computations
    """
    n2f: np.ndarray
    f2n: np.ndarray
    f2n_old: np.ndarray

    @staticmethod
    def zeros(dim: int) -> "Messages":
        return Messages(np.zeros(dim), np.zeros(dim), np.zeros(dim))

    def save_current_f2n_as_old(self) -> None:
        self.f2n_old[:] = self.f2n

    def residual(self) -> float:
        """Largest absolute change between f2n and f2n_old (equal infinities count as no change)."""
        same = self.f2n == self.f2n_old
        diff = np.where(same, 0.0, np.abs(self.f2n - self.f2n_old))
        return float(diff.max()) if diff.size else 0.0

    def reset(self) -> None:
        self.n2f.fill(0.0)
        self.f2n.fill(0.0)
        self.f2n_old.fill(0.0)


@dataclass
class Node:
    """A discrete variable."""
    index: int
    dim: int
    edges: List[int] = field(default_factory=list)
    belief: Optional[np.ndarray] = None
    setting: int = 0

    @property
    def degree(self) -> int:
        return len(self.edges)


@dataclass
class Factor:
    """A factor: one potential over an ordered sequence of edges."""
    index: int
    edges: List[int] = field(default_factory=list)
    potential: Optional[Potential] = None


@dataclass
class Edge:
    """Node-factor incidence."""
    index: int
    node: int
    factor: int
    msgs: Optional[Messages] = None


class FactorGraph:
    """
    Discrete factor graph with message buffers.

    Attributes:
        nodes: Node arena
        factors: Factor arena
        edges: Edge arena
        weights: Global weight vector read by linear potentials
        value: Objective after inference (log Z or max score)
        gradient: Feature expectations after inference, shape (1, len(weights))
    """

    def __init__(self, weights: Optional[np.ndarray] = None):
        self.nodes: List[Node] = []
        self.factors: List[Factor] = []
        self.edges: List[Edge] = []
        self.weights: np.ndarray = np.zeros(0) if weights is None else np.asarray(weights, dtype=np.float64)
        self.value: float = 0.0
        self.gradient: sp.csr_matrix = sp.csr_matrix((1, len(self.weights)))
        self._built = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @property
    def is_built(self) -> bool:
        return self._built

    def _check_mutable(self, what: str) -> None:
        if self._built:
            raise ConstructionError(f"cannot {what} after build()")

    def add_node(self, dim: int) -> int:
        """Add a variable with domain size dim; returns its handle."""
        self._check_mutable("add a node")
        dim = int(dim)
        if dim < 1:
            raise ConstructionError(f"node dimension must be >= 1, got {dim}")
        handle = len(self.nodes)
        self.nodes.append(Node(index=handle, dim=dim))
        return handle

    def add_factor(self) -> int:
        """Add an empty factor; returns its handle."""
        self._check_mutable("add a factor")
        handle = len(self.factors)
        self.factors.append(Factor(index=handle))
        return handle

    def add_edge(self, factor: int, node: int) -> int:
        """
        Connect a factor to a node.

        The order of add_edge calls on a factor is the argument order its
        potential uses.
        """
        self._check_mutable("add an edge")
        f = self.factor(factor)
        n = self.node(node)
        handle = len(self.edges)
        self.edges.append(Edge(index=handle, node=n.index, factor=f.index))
        f.edges.append(handle)
        n.edges.append(handle)
        return handle

    def set_potential(self, factor: int, potential: Potential) -> None:
        """Attach a potential to a factor whose edges are already in place."""
        self._check_mutable("set a potential")
        f = self.factor(factor)
        self._check_potential(f, potential)
        f.potential = potential

    def _check_potential(self, f: Factor, potential: Optional[Potential]) -> None:
        if potential is None:
            raise ConstructionError(f"factor {f.index} has no potential")
        expected = self.factor_dims(f.index)
        if potential.dims != expected:
            raise ConstructionError(
                f"factor {f.index}: potential dims {potential.dims} != node dims {expected}"
            )

    def build(self) -> None:
        """Fix the structure and allocate message buffers. Must be called exactly once."""
        if self._built:
            raise ConstructionError("build() called twice")
        for f in self.factors:
            self._check_potential(f, f.potential)
        for e in self.edges:
            e.msgs = Messages.zeros(self.nodes[e.node].dim)
        for n in self.nodes:
            n.belief = np.zeros(n.dim)
            n.setting = 0
        if self.gradient.shape[1] != len(self.weights):
            self.gradient = sp.csr_matrix((1, len(self.weights)))
        self._built = True

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def node(self, i: int) -> Node:
        if not 0 <= i < len(self.nodes):
            raise ConstructionError(f"node index {i} out of range [0, {len(self.nodes)})")
        return self.nodes[i]

    def factor(self, i: int) -> Factor:
        if not 0 <= i < len(self.factors):
            raise ConstructionError(f"factor index {i} out of range [0, {len(self.factors)})")
        return self.factors[i]

    def edge(self, i: int) -> Edge:
        if not 0 <= i < len(self.edges):
            raise ConstructionError(f"edge index {i} out of range [0, {len(self.edges)})")
        return self.edges[i]

    def factor_scope(self, factor: int) -> tuple:
        """Node handles of a factor's arguments, in edge order."""
        return tuple(self.edges[e].node for e in self.factor(factor).edges)

    def factor_dims(self, factor: int) -> tuple:
        return tuple(self.nodes[n].dim for n in self.factor_scope(factor))

    @property
    def num_features(self) -> int:
        return len(self.weights)

    def gradient_vector(self) -> np.ndarray:
        """Dense copy of the gradient."""
        return np.asarray(self.gradient.toarray(), dtype=np.float64).ravel()

    def beliefs(self) -> List[np.ndarray]:
        return [n.belief for n in self.nodes]

    def reset_messages(self) -> None:
        for e in self.edges:
            if e.msgs is not None:
                e.msgs.reset()

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    def to_networkx(self) -> nx.Graph:
        """Bipartite view: vertices ("n", i) and ("f", j), one graph edge per incidence."""
        g = nx.Graph()
        g.add_nodes_from((("n", n.index) for n in self.nodes), bipartite=0)
        g.add_nodes_from((("f", f.index) for f in self.factors), bipartite=1)
        for e in self.edges:
            g.add_edge(("n", e.node), ("f", e.factor), edge=e.index)
        return g

    def is_tree(self) -> bool:
        """True if the bipartite graph is a forest (a factor touching a node twice is a cycle)."""
        for f in self.factors:
            scope = self.factor_scope(f.index)
            if len(set(scope)) != len(scope):
                return False
        g = self.to_networkx()
        return g.number_of_nodes() == 0 or nx.is_forest(g)

    def __repr__(self) -> str:
        return (
            f"FactorGraph(nodes={len(self.nodes)}, factors={len(self.factors)}, "
            f"edges={len(self.edges)}, built={self._built})"
        )
