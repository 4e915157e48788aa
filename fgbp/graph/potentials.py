"""
fgbp/graph/potentials.py

Potentials: the scoring functions attached to factors.

A potential scores every joint assignment of its factor's arguments in
log-space. Two variants exist and both are handled exhaustively here:

- TablePotential: a dense score table indexed by the argument domains
- LinearPotential: sparse sufficient statistics per table cell, scored as
  dot(weights, stats(cell)) + base(cell) against the graph's weight vector

Table cells are laid out in C order, so the row of a cell in a
LinearPotential's statistics is np.ravel_multi_index(cell, dims). Undefined
entries carry the sentinel NEG_INF (log of zero): they are never chosen by
max-product and carry no mass in sum-product.

The message and expectation functions read the n2f messages stored on the
factor's edges and write f2n messages back; the argument order of a potential
is the order in which edges were added to its factor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import scipy.sparse as sp

from fgbp.algebra.semiring import (
    MessageSemiring,
    entropy,
    max_product_semiring,
    sum_product_semiring,
)
from fgbp.core.errors import ConstructionError, InferenceError

if TYPE_CHECKING:
    from fgbp.graph.factor_graph import Factor, FactorGraph

NEG_INF = -np.inf

Assignment = Tuple[int, ...]
FeatureVector = Mapping[int, float]

_MAX = max_product_semiring()
_SUM = sum_product_semiring()


def _num_cells(dims: Tuple[int, ...]) -> int:
    return math.prod(dims)


def _check_dims(dims: Sequence[int]) -> Tuple[int, ...]:
    dims = tuple(int(d) for d in dims)
    for d in dims:
        if d < 1:
            raise ConstructionError(f"potential dimension must be >= 1, got {dims}")
    return dims


def _cell_index(dims: Tuple[int, ...], assignment: Sequence[int]) -> int:
    """Flat C-order index of an assignment, rejecting values outside the domain."""
    a = tuple(int(v) for v in assignment)
    if len(a) != len(dims) or any(not 0 <= v < d for v, d in zip(a, dims)):
        raise InferenceError(f"assignment {a} outside potential domain {dims}")
    if not dims:
        return 0
    return int(np.ravel_multi_index(a, dims))


@dataclass(frozen=True, eq=False)
class TablePotential:
    """
    Dense log-space score table.

    Attributes:
        dims: Domain size of each argument, in edge order
        scores: Array of shape dims
    """
    dims: Tuple[int, ...]
    scores: np.ndarray

    def __post_init__(self):
        dims = _check_dims(self.dims)
        scores = np.asarray(self.scores, dtype=np.float64)
        if scores.shape != dims:
            raise ConstructionError(f"table shape {scores.shape} != dims {dims}")
        object.__setattr__(self, "dims", dims)
        object.__setattr__(self, "scores", scores)

    @staticmethod
    def from_array(scores) -> "TablePotential":
        arr = np.asarray(scores, dtype=np.float64)
        return TablePotential(arr.shape, arr)

    @property
    def arity(self) -> int:
        return len(self.dims)

    def score(self, assignment: Sequence[int]) -> float:
        return float(self.scores.ravel()[_cell_index(self.dims, assignment)])


@dataclass(frozen=True, eq=False)
class LinearPotential:
    """
    Feature-weighted potential.

    Attributes:
        dims: Domain size of each argument, in edge order
        stats: Sparse matrix with one row per table cell and one column per feature
        base: Optional dense base-measure table of shape dims, added to the score
    """
    dims: Tuple[int, ...]
    stats: sp.csr_matrix
    base: Optional[np.ndarray] = None

    def __post_init__(self):
        dims = _check_dims(self.dims)
        stats = sp.csr_matrix(self.stats, dtype=np.float64)
        if stats.shape[0] != _num_cells(dims):
            raise ConstructionError(
                f"statistics have {stats.shape[0]} rows but dims {dims} have {_num_cells(dims)} cells"
            )
        object.__setattr__(self, "dims", dims)
        object.__setattr__(self, "stats", stats)
        if self.base is not None:
            base = np.asarray(self.base, dtype=np.float64)
            if base.shape != dims:
                raise ConstructionError(f"base shape {base.shape} != dims {dims}")
            object.__setattr__(self, "base", base)

    @property
    def arity(self) -> int:
        return len(self.dims)

    @property
    def num_features(self) -> int:
        return self.stats.shape[1]

    def features(self, assignment: Sequence[int]) -> sp.csr_matrix:
        """Feature row of one assignment."""
        return self.stats.getrow(_cell_index(self.dims, assignment))

    def score(self, assignment: Sequence[int], weights: np.ndarray) -> float:
        idx = _cell_index(self.dims, assignment)
        return float(potential_scores(self, weights).ravel()[idx])


Potential = Union[TablePotential, LinearPotential]


def table(dims: Sequence[int], entries: Union[Mapping[Assignment, float], Callable[[Assignment], Optional[float]]]) -> TablePotential:
    """
    Build a TablePotential from a mapping or callable over assignments.

    Assignments missing from the mapping, or for which the callable returns
    None, get the NEG_INF sentinel.
    """
    dims = _check_dims(dims)
    scores = np.full(dims, NEG_INF, dtype=np.float64)
    for a in np.ndindex(*dims):
        v = entries(a) if callable(entries) else entries.get(a)
        if v is not None:
            scores[a] = v
    return TablePotential(dims, scores)


def stats(
    dims: Sequence[int],
    fn: Callable[[Assignment], Optional[FeatureVector]],
    num_features: Optional[int] = None,
) -> sp.csr_matrix:
    """
    Build the sufficient statistics matrix for a LinearPotential.

    Args:
        dims: Argument domain sizes
        fn: Maps an assignment to a sparse feature vector {index: value} (or None)
        num_features: Column count (default: largest index used + 1)

    Returns:
        CSR matrix with one row per cell in C order
    """
    dims = _check_dims(dims)
    rows, cols, vals = [], [], []
    for row, a in enumerate(np.ndindex(*dims)):
        feats = fn(a)
        if not feats:
            continue
        for i, v in feats.items():
            rows.append(row)
            cols.append(int(i))
            vals.append(float(v))
    k = (max(cols) + 1 if cols else 0) if num_features is None else int(num_features)
    return sp.csr_matrix((vals, (rows, cols)), shape=(_num_cells(dims), k), dtype=np.float64)


def singleton(index: int, value: float = 1.0) -> Dict[int, float]:
    """A feature vector with a single active feature."""
    return {int(index): float(value)}


def dense(n: int, *pairs: Tuple[int, float]) -> np.ndarray:
    """A dense weight vector of length n with the given (index, value) entries."""
    w = np.zeros(n, dtype=np.float64)
    for i, v in pairs:
        w[i] = v
    return w


def potential_scores(potential: Potential, weights: np.ndarray) -> np.ndarray:
    """
    Dense log-space score table of a potential.

    Args:
        potential: Table or linear potential
        weights: Global weight vector (ignored by table potentials)

    Returns:
        Array of shape potential.dims
    """
    if isinstance(potential, TablePotential):
        return potential.scores
    if isinstance(potential, LinearPotential):
        k = potential.num_features
        if k > len(weights):
            raise InferenceError(
                f"linear potential uses {k} features but the weight vector has {len(weights)}"
            )
        s = np.asarray(potential.stats @ weights[:k], dtype=np.float64).reshape(potential.dims)
        if potential.base is not None:
            s = s + potential.base
        return s
    raise InferenceError(f"unsupported potential type {type(potential).__name__}")


# ---------------------------------------------------------------------------
# Expansion onto a larger variable set (used by junkify and brute force)
# ---------------------------------------------------------------------------

def expansion_index(
    scope: Sequence[int],
    target: Sequence[int],
    dims_of: Mapping[int, int],
) -> np.ndarray:
    """
    For every cell of the target table (C order), the flat index of the
    matching cell in the scope's table.

    The scope may repeat a variable; the repeated axes then read the same
    target coordinate, which selects the diagonal of the scope's table.
    """
    target_dims = tuple(dims_of[v] for v in target)
    n = _num_cells(target_dims)
    if not scope:
        return np.zeros(n, dtype=np.intp)
    pos = {v: i for i, v in enumerate(target)}
    missing = [v for v in scope if v not in pos]
    if missing:
        raise InferenceError(f"scope variables {missing} not in target {tuple(target)}")
    grids = np.indices(target_dims).reshape(len(target_dims), n)
    coords = tuple(grids[pos[v]] for v in scope)
    return np.ravel_multi_index(coords, tuple(dims_of[v] for v in scope))


def expand_potential(
    potential: Potential,
    scope: Sequence[int],
    target: Sequence[int],
    dims_of: Mapping[int, int],
) -> Potential:
    """Re-index a potential over scope as a potential over target ⊇ scope."""
    target_dims = tuple(dims_of[v] for v in target)
    idx = expansion_index(scope, target, dims_of)
    if isinstance(potential, TablePotential):
        return TablePotential(target_dims, potential.scores.ravel()[idx].reshape(target_dims))
    if isinstance(potential, LinearPotential):
        base = None
        if potential.base is not None:
            base = potential.base.ravel()[idx].reshape(target_dims)
        return LinearPotential(target_dims, potential.stats[idx], base)
    raise InferenceError(f"unsupported potential type {type(potential).__name__}")


def _pad_columns(m: sp.csr_matrix, k: int) -> sp.csr_matrix:
    if m.shape[1] == k:
        return m
    out = m.copy()
    out.resize((m.shape[0], k))
    return out


def combine_potentials(dims: Sequence[int], potentials: Sequence[Potential]) -> Potential:
    """
    Product (log-space sum) of potentials that share the same dims.

    Tables are summed. If any potential is linear the result is linear, with
    the summed statistics and every table folded into its base.
    """
    dims = _check_dims(dims)
    tables = [p for p in potentials if isinstance(p, TablePotential)]
    linears = [p for p in potentials if isinstance(p, LinearPotential)]
    for p in potentials:
        if p.dims != dims:
            raise InferenceError(f"cannot combine potential over {p.dims} into {dims}")

    base = None
    if tables or any(p.base is not None for p in linears):
        base = np.zeros(dims, dtype=np.float64)
        for p in tables:
            base = base + p.scores
        for p in linears:
            if p.base is not None:
                base = base + p.base

    if not linears:
        return TablePotential(dims, base if base is not None else np.zeros(dims))

    k = max(p.num_features for p in linears)
    total = _pad_columns(linears[0].stats, k)
    for p in linears[1:]:
        total = total + _pad_columns(p.stats, k)
    return LinearPotential(dims, sp.csr_matrix(total), base)


# ---------------------------------------------------------------------------
# Messages and expectations
# ---------------------------------------------------------------------------

def _incoming(graph: "FactorGraph", factor: "Factor", scores: np.ndarray, exclude: Optional[int] = None) -> np.ndarray:
    """Scores plus the n2f messages of every edge except `exclude`, broadcast per axis."""
    acc = np.array(scores, dtype=np.float64, copy=True)
    for pos, eid in enumerate(factor.edges):
        if eid == exclude:
            continue
        shape = [1] * acc.ndim
        shape[pos] = -1
        acc = acc + graph.edges[eid].msgs.n2f.reshape(shape)
    return acc


def factor_f2n(graph: "FactorGraph", edge_id: int, sr: MessageSemiring) -> None:
    """
    Compute the factor-to-node message on one edge and store it in edge.msgs.f2n.

    The message is the ⊕-marginal of score + incoming messages onto the edge's
    argument position, normalized by the semiring.
    """
    edge = graph.edges[edge_id]
    factor = graph.factors[edge.factor]
    scores = potential_scores(factor.potential, graph.weights)
    acc = _incoming(graph, factor, scores, exclude=edge_id)
    pos = factor.edges.index(edge_id)
    others = tuple(i for i in range(acc.ndim) if i != pos)
    msg = np.asarray(sr.add_reduce(acc, others), dtype=np.float64)
    edge.msgs.f2n[:] = sr.normalize(msg)


def max_marginal_f2n(graph: "FactorGraph", edge_id: int) -> None:
    factor_f2n(graph, edge_id, _MAX)


def marginal_f2n(graph: "FactorGraph", edge_id: int) -> None:
    factor_f2n(graph, edge_id, _SUM)


def _accumulate_row(result: np.ndarray, potential: Potential, row: int) -> None:
    if isinstance(potential, LinearPotential):
        r = potential.stats.getrow(row)
        np.add.at(result, r.indices, r.data)


def _accumulate_expected(result: np.ndarray, potential: Potential, probs: np.ndarray) -> None:
    if isinstance(potential, LinearPotential):
        k = potential.num_features
        result[:k] += np.asarray(potential.stats.T @ probs, dtype=np.float64).ravel()


def max_marginal_expectations_and_objective(graph: "FactorGraph", factor_id: int, result: np.ndarray) -> float:
    """
    Add the feature vector of the factor's arg-max cell to result and return its score.

    The arg-max is taken over score + all incoming n2f messages.
    """
    factor = graph.factors[factor_id]
    scores = potential_scores(factor.potential, graph.weights)
    acc = _incoming(graph, factor, scores)
    best = int(np.argmax(acc.ravel()))
    _accumulate_row(result, factor.potential, best)
    return float(scores.ravel()[best])


def assignment_expectations_and_objective(
    graph: "FactorGraph", factor_id: int, assignment: Sequence[int], result: np.ndarray
) -> float:
    """
    Add the feature vector of the factor's cell under a joint assignment to result.

    Args:
        graph: Graph owning the factor
        factor_id: Factor handle
        assignment: Setting of every node of the graph, indexed by node handle
        result: Gradient accumulator

    Returns:
        The cell's score
    """
    factor = graph.factors[factor_id]
    scores = potential_scores(factor.potential, graph.weights)
    row = _cell_index(factor.potential.dims, [assignment[graph.edges[e].node] for e in factor.edges])
    _accumulate_row(result, factor.potential, row)
    return float(scores.ravel()[row])


def marginal_expectations_and_objective(graph: "FactorGraph", factor_id: int, result: np.ndarray) -> float:
    """
    Add the expected feature vector under the factor belief to result.

    Returns:
        E_b[score] + H(b), the factor's term of the Bethe objective
    """
    factor = graph.factors[factor_id]
    scores = potential_scores(factor.potential, graph.weights)
    acc = _incoming(graph, factor, scores)
    log_z = _SUM.total(acc)
    if np.isneginf(log_z):
        return NEG_INF
    probs = np.exp(acc.ravel() - log_z)
    mass = probs > 0.0
    expected = float(np.sum(probs[mass] * scores.ravel()[mass]))
    _accumulate_expected(result, factor.potential, probs)
    return expected + entropy(probs)


def factor_expectations_and_objective(
    graph: "FactorGraph", factor_id: int, result: np.ndarray, sr: MessageSemiring
) -> float:
    if sr.is_sum:
        return marginal_expectations_and_objective(graph, factor_id, result)
    return max_marginal_expectations_and_objective(graph, factor_id, result)
