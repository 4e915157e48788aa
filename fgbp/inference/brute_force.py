"""
fgbp/inference/brute_force.py

Exact inference by enumerating every joint assignment.

Every potential is expanded onto the full variable set and summed into one
joint score table, so this is only usable for small graphs. It writes the
same quantities as belief propagation (beliefs, settings, value, gradient)
and is the reference the engine is checked against.
"""

from __future__ import annotations

import math

import numpy as np
import scipy.sparse as sp

from fgbp.algebra.semiring import InferenceMode, semiring_for
from fgbp.core.errors import ConstructionError
from fgbp.graph.factor_graph import FactorGraph
from fgbp.graph.potentials import LinearPotential, expand_potential, potential_scores


def joint_scores(fg: FactorGraph) -> np.ndarray:
    """Total score of every joint assignment, shape = node dims."""
    target = tuple(n.index for n in fg.nodes)
    dims_of = {n.index: n.dim for n in fg.nodes}
    total = np.zeros(tuple(n.dim for n in fg.nodes))
    for f in fg.factors:
        p = expand_potential(f.potential, fg.factor_scope(f.index), target, dims_of)
        total = total + potential_scores(p, fg.weights)
    return total


def joint_stats(fg: FactorGraph) -> sp.csr_matrix:
    """Feature vector of every joint assignment (C order rows)."""
    target = tuple(n.index for n in fg.nodes)
    dims_of = {n.index: n.dim for n in fg.nodes}
    rows = math.prod(n.dim for n in fg.nodes)
    out = sp.csr_matrix((rows, fg.num_features))
    for f in fg.factors:
        if not isinstance(f.potential, LinearPotential):
            continue
        p = expand_potential(f.potential, fg.factor_scope(f.index), target, dims_of)
        s = p.stats.copy()
        s.resize((rows, fg.num_features))
        out = out + s
    return sp.csr_matrix(out)


def brute_force_search(fg: FactorGraph, mode: InferenceMode = InferenceMode.MAX_PRODUCT) -> None:
    """
    Exact inference by enumeration.

    Args:
        fg: A built factor graph
        mode: Sum-product (marginals, log Z) or max-product (max-marginals, max score)
    """
    if not fg.is_built:
        raise ConstructionError("brute force search requires build() to be called first")

    sr = semiring_for(mode)
    scores = joint_scores(fg)
    feats = joint_stats(fg)
    flat = scores.ravel()
    all_axes = tuple(range(scores.ndim))

    if sr.is_sum:
        log_z = sr.total(scores)
        fg.value = log_z
        if np.isneginf(log_z):
            # no feasible assignment
            marg = np.zeros(scores.shape)
            gradient = np.zeros(fg.num_features)
        else:
            probs = np.exp(flat - log_z)
            gradient = np.asarray(feats.T @ probs, dtype=np.float64).ravel()
            marg = probs.reshape(scores.shape)
        for node in fg.nodes:
            others = tuple(i for i in all_axes if i != node.index)
            b = marg.sum(axis=others) if others else marg.copy()
            node.belief = b
            node.setting = int(np.argmax(b))
    else:
        best = int(np.argmax(flat))
        fg.value = float(flat[best])
        gradient = np.asarray(feats.getrow(best).toarray(), dtype=np.float64).ravel()
        cell = np.unravel_index(best, scores.shape) if fg.nodes else ()
        for node in fg.nodes:
            others = tuple(i for i in all_axes if i != node.index)
            b = scores.max(axis=others) if others else scores.copy()
            node.belief = sr.normalize(b)
            # settings all come from the one arg-max row
            node.setting = int(cell[node.index])

    fg.gradient = sp.csr_matrix(gradient.reshape(1, -1))
