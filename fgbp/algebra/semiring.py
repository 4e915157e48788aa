"""
fgbp/algebra/semiring.py

Message semirings for log-space belief propagation.

All scores and messages live in log-space, so semiring multiplication is
always elementwise addition. The semirings differ only in how they
marginalize:

- SUM_PRODUCT: add_reduce = logsumexp, normalize to log-probabilities
- MAX_PRODUCT: add_reduce = max, normalize so the largest entry is 0

Both keep -inf (log of zero) as the additive identity, and normalization
leaves an all -inf vector untouched instead of producing NaNs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple, Union

import numpy as np


class InferenceMode(Enum):
    """Belief propagation variant."""
    MAX_PRODUCT = 1    # max-marginals, arg-max objective
    SUM_PRODUCT = 2    # marginals, Bethe objective


def _logsumexp(x: np.ndarray, axis: Optional[Union[int, Tuple[int, ...]]] = None) -> np.ndarray:
    """Numerically stable logsumexp."""
    if x.size == 0:
        return np.array(-np.inf)

    if axis is None:
        m = np.max(x)
        if np.isneginf(m):
            return np.array(-np.inf)
        return m + np.log(np.sum(np.exp(x - m)))

    if isinstance(axis, int):
        axis = (axis,)

    m = np.max(x, axis=axis, keepdims=True)
    # Guard against -inf
    m_safe = np.where(np.isneginf(m), 0.0, m)
    y = np.log(np.sum(np.exp(x - m_safe), axis=axis, keepdims=True)) + m_safe
    y = np.where(np.isneginf(m), -np.inf, y)
    return np.squeeze(y, axis=axis)


def _max(x: np.ndarray, axis: Optional[Union[int, Tuple[int, ...]]] = None) -> np.ndarray:
    if x.size == 0:
        return np.array(-np.inf)
    return np.max(x, axis=axis)


def _normalize_by(reduce: Callable[[np.ndarray], np.ndarray]) -> Callable[[np.ndarray], np.ndarray]:
    def _normalize(x: np.ndarray) -> np.ndarray:
        if x.size == 0:
            return x
        z = float(reduce(x))
        if np.isneginf(z):
            return x
        return x - z
    return _normalize


@dataclass(frozen=True)
class MessageSemiring:
    """
    Vectorized log-space semiring used to compute messages and beliefs.

    Attributes:
        name: Identifier for the semiring type
        mode: Inference mode this semiring implements
        add_reduce: ⊕ reduction over the given axes (empty tuple = identity)
        normalize: Shift a vector so that its ⊕-total is the unit (0.0)
    """
    name: str
    mode: InferenceMode
    add_reduce: Callable[[np.ndarray, Tuple[int, ...]], np.ndarray]
    normalize: Callable[[np.ndarray], np.ndarray]

    @property
    def is_sum(self) -> bool:
        return self.mode is InferenceMode.SUM_PRODUCT

    def total(self, x: np.ndarray) -> float:
        """⊕-reduce every axis to a scalar."""
        return float(self.add_reduce(x, tuple(range(x.ndim))))


def sum_product_semiring() -> MessageSemiring:
    """Create the log-sum-exp semiring used by sum-product."""

    def _add_reduce(x: np.ndarray, axis: Tuple[int, ...]) -> np.ndarray:
        if not axis:
            return x
        return _logsumexp(x, axis=axis)

    return MessageSemiring(
        name="LOGSUM",
        mode=InferenceMode.SUM_PRODUCT,
        add_reduce=_add_reduce,
        normalize=_normalize_by(_logsumexp),
    )


def max_product_semiring() -> MessageSemiring:
    """Create the max semiring used by max-product."""

    def _add_reduce(x: np.ndarray, axis: Tuple[int, ...]) -> np.ndarray:
        if not axis:
            return x
        return _max(x, axis=axis)

    return MessageSemiring(
        name="MAX",
        mode=InferenceMode.MAX_PRODUCT,
        add_reduce=_add_reduce,
        normalize=_normalize_by(_max),
    )


def semiring_for(mode: InferenceMode) -> MessageSemiring:
    """Select the message semiring for an inference mode."""
    if mode is InferenceMode.SUM_PRODUCT:
        return sum_product_semiring()
    if mode is InferenceMode.MAX_PRODUCT:
        return max_product_semiring()
    raise ValueError(f"Unknown inference mode: {mode}")


def entropy(probs: np.ndarray) -> float:
    """Shannon entropy (nats) of a probability vector; zero-mass entries are skipped."""
    p = np.asarray(probs, dtype=np.float64).ravel()
    p = p[p > 0.0]
    return float(-np.sum(p * np.log(p)))
