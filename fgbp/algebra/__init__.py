"""
Algebra module: log-space message semirings.
"""

from fgbp.algebra.semiring import (
    InferenceMode,
    MessageSemiring,
    entropy,
    max_product_semiring,
    semiring_for,
    sum_product_semiring,
)

__all__ = [
    "InferenceMode",
    "MessageSemiring",
    "entropy",
    "max_product_semiring",
    "semiring_for",
    "sum_product_semiring",
]
