"""
Inference module: belief propagation, brute force and diagnostics.
"""

from fgbp.inference.belief_propagation import (
    BPConfig,
    feature_expectations_and_objective,
    max_product,
    run_inference,
    sum_product,
    update_belief,
    update_f2n,
    update_n2f,
)
from fgbp.inference.brute_force import brute_force_search, joint_scores, joint_stats
from fgbp.inference.diagnostics import InferenceDiagnostics, Mismatch

__all__ = [
    "BPConfig",
    "feature_expectations_and_objective",
    "max_product",
    "run_inference",
    "sum_product",
    "update_belief",
    "update_f2n",
    "update_n2f",
    "brute_force_search",
    "joint_scores",
    "joint_stats",
    "InferenceDiagnostics",
    "Mismatch",
]
