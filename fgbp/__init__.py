"""
fgbp: Factor Graph Belief Propagation

Exact discrete inference for statistical relational learning: a mutable
factor graph, junction-tree conversion, two-pass message scheduling and a
sum-/max-product engine that returns the objective and feature expectations
used for learning.

Key components:
- core: Error taxonomy and name registry
- algebra: Log-space message semirings
- graph: Factor graph arena and potentials (table / linear)
- topology: Interaction graph and triangulation
- compiler: Clique tree and junction-tree construction
- runtime: Message scheduling
- inference: Belief propagation, brute force and diagnostics
- api: High-level solving of named models
"""

__version__ = "1.0.0"
__author__ = "fgbp Team"

from fgbp.algebra.semiring import InferenceMode
from fgbp.core.errors import ConstructionError, FGBPError, InferenceError
from fgbp.graph.factor_graph import FactorGraph
from fgbp.graph.potentials import LinearPotential, TablePotential, dense, singleton, stats, table
from fgbp.compiler.junkify import JunctionTree, junkify
from fgbp.runtime.schedule import MPScheduler
from fgbp.inference.belief_propagation import BPConfig, max_product, run_inference, sum_product
from fgbp.inference.brute_force import brute_force_search
from fgbp.inference.diagnostics import InferenceDiagnostics
from fgbp.api.solve import SolveResult, compute_log_partition, compute_marginals, map_assignment, solve

__all__ = [
    # Modes and errors
    "InferenceMode",
    "FGBPError",
    "ConstructionError",
    "InferenceError",
    # Graph
    "FactorGraph",
    "TablePotential",
    "LinearPotential",
    "table",
    "stats",
    "singleton",
    "dense",
    # Junction tree and scheduling
    "JunctionTree",
    "junkify",
    "MPScheduler",
    # Inference
    "BPConfig",
    "run_inference",
    "max_product",
    "sum_product",
    "brute_force_search",
    "InferenceDiagnostics",
    # API
    "SolveResult",
    "solve",
    "compute_log_partition",
    "compute_marginals",
    "map_assignment",
]
