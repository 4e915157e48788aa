"""
API module: named-model convenience functions.
"""

from fgbp.api.solve import (
    SolveResult,
    build_factor_graph,
    compute_log_partition,
    compute_marginals,
    map_assignment,
    parse_mode,
    solve,
)

__all__ = [
    "SolveResult",
    "build_factor_graph",
    "compute_log_partition",
    "compute_marginals",
    "map_assignment",
    "parse_mode",
    "solve",
]
