"""
Topology module: interaction graph and triangulation.
"""

from fgbp.topology.interaction import (
    Triangulation,
    build_interaction_graph,
    maximal_cliques,
    min_fill_order,
    triangulate,
)

__all__ = [
    "Triangulation",
    "build_interaction_graph",
    "maximal_cliques",
    "min_fill_order",
    "triangulate",
]
