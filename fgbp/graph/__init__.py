"""
Graph module: factor graph arena and potentials.
"""

from fgbp.graph.factor_graph import Edge, Factor, FactorGraph, Messages, Node
from fgbp.graph.potentials import (
    NEG_INF,
    LinearPotential,
    Potential,
    TablePotential,
    dense,
    potential_scores,
    singleton,
    stats,
    table,
)

__all__ = [
    "Edge",
    "Factor",
    "FactorGraph",
    "Messages",
    "Node",
    "NEG_INF",
    "LinearPotential",
    "Potential",
    "TablePotential",
    "dense",
    "potential_scores",
    "singleton",
    "stats",
    "table",
]
