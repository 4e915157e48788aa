"""
Compiler module: clique tree and junction-tree construction.
"""

from fgbp.compiler.clique_tree import (
    build_clique_graph,
    build_clique_tree,
    root_tree,
    running_intersection_holds,
)
from fgbp.compiler.junkify import JunctionTree, consistency_potential, junkify

__all__ = [
    "build_clique_graph",
    "build_clique_tree",
    "root_tree",
    "running_intersection_holds",
    "JunctionTree",
    "consistency_potential",
    "junkify",
]
