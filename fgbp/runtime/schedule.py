"""
fgbp/runtime/schedule.py

Message scheduling for tree-structured factor graphs.

A schedule is a sequence of edge handles; sending the factor-to-node
message of each edge in order (after refreshing the node-to-factor messages
of its siblings) makes every belief exact after a single pass:

- Upward pass (postorder): every factor sends to its parent node
- Downward pass (preorder): every factor sends to its child nodes

Each connected component is rooted at its lowest-index node.
"""

from __future__ import annotations

import logging
from typing import Dict, Hashable, List, Optional, Tuple

import networkx as nx

from fgbp.compiler.clique_tree import root_tree
from fgbp.core.errors import InferenceError
from fgbp.graph.factor_graph import FactorGraph

logger = logging.getLogger(__name__)

Vertex = Tuple[str, int]


def _tree_orders(
    root: Hashable,
    children: Dict[Hashable, List[Hashable]],
) -> Tuple[List[Hashable], List[Hashable]]:
    """Compute postorder and preorder traversals without recursion."""
    pre: List[Hashable] = []
    post: List[Hashable] = []
    stack: List[Tuple[Hashable, bool]] = [(root, False)]
    while stack:
        u, done = stack.pop()
        if done:
            post.append(u)
            continue
        pre.append(u)
        stack.append((u, True))
        for v in reversed(children.get(u, [])):
            stack.append((v, False))
    return post, pre


class MPScheduler:
    """
    Two-pass edge scheduler.

    Raises InferenceError when the graph contains a cycle, including a
    factor connected to the same node twice.
    """

    def schedule(self, fg: FactorGraph) -> List[int]:
        if not fg.is_tree():
            raise InferenceError("cannot schedule a factor graph that contains a cycle")

        g = fg.to_networkx()
        seen: set = set()
        up: List[int] = []
        down: List[int] = []

        for n in fg.nodes:
            root: Vertex = ("n", n.index)
            if root in seen:
                continue
            component = g.subgraph(nx.node_connected_component(g, root))
            parent, children = root_tree(component, root)
            seen.update(parent)
            post, pre = _tree_orders(root, children)

            for v in post:
                p: Optional[Vertex] = parent[v]
                if v[0] == "f" and p is not None:
                    up.append(g.edges[v, p]["edge"])
            for u in pre:
                if u[0] == "f":
                    for c in children.get(u, []):
                        down.append(g.edges[u, c]["edge"])

        edges = up + down
        logger.debug("scheduled %d messages (%d up, %d down)", len(edges), len(up), len(down))
        return edges


def schedule(fg: FactorGraph) -> List[int]:
    """Schedule a tree-structured factor graph with the default scheduler."""
    return MPScheduler().schedule(fg)
