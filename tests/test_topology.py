"""
Tests for topology module.
"""

import numpy as np
import pytest

from fgbp.graph.factor_graph import FactorGraph
from fgbp.graph.potentials import TablePotential
from fgbp.topology.interaction import (
    build_interaction_graph,
    maximal_cliques,
    min_fill_order,
    triangulate,
)


def scoped_graph(n, scopes):
    fg = FactorGraph()
    for _ in range(n):
        fg.add_node(2)
    for scope in scopes:
        f = fg.add_factor()
        for v in scope:
            fg.add_edge(f, v)
        fg.set_potential(f, TablePotential.from_array(np.zeros((2,) * len(scope))))
    fg.build()
    return fg


class TestInteractionGraph:
    def test_pairs_from_scopes(self):
        g = build_interaction_graph(scoped_graph(4, [(0, 1, 2), (2, 3)]))

        assert set(g.nodes()) == {0, 1, 2, 3}
        assert g.has_edge(0, 1) and g.has_edge(0, 2) and g.has_edge(1, 2)
        assert g.has_edge(2, 3)
        assert not g.has_edge(0, 3)

    def test_isolated_nodes_kept(self):
        g = build_interaction_graph(scoped_graph(3, [(0,)]))
        assert g.number_of_nodes() == 3
        assert g.number_of_edges() == 0
        assert g.nodes[1]["dim"] == 2

    def test_repeated_scope_variable(self):
        g = build_interaction_graph(scoped_graph(1, [(0, 0)]))
        assert g.number_of_edges() == 0


class TestMinFill:
    def test_chain_has_no_fill(self):
        tri = triangulate(scoped_graph(4, [(0, 1), (1, 2), (2, 3)]))

        assert tri.fill_edges == ()
        assert tri.order == (0, 1, 2, 3)
        assert tri.cliques == (frozenset({0, 1}), frozenset({1, 2}), frozenset({2, 3}))

    def test_four_cycle(self):
        tri = triangulate(scoped_graph(4, [(0, 1), (1, 2), (2, 3), (3, 0)]))

        assert tri.fill_edges == ((1, 3),)
        assert tri.cliques == (frozenset({0, 1, 3}), frozenset({1, 2, 3}))

    def test_prefers_zero_fill(self):
        # the triangle 1-2-3 plus a pendant 0: eliminating 0 first adds nothing
        tri = triangulate(scoped_graph(4, [(0, 1), (1, 2), (2, 3), (1, 3)]))
        assert tri.order[0] == 0
        assert tri.fill_edges == ()

    def test_order_covers_all_nodes(self):
        fg = scoped_graph(6, [(0, 1), (1, 2), (2, 0), (3, 4)])
        order, cliques, _ = min_fill_order(build_interaction_graph(fg))
        assert sorted(order) == list(range(6))
        assert frozenset({5}) in maximal_cliques(cliques)


class TestMaximalCliques:
    def test_drops_subsets_and_duplicates(self):
        cliques = (frozenset({0, 1, 2}), frozenset({1, 2}), frozenset({3}), frozenset({3}), frozenset({2, 3}))
        assert maximal_cliques(cliques) == (frozenset({0, 1, 2}), frozenset({2, 3}))

    def test_empty(self):
        assert maximal_cliques(()) == ()
