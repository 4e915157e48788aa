"""
Tests for clique trees and junction-tree construction.
"""

import networkx as nx
import numpy as np
import pytest

from fgbp.algebra.semiring import InferenceMode
from fgbp.compiler.clique_tree import (
    build_clique_graph,
    build_clique_tree,
    root_tree,
    running_intersection_holds,
)
from fgbp.compiler.junkify import consistency_potential, junkify
from fgbp.core.errors import ConstructionError
from fgbp.graph.factor_graph import FactorGraph
from fgbp.graph.potentials import LinearPotential, TablePotential, singleton, stats
from fgbp.inference.belief_propagation import max_product, sum_product


def pairwise_fg(n, edges, weights=None):
    fg = FactorGraph(weights=weights)
    for _ in range(n):
        fg.add_node(2)
    for a, b in edges:
        f = fg.add_factor()
        fg.add_edge(f, a)
        fg.add_edge(f, b)
        fg.set_potential(f, TablePotential.from_array([[0.5, -0.5], [-0.5, 0.5]]))
    fg.build()
    return fg


class TestCliqueTree:
    def test_clique_graph_separators(self):
        cliques = [frozenset({0, 1, 2}), frozenset({1, 2, 3}), frozenset({4})]
        g = build_clique_graph(cliques)

        assert set(g.nodes()) == {0, 1, 2}
        assert g.edges[0, 1]["separator"] == (1, 2)
        assert g.edges[0, 1]["weight"] == 2
        assert not g.has_edge(0, 2)

    def test_tree_prefers_large_separators(self):
        cliques = [frozenset({0, 1, 2}), frozenset({1, 2, 3}), frozenset({2, 3, 4})]
        tree = build_clique_tree(cliques)

        assert set(map(frozenset, tree.edges())) == {frozenset({0, 1}), frozenset({1, 2})}
        assert running_intersection_holds(cliques, tree)

    def test_running_intersection_violation(self):
        cliques = [frozenset({0, 1}), frozenset({2}), frozenset({1, 3})]
        bad = nx.Graph([(0, 1), (1, 2)])
        good = nx.Graph([(0, 2), (0, 1)])

        assert not running_intersection_holds(cliques, bad)
        assert running_intersection_holds(cliques, good)

    def test_root_tree(self):
        tree = nx.Graph([(0, 1), (1, 2), (1, 3)])
        parent, children = root_tree(tree, 0)

        assert parent == {0: None, 1: 0, 2: 1, 3: 1}
        assert children[1] == [2, 3]
        assert children[2] == []


class TestConsistencyPotential:
    def test_agreement_on_separator(self):
        p = consistency_potential((0, 1), (1, 2), {0: 2, 1: 2, 2: 2})

        assert p.dims == (4, 4)
        assert np.sum(p.scores == 0.0) == 8
        assert p.scores[0, 0] == 0.0
        assert np.isneginf(p.scores[1, 0])
        assert p.scores[1, 2] == 0.0


class TestJunkify:
    def test_requires_build(self):
        fg = FactorGraph()
        fg.add_node(2)
        with pytest.raises(ConstructionError):
            junkify(fg)

    def test_chain(self):
        jt = junkify(pairwise_fg(3, [(0, 1), (1, 2)]))

        assert jt.cliques == ((0, 1), (1, 2))
        assert jt.node_clique == (0, 0, 1)
        assert jt.factor_clique == (0, 1)
        assert [n.dim for n in jt.graph.nodes] == [4, 4]
        assert jt.graph.is_tree()

    def test_grid_is_tree(self):
        jt = junkify(pairwise_fg(4, [(0, 1), (2, 3), (0, 2), (1, 3)]))

        assert len(jt.cliques) == 2
        assert all(len(c) == 3 for c in jt.cliques)
        assert jt.graph.is_tree()
        # two unary clique factors and one consistency factor
        assert len(jt.graph.factors) == 3

    def test_every_factor_scope_in_its_clique(self):
        fg = pairwise_fg(5, [(0, 1), (1, 2), (2, 3), (3, 0), (1, 3), (2, 4)])
        jt = junkify(fg)

        for f in fg.factors:
            k = jt.factor_clique[f.index]
            assert set(fg.factor_scope(f.index)) <= set(jt.cliques[k])
        assert running_intersection_holds([frozenset(c) for c in jt.cliques], jt.tree)

    def test_disconnected_is_forest(self):
        fg = pairwise_fg(4, [(0, 1), (2, 3)])
        jt = junkify(fg)

        assert len(jt.cliques) == 2
        assert jt.tree.number_of_edges() == 0
        assert jt.graph.is_tree()

        sum_product(fg)
        single = np.log(np.exp([[0.5, -0.5], [-0.5, 0.5]]).sum())
        assert np.isclose(fg.value, 2 * single)

    def test_weights_are_copied(self):
        s = stats((2, 2), lambda a: singleton(2 * a[0] + a[1]))
        fg = FactorGraph(weights=np.arange(4.0))
        a, b = fg.add_node(2), fg.add_node(2)
        f = fg.add_factor()
        fg.add_edge(f, a)
        fg.add_edge(f, b)
        fg.set_potential(f, LinearPotential((2, 2), s))
        fg.build()
        jt = junkify(fg)

        assert np.allclose(jt.graph.weights, fg.weights)
        assert jt.graph.weights is not fg.weights
        assert isinstance(jt.graph.factors[0].potential, LinearPotential)

    def test_project_belief(self):
        fg = pairwise_fg(3, [(0, 1), (1, 2)])
        jt = max_product(fg)

        for node in fg.nodes:
            b = jt.project_belief(node.index, InferenceMode.MAX_PRODUCT)
            assert b.shape == (2,)
            assert np.isclose(b.max(), 0.0)
        assert jt.clique_belief(0).shape == (2, 2)

    def test_decode_keeps_separators_consistent(self):
        fg = FactorGraph()
        a, b, c = fg.add_node(2), fg.add_node(2), fg.add_node(2)
        for u, v, t in [(a, b, [[0.0, 0.0], [1.0, 0.0]]), (b, c, [[0.0, 0.0], [0.0, 1.0]])]:
            f = fg.add_factor()
            fg.add_edge(f, u)
            fg.add_edge(f, v)
            fg.set_potential(f, TablePotential.from_array(t))
        fg.build()
        jt = max_product(fg)

        assert jt.decode() == (0, 1, 1)
        assert [n.setting for n in fg.nodes] == [0, 1, 1]

    def test_decode_covers_every_component(self):
        fg = pairwise_fg(4, [(0, 1), (2, 3)])
        jt = max_product(fg)

        settings = jt.decode()
        assert len(settings) == 4
        assert settings[0] == settings[1]
        assert settings[2] == settings[3]

    def test_logs_fill_edges(self, caplog):
        with caplog.at_level("DEBUG", logger="fgbp.compiler.junkify"):
            junkify(pairwise_fg(4, [(0, 1), (1, 2), (2, 3), (3, 0)]))

        assert "added 1 fill edges" in caplog.text
