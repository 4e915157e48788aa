"""
Tests for factor graph construction.
"""

import networkx as nx
import numpy as np
import pytest

from fgbp.core.errors import ConstructionError
from fgbp.graph.factor_graph import FactorGraph, Messages
from fgbp.graph.potentials import LinearPotential, TablePotential, singleton, stats


def pair_graph():
    fg = FactorGraph()
    a = fg.add_node(2)
    b = fg.add_node(3)
    f = fg.add_factor()
    fg.add_edge(f, a)
    fg.add_edge(f, b)
    return fg, f


class TestConstruction:
    def test_handles_are_sequential(self):
        fg = FactorGraph()
        assert [fg.add_node(2) for _ in range(3)] == [0, 1, 2]
        assert fg.add_factor() == 0
        assert fg.add_edge(0, 1) == 0
        assert fg.add_edge(0, 2) == 1

    def test_edge_order_is_argument_order(self):
        fg, f = pair_graph()
        assert fg.factor_scope(f) == (0, 1)
        assert fg.factor_dims(f) == (2, 3)

    def test_invalid_dim(self):
        fg = FactorGraph()
        with pytest.raises(ConstructionError):
            fg.add_node(0)

    def test_unknown_handles(self):
        fg = FactorGraph()
        fg.add_node(2)
        with pytest.raises(ConstructionError):
            fg.add_edge(0, 0)
        f = fg.add_factor()
        with pytest.raises(ConstructionError):
            fg.add_edge(f, 5)

    def test_potential_dims_must_match(self):
        fg, f = pair_graph()
        with pytest.raises(ConstructionError):
            fg.set_potential(f, TablePotential.from_array(np.zeros((3, 2))))

    def test_linear_potential_accepted(self):
        fg, f = pair_graph()
        s = stats((2, 3), lambda a: singleton(3 * a[0] + a[1]))
        fg.set_potential(f, LinearPotential((2, 3), s))
        fg.build()
        assert fg.is_built


class TestBuild:
    def test_build_allocates_messages(self):
        fg, f = pair_graph()
        fg.set_potential(f, TablePotential.from_array(np.zeros((2, 3))))
        fg.build()

        assert fg.edges[0].msgs.f2n.shape == (2,)
        assert fg.edges[1].msgs.n2f.shape == (3,)
        assert fg.nodes[1].belief.shape == (3,)

    def test_build_twice(self):
        fg, f = pair_graph()
        fg.set_potential(f, TablePotential.from_array(np.zeros((2, 3))))
        fg.build()
        with pytest.raises(ConstructionError):
            fg.build()

    def test_missing_potential(self):
        fg, _ = pair_graph()
        with pytest.raises(ConstructionError):
            fg.build()

    def test_frozen_after_build(self):
        fg, f = pair_graph()
        fg.set_potential(f, TablePotential.from_array(np.zeros((2, 3))))
        fg.build()
        with pytest.raises(ConstructionError):
            fg.add_node(2)
        with pytest.raises(ConstructionError):
            fg.add_factor()
        with pytest.raises(ConstructionError):
            fg.add_edge(f, 0)

    def test_gradient_shape(self):
        fg = FactorGraph(weights=np.ones(5))
        fg.build()
        assert fg.gradient.shape == (1, 5)
        assert np.allclose(fg.gradient_vector(), 0.0)


class TestMessages:
    def test_residual_ignores_equal_infinities(self):
        m = Messages.zeros(2)
        m.f2n[:] = [-np.inf, 0.5]
        m.f2n_old[:] = [-np.inf, 0.0]
        assert np.isclose(m.residual(), 0.5)

    def test_reset(self):
        m = Messages.zeros(3)
        m.f2n[:] = 1.0
        m.save_current_f2n_as_old()
        m.reset()
        assert np.all(m.f2n_old == 0.0)


class TestTopology:
    def test_bipartite_view(self):
        fg, f = pair_graph()
        g = fg.to_networkx()
        assert set(g.nodes()) == {("n", 0), ("n", 1), ("f", 0)}
        assert g.edges[("n", 1), ("f", 0)]["edge"] == 1
        assert nx.is_bipartite(g)

    def test_chain_is_tree(self):
        fg, _ = pair_graph()
        assert fg.is_tree()

    def test_cycle_is_not_tree(self):
        fg = FactorGraph()
        nodes = [fg.add_node(2) for _ in range(3)]
        for a, b in [(0, 1), (1, 2), (2, 0)]:
            f = fg.add_factor()
            fg.add_edge(f, nodes[a])
            fg.add_edge(f, nodes[b])
        assert not fg.is_tree()

    def test_repeated_node_is_not_tree(self):
        fg = FactorGraph()
        x = fg.add_node(2)
        f = fg.add_factor()
        fg.add_edge(f, x)
        fg.add_edge(f, x)
        assert not fg.is_tree()

    def test_empty_graph_is_tree(self):
        assert FactorGraph().is_tree()
