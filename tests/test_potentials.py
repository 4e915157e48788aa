"""
Tests for table and linear potentials.
"""

import numpy as np
import pytest

from fgbp.core.errors import ConstructionError, InferenceError
from fgbp.graph.factor_graph import FactorGraph
from fgbp.graph.potentials import (
    NEG_INF,
    LinearPotential,
    TablePotential,
    combine_potentials,
    dense,
    expand_potential,
    expansion_index,
    marginal_f2n,
    max_marginal_f2n,
    potential_scores,
    singleton,
    stats,
    table,
)


class TestBuilders:
    def test_table_from_mapping(self):
        p = table((2, 2), {(0, 0): 1.0, (1, 1): 2.0})
        assert p.score((0, 0)) == 1.0
        assert p.score((1, 1)) == 2.0
        assert p.score((0, 1)) == NEG_INF

    def test_table_from_callable(self):
        p = table((2, 3), lambda a: None if a[0] == a[1] else float(a[0] + a[1]))
        assert p.score((1, 2)) == 3.0
        assert np.isneginf(p.score((1, 1)))

    def test_stats_layout(self):
        s = stats((2, 2), lambda a: singleton(2 * a[0] + a[1]))
        assert s.shape == (4, 4)
        assert np.allclose(s.toarray(), np.eye(4))

    def test_stats_num_features(self):
        s = stats((2,), lambda a: singleton(0) if a[0] else None, num_features=3)
        assert s.shape == (2, 3)
        assert s.nnz == 1

    def test_dense(self):
        w = dense(4, (0, 1.0), (2, -3.0))
        assert np.allclose(w, [1.0, 0.0, -3.0, 0.0])


class TestValidation:
    def test_table_shape_mismatch(self):
        with pytest.raises(ConstructionError):
            TablePotential((2, 2), np.zeros((2, 3)))

    def test_stats_rows_mismatch(self):
        with pytest.raises(ConstructionError):
            LinearPotential((2, 2), np.eye(3))

    def test_base_shape_mismatch(self):
        with pytest.raises(ConstructionError):
            LinearPotential((2,), np.eye(2), base=np.zeros(3))

    def test_score_outside_domain(self):
        p = TablePotential.from_array(np.zeros((2, 2)))
        with pytest.raises(InferenceError):
            p.score((0, 2))
        with pytest.raises(InferenceError):
            p.score((0,))


class TestLinearPotential:
    @pytest.fixture
    def potential(self):
        s = stats((2, 2), lambda a: {0: 1.0, 1 + a[0]: 2.0})
        return LinearPotential((2, 2), s, base=np.array([[0.0, 0.5], [1.0, 1.5]]))

    def test_features(self, potential):
        row = potential.features((1, 0)).toarray().ravel()
        assert np.allclose(row, [1.0, 0.0, 2.0])

    def test_score(self, potential):
        w = np.array([1.0, 10.0, 100.0])
        assert np.isclose(potential.score((1, 1), w), 1.0 + 200.0 + 1.5)
        assert np.isclose(potential.score((0, 1), w), 1.0 + 20.0 + 0.5)

    def test_scores_table(self, potential):
        w = np.array([1.0, 10.0, 100.0, 7.0])
        s = potential_scores(potential, w)
        assert s.shape == (2, 2)
        assert np.isclose(s[0, 0], 21.0)

    def test_short_weights(self, potential):
        with pytest.raises(InferenceError):
            potential_scores(potential, np.ones(2))


class TestExpansion:
    def test_expansion_index(self):
        dims_of = {0: 2, 1: 3}
        idx = expansion_index((1,), (0, 1), dims_of)
        assert idx.tolist() == [0, 1, 2, 0, 1, 2]

    def test_reordered_scope(self):
        dims_of = {0: 2, 1: 3}
        p = TablePotential.from_array(np.arange(6.0).reshape(3, 2))
        e = expand_potential(p, (1, 0), (0, 1), dims_of)
        assert np.allclose(e.scores, np.arange(6.0).reshape(3, 2).T)

    def test_repeated_variable_reads_diagonal(self):
        p = TablePotential.from_array([[1.0, 2.0], [3.0, 4.0]])
        e = expand_potential(p, (0, 0), (0,), {0: 2})
        assert np.allclose(e.scores, [1.0, 4.0])

    def test_unknown_scope_variable(self):
        with pytest.raises(InferenceError):
            expansion_index((2,), (0, 1), {0: 2, 1: 2, 2: 2})

    def test_expand_linear(self):
        s = stats((2,), lambda a: singleton(a[0]))
        e = expand_potential(LinearPotential((2,), s), (0,), (0, 1), {0: 2, 1: 2})
        assert e.stats.shape == (4, 2)
        assert np.allclose(e.stats.toarray(), [[1, 0], [1, 0], [0, 1], [0, 1]])


class TestCombine:
    def test_tables_sum(self):
        a = TablePotential.from_array([1.0, 2.0])
        b = TablePotential.from_array([0.5, -1.0])
        c = combine_potentials((2,), [a, b])
        assert isinstance(c, TablePotential)
        assert np.allclose(c.scores, [1.5, 1.0])

    def test_mixed_becomes_linear(self):
        t = TablePotential.from_array([1.0, 2.0])
        l1 = LinearPotential((2,), stats((2,), lambda a: singleton(a[0])))
        l2 = LinearPotential((2,), stats((2,), lambda a: singleton(2)))
        c = combine_potentials((2,), [t, l1, l2])

        assert isinstance(c, LinearPotential)
        assert c.num_features == 3
        assert np.allclose(c.base, [1.0, 2.0])
        assert np.allclose(potential_scores(c, np.array([1.0, 10.0, 100.0])), [102.0, 112.0])

    def test_dims_mismatch(self):
        with pytest.raises(InferenceError):
            combine_potentials((3,), [TablePotential.from_array([1.0, 2.0])])


class TestMessages:
    @pytest.fixture
    def unary_graph(self):
        fg = FactorGraph()
        x = fg.add_node(3)
        f = fg.add_factor()
        fg.add_edge(f, x)
        fg.set_potential(f, TablePotential.from_array([1.0, 3.0, -np.inf]))
        fg.build()
        return fg

    def test_single_edge_max(self, unary_graph):
        max_marginal_f2n(unary_graph, 0)
        assert np.allclose(unary_graph.edges[0].msgs.f2n, [-2.0, 0.0, -np.inf])

    def test_single_edge_sum(self, unary_graph):
        marginal_f2n(unary_graph, 0)
        probs = np.exp(unary_graph.edges[0].msgs.f2n)
        assert np.allclose(probs, np.array([np.e, np.e ** 3, 0.0]) / (np.e + np.e ** 3))

    def test_pairwise_uses_other_message(self):
        fg = FactorGraph()
        a, b = fg.add_node(2), fg.add_node(2)
        f = fg.add_factor()
        fg.add_edge(f, a)
        fg.add_edge(f, b)
        fg.set_potential(f, TablePotential.from_array([[1.0, 2.0], [-3.0, 0.0]]))
        fg.build()

        fg.edges[1].msgs.n2f[:] = [5.0, 0.0]
        max_marginal_f2n(fg, 0)

        # a=0: max(1+5, 2+0) = 6; a=1: max(-3+5, 0) = 2
        assert np.allclose(fg.edges[0].msgs.f2n, [0.0, -4.0])
