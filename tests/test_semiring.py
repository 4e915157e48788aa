"""
Tests for semiring operations.
"""

import numpy as np
import pytest

from fgbp.algebra.semiring import (
    InferenceMode,
    _logsumexp,
    entropy,
    max_product_semiring,
    semiring_for,
    sum_product_semiring,
)


class TestLogSumExp:
    def test_scalar(self):
        x = np.log(np.array([1.0, 2.0, 3.0]))
        assert np.isclose(_logsumexp(x), np.log(6.0))

    def test_axis(self):
        x = np.log(np.array([[1.0, 3.0], [2.0, 2.0]]))
        assert np.allclose(_logsumexp(x, axis=1), np.log([4.0, 4.0]))
        assert np.allclose(_logsumexp(x, axis=0), np.log([3.0, 5.0]))

    def test_all_neg_inf(self):
        x = np.array([[-np.inf, -np.inf], [0.0, -np.inf]])
        out = _logsumexp(x, axis=1)
        assert np.isneginf(out[0])
        assert np.isclose(out[1], 0.0)
        assert np.isneginf(_logsumexp(np.full(3, -np.inf)))

    def test_empty(self):
        assert np.isneginf(_logsumexp(np.array([])))


class TestSumProductSemiring:
    def test_add_reduce(self):
        sr = sum_product_semiring()
        x = np.log(np.array([[1.0, 3.0], [2.0, 2.0]]))
        assert np.allclose(sr.add_reduce(x, (0,)), np.log([3.0, 5.0]))
        assert np.allclose(sr.add_reduce(x, ()), x)

    def test_normalize(self):
        sr = sum_product_semiring()
        out = sr.normalize(np.log(np.array([1.0, 3.0])))
        assert np.allclose(np.exp(out), [0.25, 0.75])

    def test_normalize_all_neg_inf(self):
        sr = sum_product_semiring()
        x = np.full(2, -np.inf)
        assert np.all(np.isneginf(sr.normalize(x)))

    def test_total(self):
        sr = sum_product_semiring()
        assert np.isclose(sr.total(np.zeros((2, 3))), np.log(6.0))
        assert sr.is_sum


class TestMaxProductSemiring:
    def test_add_reduce(self):
        sr = max_product_semiring()
        x = np.array([[1.0, -3.0], [2.0, 0.0]])
        assert np.allclose(sr.add_reduce(x, (1,)), [1.0, 2.0])

    def test_normalize(self):
        sr = max_product_semiring()
        assert np.allclose(sr.normalize(np.array([1.0, 3.0, -np.inf])), [-2.0, 0.0, -np.inf])

    def test_normalize_all_neg_inf(self):
        sr = max_product_semiring()
        assert np.all(np.isneginf(sr.normalize(np.full(3, -np.inf))))

    def test_total(self):
        sr = max_product_semiring()
        assert sr.total(np.array([[1.0, 2.0], [-3.0, 0.0]])) == 2.0
        assert not sr.is_sum


class TestSemiringFor:
    def test_modes(self):
        assert semiring_for(InferenceMode.SUM_PRODUCT).name == "LOGSUM"
        assert semiring_for(InferenceMode.MAX_PRODUCT).name == "MAX"

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            semiring_for("sum")


class TestEntropy:
    def test_uniform(self):
        assert np.isclose(entropy(np.full(4, 0.25)), np.log(4.0))

    def test_point_mass(self):
        assert entropy(np.array([0.0, 1.0, 0.0])) == 0.0
