"""Tests for run-length-encoded free-dyad maps and their algebra."""

import numpy as np
import pytest
import scipy.sparse

from dyadsampler.graph import DimensionMismatchError, FreeDyadMap


def _random_map(rng: np.random.Generator, n: int, p: float = 0.4) -> FreeDyadMap:
    return FreeDyadMap.from_matrix(rng.random((n, n)) < p)


class TestConstruction:
    """Constructors validate lengths and encode column-major."""

    def test_full_and_empty(self):
        assert FreeDyadMap.full(3).count() == 9
        assert FreeDyadMap.empty(3).count() == 0
        assert FreeDyadMap.full(3).n_runs == 1

    def test_lengths_must_sum_to_n_squared(self):
        with pytest.raises(DimensionMismatchError):
            FreeDyadMap(3, [4, 4], [True, False])

    def test_lengths_must_be_positive(self):
        with pytest.raises(ValueError):
            FreeDyadMap(2, [0, 4], [True, False])

    def test_arrays_read_only(self):
        m = FreeDyadMap.full(2)
        with pytest.raises(ValueError):
            m.lengths[0] = 1

    def test_column_major_order(self):
        # Cell (tail=1, head=0) is linear index 1; (0, 1) is index 2.
        m = FreeDyadMap(2, [1, 1, 2], [False, True, False])
        assert m.contains(1, 0)
        assert not m.contains(0, 1)

    def test_from_matrix_round_trip(self):
        matrix = np.array(
            [[0, 1, 1, 0], [0, 0, 1, 0], [1, 0, 0, 0], [1, 1, 1, 1]], dtype=bool
        )
        m = FreeDyadMap.from_matrix(matrix)
        np.testing.assert_array_equal(m.to_matrix(), matrix)
        assert m.count() == int(matrix.sum())
        assert m.is_canonical

    def test_from_sparse_matches_dense(self):
        rng = np.random.default_rng(0)
        dense = rng.random((6, 6)) < 0.3
        sparse = scipy.sparse.csr_matrix(dense.astype(np.float64))
        assert FreeDyadMap.from_matrix(sparse) == FreeDyadMap.from_matrix(dense)

    def test_from_matrix_rejects_non_square(self):
        with pytest.raises(DimensionMismatchError):
            FreeDyadMap.from_matrix(np.ones((2, 3), dtype=bool))

    def test_from_cells_deduplicates(self):
        m = FreeDyadMap.from_cells(3, [4, 1, 4, 2])
        np.testing.assert_array_equal(m.cells(), [1, 2, 4])
        assert m.n_runs == 5

    def test_from_cells_out_of_range(self):
        with pytest.raises(DimensionMismatchError):
            FreeDyadMap.from_cells(3, [9])

    def test_from_dyads(self):
        m = FreeDyadMap.from_dyads(3, [(2, 0), (0, 1)])
        np.testing.assert_array_equal(m.cells(), [2, 3])
        assert m.contains(2, 0) and not m.contains(0, 2)
        assert FreeDyadMap.from_dyads(3, []).count() == 0

    def test_from_dyads_out_of_range(self):
        with pytest.raises(DimensionMismatchError):
            FreeDyadMap.from_dyads(3, [(0, 3)])

    def test_from_column_intervals(self):
        m = FreeDyadMap.from_column_intervals(3, [0, 0, 1], [0, 2, 3])
        expected = np.zeros((3, 3), dtype=bool)
        expected[0:2, 1] = True
        expected[1:3, 2] = True
        np.testing.assert_array_equal(m.to_matrix(), expected)


class TestCompress:
    """compress() merges equal neighbours and is idempotent."""

    def test_compress_merges_runs(self):
        m = FreeDyadMap(2, [1, 1, 2], [True, True, False])
        assert not m.is_canonical
        c = m.compress()
        np.testing.assert_array_equal(c.lengths, [2, 2])
        np.testing.assert_array_equal(c.values, [True, False])

    def test_compress_idempotent(self):
        m = FreeDyadMap(3, [2, 3, 1, 3], [False, False, True, True])
        once = m.compress()
        assert once.compress() == once
        np.testing.assert_array_equal(once.to_matrix(), m.to_matrix())

    def test_canonical_returns_self(self):
        m = FreeDyadMap.full(4)
        assert m.compress() is m


class TestAlgebra:
    """AND/OR/NOT agree with dense boolean algebra."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_ops_match_dense(self, seed):
        rng = np.random.default_rng(seed)
        a, b = _random_map(rng, 7), _random_map(rng, 7)
        A, B = a.to_matrix(), b.to_matrix()
        np.testing.assert_array_equal((a & b).to_matrix(), A & B)
        np.testing.assert_array_equal((a | b).to_matrix(), A | B)
        np.testing.assert_array_equal((~a).to_matrix(), ~A)

    def test_results_are_canonical(self):
        rng = np.random.default_rng(5)
        a, b = _random_map(rng, 6), _random_map(rng, 6)
        assert (a & b).is_canonical
        assert (a | b).is_canonical

    def test_commutative(self):
        rng = np.random.default_rng(6)
        a, b = _random_map(rng, 6), _random_map(rng, 6)
        assert a & b == b & a
        assert a | b == b | a

    def test_double_negation(self):
        a = _random_map(np.random.default_rng(7), 5)
        assert ~~a == a

    def test_complement_laws(self):
        a = _random_map(np.random.default_rng(8), 5)
        assert (a & ~a).count() == 0
        assert (a | ~a).count() == 25
        assert a & ~a == FreeDyadMap.empty(5)

    def test_mismatched_sizes(self):
        with pytest.raises(DimensionMismatchError):
            FreeDyadMap.full(3) & FreeDyadMap.full(4)

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(FreeDyadMap.full(2))


class TestMembership:
    """contains() and dyads() agree with the dense decoding."""

    def test_contains_matches_matrix(self):
        a = _random_map(np.random.default_rng(9), 6)
        dense = a.to_matrix()
        for i in range(6):
            for j in range(6):
                assert a.contains(i, j) == dense[i, j]

    def test_contains_out_of_range(self):
        with pytest.raises(DimensionMismatchError):
            FreeDyadMap.full(3).contains(3, 0)

    def test_dyads_column_major(self):
        m = FreeDyadMap.from_cells(3, [1, 3, 8])
        np.testing.assert_array_equal(m.dyads(), [[1, 0], [0, 1], [2, 2]])

    def test_cells_of_empty(self):
        assert FreeDyadMap.empty(4).cells().size == 0


class TestSampling:
    """sample_dyad() is uniform over free cells."""

    def test_empty_map_raises(self):
        with pytest.raises(ValueError):
            FreeDyadMap.empty(3).sample_dyad(np.random.default_rng(0))

    def test_draws_are_free(self):
        a = _random_map(np.random.default_rng(10), 8, p=0.2)
        rng = np.random.default_rng(11)
        for _ in range(500):
            assert a.contains(*a.sample_dyad(rng))

    def test_uniform_frequencies(self):
        # Free runs of unequal length: cells {0}, {3, 4, 5}, {9}.
        m = FreeDyadMap.from_cells(4, [0, 3, 4, 5, 9])
        rng = np.random.default_rng(12)
        n_draws = 20_000
        counts: dict[tuple[int, int], int] = {}
        for _ in range(n_draws):
            d = m.sample_dyad(rng)
            counts[d] = counts.get(d, 0) + 1
        assert set(counts) == {(0, 0), (3, 0), (0, 1), (1, 1), (1, 2)}
        for c in counts.values():
            assert abs(c / n_draws - 0.2) < 0.02
