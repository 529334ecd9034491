"""Tests for dyad spaces and topology baselines."""

import numpy as np
import pytest

from dyadsampler.graph import DimensionMismatchError, DyadSpace, InvalidTopologyError


TOPOLOGIES = [
    DyadSpace(5),
    DyadSpace(5, loops=True),
    DyadSpace(5, directed=True),
    DyadSpace(5, directed=True, loops=True),
    DyadSpace(5, bipartite=2),
    DyadSpace(5, directed=True, bipartite=2),
    DyadSpace(1),
]


class TestBaseline:
    """Baseline maps contain exactly the dyads of the topology."""

    @pytest.mark.parametrize(
        "space, expected",
        [
            (DyadSpace(5), 10),
            (DyadSpace(5, loops=True), 15),
            (DyadSpace(5, directed=True), 20),
            (DyadSpace(5, directed=True, loops=True), 25),
            (DyadSpace(5, bipartite=2), 6),
            (DyadSpace(5, directed=True, bipartite=2), 12),
            (DyadSpace(1), 0),
        ],
    )
    def test_baseline_counts(self, space, expected):
        assert space.baseline().count() == expected
        assert space.dyad_count == expected

    @pytest.mark.parametrize("space", TOPOLOGIES)
    def test_baseline_matches_is_dyad(self, space):
        dense = space.baseline().to_matrix()
        for i in range(space.n):
            for j in range(space.n):
                assert dense[i, j] == space.is_dyad(i, j)

    @pytest.mark.parametrize("space", TOPOLOGIES)
    def test_baseline_canonical(self, space):
        assert space.baseline().is_canonical

    def test_undirected_uses_upper_triangle(self):
        dense = DyadSpace(4).baseline().to_matrix()
        np.testing.assert_array_equal(dense, np.triu(np.ones((4, 4), dtype=bool), 1))

    def test_bipartite_tail_in_first_partition(self):
        dyads = DyadSpace(4, bipartite=1).baseline().dyads()
        assert (dyads[:, 0] == 0).all()
        assert sorted(dyads[:, 1].tolist()) == [1, 2, 3]


class TestTopologyValidation:
    """Invalid topologies are rejected at construction."""

    def test_zero_nodes(self):
        with pytest.raises(InvalidTopologyError):
            DyadSpace(0)

    @pytest.mark.parametrize("b1", [0, 5, 7])
    def test_partition_out_of_range(self, b1):
        with pytest.raises(InvalidTopologyError):
            DyadSpace(5, bipartite=b1)

    def test_bipartite_loops(self):
        with pytest.raises(InvalidTopologyError):
            DyadSpace(5, bipartite=2, loops=True)


class TestCanonicalDyads:
    """Canonical ordering and dyad validation."""

    def test_undirected_canonical(self):
        assert DyadSpace(4).canonical(3, 1) == (1, 3)
        assert DyadSpace(4).canonical(1, 3) == (1, 3)

    def test_directed_canonical_unchanged(self):
        assert DyadSpace(4, directed=True).canonical(3, 1) == (3, 1)

    def test_cell_index_inverse(self):
        space = DyadSpace(6)
        for i, j in [(0, 0), (2, 5), (5, 1)]:
            assert space.cell_of(space.cell_index(i, j)) == (i, j)

    def test_sides(self):
        space = DyadSpace(5, bipartite=2)
        assert [space.side(v) for v in range(5)] == [0, 0, 1, 1, 1]
        assert space.b1 == 2 and space.b2 == 3

    def test_same_side_not_dyad(self):
        space = DyadSpace(5, bipartite=2)
        assert not space.is_dyad(0, 1)
        assert not space.is_dyad(3, 4)
        assert space.is_dyad(1, 3)

    def test_dyad_cells_canonicalises(self):
        space = DyadSpace(4)
        np.testing.assert_array_equal(space.dyad_cells([(2, 0)]), [space.cell_index(0, 2)])

    def test_dyad_cells_rejects_loop(self):
        with pytest.raises(InvalidTopologyError):
            DyadSpace(4).dyad_cells([(1, 1)])

    def test_dyad_cells_rejects_out_of_range(self):
        with pytest.raises(DimensionMismatchError):
            DyadSpace(4).dyad_cells([(0, 4)])

    def test_dyad_map(self):
        m = DyadSpace(4).dyad_map([(0, 1), (3, 2)])
        assert m.count() == 2
        assert m.contains(0, 1) and m.contains(2, 3)
