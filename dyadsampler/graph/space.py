"""Dyad space: network topology and the canonical dyad ordering.

The space decides which cells of the n x n adjacency matrix are dyads
(potential edges) given directedness, bipartite partition, and loop policy,
and how an unordered dyad is written as a (tail, head) cell.
"""

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from dyadsampler.graph.errors import DimensionMismatchError, InvalidTopologyError
from dyadsampler.graph.rle import FreeDyadMap


@dataclass(frozen=True, slots=True)
class DyadSpace:
    """Immutable topology descriptor.

    For bipartite spaces nodes 0..b1-1 form the first partition and
    b1..n-1 the second. Undirected dyads are stored in the upper triangle
    (tail < head, or tail <= head with loops).
    """

    n: int  # number of nodes
    directed: bool = False
    bipartite: int | None = None  # size b1 of the first partition
    loops: bool = False

    def __post_init__(self) -> None:
        if self.n < 1:
            raise InvalidTopologyError(f"n must be >= 1, got {self.n}")
        if self.bipartite is not None:
            if not 0 < self.bipartite < self.n:
                raise InvalidTopologyError(
                    f"bipartite partition size must lie in (0, {self.n}), "
                    f"got {self.bipartite}"
                )
            if self.loops:
                raise InvalidTopologyError(
                    "bipartite networks cannot have self-loops"
                )

    @property
    def is_bipartite(self) -> bool:
        return self.bipartite is not None

    @property
    def b1(self) -> int:
        return self.bipartite or 0

    @property
    def b2(self) -> int:
        return self.n - self.b1 if self.is_bipartite else 0

    @property
    def dyad_count(self) -> int:
        """Number of dyads in closed form for this topology."""
        n = self.n
        if self.is_bipartite:
            cross = self.b1 * self.b2
            return 2 * cross if self.directed else cross
        if self.directed:
            return n * n if self.loops else n * (n - 1)
        return n * (n + 1) // 2 if self.loops else n * (n - 1) // 2

    def side(self, v: int) -> int:
        """Partition of node v: 0 for b1 nodes (or unipartite), 1 for b2."""
        return int(self.is_bipartite and v >= self.b1)

    def is_dyad(self, i: int, j: int) -> bool:
        """Whether cell (i, j) is a dyad of this space as written."""
        if not (0 <= i < self.n and 0 <= j < self.n):
            return False
        if i == j:
            return self.loops
        if self.is_bipartite:
            if self.side(i) == self.side(j):
                return False
            return self.directed or i < j
        return self.directed or i < j

    def canonical(self, i: int, j: int) -> tuple[int, int]:
        """Canonical cell for the dyad between i and j.

        Directed dyads are returned unchanged; undirected ones as (min, max).
        """
        if self.directed or i <= j:
            return i, j
        return j, i

    def cell_index(self, i: int, j: int) -> int:
        """Column-major linear index of cell (i, j)."""
        return j * self.n + i

    def cell_of(self, index: int) -> tuple[int, int]:
        """Inverse of cell_index."""
        return index % self.n, index // self.n

    def check_node(self, v: int) -> None:
        if not 0 <= v < self.n:
            raise DimensionMismatchError(
                f"node index {v} outside [0, {self.n})"
            )

    def baseline(self) -> FreeDyadMap:
        """Map whose TRUE cells are exactly the dyads of this space."""
        n = self.n
        cols = np.arange(n, dtype=np.int64)

        if self.is_bipartite:
            b1 = self.b1
            ego = cols < b1
            # Alter columns take ego rows; ego columns take alter rows
            # only when directed.
            starts = np.where(ego, b1, 0)
            ends = np.where(ego, n if self.directed else b1, b1)
            return FreeDyadMap.from_column_intervals(n, starts, ends)

        if self.directed:
            if self.loops:
                return FreeDyadMap.full(n)
            # Each diagonal cell is a FALSE run of 1 between TRUE runs of n.
            lengths = np.concatenate(([1], np.tile([n, 1], n - 1)))
            values = np.concatenate(([False], np.tile([True, False], n - 1)))
            return FreeDyadMap(n, lengths, values).compress()

        ends = cols + 1 if self.loops else cols
        return FreeDyadMap.from_column_intervals(n, np.zeros(n, dtype=np.int64), ends)

    def dyad_cells(self, dyads: Iterable[tuple[int, int]]) -> np.ndarray:
        """Validate dyads and return their canonical cell indices.

        Raises:
            DimensionMismatchError: If a node index is out of range.
            InvalidTopologyError: If a pair is not a dyad of this space.
        """
        cells = []
        for tail, head in dyads:
            tail, head = int(tail), int(head)
            self.check_node(tail)
            self.check_node(head)
            i, j = self.canonical(tail, head)
            if not self.is_dyad(i, j):
                raise InvalidTopologyError(
                    f"({tail}, {head}) is not a dyad of {self.describe()}"
                )
            cells.append(self.cell_index(i, j))
        return np.asarray(cells, dtype=np.int64)

    def dyad_map(self, dyads: Iterable[tuple[int, int]]) -> FreeDyadMap:
        """Map whose TRUE cells are the given dyads."""
        return FreeDyadMap.from_cells(self.n, self.dyad_cells(dyads))

    def describe(self) -> str:
        kind = "directed" if self.directed else "undirected"
        if self.is_bipartite:
            kind += f" bipartite ({self.b1}, {self.b2})"
        if self.loops:
            kind += " with loops"
        return f"{kind} network on {self.n} nodes"
