"""Mutable network state owned by a single Markov chain."""

import logging
from typing import Iterable, Iterator

import numpy as np
import scipy.sparse

from dyadsampler.graph.errors import InvalidTopologyError
from dyadsampler.graph.rle import FreeDyadMap
from dyadsampler.graph.space import DyadSpace

log = logging.getLogger(__name__)

Dyad = tuple[int, int]


class DyadSet:
    """Set of dyads with O(1) add, discard, membership and uniform choice.

    Items live in a dense list; removal swaps the last item into the hole.
    """

    __slots__ = ("_items", "_pos")

    def __init__(self, dyads: Iterable[Dyad] = ()) -> None:
        self._items: list[Dyad] = []
        self._pos: dict[Dyad, int] = {}
        for dyad in dyads:
            self.add(dyad)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, dyad: object) -> bool:
        return dyad in self._pos

    def __iter__(self) -> Iterator[Dyad]:
        return iter(self._items)

    def add(self, dyad: Dyad) -> None:
        if dyad in self._pos:
            return
        self._pos[dyad] = len(self._items)
        self._items.append(dyad)

    def discard(self, dyad: Dyad) -> None:
        idx = self._pos.pop(dyad, None)
        if idx is None:
            return
        last = self._items.pop()
        if idx < len(self._items):
            self._items[idx] = last
            self._pos[last] = idx

    def choice(self, rng: np.random.Generator) -> Dyad:
        return self._items[int(rng.integers(len(self._items)))]


class NetworkState:
    """Edge set, degree bookkeeping and running statistics of one chain.

    Dyads are stored in the space's canonical (tail, head) form. Edges that
    fall on free cells are also tracked separately so proposals can pick a
    uniformly random free edge in O(1).
    """

    def __init__(
        self,
        space: DyadSpace,
        edges: Iterable[Dyad] = (),
        free_dyads: FreeDyadMap | None = None,
        statistics: np.ndarray | None = None,
    ) -> None:
        self.space = space
        self.free_dyads = free_dyads if free_dyads is not None else space.baseline()
        self._out: list[set[int]] = [set() for _ in range(space.n)]
        self._in: list[set[int]] = [set() for _ in range(space.n)]
        self._edges = DyadSet()
        self._free_edges = DyadSet()
        self.statistics = (
            np.zeros(0, dtype=np.float64)
            if statistics is None
            else np.array(statistics, dtype=np.float64)
        )

        n_duplicates = 0
        for tail, head in edges:
            tail, head = int(tail), int(head)
            space.check_node(tail)
            space.check_node(head)
            i, j = space.canonical(tail, head)
            if not space.is_dyad(i, j):
                raise InvalidTopologyError(
                    f"edge ({tail}, {head}) is not a dyad of {space.describe()}"
                )
            if self.has_edge(i, j):
                n_duplicates += 1
                continue
            self.toggle(i, j)
        if n_duplicates:
            log.warning("Ignored %d duplicate edges in initial network", n_duplicates)

    # ── Queries ─────────────────────────────────────────────────────

    @property
    def n(self) -> int:
        return self.space.n

    @property
    def n_edges(self) -> int:
        return len(self._edges)

    @property
    def n_free_edges(self) -> int:
        return len(self._free_edges)

    def has_edge(self, tail: int, head: int) -> bool:
        i, j = self.space.canonical(tail, head)
        return j in self._out[i]

    def out_degree(self, v: int) -> int:
        return len(self._out[v])

    def in_degree(self, v: int) -> int:
        return len(self._in[v])

    def degree(self, v: int) -> int:
        """Total degree: out + in (a loop counts twice when undirected)."""
        return len(self._out[v]) + len(self._in[v])

    def successors(self, v: int) -> set[int]:
        return self._out[v]

    def predecessors(self, v: int) -> set[int]:
        return self._in[v]

    def neighbors(self, v: int) -> set[int]:
        """Nodes adjacent to v in either direction."""
        return self._out[v] | self._in[v]

    def out_degrees(self) -> np.ndarray:
        return np.fromiter((len(s) for s in self._out), dtype=np.int64, count=self.n)

    def in_degrees(self) -> np.ndarray:
        return np.fromiter((len(s) for s in self._in), dtype=np.int64, count=self.n)

    def degrees(self) -> np.ndarray:
        return self.out_degrees() + self.in_degrees()

    def random_edge(self, rng: np.random.Generator) -> Dyad:
        return self._edges.choice(rng)

    def random_free_edge(self, rng: np.random.Generator) -> Dyad:
        return self._free_edges.choice(rng)

    def edge_list(self) -> np.ndarray:
        """Edges as a lexicographically sorted (E, 2) int array."""
        if not self._edges:
            return np.empty((0, 2), dtype=np.int64)
        return np.array(sorted(self._edges), dtype=np.int64)

    def to_adjacency(self) -> scipy.sparse.csr_matrix:
        """Sparse adjacency matrix; symmetric for undirected networks."""
        n = self.n
        el = self.edge_list()
        rows, cols = el[:, 0], el[:, 1]
        if not self.space.directed:
            off = rows != cols
            rows, cols = (
                np.concatenate((rows, cols[off])),
                np.concatenate((cols, rows[off])),
            )
        data = np.ones(rows.size, dtype=np.float64)
        return scipy.sparse.csr_matrix((data, (rows, cols)), shape=(n, n))

    # ── Mutation ────────────────────────────────────────────────────

    def toggle(self, tail: int, head: int) -> bool:
        """Flip a dyad and return its new value (True = edge present).

        No constraint checks: callers toggle only validated proposals.
        """
        i, j = self.space.canonical(tail, head)
        dyad = (i, j)
        if j in self._out[i]:
            self._out[i].discard(j)
            self._in[j].discard(i)
            self._edges.discard(dyad)
            self._free_edges.discard(dyad)
            return False
        self._out[i].add(j)
        self._in[j].add(i)
        self._edges.add(dyad)
        if self.free_dyads.contains(i, j):
            self._free_edges.add(dyad)
        return True

    def copy(self) -> "NetworkState":
        """Independent state holding the same edges and statistics."""
        return NetworkState(
            self.space,
            list(self._edges),
            free_dyads=self.free_dyads,
            statistics=self.statistics.copy(),
        )
