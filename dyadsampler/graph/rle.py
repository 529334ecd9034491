"""Run-length-encoded boolean dyad matrices (free-dyad maps).

A FreeDyadMap covers all n * n cells of the implicit adjacency matrix in
column-major order: cell (tail=i, head=j) has linear index j * n + i.
Cells that are not dyads of the topology are simply FALSE, so maps built
by different constraints over the same node set can be intersected and
unioned run-by-run without knowing anything about the topology.

Maps are immutable. Construction only requires positive run lengths that
sum to n * n; the canonical form (no two adjacent runs with the same value)
is produced by compress() and by every algebra operation.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Callable

import numpy as np
import scipy.sparse

from dyadsampler.graph.errors import DimensionMismatchError


def _runs_from_flags(flags: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Run-length encode a flat boolean vector."""
    change = np.flatnonzero(flags[1:] != flags[:-1]) + 1
    starts = np.concatenate(([0], change))
    ends = np.concatenate((change, [flags.size]))
    return ends - starts, flags[starts]


@dataclass(frozen=True, eq=False)
class FreeDyadMap:
    """Immutable run-length encoding of which cells are free dyads.

    Uses frozen=True but omits slots=True so that the prefix-sum tables
    used for membership tests and random draws can be cached per instance.
    """

    n: int  # matrix dimension (number of nodes)
    lengths: np.ndarray  # int64 run lengths, all positive, summing to n * n
    values: np.ndarray  # bool value of each run

    def __post_init__(self) -> None:
        lengths = np.array(self.lengths, dtype=np.int64).ravel()
        values = np.array(self.values, dtype=bool).ravel()
        if lengths.shape != values.shape:
            raise ValueError(
                f"lengths ({lengths.size}) and values ({values.size}) "
                f"must have the same number of runs"
            )
        if lengths.size == 0 or (lengths <= 0).any():
            raise ValueError("run lengths must all be positive")
        if int(lengths.sum()) != self.n * self.n:
            raise DimensionMismatchError(
                f"run lengths sum to {int(lengths.sum())}, expected "
                f"n * n = {self.n * self.n}"
            )
        lengths.flags.writeable = False
        values.flags.writeable = False
        object.__setattr__(self, "lengths", lengths)
        object.__setattr__(self, "values", values)

    # ── Constructors ────────────────────────────────────────────────

    @classmethod
    def full(cls, n: int, value: bool = True) -> "FreeDyadMap":
        """Map with every cell set to `value`."""
        return cls(n, [n * n], [value])

    @classmethod
    def empty(cls, n: int) -> "FreeDyadMap":
        """Map with no free cells."""
        return cls.full(n, False)

    @classmethod
    def _canonical(
        cls, n: int, lengths: np.ndarray, values: np.ndarray
    ) -> "FreeDyadMap":
        """Drop empty runs and merge neighbours that share a value."""
        keep = lengths > 0
        lengths = lengths[keep]
        values = values[keep]
        head = np.concatenate(([True], values[1:] != values[:-1]))
        group_starts = np.flatnonzero(head)
        return cls(n, np.add.reduceat(lengths, group_starts), values[group_starts])

    @classmethod
    def _from_true_spans(
        cls, n: int, starts: np.ndarray, ends: np.ndarray
    ) -> "FreeDyadMap":
        """Build a map from sorted, disjoint [start, end) spans of TRUE cells."""
        if starts.size == 0:
            return cls.empty(n)
        lengths = np.empty(2 * starts.size + 1, dtype=np.int64)
        lengths[0:-1:2] = starts - np.concatenate(([0], ends[:-1]))
        lengths[1::2] = ends - starts
        lengths[-1] = n * n - ends[-1]
        values = np.zeros(lengths.size, dtype=bool)
        values[1::2] = True
        return cls._canonical(n, lengths, values)

    @classmethod
    def from_cells(cls, n: int, cells) -> "FreeDyadMap":
        """Map whose TRUE cells are exactly the given linear cell indices."""
        idx = np.unique(np.asarray(cells, dtype=np.int64).ravel())
        if idx.size == 0:
            return cls.empty(n)
        if idx[0] < 0 or idx[-1] >= n * n:
            raise DimensionMismatchError(
                f"cell indices must lie in [0, {n * n}), got "
                f"[{idx[0]}, {idx[-1]}]"
            )
        breaks = np.flatnonzero(np.diff(idx) != 1) + 1
        starts = idx[np.concatenate(([0], breaks))]
        ends = idx[np.concatenate((breaks - 1, [idx.size - 1]))] + 1
        return cls._from_true_spans(n, starts, ends)

    @classmethod
    def from_dyads(cls, n: int, dyads) -> "FreeDyadMap":
        """Map whose TRUE cells are the given (tail, head) pairs, as written."""
        pairs = np.asarray(dyads, dtype=np.int64).reshape(-1, 2)
        if pairs.size and (pairs.min() < 0 or pairs.max() >= n):
            raise DimensionMismatchError(
                f"dyad node indices must lie in [0, {n})"
            )
        return cls.from_cells(n, pairs[:, 1] * n + pairs[:, 0])

    @classmethod
    def from_column_intervals(cls, n: int, starts, ends) -> "FreeDyadMap":
        """Map with one TRUE row interval [starts[j], ends[j]) per column j.

        Columns with ends[j] <= starts[j] contribute no free cells.
        """
        starts = np.asarray(starts, dtype=np.int64)
        ends = np.asarray(ends, dtype=np.int64)
        if starts.shape != (n,) or ends.shape != (n,):
            raise DimensionMismatchError(
                f"expected one interval per column ({n}), got "
                f"{starts.shape} and {ends.shape}"
            )
        offsets = np.arange(n, dtype=np.int64) * n
        keep = ends > starts
        return cls._from_true_spans(
            n, (offsets + starts)[keep], (offsets + ends)[keep]
        )

    @classmethod
    def from_matrix(cls, matrix) -> "FreeDyadMap":
        """Encode a square boolean matrix (dense or scipy sparse).

        Any non-zero entry counts as TRUE.
        """
        if scipy.sparse.issparse(matrix):
            coo = scipy.sparse.coo_matrix(matrix)
            n = coo.shape[0]
            if coo.shape != (n, n):
                raise DimensionMismatchError(
                    f"matrix must be square, got shape {coo.shape}"
                )
            nz = coo.data != 0
            return cls.from_cells(n, coo.col[nz].astype(np.int64) * n + coo.row[nz])

        flags = np.asarray(matrix)
        if flags.ndim != 2 or flags.shape[0] != flags.shape[1]:
            raise DimensionMismatchError(
                f"matrix must be square, got shape {flags.shape}"
            )
        n = flags.shape[0]
        lengths, values = _runs_from_flags(flags.astype(bool).ravel(order="F"))
        return cls(n, lengths, values)

    # ── Cached boundary tables ──────────────────────────────────────

    @cached_property
    def _ends(self) -> np.ndarray:
        """Exclusive end cell of each run (cumulative run lengths)."""
        return np.cumsum(self.lengths)

    @cached_property
    def _true_runs(self) -> np.ndarray:
        return np.flatnonzero(self.values)

    @cached_property
    def _true_prefix(self) -> np.ndarray:
        """Cumulative count of TRUE cells through each TRUE run."""
        return np.cumsum(self.lengths[self._true_runs])

    # ── Inspection ──────────────────────────────────────────────────

    @property
    def n_runs(self) -> int:
        return int(self.lengths.size)

    @property
    def is_canonical(self) -> bool:
        """True if no two adjacent runs share a value."""
        return bool(np.all(self.values[1:] != self.values[:-1]))

    def count(self) -> int:
        """Number of TRUE (free) cells."""
        prefix = self._true_prefix
        return int(prefix[-1]) if prefix.size else 0

    def contains(self, i: int, j: int) -> bool:
        """Whether cell (i, j) is free. Binary search over run boundaries."""
        if not (0 <= i < self.n and 0 <= j < self.n):
            raise DimensionMismatchError(
                f"dyad ({i}, {j}) outside node range [0, {self.n})"
            )
        k = np.searchsorted(self._ends, j * self.n + i, side="right")
        return bool(self.values[k])

    def cells(self) -> np.ndarray:
        """Sorted linear indices of all TRUE cells."""
        ends = self._ends[self._true_runs]
        run_lengths = self.lengths[self._true_runs]
        starts = ends - run_lengths
        if starts.size == 0:
            return np.empty(0, dtype=np.int64)
        offsets = np.repeat(starts - (np.cumsum(run_lengths) - run_lengths), run_lengths)
        return offsets + np.arange(int(run_lengths.sum()), dtype=np.int64)

    def dyads(self) -> np.ndarray:
        """TRUE cells as an (m, 2) array of (tail, head) pairs."""
        cells = self.cells()
        return np.column_stack((cells % self.n, cells // self.n))

    def to_matrix(self) -> np.ndarray:
        """Decode to a dense (n, n) boolean matrix."""
        flat = np.repeat(self.values, self.lengths)
        return flat.reshape((self.n, self.n), order="F")

    # ── Random draw ─────────────────────────────────────────────────

    def sample_dyad(self, rng: np.random.Generator) -> tuple[int, int]:
        """Draw a free dyad uniformly at random in O(log runs).

        Draws r in [0, count) and binary-searches the prefix sums of TRUE
        run lengths for the run that owns the r-th free cell.

        Raises:
            ValueError: If the map has no free cells.
        """
        prefix = self._true_prefix
        if prefix.size == 0:
            raise ValueError("cannot draw from a map with no free dyads")
        r = int(rng.integers(int(prefix[-1])))
        k = int(np.searchsorted(prefix, r, side="right"))
        cell = int(self._ends[self._true_runs[k]] - (prefix[k] - r))
        return cell % self.n, cell // self.n

    # ── Algebra ─────────────────────────────────────────────────────

    def compress(self) -> "FreeDyadMap":
        """Merge adjacent runs with equal values. Idempotent."""
        if self.is_canonical:
            return self
        return FreeDyadMap._canonical(self.n, self.lengths, self.values)

    def _combine(
        self,
        other: "FreeDyadMap",
        op: Callable[[np.ndarray, np.ndarray], np.ndarray],
    ) -> "FreeDyadMap":
        """Walk both run sequences in lock-step over their merged boundaries."""
        if other.n != self.n:
            raise DimensionMismatchError(
                f"cannot combine maps over {self.n} and {other.n} nodes"
            )
        ends = np.union1d(self._ends, other._ends)
        lengths = np.diff(ends, prepend=0)
        a = self.values[np.searchsorted(self._ends, ends, side="left")]
        b = other.values[np.searchsorted(other._ends, ends, side="left")]
        return FreeDyadMap._canonical(self.n, lengths, op(a, b))

    def __and__(self, other: "FreeDyadMap") -> "FreeDyadMap":
        if not isinstance(other, FreeDyadMap):
            return NotImplemented
        return self._combine(other, np.logical_and)

    def __or__(self, other: "FreeDyadMap") -> "FreeDyadMap":
        if not isinstance(other, FreeDyadMap):
            return NotImplemented
        return self._combine(other, np.logical_or)

    def __invert__(self) -> "FreeDyadMap":
        return FreeDyadMap(self.n, self.lengths, ~self.values)

    def __eq__(self, other: object) -> bool:
        """Run-by-run equality; compress both sides to compare contents."""
        if not isinstance(other, FreeDyadMap):
            return NotImplemented
        return (
            self.n == other.n
            and np.array_equal(self.lengths, other.lengths)
            and np.array_equal(self.values, other.values)
        )

    __hash__ = None  # type: ignore[assignment]
