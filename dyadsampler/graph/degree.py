"""Degree bounds per node group and the toggle acceptability check.

Nodes are assigned to groups by an attribute vector; each group carries
optional out/in degree limits. For undirected networks a node's simple
degree must satisfy both the out and the in limits of its group.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, Sequence

import numpy as np

from dyadsampler.graph.errors import ConstraintConflictError, DimensionMismatchError
from dyadsampler.graph.state import Dyad, NetworkState


def _group_bounds(
    value: float | Sequence[float] | None, default: float, n_groups: int, name: str
) -> np.ndarray:
    """Expand a bound setting (unset, scalar, or per-group) to one value per group."""
    if value is None:
        return np.full(n_groups, default, dtype=np.float64)
    arr = np.atleast_1d(np.asarray(value, dtype=np.float64))
    if arr.size == 0:
        return np.full(n_groups, default, dtype=np.float64)
    if arr.size == 1:
        return np.full(n_groups, arr[0], dtype=np.float64)
    if arr.size != n_groups:
        raise DimensionMismatchError(
            f"{name} has {arr.size} entries but there are {n_groups} groups"
        )
    return arr


@dataclass(frozen=True, eq=False)
class DegreeBound:
    """Per-group degree bounds. Unset bounds are +/- infinity.

    Group g is the g-th smallest distinct attribute value, so per-group
    bound sequences are given in sorted attribute order.
    """

    groups: np.ndarray  # int group code per node
    maxout: np.ndarray  # float per group
    maxin: np.ndarray
    minout: np.ndarray
    minin: np.ndarray

    def __post_init__(self) -> None:
        n_groups = int(self.groups.max()) + 1 if self.groups.size else 0
        for name in ("maxout", "maxin", "minout", "minin"):
            if getattr(self, name).shape != (n_groups,):
                raise DimensionMismatchError(
                    f"{name} must have one entry per group ({n_groups})"
                )
        for hi, lo, label in (
            (self.maxout, self.minout, "out"),
            (self.maxin, self.minin, "in"),
        ):
            bad = np.flatnonzero(hi < lo)
            if bad.size:
                raise ConstraintConflictError(
                    f"max{label} < min{label} for groups {bad.tolist()}"
                )
            if (hi < 0).any():
                raise ConstraintConflictError(f"max{label} must be non-negative")

    @classmethod
    def build(
        cls,
        n: int,
        attribs: Sequence[int] | None = None,
        maxout: float | Sequence[float] | None = None,
        maxin: float | Sequence[float] | None = None,
        minout: float | Sequence[float] | None = None,
        minin: float | Sequence[float] | None = None,
    ) -> "DegreeBound":
        """Build a bound table for n nodes.

        Args:
            n: Number of nodes.
            attribs: Grouping value per node; all nodes share one group if None.
            maxout, maxin, minout, minin: None (unset), a scalar applied to
                every group, or one value per group.

        Raises:
            DimensionMismatchError: If attribs or a bound has the wrong length.
            ConstraintConflictError: If a max bound is below its min bound.
        """
        if attribs is None:
            groups = np.zeros(n, dtype=np.int64)
        else:
            attribs = np.asarray(attribs)
            if attribs.shape != (n,):
                raise DimensionMismatchError(
                    f"attribs has shape {attribs.shape}, expected ({n},)"
                )
            _, groups = np.unique(attribs, return_inverse=True)
            groups = groups.astype(np.int64)
        n_groups = int(groups.max()) + 1 if n else 0

        return cls(
            groups=groups,
            maxout=_group_bounds(maxout, np.inf, n_groups, "maxout"),
            maxin=_group_bounds(maxin, np.inf, n_groups, "maxin"),
            minout=_group_bounds(minout, -np.inf, n_groups, "minout"),
            minin=_group_bounds(minin, -np.inf, n_groups, "minin"),
        )

    @property
    def unbounded(self) -> bool:
        """True when no bound is set, so every toggle is acceptable."""
        return bool(
            np.isposinf(self.maxout).all()
            and np.isposinf(self.maxin).all()
            and np.isneginf(self.minout).all()
            and np.isneginf(self.minin).all()
        )

    # Per-node limits, resolved once.

    @cached_property
    def _out_limits(self) -> tuple[np.ndarray, np.ndarray]:
        return self.minout[self.groups], self.maxout[self.groups]

    @cached_property
    def _in_limits(self) -> tuple[np.ndarray, np.ndarray]:
        return self.minin[self.groups], self.maxin[self.groups]

    @cached_property
    def _degree_limits(self) -> tuple[np.ndarray, np.ndarray]:
        lo = np.maximum(self.minout, self.minin)[self.groups]
        hi = np.minimum(self.maxout, self.maxin)[self.groups]
        return lo, hi

    def accept_toggles(self, state: NetworkState, toggles: Iterable[Dyad]) -> bool:
        """Whether applying all toggles keeps every affected degree in bounds."""
        space = state.space
        out_delta: dict[int, int] = {}
        in_delta: dict[int, int] = {}
        for tail, head in toggles:
            step = -1 if state.has_edge(tail, head) else 1
            i, j = space.canonical(tail, head)
            out_delta[i] = out_delta.get(i, 0) + step
            in_delta[j] = in_delta.get(j, 0) + step

        if space.directed:
            lo, hi = self._out_limits
            for v, d in out_delta.items():
                if d and not lo[v] <= state.out_degree(v) + d <= hi[v]:
                    return False
            lo, hi = self._in_limits
            for v, d in in_delta.items():
                if d and not lo[v] <= state.in_degree(v) + d <= hi[v]:
                    return False
            return True

        for v, d in in_delta.items():
            out_delta[v] = out_delta.get(v, 0) + d
        lo, hi = self._degree_limits
        for v, d in out_delta.items():
            if d and not lo[v] <= state.degree(v) + d <= hi[v]:
                return False
        return True

    def accept_toggle(self, state: NetworkState, dyad: Dyad, new_value: bool) -> bool:
        """Whether setting `dyad` to `new_value` keeps its endpoints in bounds."""
        if state.has_edge(*dyad) == new_value:
            return True
        return self.accept_toggles(state, (dyad,))

    def violations(self, state: NetworkState) -> list[int]:
        """Nodes whose current degrees fall outside their bounds."""
        if state.space.directed:
            out_deg = state.out_degrees()
            in_deg = state.in_degrees()
            lo_o, hi_o = self._out_limits
            lo_i, hi_i = self._in_limits
            bad = (out_deg < lo_o) | (out_deg > hi_o) | (in_deg < lo_i) | (in_deg > hi_i)
        else:
            deg = state.degrees()
            lo, hi = self._degree_limits
            bad = (deg < lo) | (deg > hi)
        return np.flatnonzero(bad).tolist()
