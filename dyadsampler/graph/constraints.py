"""Constraint kinds and the free-dyad maps they induce.

Each dyad-level constraint is a small frozen dataclass whose free_dyads()
returns the cells it leaves free, already restricted to the dyads of the
space. Degree-type constraints produce no map; they contribute flags that
select a degree-preserving proposal. resolve_constraints() folds every map
with AND, starting from the topology baseline.

Builders validate their inputs and raise before any sampling starts.
"""

import logging
import operator
from dataclasses import dataclass
from functools import reduce
from typing import Sequence, Union

import numpy as np
import scipy.sparse

from dyadsampler.graph.errors import (
    ConstraintConflictError,
    DimensionMismatchError,
    InvalidTopologyError,
    NonContiguousBlocksError,
)
from dyadsampler.graph.rle import FreeDyadMap
from dyadsampler.graph.space import DyadSpace

log = logging.getLogger(__name__)

DyadList = Sequence[tuple[int, int]]


# ── Builders ─────────────────────────────────────────────────────────


def _block_spans(values: np.ndarray) -> dict:
    """Map each attribute value to the [start, end) span of its block.

    Raises:
        NonContiguousBlocksError: If some value occurs in more than one run.
    """
    if values.size == 0:
        return {}
    change = np.flatnonzero(values[1:] != values[:-1]) + 1
    starts = np.concatenate(([0], change))
    ends = np.concatenate((change, [values.size]))
    run_values = values[starts]
    if np.unique(run_values).size != run_values.size:
        raise NonContiguousBlocksError(
            f"block-diagonal sampling requires contiguous blocks; attribute "
            f"has {run_values.size} runs but only {np.unique(run_values).size} "
            f"distinct values"
        )
    return {v: (int(s), int(e)) for v, s, e in zip(run_values.tolist(), starts, ends)}


def blockdiag_free_dyads(space: DyadSpace, attr: Sequence) -> FreeDyadMap:
    """Free dyads whose endpoints share an attribute group.

    For bipartite spaces the ego (b1) and alter (b2) attribute runs must each
    be contiguous; a b1 block is paired with the b2 block of equal value, in
    both orientations so directed bipartite spaces keep the transpose.
    """
    n = space.n
    attr = np.asarray(attr)
    if attr.shape != (n,):
        raise DimensionMismatchError(
            f"block attribute has shape {attr.shape}, expected ({n},)"
        )

    starts = np.zeros(n, dtype=np.int64)
    ends = np.zeros(n, dtype=np.int64)
    if space.is_bipartite:
        b1 = space.b1
        ego_spans = _block_spans(attr[:b1])
        alter_spans = _block_spans(attr[b1:])
        for j in range(n):
            value = attr[j].item()
            if j < b1:
                span = alter_spans.get(value)
                if span is not None:
                    starts[j], ends[j] = b1 + span[0], b1 + span[1]
            else:
                span = ego_spans.get(value)
                if span is not None:
                    starts[j], ends[j] = span
    else:
        spans = _block_spans(attr)
        for j in range(n):
            starts[j], ends[j] = spans[attr[j].item()]

    blocks = FreeDyadMap.from_column_intervals(n, starts, ends)
    return blocks & space.baseline()


def fixedas_free_dyads(
    space: DyadSpace,
    present: DyadList | None = None,
    absent: DyadList | None = None,
) -> FreeDyadMap:
    """Free dyads are everything except those fixed present or absent.

    Raises:
        ValueError: If neither list is given.
        ConstraintConflictError: If a dyad is fixed both present and absent.
    """
    if present is None and absent is None:
        raise ValueError("fixedas takes at least one of present or absent")
    present_cells = space.dyad_cells(present or ())
    absent_cells = space.dyad_cells(absent or ())
    conflict = np.intersect1d(present_cells, absent_cells)
    if conflict.size:
        shown = [space.cell_of(int(c)) for c in conflict[:5]]
        raise ConstraintConflictError(
            f"{conflict.size} dyads fixed both present and absent, e.g. {shown}"
        )
    fixed = FreeDyadMap.from_cells(
        space.n, np.concatenate((present_cells, absent_cells))
    )
    return ~fixed & space.baseline()


def fixallbut_free_dyads(space: DyadSpace, free_dyads: DyadList | None) -> FreeDyadMap:
    """The listed dyads are the only free dyads."""
    if free_dyads is None:
        raise ValueError("fixallbut requires a free dyad list")
    return space.dyad_map(free_dyads) & space.baseline()


def _incidence_layers(space: DyadSpace, matrix) -> list[FreeDyadMap]:
    """Split an (n, n) or (n, n, k) incidence array into one map per layer.

    Non-zero entries are TRUE and NaN is FALSE. Undirected layers are
    symmetrised so either orientation flags the dyad.
    """
    n = space.n
    if scipy.sparse.issparse(matrix):
        matrix = matrix.toarray()
    arr = np.asarray(matrix, dtype=np.float64)
    if arr.ndim == 2:
        arr = arr[:, :, np.newaxis]
    if arr.ndim != 3 or arr.shape[:2] != (n, n):
        raise DimensionMismatchError(
            f"incidence array has shape {arr.shape}, expected ({n}, {n}[, k])"
        )
    flags = np.nan_to_num(arr, nan=0.0) != 0
    if not space.directed:
        flags = flags | flags.transpose(1, 0, 2)
    return [FreeDyadMap.from_matrix(flags[:, :, k]) for k in range(flags.shape[2])]


def dyads_free_dyads(space: DyadSpace, fix=None, vary=None) -> FreeDyadMap:
    """Free dyads from predictor incidence arrays.

    A dyad flagged by any `fix` layer is frozen (complement each layer, then
    AND); a dyad flagged by any `vary` layer is free (OR). The two group
    results are OR-ed together.

    Raises:
        ValueError: If neither fix nor vary is given.
    """
    if fix is None and vary is None:
        raise ValueError("Dyads constraint takes at least one of fix or vary")
    groups: list[FreeDyadMap] = []
    if fix is not None:
        layers = _incidence_layers(space, fix)
        if layers:
            groups.append(reduce(operator.and_, (~m for m in layers)))
    if vary is not None:
        layers = _incidence_layers(space, vary)
        if layers:
            groups.append(reduce(operator.or_, layers))
    if not groups:
        return space.baseline()
    return reduce(operator.or_, groups) & space.baseline()


# ── Degree-type constraints ──────────────────────────────────────────

_DEGREE_IMPLIES: dict[str, frozenset[str]] = {
    "edges": frozenset({"edges"}),
    "degrees": frozenset(
        {"degrees", "edges", "idegrees", "odegrees", "idegreedist",
         "odegreedist", "degreedist", "bd"}
    ),
    "odegrees": frozenset({"odegrees", "edges", "odegreedist"}),
    "idegrees": frozenset({"idegrees", "edges", "idegreedist"}),
    "b1degrees": frozenset({"b1degrees", "edges"}),
    "b2degrees": frozenset({"b2degrees", "edges"}),
    "degreedist": frozenset({"degreedist", "edges", "idegreedist", "odegreedist"}),
    "idegreedist": frozenset({"idegreedist", "edges"}),
    "odegreedist": frozenset({"odegreedist", "edges"}),
}
_DEGREE_IMPLIES["nodedegrees"] = _DEGREE_IMPLIES["degrees"]

DEGREE_CONSTRAINTS = frozenset(_DEGREE_IMPLIES)

_DIRECTED_ONLY = frozenset({"odegrees", "idegrees", "odegreedist", "idegreedist"})
_BIPARTITE_ONLY = frozenset({"b1degrees", "b2degrees"})


def check_degree_constraint(space: DyadSpace, kind: str) -> frozenset[str]:
    """Validate a degree-type constraint against the topology.

    Returns:
        The set of properties the constraint holds fixed.

    Raises:
        ValueError: If `kind` is not a degree-type constraint.
        InvalidTopologyError: If the constraint is meaningless here.
    """
    if kind not in _DEGREE_IMPLIES:
        raise ValueError(f"unknown degree constraint {kind!r}")
    if kind in _DIRECTED_ONLY and not space.directed:
        raise InvalidTopologyError(
            f"{kind} constraint is only meaningful for directed networks"
        )
    if kind in _BIPARTITE_ONLY and (not space.is_bipartite or space.directed):
        raise InvalidTopologyError(
            f"{kind} constraint is only meaningful for undirected bipartite networks"
        )
    return _DEGREE_IMPLIES[kind]


# ── Constraint kinds ─────────────────────────────────────────────────


@dataclass(frozen=True)
class Baseline:
    """Dyads allowed by directedness, bipartite partition and loop policy."""

    def free_dyads(self, space: DyadSpace) -> FreeDyadMap:
        return space.baseline()

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True)
class BlockDiag:
    attr: tuple

    def free_dyads(self, space: DyadSpace) -> FreeDyadMap:
        return blockdiag_free_dyads(space, self.attr)

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True)
class FixedAs:
    present: tuple | None = None
    absent: tuple | None = None

    def free_dyads(self, space: DyadSpace) -> FreeDyadMap:
        return fixedas_free_dyads(space, self.present, self.absent)

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True)
class FixAllBut:
    free: tuple | None = None

    def free_dyads(self, space: DyadSpace) -> FreeDyadMap:
        return fixallbut_free_dyads(space, self.free)

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True)
class Observed:
    """Only unobserved (missing) dyads may be toggled."""

    missing: tuple = ()

    def free_dyads(self, space: DyadSpace) -> FreeDyadMap:
        return fixallbut_free_dyads(space, self.missing)

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return frozenset({"observed"})


@dataclass(frozen=True, eq=False)
class Dyads:
    """Fix or vary dyads flagged by predictor incidence arrays."""

    fix: np.ndarray | None = None
    vary: np.ndarray | None = None

    def free_dyads(self, space: DyadSpace) -> FreeDyadMap:
        return dyads_free_dyads(space, self.fix, self.vary)

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True)
class Hamming:
    """Marks the model as dyad-dependent; frees no extra dyads.

    Selects a proposal that tracks the Hamming distance from the start
    network.
    """

    def free_dyads(self, space: DyadSpace) -> None:
        return None

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return frozenset({"hamming"})


@dataclass(frozen=True)
class DegreeConstraint:
    kind: str

    def free_dyads(self, space: DyadSpace) -> None:
        return None

    def implies(self, space: DyadSpace) -> frozenset[str]:
        return check_degree_constraint(space, self.kind)


Constraint = Union[
    Baseline, BlockDiag, FixedAs, FixAllBut, Observed, Dyads, Hamming,
    DegreeConstraint,
]

CONSTRAINT_KINDS: dict[str, type] = {
    "blockdiag": BlockDiag,
    "fixedas": FixedAs,
    "fixallbut": FixAllBut,
    "observed": Observed,
    "dyads": Dyads,
    "hamming": Hamming,
    **{name: DegreeConstraint for name in DEGREE_CONSTRAINTS},
}


@dataclass(frozen=True)
class ResolvedConstraints:
    """Effective free-dyad map and degree flags for one run."""

    free_dyads: FreeDyadMap
    flags: frozenset[str]


def resolve_constraints(
    space: DyadSpace, constraints: Sequence[Constraint] = ()
) -> ResolvedConstraints:
    """Intersect every constraint's free dyads with the baseline.

    Raises:
        DyadSamplerError subclasses from individual builders.
    """
    free = space.baseline()
    flags: frozenset[str] = frozenset()
    for constraint in constraints:
        flags |= constraint.implies(space)
        constraint_map = constraint.free_dyads(space)
        if constraint_map is not None:
            free = free & constraint_map
            log.debug(
                "%s leaves %d free dyads", type(constraint).__name__, free.count()
            )

    n_free = free.count()
    log.info(
        "Resolved %d constraints on %s: %d of %d dyads free (%d runs), flags=%s",
        len(constraints),
        space.describe(),
        n_free,
        space.dyad_count,
        free.n_runs,
        sorted(flags),
    )
    if n_free == 0:
        log.warning("No free dyads: every proposal will be a self-transition")
    return ResolvedConstraints(free_dyads=free, flags=flags)
