"""Dyad spaces, run-length-encoded free-dyad maps, constraints and degree bounds."""

from dyadsampler.graph.constraints import (
    CONSTRAINT_KINDS,
    DEGREE_CONSTRAINTS,
    Baseline,
    BlockDiag,
    Constraint,
    DegreeConstraint,
    Dyads,
    FixAllBut,
    FixedAs,
    Hamming,
    Observed,
    ResolvedConstraints,
    blockdiag_free_dyads,
    check_degree_constraint,
    dyads_free_dyads,
    fixallbut_free_dyads,
    fixedas_free_dyads,
    resolve_constraints,
)
from dyadsampler.graph.degree import DegreeBound
from dyadsampler.graph.errors import (
    ConstraintConflictError,
    DimensionMismatchError,
    DyadSamplerError,
    InvalidTopologyError,
    NonContiguousBlocksError,
)
from dyadsampler.graph.rle import FreeDyadMap
from dyadsampler.graph.space import DyadSpace
from dyadsampler.graph.state import DyadSet, NetworkState

__all__ = [
    "Baseline",
    "BlockDiag",
    "CONSTRAINT_KINDS",
    "Constraint",
    "ConstraintConflictError",
    "DEGREE_CONSTRAINTS",
    "DegreeBound",
    "DegreeConstraint",
    "DimensionMismatchError",
    "DyadSamplerError",
    "DyadSet",
    "DyadSpace",
    "Dyads",
    "FixAllBut",
    "FixedAs",
    "FreeDyadMap",
    "Hamming",
    "InvalidTopologyError",
    "NetworkState",
    "NonContiguousBlocksError",
    "Observed",
    "ResolvedConstraints",
    "blockdiag_free_dyads",
    "check_degree_constraint",
    "dyads_free_dyads",
    "fixallbut_free_dyads",
    "fixedas_free_dyads",
    "resolve_constraints",
]
