"""Exceptions raised while building the constrained dyad space.

Every error here is raised during setup, before the first chain step.
Degree-bound failures during sampling are filtered proposals, not errors.
"""


class DyadSamplerError(Exception):
    """Base class for constraint and topology configuration errors."""


class ConstraintConflictError(DyadSamplerError):
    """Raised when declared constraints contradict each other.

    Examples: a dyad fixed both present and absent, a degree bound with
    max < min, or an initial network that already violates its bounds.
    """


class NonContiguousBlocksError(DyadSamplerError):
    """Raised when a block-diagonal grouping is not contiguous in node order."""


class InvalidTopologyError(DyadSamplerError):
    """Raised when a constraint or edge is incompatible with the dyad space."""


class DimensionMismatchError(DyadSamplerError):
    """Raised when a vector or matrix does not match the node count."""
