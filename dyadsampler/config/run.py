"""Run configuration dataclasses, all frozen and slotted for immutability."""

from dataclasses import dataclass, field

from dyadsampler.graph.constraints import CONSTRAINT_KINDS


@dataclass(frozen=True, slots=True)
class NetworkConfig:
    """Topology and initial edge list (0-based node indices)."""

    n: int = 20  # number of nodes
    directed: bool = False
    bipartite: int | None = None  # size of the first partition, b1
    loops: bool = False
    edges: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True, slots=True)
class TermConfig:
    name: str
    attr: tuple[int, ...] = ()  # node attribute for nodematch


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Model terms and their natural parameters, in matching order."""

    terms: tuple[TermConfig, ...] = (TermConfig("edges"),)
    theta: tuple[float, ...] = (0.0,)


@dataclass(frozen=True, slots=True)
class ConstraintConfig:
    """One constraint. Which fields apply depends on `kind`:

    blockdiag uses attr; fixedas uses present and absent; fixallbut and
    observed use dyads (the free and the missing dyads respectively); dyads
    uses fix and vary, each a list of terms whose non-zero change statistic
    flags a dyad. Degree-type kinds take no fields.
    """

    kind: str
    attr: tuple[int, ...] = ()
    present: tuple[tuple[int, int], ...] | None = None
    absent: tuple[tuple[int, int], ...] | None = None
    dyads: tuple[tuple[int, int], ...] | None = None
    fix: tuple[TermConfig, ...] | None = None
    vary: tuple[TermConfig, ...] | None = None


@dataclass(frozen=True, slots=True)
class DegreeBoundConfig:
    """Per-group degree bounds. An empty tuple leaves that bound unset.

    Each bound holds one value for every group or a single value shared
    by all groups. Groups are the sorted distinct values of `attribs`.
    """

    attribs: tuple[int, ...] | None = None
    maxout: tuple[int, ...] = ()
    maxin: tuple[int, ...] = ()
    minout: tuple[int, ...] = ()
    minin: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Markov chain schedule and proposal parameters."""

    proposal: str = "tnt"  # "random" or "tnt"; degree constraints may override
    burnin: int = 1000
    interval: int = 10
    samplesize: int = 100
    max_edges: int | None = None  # stop the chain above this many edges
    max_tries: int = 1  # draws per proposal before a self-transition


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Top-level run configuration composing all sub-configs.

    Cross-parameter validation runs in __post_init__ to reject invalid
    configurations before any setup work.
    """

    network: NetworkConfig = field(default_factory=NetworkConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    constraints: tuple[ConstraintConfig, ...] = ()
    degree_bound: DegreeBoundConfig = field(default_factory=DegreeBoundConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    seed: int = 42
    description: str = ""
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.network.n < 1:
            raise ValueError(f"n must be >= 1, got {self.network.n}")
        if len(self.model.theta) != len(self.model.terms):
            raise ValueError(
                f"theta has {len(self.model.theta)} entries but the model "
                f"has {len(self.model.terms)} terms"
            )
        if self.chain.burnin < 0:
            raise ValueError(f"burnin must be >= 0, got {self.chain.burnin}")
        if self.chain.interval < 1:
            raise ValueError(f"interval must be >= 1, got {self.chain.interval}")
        if self.chain.samplesize < 1:
            raise ValueError(
                f"samplesize must be >= 1, got {self.chain.samplesize}"
            )
        if self.chain.max_tries < 1:
            raise ValueError(f"max_tries must be >= 1, got {self.chain.max_tries}")
        if self.chain.max_edges is not None and self.chain.max_edges < 0:
            raise ValueError(
                f"max_edges must be >= 0, got {self.chain.max_edges}"
            )
        for constraint in self.constraints:
            if constraint.kind not in CONSTRAINT_KINDS:
                raise ValueError(
                    f"unknown constraint {constraint.kind!r}; "
                    f"available: {sorted(CONSTRAINT_KINDS)}"
                )
