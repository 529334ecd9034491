"""Chain setup from a RunConfig, single runs and parallel independent chains.

prepare_chain() does all validation work: it builds the dyad space, model,
constraints and degree bounds, checks the initial network against them and
selects the proposal. Every setup error is raised here, before any
sampling step runs.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from joblib import Parallel, delayed

from dyadsampler.config.run import ConstraintConfig, RunConfig, TermConfig
from dyadsampler.graph.constraints import (
    CONSTRAINT_KINDS,
    BlockDiag,
    Constraint,
    DegreeConstraint,
    Dyads,
    FixAllBut,
    FixedAs,
    Hamming,
    Observed,
    ResolvedConstraints,
    resolve_constraints,
)
from dyadsampler.graph.degree import DegreeBound
from dyadsampler.graph.errors import ConstraintConflictError
from dyadsampler.graph.space import DyadSpace
from dyadsampler.graph.state import NetworkState
from dyadsampler.mcmc.changestats import Model, build_model, predictor_incidence
from dyadsampler.mcmc.proposal import ProposalMethod, select_proposal
from dyadsampler.mcmc.sampler import ConstrainedSampler, SampleResult
from dyadsampler.reproducibility.seed import make_rng, spawn_seeds

log = logging.getLogger(__name__)


@dataclass
class ChainSetup:
    """Everything a chain needs, validated and ready to sample."""

    space: DyadSpace
    model: Model
    theta: np.ndarray
    state: NetworkState
    constraints: ResolvedConstraints
    degree_bound: DegreeBound
    proposal: ProposalMethod


def _term_specs(terms: Sequence[TermConfig]) -> list[tuple[str, tuple | None]]:
    return [(term.name, term.attr or None) for term in terms]


def _incidence(
    space: DyadSpace, terms: Sequence[TermConfig] | None, edges: Sequence
) -> np.ndarray | None:
    """Predictor incidence of the given terms on the initial network."""
    if terms is None:
        return None
    model = build_model(space, _term_specs(terms))
    return predictor_incidence(model, NetworkState(space, edges))


def build_constraint(
    space: DyadSpace, config: ConstraintConfig, edges: Sequence = ()
) -> Constraint:
    """Translate one ConstraintConfig into its constraint kind.

    `edges` is the initial network; `dyads` predictors are change
    statistics on it.

    Raises:
        ValueError: If the kind is unknown, or hamming is given arguments.
    """
    kind = CONSTRAINT_KINDS.get(config.kind)
    if kind is None:
        raise ValueError(
            f"unknown constraint {config.kind!r}; available: {sorted(CONSTRAINT_KINDS)}"
        )
    if kind is BlockDiag:
        return BlockDiag(config.attr)
    if kind is FixedAs:
        return FixedAs(config.present, config.absent)
    if kind is FixAllBut:
        return FixAllBut(config.dyads)
    if kind is Observed:
        return Observed(config.dyads or ())
    if kind is Dyads:
        return Dyads(
            fix=_incidence(space, config.fix, edges),
            vary=_incidence(space, config.vary, edges),
        )
    if kind is Hamming:
        given = (config.present, config.absent, config.dyads, config.fix, config.vary)
        if config.attr or any(v is not None for v in given):
            raise ValueError("hamming constraint takes no arguments")
        return Hamming()
    return DegreeConstraint(config.kind)


def prepare_chain(config: RunConfig) -> ChainSetup:
    """Build and validate a chain from a run configuration.

    Raises:
        InvalidTopologyError: Bad topology, term, constraint or initial edge.
        DimensionMismatchError: Attribute or bound lengths, node indices.
        NonContiguousBlocksError: Block-diagonal groups are not contiguous.
        ConstraintConflictError: Conflicting fixes, or the initial network
            violates the degree bounds.
        ValueError: Unknown names, or more initial edges than max_edges.
    """
    net = config.network
    space = DyadSpace(
        n=net.n, directed=net.directed, bipartite=net.bipartite, loops=net.loops
    )
    model = build_model(space, _term_specs(config.model.terms))
    theta = np.asarray(config.model.theta, dtype=np.float64)

    constraints = [build_constraint(space, c, net.edges) for c in config.constraints]
    resolved = resolve_constraints(space, constraints)

    bounds = config.degree_bound
    degree_bound = DegreeBound.build(
        net.n,
        attribs=bounds.attribs,
        maxout=bounds.maxout,
        maxin=bounds.maxin,
        minout=bounds.minout,
        minin=bounds.minin,
    )

    state = NetworkState(space, net.edges, free_dyads=resolved.free_dyads)
    bad = degree_bound.violations(state)
    if bad:
        raise ConstraintConflictError(
            f"initial network violates degree bounds at {len(bad)} nodes, "
            f"e.g. {bad[:5]}"
        )
    max_edges = config.chain.max_edges
    if max_edges is not None and state.n_edges > max_edges:
        raise ValueError(
            f"initial network has {state.n_edges} edges, above max_edges={max_edges}"
        )
    state.statistics = model.summary(state)

    proposal = select_proposal(
        config.chain.proposal,
        resolved.flags,
        space,
        resolved.free_dyads,
        degree_bound=degree_bound,
        max_tries=config.chain.max_tries,
    )
    log.info(
        "Chain setup: %s, %d initial edges, terms=%s, proposal=%s",
        space.describe(),
        state.n_edges,
        list(model.names),
        proposal.name,
    )
    return ChainSetup(
        space=space,
        model=model,
        theta=theta,
        state=state,
        constraints=resolved,
        degree_bound=degree_bound,
        proposal=proposal,
    )


def run_sampler(
    config: RunConfig,
    seed: int | np.random.SeedSequence | None = None,
    verbose: bool = False,
    setup: ChainSetup | None = None,
) -> SampleResult:
    """Set up and run one chain. Uses config.seed unless `seed` is given.

    A `setup` already built by prepare_chain(config) skips the setup work.
    The chain samples on a copy of its state, so the setup can be reused.
    """
    if setup is None:
        setup = prepare_chain(config)
    chain = config.chain
    sampler = ConstrainedSampler(
        state=setup.state.copy(),
        model=setup.model,
        theta=setup.theta,
        proposal=setup.proposal,
        rng=make_rng(config.seed if seed is None else seed),
        burnin=chain.burnin,
        interval=chain.interval,
        samplesize=chain.samplesize,
        max_edges=chain.max_edges,
        verbose=verbose,
    )
    result = sampler.run()
    log.info(
        "Chain done: %d samples, acceptance %.3f%s",
        result.statistics.shape[0],
        result.acceptance_rate,
        " (truncated)" if result.truncated else "",
    )
    return result


def run_chains(
    config: RunConfig, n_chains: int, n_jobs: int = 1, verbose: bool = False
) -> list[SampleResult]:
    """Run independent chains in parallel, one spawned seed per chain.

    Results are returned in chain order and depend only on config.seed and
    n_chains, not on n_jobs.
    """
    seeds = spawn_seeds(config.seed, n_chains)
    log.info("Running %d chains on %d jobs", n_chains, n_jobs)
    return Parallel(n_jobs=n_jobs)(
        delayed(run_sampler)(config, seed, verbose) for seed in seeds
    )
