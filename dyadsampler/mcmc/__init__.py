"""Change statistics, proposals and the constrained Metropolis-Hastings sampler."""

from dyadsampler.mcmc.changestats import (
    TERMS,
    Model,
    Term,
    build_model,
    make_term,
    predictor_incidence,
)
from dyadsampler.mcmc.proposal import (
    FAILED,
    PROPOSALS,
    ConstantEdges,
    DegreeDistRewire,
    DegreeSwap,
    EndpointRewire,
    HammingTNT,
    Proposal,
    ProposalMethod,
    RandomToggle,
    TieNoTie,
    select_proposal,
)
from dyadsampler.mcmc.sampler import ChainPhase, ConstrainedSampler, SampleResult
from dyadsampler.mcmc.pipeline import (
    ChainSetup,
    build_constraint,
    prepare_chain,
    run_chains,
    run_sampler,
)

__all__ = [
    "TERMS",
    "Model",
    "Term",
    "build_model",
    "make_term",
    "predictor_incidence",
    "FAILED",
    "PROPOSALS",
    "ConstantEdges",
    "DegreeDistRewire",
    "DegreeSwap",
    "EndpointRewire",
    "HammingTNT",
    "Proposal",
    "ProposalMethod",
    "RandomToggle",
    "TieNoTie",
    "select_proposal",
    "ChainPhase",
    "ConstrainedSampler",
    "SampleResult",
    "ChainSetup",
    "build_constraint",
    "prepare_chain",
    "run_chains",
    "run_sampler",
]
