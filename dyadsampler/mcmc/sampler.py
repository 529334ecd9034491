"""Metropolis-Hastings chain driver: burn-in, thinning and statistics recording.

The chain moves through three phases, BURN_IN -> SAMPLING -> DONE. Burn-in
runs `burnin` attempted steps. Sampling runs `samplesize * interval` steps
and records the statistics vector after every `interval`-th step. A chain
whose edge count exceeds `max_edges` stops early and reports the rows it
filled with truncated=True.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from dyadsampler.graph.state import Dyad, NetworkState
from dyadsampler.mcmc.changestats import Model
from dyadsampler.mcmc.proposal import ProposalMethod

log = logging.getLogger(__name__)


class ChainPhase(Enum):
    BURN_IN = "burn_in"
    SAMPLING = "sampling"
    DONE = "done"


@dataclass(frozen=True)
class SampleResult:
    """Output of one chain.

    Uses frozen=True but omits slots=True since numpy arrays don't interact
    well with __slots__. The statistics matrix is read-only.
    """

    statistics: np.ndarray  # (rows, p) recorded statistics, rows <= samplesize
    edges: np.ndarray  # (E, 2) final edge list
    n_accepted: int  # accepted steps over burn-in and sampling
    n_steps: int  # attempted steps over burn-in and sampling
    term_names: tuple[str, ...] = ()
    truncated: bool = False  # stopped early on the max_edges limit

    @property
    def acceptance_rate(self) -> float:
        return self.n_accepted / self.n_steps if self.n_steps else 0.0


class ConstrainedSampler:
    """Runs one Markov chain over a NetworkState it owns exclusively."""

    def __init__(
        self,
        state: NetworkState,
        model: Model,
        theta: np.ndarray,
        proposal: ProposalMethod,
        rng: np.random.Generator,
        burnin: int = 0,
        interval: int = 1,
        samplesize: int = 1,
        max_edges: int | None = None,
        verbose: bool = False,
    ) -> None:
        theta = np.asarray(theta, dtype=np.float64)
        if theta.shape != (len(model),):
            raise ValueError(
                f"theta has shape {theta.shape}, model has {len(model)} terms"
            )
        if burnin < 0 or interval < 1 or samplesize < 1:
            raise ValueError(
                f"need burnin >= 0, interval >= 1, samplesize >= 1; got "
                f"{burnin}, {interval}, {samplesize}"
            )
        # The state tracks free edges against its own map; proposals draw
        # from those edges, so both must agree.
        if (
            state.free_dyads is not proposal.free_dyads
            and state.free_dyads != proposal.free_dyads
        ):
            raise ValueError(
                "state and proposal use different free-dyad maps; build the "
                "NetworkState with free_dyads=proposal.free_dyads"
            )
        self.state = state
        self.model = model
        self.theta = theta
        self.proposal = proposal
        self.rng = rng
        self.burnin = burnin
        self.interval = interval
        self.samplesize = samplesize
        self.max_edges = max_edges
        self.verbose = verbose

        if state.statistics.shape != (len(model),):
            state.statistics = model.summary(state)
        proposal.start(state)

        self.phase = ChainPhase.BURN_IN
        self.n_steps = 0
        self.n_accepted = 0
        self.truncated = False
        self._rows: list[np.ndarray] = []

    def _change(self, toggles: tuple[Dyad, ...]) -> np.ndarray:
        """Statistic delta of applying all toggles in order.

        Toggles after the first are evaluated on the state with the earlier
        ones applied; the state is restored before returning.
        """
        if len(toggles) == 1:
            return self.model.change(self.state, *toggles[0])
        delta = np.zeros(len(self.model), dtype=np.float64)
        applied: list[Dyad] = []
        try:
            for k, (tail, head) in enumerate(toggles):
                delta += self.model.change(self.state, tail, head)
                if k < len(toggles) - 1:
                    self.state.toggle(tail, head)
                    applied.append((tail, head))
        finally:
            for tail, head in reversed(applied):
                self.state.toggle(tail, head)
        return delta

    def step(self) -> bool:
        """Attempt one Metropolis-Hastings step. Returns True if accepted."""
        self.n_steps += 1
        proposal = self.proposal.propose(self.state, self.rng)
        if proposal.failed:
            return False

        delta = self._change(proposal.toggles)
        log_accept = float(self.theta @ delta) + proposal.log_ratio
        if log_accept < 0.0 and math.log(self.rng.random()) >= log_accept:
            return False

        for tail, head in proposal.toggles:
            self.state.toggle(tail, head)
        self.state.statistics += delta
        self.proposal.update(proposal.toggles)
        self.n_accepted += 1

        if self.max_edges is not None and self.state.n_edges > self.max_edges:
            self.truncated = True
            log.warning(
                "Edge count %d exceeds max_edges=%d; stopping chain after "
                "%d of %d samples",
                self.state.n_edges,
                self.max_edges,
                len(self._rows),
                self.samplesize,
            )
        return True

    def run(self) -> SampleResult:
        """Run burn-in and sampling to completion (or truncation)."""
        progress = log.info if self.verbose else log.debug

        for _ in range(self.burnin):
            self.step()
            if self.truncated:
                break

        if not self.truncated:
            self.phase = ChainPhase.SAMPLING
            progress(
                "Burn-in done: %d steps, %d accepted", self.n_steps, self.n_accepted
            )
            for sample in range(self.samplesize):
                for _ in range(self.interval):
                    self.step()
                    if self.truncated:
                        break
                if self.truncated:
                    break
                self._rows.append(self.state.statistics.copy())
                progress(
                    "Sample %d/%d: edges=%d, accepted=%d/%d",
                    sample + 1,
                    self.samplesize,
                    self.state.n_edges,
                    self.n_accepted,
                    self.n_steps,
                )

        self.phase = ChainPhase.DONE
        statistics = (
            np.vstack(self._rows)
            if self._rows
            else np.empty((0, len(self.model)), dtype=np.float64)
        )
        statistics.flags.writeable = False
        return SampleResult(
            statistics=statistics,
            edges=self.state.edge_list(),
            n_accepted=self.n_accepted,
            n_steps=self.n_steps,
            term_names=self.model.names,
            truncated=self.truncated,
        )
