"""Metropolis-Hastings proposals over a constrained dyad space.

A proposal is a set of dyads to toggle together plus the log Hastings ratio
log q(y -> x) / q(x -> y). Every toggled dyad lies in the free-dyad map and
the whole set passes the degree-bound filter; a draw that cannot satisfy
both becomes a failed proposal, which the sampler records as a rejected
self-transition.

Retry policy: each method makes up to `max_tries` draws. With the default
of one draw, filtering is symmetric between a state and its neighbour and
detailed balance holds exactly. Larger values redraw filtered candidates,
which raises the move rate near hard bounds but leaves the Hastings ratio
uncorrected for the filtering.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from dyadsampler.graph.degree import DegreeBound
from dyadsampler.graph.rle import FreeDyadMap
from dyadsampler.graph.space import DyadSpace
from dyadsampler.graph.state import Dyad, DyadSet, NetworkState

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Proposal:
    toggles: tuple[Dyad, ...]
    log_ratio: float = 0.0

    @property
    def failed(self) -> bool:
        return not self.toggles


FAILED = Proposal((), -math.inf)

_LOG2 = math.log(2.0)


def _n_loops(dyads) -> int:
    return sum(1 for tail, head in dyads if tail == head)


def _tnt_log_ratio(marked: bool, n_marked: int, n_free: int) -> float:
    """Hastings ratio of a tie/no-tie toggle.

    Half the draws pick from `n_marked` marked dyads, half from all
    `n_free` free dyads; toggling a marked dyad unmarks it and vice versa.
    """
    if marked:
        forward = 0.5 / n_marked + 0.5 / n_free
        backward = (1.0 if n_marked == 1 else 0.5) / n_free
    else:
        forward = (1.0 if n_marked == 0 else 0.5) / n_free
        backward = 0.5 / (n_marked + 1) + 0.5 / n_free
    return math.log(backward / forward)


class ProposalMethod:
    """Base class: draw candidates, then filter by free dyads and degree bounds."""

    name = "base"

    def __init__(
        self,
        space: DyadSpace,
        free_dyads: FreeDyadMap,
        degree_bound: DegreeBound | None = None,
        max_tries: int = 1,
    ) -> None:
        if max_tries < 1:
            raise ValueError(f"max_tries must be >= 1, got {max_tries}")
        self.space = space
        self.free_dyads = free_dyads
        self.degree_bound = (
            None if degree_bound is None or degree_bound.unbounded else degree_bound
        )
        self.max_tries = max_tries
        self.n_free = free_dyads.count()

    def propose(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        for _ in range(self.max_tries):
            proposal = self._draw(state, rng)
            if proposal.failed:
                continue
            if self.degree_bound is None or self.degree_bound.accept_toggles(
                state, proposal.toggles
            ):
                return proposal
        return FAILED

    def start(self, state: NetworkState) -> None:
        """Called once when a chain starts from `state`."""

    def update(self, toggles: tuple[Dyad, ...]) -> None:
        """Called after the sampler commits an accepted proposal."""

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        raise NotImplementedError

    def _togglable(self, state: NetworkState, old: Dyad, new: Dyad) -> bool:
        """Both dyads are free, `old` is an edge and `new` is not."""
        return (
            self.free_dyads.contains(*old)
            and self.free_dyads.contains(*new)
            and not state.has_edge(*new)
        )

    def _side_range(self, v: int) -> tuple[int, int]:
        """Nodes a rewired endpoint may move to: v's partition, or all nodes."""
        if not self.space.is_bipartite:
            return 0, self.space.n
        if self.space.side(v) == 0:
            return 0, self.space.b1
        return self.space.b1, self.space.n


class RandomToggle(ProposalMethod):
    """Toggle one free dyad drawn uniformly. Symmetric."""

    name = "random"

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        if self.n_free == 0:
            return FAILED
        return Proposal((self.free_dyads.sample_dyad(rng),), 0.0)


class TieNoTie(ProposalMethod):
    """With probability 1/2 remove a random free edge, else toggle a random free dyad.

    Mixes faster than RandomToggle on sparse networks; the Hastings ratio
    corrects for the extra weight on existing edges.
    """

    name = "tnt"

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        n_free = self.n_free
        if n_free == 0:
            return FAILED
        n_edges = state.n_free_edges
        if n_edges > 0 and rng.random() < 0.5:
            dyad = state.random_free_edge(rng)
        else:
            dyad = self.free_dyads.sample_dyad(rng)
        return Proposal(
            (dyad,), _tnt_log_ratio(state.has_edge(*dyad), n_edges, n_free)
        )


class HammingTNT(ProposalMethod):
    """Tie/no-tie over the dyads that differ from the chain's start network.

    With probability 1/2 a changed dyad is toggled back, else a random free
    dyad is toggled. The changed set is reset by start() and kept current
    by update().
    """

    name = "hamming_tnt"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._changed = DyadSet()

    @property
    def distance(self) -> int:
        """Hamming distance between the current and the start network."""
        return len(self._changed)

    def start(self, state: NetworkState) -> None:
        self._changed = DyadSet()

    def update(self, toggles: tuple[Dyad, ...]) -> None:
        for dyad in toggles:
            if dyad in self._changed:
                self._changed.discard(dyad)
            else:
                self._changed.add(dyad)

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        n_free = self.n_free
        if n_free == 0:
            return FAILED
        n_changed = len(self._changed)
        if n_changed > 0 and rng.random() < 0.5:
            dyad = self._changed.choice(rng)
        else:
            dyad = self.free_dyads.sample_dyad(rng)
        return Proposal(
            (dyad,), _tnt_log_ratio(dyad in self._changed, n_changed, n_free)
        )


class ConstantEdges(ProposalMethod):
    """Move one free edge to a free empty dyad, holding the edge count."""

    name = "constant_edges"

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        if state.n_free_edges == 0 or self.n_free == 0:
            return FAILED
        off = state.random_free_edge(rng)
        on = self.free_dyads.sample_dyad(rng)
        if state.has_edge(*on):
            return FAILED
        return Proposal((off, on), 0.0)


class DegreeSwap(ProposalMethod):
    """Tetrad swap (a, b), (c, d) -> (a, d), (c, b); preserves every degree."""

    name = "degree_swap"

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        if state.n_edges < 2:
            return FAILED
        a, b = state.random_edge(rng)
        c, d = state.random_edge(rng)
        if (a, b) == (c, d):
            return FAILED
        # Undirected unipartite edges have no fixed orientation; flip one so
        # both rewirings are reachable.
        flip = not self.space.directed and not self.space.is_bipartite
        if flip and rng.random() < 0.5:
            c, d = d, c
        old2 = self.space.canonical(c, d)
        new1 = self.space.canonical(a, d)
        new2 = self.space.canonical(c, b)
        if new1 == new2:
            return FAILED
        if not (
            self._togglable(state, (a, b), new1)
            and self._togglable(state, old2, new2)
        ):
            return FAILED
        log_ratio = 0.0
        if flip:
            # Flipping a loop is a no-op, so a pair holding a loop is drawn
            # twice as often.
            log_ratio = _LOG2 * (
                _n_loops((new1, new2)) - _n_loops(((a, b), old2))
            )
        return Proposal(((a, b), old2, new1, new2), log_ratio)


class EndpointRewire(ProposalMethod):
    """Move one end of a random edge, keeping the other end's degree.

    keep="tail" preserves out-degrees (or b1 degrees); keep="head" preserves
    in-degrees (or b2 degrees).
    """

    def __init__(self, *args, keep: str = "tail", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        if keep not in ("tail", "head"):
            raise ValueError(f"keep must be 'tail' or 'head', got {keep!r}")
        self.keep = keep
        self.name = f"rewire_{keep}"

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        if state.n_edges == 0:
            return FAILED
        a, b = state.random_edge(rng)
        if self.keep == "tail":
            lo, hi = self._side_range(b)
            c = int(rng.integers(lo, hi))
            if c == b:
                return FAILED
            new = self.space.canonical(a, c)
        else:
            lo, hi = self._side_range(a)
            c = int(rng.integers(lo, hi))
            if c == a:
                return FAILED
            new = self.space.canonical(c, b)
        if not self._togglable(state, (a, b), new):
            return FAILED
        return Proposal(((a, b), new), 0.0)


class DegreeDistRewire(ProposalMethod):
    """Move one end of an edge to a node whose degree is one less.

    The moved-from and moved-to nodes swap degrees, so the degree
    distribution is preserved. mode="head" uses in-degrees, "tail" uses
    out-degrees, and "either" (undirected) moves a random endpoint.
    """

    def __init__(self, *args, mode: str = "either", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        if mode not in ("head", "tail", "either"):
            raise ValueError(f"mode must be 'head', 'tail' or 'either', got {mode!r}")
        self.mode = mode
        self.name = f"degreedist_{mode}"

    def _draw(self, state: NetworkState, rng: np.random.Generator) -> Proposal:
        if state.n_edges == 0:
            return FAILED
        a, b = state.random_edge(rng)
        if self.mode == "head":
            keep, move, degree = a, b, state.in_degree
        elif self.mode == "tail":
            keep, move, degree = b, a, state.out_degree
        elif rng.random() < 0.5:
            keep, move, degree = a, b, state.degree
        else:
            keep, move, degree = b, a, state.degree

        lo, hi = self._side_range(move)
        c = int(rng.integers(lo, hi))
        if c == move or degree(c) != degree(move) - 1:
            return FAILED
        new = (c, keep) if self.mode == "tail" else self.space.canonical(keep, c)
        if not self._togglable(state, (a, b), new):
            return FAILED
        log_ratio = 0.0
        if self.mode == "either":
            # Both endpoint choices on a loop lead to the same move.
            log_ratio = _LOG2 * (_n_loops((new,)) - _n_loops(((a, b),)))
        return Proposal(((a, b), new), log_ratio)


PROPOSALS: dict[str, type] = {
    RandomToggle.name: RandomToggle,
    TieNoTie.name: TieNoTie,
}


def select_proposal(
    name: str,
    flags: frozenset[str],
    space: DyadSpace,
    free_dyads: FreeDyadMap,
    degree_bound: DegreeBound | None = None,
    max_tries: int = 1,
) -> ProposalMethod:
    """Pick the proposal that holds the flagged degree properties fixed.

    Degree-type flags take precedence over the configured name, strongest
    first: full degree sequence, one-sided degrees, degree distributions,
    then edge count. A hamming constraint without degree flags selects
    HammingTNT.

    Raises:
        ValueError: If `name` is not a known unconstrained proposal.
    """
    if name not in PROPOSALS:
        raise ValueError(f"unknown proposal {name!r}; available: {sorted(PROPOSALS)}")
    args = (space, free_dyads, degree_bound)
    kwargs = {"max_tries": max_tries}

    if (
        "degrees" in flags
        or {"idegrees", "odegrees"} <= flags
        or {"b1degrees", "b2degrees"} <= flags
    ):
        method: ProposalMethod = DegreeSwap(*args, **kwargs)
    elif "odegrees" in flags or "b1degrees" in flags:
        method = EndpointRewire(*args, keep="tail", **kwargs)
    elif "idegrees" in flags or "b2degrees" in flags:
        method = EndpointRewire(*args, keep="head", **kwargs)
    elif "degreedist" in flags or "idegreedist" in flags:
        mode = "head" if space.directed else "either"
        method = DegreeDistRewire(*args, mode=mode, **kwargs)
    elif "odegreedist" in flags:
        method = DegreeDistRewire(*args, mode="tail", **kwargs)
    elif "edges" in flags:
        method = ConstantEdges(*args, **kwargs)
    elif "hamming" in flags:
        method = HammingTNT(*args, **kwargs)
    else:
        method = PROPOSALS[name](*args, **kwargs)

    if method.name != name:
        log.info("Constraints %s select proposal %s", sorted(flags), method.name)
    if max_tries > 1 and method.degree_bound is not None:
        log.warning(
            "max_tries=%d redraws degree-filtered proposals; the chain's "
            "stationary distribution is then only approximately the target",
            max_tries,
        )
    return method
