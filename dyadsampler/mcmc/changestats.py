"""Change statistics for a small library of model terms.

A term's change function returns how its statistic moves when the given
dyad is toggled in the current state: positive when the toggle adds an
edge, negative when it removes one. Change functions are pure; the sampler
applies toggles itself. Summary functions compute the statistic from
scratch and are only used to seed the running statistics vector.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np

from dyadsampler.graph.errors import DimensionMismatchError, InvalidTopologyError
from dyadsampler.graph.space import DyadSpace
from dyadsampler.graph.state import NetworkState

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Term:
    name: str
    change: Callable[[NetworkState, int, int], float]
    summary: Callable[[NetworkState], float]


def _sign(state: NetworkState, tail: int, head: int) -> float:
    return -1.0 if state.has_edge(tail, head) else 1.0


def _no_loop_adjacency(state: NetworkState):
    adj = state.to_adjacency().tolil()
    adj.setdiag(0)
    return adj.tocsr()


def edges_term(space: DyadSpace) -> Term:
    return Term(
        name="edges",
        change=_sign,
        summary=lambda state: float(state.n_edges),
    )


def mutual_term(space: DyadSpace) -> Term:
    """Number of reciprocated pairs i -> j, j -> i."""
    if not space.directed:
        raise InvalidTopologyError("mutual is only defined for directed networks")

    def change(state: NetworkState, tail: int, head: int) -> float:
        if tail == head or not state.has_edge(head, tail):
            return 0.0
        return _sign(state, tail, head)

    def summary(state: NetworkState) -> float:
        adj = _no_loop_adjacency(state)
        return float(adj.multiply(adj.T).sum()) / 2.0

    return Term("mutual", change, summary)


def triangle_term(space: DyadSpace) -> Term:
    if space.directed:
        raise InvalidTopologyError("triangle is only defined for undirected networks")

    def change(state: NetworkState, tail: int, head: int) -> float:
        if tail == head:
            return 0.0
        shared = state.neighbors(tail) & state.neighbors(head)
        shared.discard(tail)
        shared.discard(head)
        return _sign(state, tail, head) * len(shared)

    def summary(state: NetworkState) -> float:
        adj = _no_loop_adjacency(state)
        return float((adj @ adj).multiply(adj).sum()) / 6.0

    return Term("triangle", change, summary)


def twostar_term(space: DyadSpace) -> Term:
    """Number of paths of length two (pairs of edges sharing a node)."""
    if space.directed or space.loops:
        raise InvalidTopologyError(
            "twostar is only defined for undirected networks without loops"
        )

    def change(state: NetworkState, tail: int, head: int) -> float:
        if state.has_edge(tail, head):
            return -float(state.degree(tail) - 1 + state.degree(head) - 1)
        return float(state.degree(tail) + state.degree(head))

    def summary(state: NetworkState) -> float:
        deg = state.degrees()
        return float((deg * (deg - 1) // 2).sum())

    return Term("twostar", change, summary)


def isolates_term(space: DyadSpace) -> Term:
    """Number of nodes with no incident edges."""

    def change(state: NetworkState, tail: int, head: int) -> float:
        present = state.has_edge(tail, head)
        if tail == head:
            if present:
                return float(state.degree(tail) == 2)
            return -float(state.degree(tail) == 0)
        ends = (state.degree(tail), state.degree(head))
        if present:
            return float(sum(d == 1 for d in ends))
        return -float(sum(d == 0 for d in ends))

    def summary(state: NetworkState) -> float:
        return float((state.degrees() == 0).sum())

    return Term("isolates", change, summary)


def nodematch_term(space: DyadSpace, attr: Sequence) -> Term:
    """Number of edges whose endpoints share an attribute value."""
    attr = np.asarray(attr)
    if attr.shape != (space.n,):
        raise DimensionMismatchError(
            f"nodematch attribute has shape {attr.shape}, expected ({space.n},)"
        )

    def change(state: NetworkState, tail: int, head: int) -> float:
        if attr[tail] != attr[head]:
            return 0.0
        return _sign(state, tail, head)

    def summary(state: NetworkState) -> float:
        el = state.edge_list()
        if el.size == 0:
            return 0.0
        return float((attr[el[:, 0]] == attr[el[:, 1]]).sum())

    return Term("nodematch", change, summary)


TERMS: dict[str, Callable[..., Term]] = {
    "edges": edges_term,
    "mutual": mutual_term,
    "triangle": triangle_term,
    "twostar": twostar_term,
    "isolates": isolates_term,
    "nodematch": nodematch_term,
}

_ATTRIBUTE_TERMS = frozenset({"nodematch"})


def make_term(space: DyadSpace, name: str, attr: Sequence | None = None) -> Term:
    """Instantiate a named term for a dyad space.

    Raises:
        ValueError: If the term is unknown or its attribute is missing.
        InvalidTopologyError: If the term is undefined for the topology.
    """
    factory = TERMS.get(name)
    if factory is None:
        raise ValueError(f"unknown term {name!r}; available: {sorted(TERMS)}")
    if name in _ATTRIBUTE_TERMS:
        if attr is None or len(attr) == 0:
            raise ValueError(f"term {name!r} requires a node attribute")
        return factory(space, attr)
    return factory(space)


class Model:
    """Ordered collection of terms evaluated together."""

    def __init__(self, terms: Sequence[Term]) -> None:
        self.terms = tuple(terms)

    def __len__(self) -> int:
        return len(self.terms)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(term.name for term in self.terms)

    def change(self, state: NetworkState, tail: int, head: int) -> np.ndarray:
        """Statistic delta for toggling (tail, head) in the current state."""
        return np.fromiter(
            (term.change(state, tail, head) for term in self.terms),
            dtype=np.float64,
            count=len(self.terms),
        )

    def summary(self, state: NetworkState) -> np.ndarray:
        return np.fromiter(
            (term.summary(state) for term in self.terms),
            dtype=np.float64,
            count=len(self.terms),
        )


def build_model(
    space: DyadSpace, specs: Sequence[tuple[str, Sequence | None]]
) -> Model:
    """Build a model from (term name, attribute or None) pairs."""
    return Model([make_term(space, name, attr) for name, attr in specs])


def predictor_incidence(model: Model, state: NetworkState) -> np.ndarray:
    """Boolean (n, n, k) array flagging dyads where term k's change is non-zero.

    Only dyads of the space are evaluated; other cells stay FALSE.
    """
    n = state.n
    out = np.zeros((n, n, len(model)), dtype=bool)
    dyads = state.space.baseline().dyads()
    for i, j in dyads:
        out[i, j, :] = model.change(state, int(i), int(j)) != 0
    log.debug(
        "Evaluated %d predictors over %d dyads", len(model), len(dyads)
    )
    return out
