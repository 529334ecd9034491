"""Tests for the constrained Metropolis-Hastings chain driver."""

import math
from collections import Counter

import numpy as np
import pytest

from dyadsampler.graph import DegreeBound, DyadSpace, FreeDyadMap, NetworkState
from dyadsampler.mcmc import (
    ChainPhase,
    ConstantEdges,
    ConstrainedSampler,
    DegreeDistRewire,
    DegreeSwap,
    EndpointRewire,
    HammingTNT,
    RandomToggle,
    TieNoTie,
    build_model,
)


def _sampler(space, proposal, theta, terms=(("edges", None),), edges=(), **kwargs):
    seed = kwargs.pop("seed", 0)
    model = build_model(space, list(terms))
    state = NetworkState(space, edges, free_dyads=proposal.free_dyads)
    return ConstrainedSampler(
        state=state,
        model=model,
        theta=np.asarray(theta, dtype=np.float64),
        proposal=proposal,
        rng=np.random.default_rng(seed),
        **kwargs,
    )


def _visit_frequencies(sampler: ConstrainedSampler, n_steps: int) -> dict:
    """Fraction of steps spent in each network (keyed by sorted edge list)."""
    counts: Counter = Counter()
    for _ in range(n_steps):
        sampler.step()
        counts[tuple(map(tuple, sampler.state.edge_list().tolist()))] += 1
    return {edges: c / n_steps for edges, c in counts.items()}


class TestDegreeBoundInvariant:
    """A degree bound holds in every state the chain visits."""

    def test_maxout_three_every_step(self):
        space = DyadSpace(10)
        bound = DegreeBound.build(10, maxout=3)
        proposal = RandomToggle(space, space.baseline(), bound)
        sampler = _sampler(space, proposal, [3.0])
        for _ in range(3000):
            sampler.step()
            assert sampler.state.degrees().max() <= 3
        # A strongly positive edge parameter pushes degrees to the bound.
        assert sampler.state.degrees().max() == 3

    def test_directed_bounds_per_group(self):
        space = DyadSpace(6, directed=True)
        bound = DegreeBound.build(6, attribs=[0, 0, 0, 1, 1, 1], maxin=[1, 2])
        proposal = TieNoTie(space, space.baseline(), bound)
        sampler = _sampler(space, proposal, [2.0])
        limits = np.array([1, 1, 1, 2, 2, 2])
        for _ in range(2000):
            sampler.step()
            assert (sampler.state.in_degrees() <= limits).all()


class TestStationaryDistribution:
    """With theta = 0 every dyad is present half of the time."""

    def test_random_toggle_marginals(self):
        space = DyadSpace(5)
        sampler = _sampler(space, RandomToggle(space, space.baseline()), [0.0])
        dyads = [tuple(int(v) for v in d) for d in space.baseline().dyads()]
        counts = np.zeros(len(dyads))
        n_steps = 20_000
        for _ in range(n_steps):
            sampler.step()
            counts += [sampler.state.has_edge(*d) for d in dyads]
        np.testing.assert_allclose(counts / n_steps, 0.5, atol=0.08)
        # Every proposal is accepted when theta is zero.
        assert sampler.n_accepted == n_steps

    def test_tnt_mean_edges(self):
        space = DyadSpace(5)
        sampler = _sampler(
            space, TieNoTie(space, space.baseline()), [0.0],
            burnin=500, interval=5, samplesize=2000, seed=1,
        )
        result = sampler.run()
        assert abs(result.statistics[:, 0].mean() - 5.0) < 0.3

    def test_tnt_density_matches_theta(self):
        space = DyadSpace(5)
        theta = math.log(0.2 / 0.8)
        sampler = _sampler(
            space, TieNoTie(space, space.baseline()), [theta],
            burnin=500, interval=5, samplesize=2000, seed=2,
        )
        result = sampler.run()
        assert abs(result.statistics[:, 0].mean() - 2.0) < 0.3

    def test_hamming_tnt_uniform(self):
        space = DyadSpace(3)
        sampler = _sampler(
            space, HammingTNT(space, space.baseline()), [0.0],
            edges=[(0, 1)], seed=26,
        )
        freq = _visit_frequencies(sampler, 40_000)
        assert len(freq) == 8
        for f in freq.values():
            assert abs(f - 1 / 8) < 0.025

    def test_constrained_marginals(self):
        space = DyadSpace(5)
        free = space.dyad_map([(0, 1), (2, 3), (1, 4)])
        sampler = _sampler(
            space, RandomToggle(space, free), [0.0], edges=[(0, 2)],
            burnin=100, interval=3, samplesize=3000, seed=3,
        )
        result = sampler.run()
        # The fixed edge (0, 2) stays; the three free dyads average 1.5 edges.
        assert abs(result.statistics[:, 0].mean() - 2.5) < 0.2
        assert [0, 2] in result.edges.tolist()


class TestConstrainedStationarity:
    """At theta = 0 each constrained proposal is uniform on what it reaches."""

    def test_constant_edges(self):
        space = DyadSpace(4)
        sampler = _sampler(
            space, ConstantEdges(space, space.baseline()), [0.0],
            edges=[(0, 1), (2, 3)], seed=20,
        )
        freq = _visit_frequencies(sampler, 30_000)
        assert len(freq) == 15
        for f in freq.values():
            assert abs(f - 1 / 15) < 0.02

    def test_degree_swap_matchings(self):
        space = DyadSpace(4)
        sampler = _sampler(
            space, DegreeSwap(space, space.baseline()), [0.0],
            edges=[(0, 1), (2, 3)], seed=21,
        )
        freq = _visit_frequencies(sampler, 20_000)
        assert set(freq) == {
            ((0, 1), (2, 3)),
            ((0, 2), (1, 3)),
            ((0, 3), (1, 2)),
        }
        for f in freq.values():
            assert abs(f - 1 / 3) < 0.03

    def test_degree_swap_with_loop(self):
        space = DyadSpace(3, loops=True)
        sampler = _sampler(
            space, DegreeSwap(space, space.baseline()), [0.0],
            edges=[(0, 1), (2, 2)], seed=22,
        )
        freq = _visit_frequencies(sampler, 20_000)
        assert set(freq) == {((0, 1), (2, 2)), ((0, 2), (1, 2))}
        for f in freq.values():
            assert abs(f - 0.5) < 0.04

    def test_endpoint_rewire(self):
        space = DyadSpace(3, directed=True)
        sampler = _sampler(
            space, EndpointRewire(space, space.baseline(), keep="tail"), [0.0],
            edges=[(0, 1), (1, 2)], seed=23,
        )
        freq = _visit_frequencies(sampler, 20_000)
        assert set(freq) == {
            ((0, 1), (1, 0)),
            ((0, 1), (1, 2)),
            ((0, 2), (1, 0)),
            ((0, 2), (1, 2)),
        }
        for f in freq.values():
            assert abs(f - 0.25) < 0.03

    def test_degreedist_directed_loop(self):
        space = DyadSpace(2, directed=True, loops=True)
        sampler = _sampler(
            space, DegreeDistRewire(space, space.baseline(), mode="head"), [0.0],
            edges=[(0, 0)], seed=24,
        )
        freq = _visit_frequencies(sampler, 10_000)
        assert set(freq) == {((0, 0),), ((0, 1),)}
        for f in freq.values():
            assert abs(f - 0.5) < 0.04

    def test_degreedist_undirected_loops(self):
        # Degree multiset {1, 1, 2}: three loop-plus-edge networks and
        # three two-paths.
        space = DyadSpace(3, loops=True)
        sampler = _sampler(
            space, DegreeDistRewire(space, space.baseline()), [0.0],
            edges=[(0, 1), (1, 2)], seed=25,
        )
        freq = _visit_frequencies(sampler, 80_000)
        assert len(freq) == 6
        for f in freq.values():
            assert abs(f - 1 / 6) < 0.035


class TestRunningStatistics:
    """Incremental statistics match a from-scratch summary."""

    @pytest.mark.parametrize("method", [RandomToggle, TieNoTie, ConstantEdges, DegreeSwap])
    def test_final_row_matches_summary(self, method):
        space = DyadSpace(8)
        rng = np.random.default_rng(4)
        dyads = space.baseline().dyads()
        edges = dyads[rng.random(len(dyads)) < 0.3]
        terms = [("edges", None), ("triangle", None), ("twostar", None), ("isolates", None)]
        sampler = _sampler(
            space, method(space, space.baseline()), [-0.5, 0.2, -0.1, 0.3],
            terms=terms, edges=edges, burnin=50, interval=5, samplesize=40, seed=5,
        )
        result = sampler.run()
        model = build_model(space, terms)
        expected = model.summary(NetworkState(space, result.edges))
        np.testing.assert_allclose(result.statistics[-1], expected)

    def test_degree_swap_keeps_degrees(self):
        space = DyadSpace(8)
        edges = [(0, 1), (1, 2), (2, 3), (3, 4), (4, 5), (5, 6), (6, 7), (0, 7)]
        sampler = _sampler(
            space, DegreeSwap(space, space.baseline()), [0.0],
            edges=edges, burnin=200, samplesize=10,
        )
        result = sampler.run()
        final = NetworkState(space, result.edges)
        np.testing.assert_array_equal(final.degrees(), np.full(8, 2))
        assert result.n_accepted > 0


class TestChainControl:
    def test_schedule_and_phase(self):
        space = DyadSpace(4)
        sampler = _sampler(
            space, RandomToggle(space, space.baseline()), [0.0],
            burnin=7, interval=3, samplesize=5,
        )
        assert sampler.phase is ChainPhase.BURN_IN
        result = sampler.run()
        assert sampler.phase is ChainPhase.DONE
        assert result.statistics.shape == (5, 1)
        assert result.n_steps == 7 + 3 * 5
        assert result.term_names == ("edges",)
        assert not result.truncated

    def test_statistics_read_only(self):
        space = DyadSpace(4)
        result = _sampler(space, RandomToggle(space, space.baseline()), [0.0]).run()
        with pytest.raises(ValueError):
            result.statistics[0, 0] = 1.0

    def test_reproducible(self):
        space = DyadSpace(6)

        def run(seed):
            return _sampler(
                space, TieNoTie(space, space.baseline()), [-1.0],
                burnin=20, interval=2, samplesize=30, seed=seed,
            ).run()

        a, b = run(11), run(11)
        np.testing.assert_array_equal(a.statistics, b.statistics)
        np.testing.assert_array_equal(a.edges, b.edges)
        assert a.n_accepted == b.n_accepted
        assert not np.array_equal(a.statistics, run(12).statistics)

    def test_truncation(self):
        space = DyadSpace(10)
        sampler = _sampler(
            space, RandomToggle(space, space.baseline()), [5.0],
            burnin=0, interval=1, samplesize=50, max_edges=5,
        )
        result = sampler.run()
        assert result.truncated
        assert result.statistics.shape[0] < 50
        assert result.edges.shape[0] == 6
        assert sampler.phase is ChainPhase.DONE

    def test_no_free_dyads_all_self_transitions(self):
        space = DyadSpace(4)
        sampler = _sampler(
            space, RandomToggle(space, FreeDyadMap.empty(4)), [0.0],
            edges=[(0, 1)], burnin=5, interval=2, samplesize=4,
        )
        result = sampler.run()
        assert result.n_accepted == 0
        assert result.n_steps == 13
        assert result.acceptance_rate == 0.0
        np.testing.assert_array_equal(result.statistics, np.ones((4, 1)))

    def test_theta_shape_checked(self):
        space = DyadSpace(4)
        with pytest.raises(ValueError, match="theta"):
            _sampler(space, RandomToggle(space, space.baseline()), [0.0, 1.0])

    def test_free_map_mismatch_rejected(self):
        space = DyadSpace(4)
        free = space.dyad_map([(0, 1), (2, 3)])
        with pytest.raises(ValueError, match="free-dyad maps"):
            ConstrainedSampler(
                state=NetworkState(space, [(0, 2)]),
                model=build_model(space, [("edges", None)]),
                theta=np.zeros(1),
                proposal=TieNoTie(space, free),
                rng=np.random.default_rng(0),
            )

    def test_equal_free_maps_accepted(self):
        space = DyadSpace(4)
        sampler = ConstrainedSampler(
            state=NetworkState(space, free_dyads=space.baseline()),
            model=build_model(space, [("edges", None)]),
            theta=np.zeros(1),
            proposal=RandomToggle(space, space.baseline()),
            rng=np.random.default_rng(0),
        )
        assert sampler.step()

    def test_schedule_checked(self):
        space = DyadSpace(4)
        with pytest.raises(ValueError):
            _sampler(space, RandomToggle(space, space.baseline()), [0.0], interval=0)

    def test_verbose_progress_logged(self, caplog):
        space = DyadSpace(4)
        sampler = _sampler(
            space, RandomToggle(space, space.baseline()), [0.0],
            samplesize=2, verbose=True,
        )
        with caplog.at_level("INFO", logger="dyadsampler.mcmc.sampler"):
            sampler.run()
        assert "Sample 2/2" in caplog.text
