"""Centralized seed management for reproducible chains.

Every chain draws from its own numpy Generator. Nothing touches the legacy
global RNG, so chains run in worker processes stay independent of each
other and of the calling process.
"""

import numpy as np


def make_rng(seed: int | np.random.SeedSequence) -> np.random.Generator:
    """Create a PCG64 Generator from a master seed or a spawned SeedSequence.

    Args:
        seed: Master seed value (e.g., 42) or a child of spawn_seeds().
    """
    return np.random.default_rng(seed)


def spawn_seeds(seed: int, n: int) -> list[np.random.SeedSequence]:
    """Derive n statistically independent child seeds from one master seed.

    The same (seed, n) always yields the same children, so a set of
    parallel chains is reproducible regardless of how the work is split
    across processes.
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    return np.random.SeedSequence(seed).spawn(n)


def verify_seed_determinism(seed: int) -> bool:
    """Verify that re-creating a Generator reproduces its sequence.

    Draws 10 floats and 10 integers from make_rng(seed) twice, and checks
    that two spawned children of the same seed also agree across calls.
    This is the self-test that proves seed control works.

    Args:
        seed: Seed value to test.

    Returns:
        True if every re-seeded source produces identical sequences.
    """
    rng = make_rng(seed)
    a1 = rng.random(10).tolist() + rng.integers(0, 1000, 10).tolist()
    rng = make_rng(seed)
    a2 = rng.random(10).tolist() + rng.integers(0, 1000, 10).tolist()

    c1 = [make_rng(s).random() for s in spawn_seeds(seed, 2)]
    c2 = [make_rng(s).random() for s in spawn_seeds(seed, 2)]

    return a1 == a2 and c1 == c2
