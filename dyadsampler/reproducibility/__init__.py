"""Reproducibility infrastructure: per-chain random generators."""

from dyadsampler.reproducibility.seed import make_rng, spawn_seeds, verify_seed_determinism

__all__ = [
    "make_rng",
    "spawn_seeds",
    "verify_seed_determinism",
]
