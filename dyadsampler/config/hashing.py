"""Deterministic config hashing using SHA-256 over sorted JSON."""

import hashlib
import json
from dataclasses import asdict
from typing import Any, Iterable

from dyadsampler.config.run import RunConfig


def _digest(data: Any) -> str:
    serialized = json.dumps(
        data,
        sort_keys=True,
        ensure_ascii=True,
        separators=(",", ":"),
        indent=None,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:16]


def _dyad_set(pairs: Iterable[tuple[int, int]] | None, directed: bool) -> list | None:
    """Sorted distinct dyads, undirected ones as (min, max)."""
    if pairs is None:
        return None
    if directed:
        return sorted({(i, j) for i, j in pairs})
    return sorted({(min(i, j), max(i, j)) for i, j in pairs})


def config_hash(config: Any) -> str:
    """Deterministic SHA-256 hash of a config object.

    Args:
        config: Any dataclass instance (or sub-config).

    Returns:
        First 16 hex characters of the SHA-256 hash.
    """
    return _digest(asdict(config))


def setup_config_hash(config: RunConfig) -> str:
    """Hash of the constrained dyad space: network, constraints and degree bounds.

    Runs that differ only in model, chain schedule or seed share a setup
    hash, so they sample from the same free-dyad set under the same bounds.
    Dyad lists are compared as sets, so edge order, repeated edges and the
    orientation of undirected edges do not change the hash.
    """
    net = config.network
    network = {**asdict(net), "edges": _dyad_set(net.edges, net.directed)}
    constraints = []
    for c in config.constraints:
        entry = asdict(c)
        for name in ("present", "absent", "dyads"):
            entry[name] = _dyad_set(getattr(c, name), net.directed)
        constraints.append(entry)
    return _digest(
        {
            "network": network,
            "constraints": constraints,
            "degree_bound": asdict(config.degree_bound),
        }
    )


def full_config_hash(config: RunConfig) -> str:
    """Hash for full run identity, seed and edge order included.

    Edge order decides which free edge a draw picks, so two runs that list
    the same edges differently can sample differently.
    """
    return config_hash(config)
