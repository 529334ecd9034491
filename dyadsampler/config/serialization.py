"""JSON serialization and deserialization for run configs.

Config files may write a term or a constraint without fields as a bare
name, e.g. ``"constraints": ["edges", {"kind": "blockdiag", "attr": [...]}]``.
Dyad lists (initial edges, fixedas present/absent, fixallbut and observed
dyads) must hold [tail, head] pairs of node indices.
"""

import json
import re
from dataclasses import asdict
from typing import Any

from dacite import from_dict, Config as DaciteConfig

from dyadsampler.config.run import RunConfig

_PAIR_FIELDS = ("present", "absent", "dyads")

# Multi-line arrays of numbers only, e.g. one edge or theta. JSON strings
# never hold a raw newline, so string contents are never matched.
_FLAT_ARRAY = re.compile(r"\[(\n[-+0-9.eE,\s]*)\]")


def _inline(match: re.Match) -> str:
    items = [item.strip() for item in match.group(1).split(",") if item.strip()]
    return "[" + ", ".join(items) + "]"


def config_to_json(config: RunConfig) -> str:
    """Serialize a RunConfig to a JSON string.

    Uses sorted keys and 2-space indent. Numeric arrays stay on one line,
    so an edge list reads one [tail, head] pair per line.
    """
    text = json.dumps(asdict(config), indent=2, sort_keys=True)
    return _FLAT_ARRAY.sub(_inline, text)


def config_from_json(json_str: str) -> RunConfig:
    """Deserialize a JSON string to a RunConfig.

    Uses dacite with strict=True to reject unknown keys and cast=[tuple] to
    convert JSON arrays back to tuples for edge lists, attributes and terms.
    """
    return config_from_dict(json.loads(json_str))


def config_to_dict(config: RunConfig) -> dict[str, Any]:
    """Convert a RunConfig to a plain dictionary."""
    return asdict(config)


def _check_pairs(pairs: Any, where: str) -> None:
    if pairs is None:
        return
    if not isinstance(pairs, (list, tuple)):
        raise ValueError(f"{where}: expected a list of [tail, head] pairs")
    for k, pair in enumerate(pairs):
        if (
            not isinstance(pair, (list, tuple))
            or len(pair) != 2
            or not all(isinstance(v, int) and not isinstance(v, bool) for v in pair)
        ):
            raise ValueError(
                f"{where}[{k}]: expected a [tail, head] pair of node indices, "
                f"got {pair!r}"
            )


def _expand_terms(terms: Any) -> Any:
    if not isinstance(terms, (list, tuple)):
        return terms
    return [{"name": t} if isinstance(t, str) else t for t in terms]


def _normalize(d: dict[str, Any]) -> dict[str, Any]:
    """Expand bare names and check every dyad list. Does not modify `d`."""
    d = dict(d)
    network = d.get("network")
    if isinstance(network, dict):
        _check_pairs(network.get("edges"), "network.edges")

    model = d.get("model")
    if isinstance(model, dict) and "terms" in model:
        d["model"] = {**model, "terms": _expand_terms(model["terms"])}

    constraints = d.get("constraints")
    if isinstance(constraints, (list, tuple)):
        expanded = []
        for k, c in enumerate(constraints):
            if isinstance(c, str):
                c = {"kind": c}
            elif isinstance(c, dict):
                c = dict(c)
                for name in _PAIR_FIELDS:
                    _check_pairs(c.get(name), f"constraints[{k}].{name}")
                for name in ("fix", "vary"):
                    if name in c:
                        c[name] = _expand_terms(c[name])
            expanded.append(c)
        d["constraints"] = expanded
    return d


def config_from_dict(d: dict[str, Any]) -> RunConfig:
    """Reconstruct a RunConfig from a plain dictionary.

    Raises:
        ValueError: If a dyad list holds anything but [tail, head] pairs,
            or RunConfig validation fails.
        dacite.DaciteError: Unknown keys or wrong field types.
    """
    return from_dict(
        data_class=RunConfig,
        data=_normalize(d),
        config=DaciteConfig(
            cast=[tuple],
            check_types=True,
            strict=True,
        ),
    )
