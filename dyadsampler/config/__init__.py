"""Run configuration system with frozen, hashable, serializable dataclasses."""

from dyadsampler.config.run import (
    ChainConfig,
    ConstraintConfig,
    DegreeBoundConfig,
    ModelConfig,
    NetworkConfig,
    RunConfig,
    TermConfig,
)
from dyadsampler.config.defaults import DEFAULT_CONFIG
from dyadsampler.config.hashing import config_hash, full_config_hash, setup_config_hash
from dyadsampler.config.serialization import (
    config_from_dict,
    config_from_json,
    config_to_dict,
    config_to_json,
)

__all__ = [
    "ChainConfig",
    "ConstraintConfig",
    "DegreeBoundConfig",
    "ModelConfig",
    "NetworkConfig",
    "RunConfig",
    "TermConfig",
    "DEFAULT_CONFIG",
    "config_hash",
    "setup_config_hash",
    "full_config_hash",
    "config_to_json",
    "config_from_json",
    "config_to_dict",
    "config_from_dict",
]
