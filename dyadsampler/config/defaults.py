"""Default run configuration: single source of truth for default parameters."""

from dyadsampler.config.run import RunConfig

# n=20 undirected nodes, empty initial network, edges-only model at theta=0,
# TNT proposal, burnin=1000, interval=10, samplesize=100, seed=42.
DEFAULT_CONFIG = RunConfig()
