#!/usr/bin/env python3
"""Entry point for running constrained dyad-sampling chains.

Chains the setup stages into a single executable command:
config -> constraint resolution -> sampling -> summary.

Usage:
    python run_sampler.py --config run.json
    python run_sampler.py --config run.json --dry-run
    python run_sampler.py --config run.json --chains 4 --jobs 4 --verbose
"""

import argparse
import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import numpy as np

from dyadsampler.config import (
    RunConfig,
    config_from_json,
    full_config_hash,
    setup_config_hash,
)

log = logging.getLogger(__name__)


@contextmanager
def stage_timer(name: str) -> Generator[None, None, None]:
    """Context manager that prints stage banners with elapsed time."""
    print(f"\n=== {name} ===")
    log.info("Starting: %s", name)
    t0 = time.monotonic()
    yield
    elapsed = time.monotonic() - t0
    print(f"... done in {elapsed:.1f}s")
    log.info("Completed: %s in %.1fs", name, elapsed)


def run_pipeline(
    config: RunConfig, n_chains: int = 1, n_jobs: int = 1, verbose: bool = False
) -> None:
    """Set up, sample and summarise one or more chains."""
    # Lazy imports to keep --dry-run fast
    from dyadsampler.mcmc import prepare_chain, run_chains, run_sampler

    pipeline_start = time.monotonic()

    with stage_timer("Constraint Resolution"):
        setup = prepare_chain(config)
        print(f"Space:     {setup.space.describe()}")
        print(
            f"Free:      {setup.constraints.free_dyads.count()} of "
            f"{setup.space.dyad_count} dyads "
            f"({setup.constraints.free_dyads.n_runs} runs)"
        )
        print(f"Flags:     {sorted(setup.constraints.flags) or '-'}")
        print(f"Proposal:  {setup.proposal.name}")

    with stage_timer("Sampling"):
        if n_chains == 1:
            results = [run_sampler(config, verbose=verbose, setup=setup)]
        else:
            results = run_chains(config, n_chains, n_jobs=n_jobs, verbose=verbose)

    total_elapsed = time.monotonic() - pipeline_start
    names = setup.model.names
    print(f"\n{'=' * 60}")
    print(f"Sampling complete in {total_elapsed:.1f}s")
    for k, result in enumerate(results):
        rows = result.statistics
        means = rows.mean(axis=0) if rows.shape[0] else np.full(len(names), np.nan)
        print(
            f"  Chain {k}: {rows.shape[0]} samples, "
            f"acceptance {result.acceptance_rate:.3f}, "
            f"final edges {result.edges.shape[0]}"
            + (" [truncated]" if result.truncated else "")
        )
        for name, mean in zip(names, means):
            print(f"    mean {name:<12s} {mean:.3f}")
    print(f"{'=' * 60}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Sample networks under dyad and degree constraints"
    )
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to run config JSON file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the run plan without sampling",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable DEBUG-level logging and per-sample progress",
    )
    parser.add_argument(
        "--chains",
        type=int,
        default=1,
        help="Number of independent chains",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Parallel jobs for multiple chains (-1 for all cores)",
    )
    args = parser.parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)
    if args.chains < 1:
        print(f"Error: --chains must be >= 1, got {args.chains}", file=sys.stderr)
        sys.exit(1)

    try:
        config = config_from_json(config_path.read_text())
    except Exception:
        log.exception("Invalid config %s", config_path)
        sys.exit(1)

    net, chain = config.network, config.chain
    print(f"Config hash: {full_config_hash(config)}")
    print(f"Setup hash:  {setup_config_hash(config)}")
    print()
    print(
        f"Network:  n={net.n}, directed={net.directed}, "
        f"bipartite={net.bipartite}, loops={net.loops}, edges={len(net.edges)}"
    )
    print(
        f"Model:    terms={[t.name for t in config.model.terms]}, "
        f"theta={list(config.model.theta)}"
    )
    print(f"Constraints: {[c.kind for c in config.constraints] or '-'}")
    print(
        f"Chain:    proposal={chain.proposal}, burnin={chain.burnin}, "
        f"interval={chain.interval}, samplesize={chain.samplesize}, "
        f"max_edges={chain.max_edges}"
    )
    print(f"Seed:     {config.seed}")

    if args.dry_run:
        print(f"\nRun plan:")
        print(f"  1. Resolve {len(config.constraints)} constraints and degree bounds")
        print(f"  2. Burn-in: {chain.burnin} steps")
        print(
            f"  3. Sampling: {chain.samplesize} samples every "
            f"{chain.interval} steps"
        )
        print(f"  4. Chains: {args.chains} on {args.jobs} jobs")
        print(f"\n[dry-run] Config loaded successfully. Exiting.")
        return

    try:
        run_pipeline(config, args.chains, args.jobs, args.verbose)
    except Exception:
        log.exception("Sampling failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
