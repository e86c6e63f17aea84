"""
Command-line entry point.

    python -m nipower run config.json --out power.csv
    python -m nipower randomize --seed 42 --out randomization.csv

Exit codes for ``run``: 0 complete, 1 partial (failed replicates or an
exhausted budget), 2 every replicate failed, 3 invalid configuration.
"""

import argparse
import sys
from typing import List, Optional

EXIT_COMPLETE = 0
EXIT_PARTIAL = 1
EXIT_FAILED = 2
EXIT_INVALID = 3

_STATUS_EXIT = {"complete": EXIT_COMPLETE, "partial": EXIT_PARTIAL, "failed": EXIT_FAILED}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nipower", description="Monte Carlo power analysis for non-inferiority trials")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the power simulation")
    run.add_argument("config", nargs="?", help="JSON configuration file (defaults to the preregistered design)")
    run.add_argument("--out", help="CSV path for the power report")
    run.add_argument("--replicates-out", help="CSV path for per-replicate results")
    run.add_argument("--n-simulations", type=int, help="Override the number of replicates")
    run.add_argument("--seed", type=int, help="Override the base seed")
    run.add_argument("--draws", type=int, help="Post-warmup draws per chain")
    run.add_argument("--tune", type=int, help="Warmup iterations per chain")
    run.add_argument("--chains", type=int, help="Chains per fit")
    run.add_argument("--sampler", choices=["nutpie", "numpyro", "pymc"], help="NUTS implementation")
    run.add_argument("--parallel", type=int, metavar="N_CORES", help="Run replicates on N worker processes")
    run.add_argument("--time-budget", type=float, metavar="SECONDS", help="Stop dispatching after this long")
    run.add_argument("--summary", choices=["short", "long"], default="long")
    run.add_argument("--plot", action="store_true", help="Show the probability histogram")

    rand = sub.add_parser("randomize", help="Write a stratified block randomization list")
    rand.add_argument("--n", type=int, default=90, help="Participants per stratum")
    rand.add_argument("--block-size", type=int, default=3)
    rand.add_argument("--seed", type=int, default=42)
    rand.add_argument("--out", default="randomization.csv")
    return parser


def _run(args) -> int:
    from .errors import InvalidConfig
    from .model import NIPower

    try:
        model = NIPower.from_config(args.config) if args.config else NIPower()
        if args.n_simulations is not None:
            model.set_simulations(args.n_simulations)
        if args.seed is not None:
            model.set_seed(args.seed)
        overrides = {k: getattr(args, k) for k in ("draws", "tune", "chains") if getattr(args, k) is not None}
        if args.sampler:
            overrides["nuts_sampler"] = args.sampler
        if overrides:
            model.set_sampler_settings(**overrides)
        if args.parallel:
            model.set_parallel(True, args.parallel)
        if args.time_budget is not None:
            model.set_time_budget(args.time_budget)
        model.apply()
    except (InvalidConfig, OSError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_INVALID

    result = model.find_power(print_results=True, summary=args.summary, return_results=True, verbose=True, plot=args.plot)

    if args.out:
        from .core import write_power_report

        write_power_report(result, args.out, args.replicates_out)
    elif args.replicates_out:
        from .core import replicate_table

        replicate_table(result).to_csv(args.replicates_out, index=False)

    return _STATUS_EXIT[result["results"]["status"]]


def _randomize(args) -> int:
    from .errors import InvalidConfig
    from .randomization import stratified_block_randomize, write_randomization

    try:
        allocation = stratified_block_randomize(
            {"Low": (args.n, "L"), "High": (args.n, "H")}, block_size=args.block_size, seed=args.seed
        )
    except InvalidConfig as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_INVALID

    write_randomization(allocation, args.out)
    print(allocation.groupby(["stratum", "treatment"]).size().to_string())
    print(f"Wrote {len(allocation)} assignments to {args.out}")
    return EXIT_COMPLETE


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "run":
        return _run(args)
    return _randomize(args)


if __name__ == "__main__":
    sys.exit(main())
