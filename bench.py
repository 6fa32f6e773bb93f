# ------------------------------------------------------------
# Author      : Tyson Limato
# Date        : 2025-7-5
# File Name   : bench.py
# Description : Times a workload serially, with static scheduling and
#               with dynamic scheduling, and prints the speedup of each
#               parallel run over the serial one. The "skewed" workload
#               (task i costs i units) is where static chunks fall out
#               of balance and dynamic scheduling catches up.
#
# Usage       : pool-bench --workload skewed --tasks 64 --workers 4 \
#                          --scheduling both --backend process
#               python bench.py --workload bootstrap --tasks 2000
#               python bench.py --workload fail --fail-at 42 --on-error collect
#
# Notes:
#   - Flags override POOL_* environment variables, which override .env.
#   - Without --scheduling, POOL_SCHEDULING picks one policy; unset, both run.
#   - The serial baseline is a one-worker thread run of the same tasks.
# ------------------------------------------------------------
import argparse
import logging
import os
import sys
from functools import partial

from pool_config import PoolConfig, load_env_file
from pool_errors import PoolError, TaskFailure
from workerpool import WorkerPool
from workloads import BootstrapMean, FailOn, percentile_interval, skewed_cost, sqrt, synthetic_sample

WORKLOADS = ("sqrt", "skewed", "bootstrap", "fail")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pool-bench",
        description="Compare static and dynamic scheduling on a sample workload.",
    )
    parser.add_argument('--workload', '-w', choices=WORKLOADS, default="skewed")
    parser.add_argument('--tasks', '-n', type=int, default=48)
    parser.add_argument('--workers', '-k', type=int, default=None)
    parser.add_argument('--scheduling', choices=["static", "dynamic", "both"], default=None,
                        help="default: POOL_SCHEDULING if set, else both")
    parser.add_argument('--layout', choices=["contiguous", "round_robin"], default=None)
    parser.add_argument('--backend', choices=["thread", "process", "mpi"], default=None)
    parser.add_argument('--on-error', choices=["fail_fast", "collect"], default=None)
    parser.add_argument('--fail-at', type=int, default=None,
                        help="input that raises under --workload fail (default: tasks // 2)")
    parser.add_argument('--unit', type=float, default=0.002,
                        help="seconds per unit of cost for --workload skewed")
    parser.add_argument('--no-serial', action='store_true', help="skip the serial baseline")
    parser.add_argument('--log-level', default=None)
    return parser


def make_workload(args):
    """Return (inputs, fn) for the chosen workload."""

    match args.workload:
        case "sqrt":
            return list(range(1, args.tasks + 1)), sqrt
        case "skewed":
            return list(range(args.tasks)), partial(skewed_cost, unit=args.unit)
        case "bootstrap":
            # one integer seed per replicate
            return list(range(args.tasks)), BootstrapMean(synthetic_sample())
        case "fail":
            bad = args.tasks // 2 if args.fail_at is None else args.fail_at
            return list(range(args.tasks)), FailOn({bad})
    raise ValueError(f"unknown workload {args.workload!r}")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.tasks < 0:
        parser.error("--tasks must be >= 0")

    load_env_file()
    # "both" is a bench-only choice; a single policy goes through the config
    both = args.scheduling == "both" or (args.scheduling is None
                                         and "POOL_SCHEDULING" not in os.environ)
    try:
        config = PoolConfig.from_env(worker_count=args.workers, layout=args.layout,
                                     backend=args.backend, on_error=args.on_error,
                                     log_level=args.log_level,
                                     scheduling=None if both else args.scheduling)
    except PoolError as exc:
        parser.error(str(exc))
    logging.basicConfig(level=config.log_level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    inputs, fn = make_workload(args)
    modes = ["static", "dynamic"] if both else [config.scheduling]
    print(f"{args.workload}: {len(inputs)} tasks, {config.worker_count} {config.backend} workers")

    serial = None
    if not args.no_serial:
        baseline = WorkerPool(1, "static", on_error="collect", backend="thread")
        baseline.run(inputs, fn)
        serial = baseline.stats["elapsed"]
        print(f"{'serial':<8} {serial:8.3f}s")

    for mode in modes:
        config.scheduling = mode
        pool = config.make_pool()
        try:
            results = pool.run(inputs, fn)
        except TaskFailure as exc:
            print(f"{mode:<8} failed: {exc}")
            return 1

        elapsed = pool.stats["elapsed"]
        line = f"{mode:<8} {elapsed:8.3f}s"
        if serial and elapsed:
            line += f"  speedup x{serial / elapsed:.2f}"
        if results.failed:
            line += f"  ({len(results.failed)} failed at {results.failed[:5]})"
        print(line)

        if args.workload == "bootstrap" and len(results) and not results.failed:
            low, high = percentile_interval(results.unwrap())
            print(f"{'':<8} 95% CI for the mean: [{low:.3f}, {high:.3f}]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
