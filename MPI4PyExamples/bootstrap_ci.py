# Author      : Tyson Limato
# Date        : 2025-7-6
# File Name   : bootstrap_ci.py
# Bootstrap the mean of a synthetic sample, one replicate per task.
import argparse

from workerpool import default_worker_count, run
from workloads import BootstrapMean, percentile_interval, synthetic_sample

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('--backend', choices=["thread", "process", "mpi"], default="process")
    parser.add_argument('--replicates', type=int, default=1000)
    args = parser.parse_args()

    # Example data on the controlling process; each worker gets its own copy
    sample = synthetic_sample(n=2000)
    replicate = BootstrapMean(sample)

    # One seed per replicate keeps the run reproducible under any schedule
    means = run(range(args.replicates), replicate, default_worker_count(),
                scheduling="static", backend=args.backend).unwrap()

    low, high = percentile_interval(means)
    print(f"Sample mean = {sample.mean():.3f}, 95% bootstrap CI = [{low:.3f}, {high:.3f}]")
