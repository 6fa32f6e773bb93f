# Author      : Tyson Limato
# Date        : 2025-7-6
# File Name   : dynamic_work_assignment.py
# Run with: python MPI4PyExamples/dynamic_work_assignment.py [--backend mpi]
import argparse
from functools import partial

from workerpool import WorkerPool
from workloads import skewed_cost

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('--backend', choices=["thread", "process", "mpi"], default="process")
    parser.add_argument('--workers', type=int, default=4)
    args = parser.parse_args()

    # Task i sleeps i * 5ms, so the last contiguous chunk is by far the most expensive
    data = list(range(40))
    compute = partial(skewed_cost, unit=0.005)

    for policy in ("static", "dynamic"):
        pool = WorkerPool(args.workers, policy, backend=args.backend)
        results = pool.run(data, compute)
        print(f"{policy:<8} {pool.stats['elapsed']:.2f}s  in order: {results.unwrap() == data}")
