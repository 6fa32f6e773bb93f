# Author      : Tyson Limato
# Date        : 2025-7-6
# File Name   : parallel_for_basic.py
# Run with: python MPI4PyExamples/parallel_for_basic.py [--backend mpi]
import argparse

from pool_schedule import partition
from workerpool import run
from workloads import sqrt

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('--backend', choices=["thread", "process", "mpi"], default="process")
    args = parser.parse_args()

    # Work: Iterate over this list in parallel
    work = [1, 4, 9, 16]

    # Divide work among 2 workers (static partitioning)
    for worker, chunk in enumerate(partition(len(work), 2)):
        print(f"Worker {worker} handling: {[work[i] for i in chunk]}")

    results = run(work, sqrt, worker_count=2, scheduling="static", backend=args.backend)
    print("Results:", results.unwrap())

# Test Run
'''
$ python MPI4PyExamples/parallel_for_basic.py
Worker 0 handling: [1, 4]
Worker 1 handling: [9, 16]
Results: [1.0, 2.0, 3.0, 4.0]
'''
