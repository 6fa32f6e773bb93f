# Author      : Tyson Limato
# Date        : 2025-7-3
# File Name   : mpi_worker.py
# Started by MPIManager.spawn() as "python -m mpi_worker"; not meant to be run by hand.
import pickle

from mpi4py import MPI

from mpiMGR import TAG_RESULT, TAG_WORK
from pool_results import capture_error


def run_tasks(fn, tasks, fail_fast):
    """Run a batch of (index, item) pairs and return (index, ok, payload) records."""

    records = []
    for index, item in tasks:
        try:
            records.append((index, True, pickle.dumps(fn(item))))
        except Exception as exc:
            records.append((index, False, capture_error(index, exc)))
            if fail_fast:
                break
    return records


def main():
    parent = MPI.Comm.Get_parent()
    fn, scheduling, fail_fast = parent.bcast(None, root=0)

    if scheduling == "static":
        # one chunk in, one list of records out
        chunk = parent.scatter(None, root=0)
        parent.gather(run_tasks(fn, chunk, fail_fast), root=0)
    else:
        while True:
            task = parent.recv(source=0, tag=TAG_WORK)
            if task is None:
                break
            parent.send(run_tasks(fn, task, fail_fast), dest=0, tag=TAG_RESULT)

    parent.Disconnect()


if __name__ == "__main__":
    main()
