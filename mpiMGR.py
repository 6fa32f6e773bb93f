# Author      : Tyson Limato
# Date        : 2025-7-3
# File Name   : mpiMGR.py
import logging
import pickle
import sys
import time

from mpi4py import MPI

from pool_errors import WorkerStartupFailure
from pool_results import NOT_RUN

logger = logging.getLogger(__name__)

# message tags between the manager and its spawned ranks
TAG_WORK = 11
TAG_RESULT = 22

_POLL_SECONDS = 0.001


class MPIManager:
    """
    Spawns a group of worker ranks with `mpi4py` and hands them tasks.

    The manager runs in the calling process; workers are started with
    MPI.COMM_SELF.Spawn and talk back over the resulting intercommunicator,
    so no mpirun launch is needed and nothing lives past shutdown().

    Methods:
    --------
    spawn(fn, scheduling, fail_fast)
        Start the worker ranks and broadcast the task function to them.

    run_static(items, chunks)
        Scatter one pre-computed chunk to each rank and gather the replies.

    run_dynamic(items, fail_fast, cancel_event)
        Feed tasks one at a time to whichever rank reports back first.

    shutdown()
        Send stop signals (dynamic mode) and disconnect from the workers.
    """

    def __init__(self, worker_count: int):
        self.worker_count = worker_count
        # Intercommunicator to the spawned group (None until spawn())
        self.comm = None
        # Rank of the manager is always 0 in its own group
        self.rank = MPI.COMM_SELF.Get_rank()
        # Number of worker ranks actually spawned
        self.size = 0
        self.scheduling = None

    def spawn(self, fn, scheduling: str, fail_fast: bool):
        """
        Start ``worker_count`` ranks running ``mpi_worker``.

        Parameters:
        -----------
        fn : callable
            Task function, pickled and broadcast to every rank.
        scheduling : str
            "static" or "dynamic"; tells the workers which protocol to follow.
        fail_fast : bool
            Whether a rank should abandon the rest of its chunk after a failure.
        """
        try:
            self.comm = MPI.COMM_SELF.Spawn(
                sys.executable, args=["-m", "mpi_worker"], maxprocs=self.worker_count
            )
        except MPI.Exception as exc:
            raise WorkerStartupFailure(
                f"could not spawn {self.worker_count} MPI ranks: {exc}"
            ) from exc
        self.size = self.comm.Get_remote_size()
        self.scheduling = scheduling
        # the manager is the root of its side of the intercommunicator
        self.comm.bcast((fn, scheduling, fail_fast), root=MPI.ROOT)
        logger.debug("Spawned %d MPI ranks (%s)", self.size, scheduling)

    def run_static(self, items, chunks):
        """
        Scatter each rank its chunk, then gather every rank's replies.

        Returns:
        --------
        tuple : (values, errors, complete)
        """
        payload = [[(i, items[i]) for i in chunk] for chunk in chunks]
        # Scatter data to all ranks
        self.comm.scatter(payload, root=MPI.ROOT)
        # Gather one list of records per rank
        replies = self.comm.gather(None, root=MPI.ROOT)

        values = [NOT_RUN] * len(items)
        errors = {}
        for records in replies:
            _absorb(records, values, errors)
        # a rank that bailed out early (fail_fast) leaves NOT_RUN gaps; those
        # runs raise TaskFailure upstream, so the set still counts as complete
        return values, errors, True

    def run_dynamic(self, items, fail_fast: bool, cancel_event):
        """
        Master loop: seed every rank with one task, then hand the next task
        to whichever rank returns a result first.

        Returns:
        --------
        tuple : (values, errors, complete)
        """
        values = [NOT_RUN] * len(items)
        errors = {}
        index = 0
        in_flight = 0
        stopping = False

        # Send initial data to workers
        for dest in range(self.size):
            if index < len(items):
                self.comm.send([(index, items[index])], dest=dest, tag=TAG_WORK)
                index += 1
                in_flight += 1

        # Receive results and send more work
        status = MPI.Status()
        while in_flight:
            while not self.comm.Iprobe(source=MPI.ANY_SOURCE, tag=TAG_RESULT, status=status):
                time.sleep(_POLL_SECONDS)
            source = status.Get_source()
            records = self.comm.recv(source=source, tag=TAG_RESULT)
            in_flight -= 1
            _absorb(records, values, errors)

            if errors and fail_fast:
                stopping = True
            if cancel_event.is_set() and not stopping:
                logger.warning("Cancelled; waiting on %d in-flight MPI tasks", in_flight)
                stopping = True
            if not stopping and index < len(items):
                self.comm.send([(index, items[index])], dest=source, tag=TAG_WORK)
                index += 1
                in_flight += 1

        complete = index == len(items) or bool(errors and fail_fast)
        return values, errors, complete

    def shutdown(self):
        """Stop every rank and release the intercommunicator."""

        if self.comm is None:
            return
        if self.scheduling == "dynamic":
            for dest in range(self.size):
                self.comm.send(None, dest=dest, tag=TAG_WORK)  # Stop signal
        self.comm.Disconnect()
        self.comm = None
        logger.debug("Disconnected from %d MPI ranks", self.size)


def _absorb(records, values, errors):
    for index, ok, payload in records:
        if ok:
            values[index] = pickle.loads(payload)
        else:
            errors[index] = payload
            values[index] = payload
