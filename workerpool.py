# ------------------------------------------------------------
# Author      : Tyson Limato
# Date        : 2025-7-3
# File Name   : workerpool.py
# Description : Parallel map over independent tasks with a choice of
#               load-balancing policy. Static scheduling splits the
#               inputs into one chunk per worker before anything runs;
#               dynamic scheduling keeps a shared queue of task indices
#               that idle workers pull from. Results always come back in
#               input order.
#
# Usage       : from workerpool import run
#               run([1, 4, 9, 16], math.sqrt, worker_count=2,
#                   scheduling="static").unwrap()  ->  [1.0, 2.0, 3.0, 4.0]
#
# Notes:
#   - Execution units are threads, spawned processes or MPI ranks.
#   - Inputs travel to workers through queues or MPI messages; nothing
#     relies on fork copy-on-write.
#   - fn must be free of shared-state side effects. For the process and
#     MPI backends it must also be importable (module-level).
# ------------------------------------------------------------
import logging
import multiprocessing as mp
import os
import pickle
import queue
import threading
import time
from typing import Any, Callable, Iterable, Optional

from pool_errors import InvalidConfiguration, TaskFailure, WorkerCrashed, WorkerStartupFailure
from pool_results import NOT_RUN, ResultSet, capture_error
from pool_schedule import Layout, OnError, Scheduling, check_worker_count, coerce, partition

logger = logging.getLogger(__name__)

BACKENDS = ("thread", "process", "mpi")

# seconds between checks for cancellation / dead workers while waiting on results
_POLL_SECONDS = 0.05
_JOIN_SECONDS = 5.0


# ------------------ Capability Query ------------------
def available_parallelism() -> int:
    """Number of CPUs this process is allowed to run on (always >= 1)."""

    if hasattr(os, "sched_getaffinity"):
        return max(1, len(os.sched_getaffinity(0)))
    return max(1, os.cpu_count() or 1)


def default_worker_count() -> int:
    """Leave one unit of headroom for the controlling process."""

    return max(1, available_parallelism() - 1)


# ------------------ Worker Loop ------------------
def _worker_loop(worker_id, fn, task_queue, result_queue, stop_event, encode):
    """
    Body of every thread/process worker.

    Pulls (index, item) pairs from ``task_queue`` until it sees the None
    sentinel or ``stop_event`` is set, and reports one message per task plus a
    final (worker_id, None, True, count) message when it leaves.
    """
    processed = 0
    try:
        while not stop_event.is_set():
            task = task_queue.get()
            if task is None:
                break
            index, item = task
            try:
                value = fn(item)
                if encode is not None:
                    # pickle here so an unpicklable result fails this task only
                    value = encode(value)
                message = (worker_id, index, True, value)
            except Exception as exc:
                message = (worker_id, index, False, capture_error(index, exc))
            result_queue.put(message)
            # drop the reference now rather than when the next task rebinds it
            message = value = None
            processed += 1
    finally:
        result_queue.put((worker_id, None, True, processed))


# ------------------ Execution Units ------------------
class _ThreadUnits:
    """Threads sharing the caller's interpreter."""

    kind = "thread"
    encode = None

    def queue(self):
        return queue.Queue()

    def event(self):
        return threading.Event()

    def start(self, worker_id, args):
        unit = threading.Thread(target=_worker_loop, args=args,
                                name=f"pool-thread-{worker_id}", daemon=True)
        unit.start()
        return unit

    def decode(self, payload):
        return payload

    def shutdown(self, units, force):
        # threads can't be killed; they leave after the task they are on
        for unit in units:
            unit.join()

    def drainable(self, force):
        return True

    def release(self, queues):
        pass


class _ProcessUnits:
    """Fresh interpreters started with the "spawn" method (no inherited memory)."""

    kind = "process"
    encode = staticmethod(pickle.dumps)

    def __init__(self):
        self.ctx = mp.get_context("spawn")

    def queue(self):
        return self.ctx.Queue()

    def event(self):
        return self.ctx.Event()

    def start(self, worker_id, args):
        unit = self.ctx.Process(target=_worker_loop, args=args,
                                name=f"pool-process-{worker_id}", daemon=True)
        unit.start()
        return unit

    def decode(self, payload):
        return pickle.loads(payload)

    def shutdown(self, units, force):
        if force:
            for unit in units:
                if unit.is_alive():
                    unit.terminate()
        for unit in units:
            unit.join(_JOIN_SECONDS)
            if unit.is_alive():
                logger.warning("Worker %s did not exit, terminating", unit.name)
                unit.terminate()
                unit.join()

    def drainable(self, force):
        # a terminated writer can leave half a message in the pipe
        return not force

    def release(self, queues):
        for q in queues:
            q.cancel_join_thread()
            q.close()


# ------------------ Worker Pool ------------------
class WorkerPool:
    """
    A handle that maps a pure function over independent inputs in parallel.

    Each call to ``run`` starts its execution units, dispatches the tasks
    and tears every unit down again before returning (or raising), so a pool
    holds no workers between calls.

    Parameters:
    -----------
    worker_count : int
        Number of execution units (>= 1). Defaults to default_worker_count().
        Values above available_parallelism() are accepted (oversubscription).
    scheduling : {"static", "dynamic"}
        static  -- inputs are partitioned before execution; lowest overhead.
        dynamic -- idle workers claim the next index; balances uneven costs.
    layout : {"contiguous", "round_robin"}
        Shape of the static partition. Ignored under dynamic scheduling.
    on_error : {"fail_fast", "collect"}
        fail_fast -- stop on the first failing task and raise TaskFailure.
        collect   -- run everything; failed positions hold a TaskError.
    backend : {"thread", "process", "mpi"}
        Kind of execution unit.

    Attributes:
    -----------
    stats : dict
        processed / succeeded / failed / workers / elapsed for the last run.

    Methods:
    --------
    run(inputs, fn)   -- Dispatch and return a ResultSet.
    cancel()          -- Stop the run in progress (safe from another thread).
    """

    def __init__(self, worker_count: Optional[int] = None, scheduling="static",
                 layout="contiguous", on_error="fail_fast", backend="process"):
        self.worker_count = check_worker_count(
            default_worker_count() if worker_count is None else worker_count
        )
        self.scheduling = coerce(Scheduling, scheduling, "scheduling policy")
        self.layout = coerce(Layout, layout, "layout")
        self.on_error = coerce(OnError, on_error, "error policy")
        if backend not in BACKENDS:
            raise InvalidConfiguration(
                f"unrecognized backend {backend!r}; expected one of: {', '.join(BACKENDS)}"
            )
        self.backend = backend

        self._cancel = threading.Event()
        self._run_lock = threading.Lock()
        self.stats = {"processed": 0, "succeeded": 0, "failed": 0,
                      "workers": 0, "elapsed": 0.0}

    def __repr__(self):
        return (f"WorkerPool(worker_count={self.worker_count}, "
                f"scheduling={self.scheduling.value!r}, backend={self.backend!r})")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()
        return False

    def cancel(self):
        """
        Stop dispatching and return a partial ResultSet from the current run.

        Process workers are terminated. Thread workers can't be killed, so
        they are waited for and the task each one was on still reports. A
        static MPI run can't be interrupted once its chunks are scattered.
        Only the run in progress is affected: ``run`` clears the flag when it
        starts, so a cancel() issued between runs is forgotten.
        """

        self._cancel.set()

    def run(self, inputs: Iterable[Any], fn: Callable[[Any], Any]) -> ResultSet:
        """
        Apply ``fn`` to every input using this pool's policy.

        Parameters:
        -----------
        inputs : iterable
            Task inputs; materialised into a list, never mutated.
        fn : callable
            Deterministic, side-effect-free function of one argument.

        Returns:
        --------
        ResultSet
            Index-aligned with ``inputs``. ``complete`` is False if cancel()
            was called before every task finished.

        Raises:
        -------
        TaskFailure            -- a task raised and on_error is fail_fast.
        WorkerStartupFailure   -- an execution unit could not be started.
        WorkerCrashed          -- an execution unit died mid-run.
        """
        if not callable(fn):
            raise InvalidConfiguration(f"fn must be callable, got {fn!r}")
        if self.backend != "thread":
            try:
                pickle.dumps(fn)
            except Exception as exc:
                raise InvalidConfiguration(
                    f"fn must be picklable (module-level) for the {self.backend} backend: {exc}"
                ) from exc
        items = list(inputs)

        with self._run_lock:
            self._cancel.clear()
            self.stats = {"processed": 0, "succeeded": 0, "failed": 0,
                          "workers": 0, "elapsed": 0.0}
            if not items:
                return ResultSet([])

            n_workers = min(self.worker_count, len(items))
            if self.worker_count > available_parallelism():
                logger.warning(
                    "worker_count=%d exceeds %d available CPUs; extra workers add no speedup",
                    self.worker_count, available_parallelism(),
                )
            chunks = None
            if self.scheduling is Scheduling.STATIC:
                chunks = partition(len(items), n_workers, self.layout)

            logger.info("Dispatching %d tasks to %d %s workers (%s)",
                        len(items), n_workers, self.backend, self.scheduling.value)
            start = time.perf_counter()
            if self.backend == "mpi":
                values, errors, complete = self._dispatch_mpi(items, fn, n_workers, chunks)
            else:
                units = _ThreadUnits() if self.backend == "thread" else _ProcessUnits()
                values, errors, complete = self._dispatch(units, items, fn, n_workers, chunks)
            elapsed = time.perf_counter() - start

            processed = sum(1 for v in values if v is not NOT_RUN)
            self.stats = {"processed": processed, "succeeded": processed - len(errors),
                          "failed": len(errors), "workers": n_workers, "elapsed": elapsed}
            logger.info("Finished %d/%d tasks in %.3fs (%d failed)",
                        processed, len(items), elapsed, len(errors))

        if errors and self.on_error is OnError.FAIL_FAST:
            task_error = errors[min(errors)]
            raise TaskFailure(task_error) from task_error.error
        if not complete:
            logger.warning("Run cancelled with %d of %d tasks done", processed, len(items))
        return ResultSet(values, errors, complete)

    # ------------------ Thread / Process Dispatch ------------------
    def _dispatch(self, units, items, fn, n_workers, chunks):
        fail_fast = self.on_error is OnError.FAIL_FAST
        values = [NOT_RUN] * len(items)
        errors = {}

        if units.encode is not None:
            # an input the queue can't pickle fails its own index, not the run
            for index, item in enumerate(items):
                try:
                    units.encode(item)
                except Exception as exc:
                    errors[index] = values[index] = capture_error(index, exc)
            if errors:
                logger.warning("Inputs %s can't be sent to %s workers",
                               sorted(errors)[:5], units.kind)
                if fail_fast:
                    return values, errors, True
        expected = len(items) - len(errors)

        result_queue = units.queue()
        stop_event = units.event()

        # every queue is filled (tasks + sentinels) before any worker starts
        if chunks is not None:
            task_queues = [units.queue() for _ in range(n_workers)]
            for task_queue, chunk in zip(task_queues, chunks):
                for index in chunk:
                    if index not in errors:
                        task_queue.put((index, items[index]))
                task_queue.put(None)
        else:
            shared = units.queue()
            for index, item in enumerate(items):
                if index not in errors:
                    shared.put((index, item))
            for _ in range(n_workers):
                shared.put(None)
            task_queues = [shared] * n_workers

        workers = []
        force = False
        complete = True

        def absorb(message):
            worker_id, index, ok, payload = message
            if ok:
                values[index] = units.decode(payload)
            else:
                errors[index] = payload
                values[index] = payload

        try:
            for worker_id in range(n_workers):
                args = (worker_id, fn, task_queues[worker_id], result_queue,
                        stop_event, units.encode)
                try:
                    workers.append(units.start(worker_id, args))
                except (OSError, RuntimeError) as exc:
                    raise WorkerStartupFailure(
                        f"could not start {units.kind} worker {worker_id}: {exc}"
                    ) from exc
                logger.debug("Started %s worker %d", units.kind, worker_id)

            received = 0
            finished = set()
            suspects = set()
            while received < expected and len(finished) < n_workers:
                if self._cancel.is_set():
                    stop_event.set()
                    force = True
                    complete = False
                    break
                try:
                    message = result_queue.get(timeout=_POLL_SECONDS)
                except queue.Empty:
                    dead = {wid for wid, unit in enumerate(workers)
                            if wid not in finished and not unit.is_alive()}
                    # a worker must look dead on two polls in a row; its last
                    # messages may still have been in flight the first time
                    if dead & suspects:
                        raise WorkerCrashed(
                            f"{units.kind} worker(s) {sorted(dead & suspects)} exited "
                            f"with {expected - received} task(s) unreported"
                        )
                    suspects = dead
                    continue

                if message[1] is None:
                    finished.add(message[0])
                    logger.debug("%s worker %d done after %d tasks",
                                 units.kind, message[0], message[3])
                    continue
                received += 1
                absorb(message)
                if not message[2] and fail_fast:
                    logger.debug("Task %d failed, stopping remaining work", message[1])
                    stop_event.set()
                    force = True
                    break

            if received < expected and not stop_event.is_set():
                raise WorkerCrashed(
                    f"workers finished with {expected - received} task(s) unreported"
                )
        except BaseException:
            # startup failure, crash or KeyboardInterrupt: nothing left worth waiting for
            force = True
            raise
        finally:
            stop_event.set()
            units.shutdown(workers, force)
            if units.drainable(force):
                # keep whatever in-flight tasks managed to report
                while True:
                    try:
                        message = result_queue.get_nowait()
                    except queue.Empty:
                        break
                    if message[1] is not None:
                        absorb(message)
            units.release(list(dict.fromkeys(task_queues + [result_queue])))
            logger.debug("Tore down %d %s workers", len(workers), units.kind)

        if not complete and all(v is not NOT_RUN for v in values):
            complete = True
        return values, errors, complete

    # ------------------ MPI Dispatch ------------------
    def _dispatch_mpi(self, items, fn, n_workers, chunks):
        # imported here so the thread/process backends work without an MPI runtime
        from mpiMGR import MPIManager

        manager = MPIManager(n_workers)
        fail_fast = self.on_error is OnError.FAIL_FAST
        manager.spawn(fn, self.scheduling.value, fail_fast)
        try:
            if chunks is not None:
                values, errors, complete = manager.run_static(items, chunks)
                if self._cancel.is_set():
                    logger.warning("cancel() has no effect on a static MPI run; "
                                   "the %d scattered chunks ran to the end", len(chunks))
                return values, errors, complete
            return manager.run_dynamic(items, fail_fast, self._cancel)
        finally:
            manager.shutdown()


def run(inputs: Iterable[Any], fn: Callable[[Any], Any], worker_count: Optional[int] = None,
        scheduling="static", **options) -> ResultSet:
    """
    One-shot parallel map: ``run(inputs, fn, worker_count, scheduling)``.

    Extra keyword options (layout, on_error, backend) go to WorkerPool.
    """
    return WorkerPool(worker_count, scheduling, **options).run(inputs, fn)


__all__ = ["WorkerPool", "run", "available_parallelism", "default_worker_count", "BACKENDS"]
