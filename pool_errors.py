# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : pool_errors.py


class PoolError(Exception):
    """Base class for everything the worker pool raises."""


class InvalidConfiguration(PoolError, ValueError):
    """Bad worker count, scheduling policy, layout, error policy or backend."""


class WorkerStartupFailure(PoolError):
    """An execution unit (thread, process or MPI rank) could not be started."""


class WorkerCrashed(PoolError):
    """An execution unit went away before reporting all of its tasks."""


class PoolCancelled(PoolError):
    """The run was cancelled before every task finished."""


class TaskFailure(PoolError):
    """
    The task function raised for one specific input.

    Attributes:
    -----------
    index : int
        Position of the failing input in the original sequence.
    error : BaseException or None
        The original exception, when it survived the trip back from the worker.
    task_error : TaskError
        The marker describing the failure (type name, message, traceback text).
    """

    def __init__(self, task_error):
        self.task_error = task_error
        self.index = task_error.index
        self.error = task_error.error
        super().__init__(
            f"task {task_error.index} failed: {task_error.type_name}: {task_error.message}"
        )
