# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : pool_results.py
import pickle
import traceback
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pool_errors import PoolCancelled, TaskFailure


# ------------------ Error Marker ------------------
@dataclass(frozen=True)
class TaskError:
    """
    Stands in for a value whose task raised.

    Parameters:
    -----------
    index : int
        Position of the input that failed.
    type_name : str
        Qualified name of the exception class.
    message : str
        str() of the exception.
    traceback : str
        Formatted traceback captured inside the worker.
    error : BaseException or None
        The exception itself when it could be pickled, else None.
    """
    index: int
    type_name: str
    message: str
    traceback: str = field(default="", compare=False, repr=False)
    error: Optional[BaseException] = field(default=None, compare=False, repr=False)


def capture_error(index: int, exc: BaseException) -> TaskError:
    """Build a TaskError that can cross a process or MPI boundary."""

    exc_type = type(exc)
    type_name = f"{exc_type.__module__}.{exc_type.__qualname__}"
    tb_text = "".join(traceback.format_exception(exc_type, exc, exc.__traceback__))
    try:
        # Exceptions holding sockets, locks, lambdas, etc. won't survive the trip
        pickle.loads(pickle.dumps(exc))
        carried = exc
    except Exception:
        carried = None
    return TaskError(index, type_name, str(exc), tb_text, carried)


# ------------------ Not-Run Marker ------------------
class _NotRun:
    """Placeholder for positions a cancelled run never reached."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "NOT_RUN"

    def __reduce__(self):
        return (_NotRun, ())


NOT_RUN = _NotRun()


# ------------------ Result Set ------------------
class ResultSet(Sequence):
    """
    Ordered outputs of one dispatch, index-aligned with the inputs.

    Position i holds the value returned for input i, a TaskError if that task
    raised, or NOT_RUN if the run was cancelled before reaching it.

    Attributes:
    -----------
    complete : bool
        False only when the run was cancelled.
    errors : dict
        Mapping from failed index to its TaskError.
    """

    def __init__(self, values: List[Any], errors: Optional[Dict[int, TaskError]] = None,
                 complete: bool = True):
        self._values = list(values)
        self.errors = dict(errors or {})
        self.complete = complete

    def __getitem__(self, i):
        return self._values[i]

    def __len__(self):
        return len(self._values)

    def __eq__(self, other):
        if isinstance(other, ResultSet):
            return self._values == other._values and self.complete == other.complete
        if isinstance(other, list):
            return self._values == other
        return NotImplemented

    def __repr__(self):
        flag = "" if self.complete else ", complete=False"
        return f"ResultSet({self._values!r}{flag})"

    @property
    def failed(self) -> List[int]:
        return sorted(self.errors)

    @property
    def not_run(self) -> List[int]:
        return [i for i, v in enumerate(self._values) if v is NOT_RUN]

    def ok(self, i: int) -> bool:
        """True when position i holds a real value."""
        return i not in self.errors and self._values[i] is not NOT_RUN

    def unwrap(self) -> list:
        """
        Return the plain list of values.

        Raises TaskFailure for the lowest failed index, or PoolCancelled when
        the set is incomplete.
        """
        if self.errors:
            task_error = self.errors[min(self.errors)]
            raise TaskFailure(task_error) from task_error.error
        if not self.complete:
            raise PoolCancelled(f"{len(self.not_run)} of {len(self)} tasks never ran")
        return list(self._values)
