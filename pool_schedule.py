# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : pool_schedule.py
from enum import Enum
from typing import List

from pool_errors import InvalidConfiguration


class Scheduling(str, Enum):
    STATIC = "static"     # task-to-worker assignment fixed before execution
    DYNAMIC = "dynamic"   # workers claim the next index when they go idle


class Layout(str, Enum):
    CONTIGUOUS = "contiguous"
    ROUND_ROBIN = "round_robin"


class OnError(str, Enum):
    FAIL_FAST = "fail_fast"
    COLLECT = "collect"


def coerce(enum_cls, value, what: str):
    """Turn a string (or enum member) into ``enum_cls`` or raise InvalidConfiguration."""

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise InvalidConfiguration(
            f"unrecognized {what} {value!r}; expected one of: {choices}"
        ) from None


def check_worker_count(worker_count) -> int:
    # bool is an int subclass, True would quietly mean one worker
    if isinstance(worker_count, bool) or not isinstance(worker_count, int):
        raise InvalidConfiguration(f"worker_count must be an integer, got {worker_count!r}")
    if worker_count < 1:
        raise InvalidConfiguration(f"worker_count must be >= 1, got {worker_count}")
    return worker_count


def partition(n_items: int, n_workers: int, layout=Layout.CONTIGUOUS) -> List[List[int]]:
    """
    Split task indices ``0..n_items-1`` into ``n_workers`` static chunks.

    Parameters:
    -----------
    n_items : int
        Number of tasks.
    n_workers : int
        Number of chunks to produce (some may be empty when n_items < n_workers).
    layout : Layout or str
        "contiguous" hands each worker one run of neighbouring indices; chunk
        sizes differ by at most one and earlier workers take the remainder.
        "round_robin" deals indices out like cards (worker w gets w, w+n, ...).

    Returns:
    --------
    list of list of int
        One list of indices per worker, in worker order.
    """
    n_workers = check_worker_count(n_workers)
    layout = coerce(Layout, layout, "layout")
    indices = list(range(n_items))

    if layout is Layout.ROUND_ROBIN:
        return [indices[w::n_workers] for w in range(n_workers)]

    # quotient and remainder of n_items / n_workers
    per, rem = divmod(n_items, n_workers)
    chunks = []
    start = 0
    for w in range(n_workers):
        count = per + (1 if w < rem else 0)
        chunks.append(indices[start:start + count])
        start += count
    return chunks
