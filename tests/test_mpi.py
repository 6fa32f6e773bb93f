"""
Tests for the MPI backend.

Spawning ranks needs a working MPI runtime, so these only run when
POOL_TEST_MPI=1 is set, e.g.:

    POOL_TEST_MPI=1 pytest tests/test_mpi.py
"""

import os
from functools import partial

import pytest

if os.environ.get("POOL_TEST_MPI") != "1":
    pytest.skip("set POOL_TEST_MPI=1 to spawn MPI ranks", allow_module_level=True)

pytest.importorskip("mpi4py")

from pool_errors import TaskFailure  # noqa: E402
from workerpool import WorkerPool, run  # noqa: E402
from workloads import FailOn, skewed_cost, sqrt, square  # noqa: E402


@pytest.mark.parametrize("scheduling", ["static", "dynamic"])
def test_sqrt_on_mpi_ranks(scheduling):
    results = run([1, 4, 9, 16], sqrt, 2, scheduling, backend="mpi")
    assert results.unwrap() == [1, 2, 3, 4]


@pytest.mark.parametrize("layout", ["contiguous", "round_robin"])
def test_static_matches_dynamic(layout):
    inputs = list(range(37))
    static = run(inputs, square, 3, "static", layout=layout, backend="mpi")
    dynamic = run(inputs, square, 3, "dynamic", backend="mpi")
    assert static == dynamic == [x * x for x in inputs]


@pytest.mark.parametrize("scheduling", ["static", "dynamic"])
def test_fail_fast(scheduling):
    with pytest.raises(TaskFailure) as info:
        run(range(100), FailOn({42}), 2, scheduling, backend="mpi")
    assert info.value.index == 42


@pytest.mark.parametrize("scheduling", ["static", "dynamic"])
def test_collect(scheduling):
    results = run(range(100), FailOn({42}), 2, scheduling, on_error="collect", backend="mpi")
    assert results.failed == [42]
    assert sum(1 for i in range(100) if results.ok(i)) == 99


def test_dynamic_cancel_keeps_in_flight_results():
    import threading

    pool = WorkerPool(2, "dynamic", backend="mpi")
    threading.Timer(0.5, pool.cancel).start()
    results = pool.run(range(200), partial(skewed_cost, unit=0.01))
    assert not results.complete
    assert results.not_run


def test_static_cancel_is_logged_not_ignored(caplog):
    import logging
    import threading

    pool = WorkerPool(2, "static", backend="mpi")
    threading.Timer(0.3, pool.cancel).start()
    with caplog.at_level(logging.WARNING, logger="workerpool"):
        results = pool.run(range(40), partial(skewed_cost, unit=0.01))
    assert results.complete
    assert "no effect on a static MPI run" in caplog.text
