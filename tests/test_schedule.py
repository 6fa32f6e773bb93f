"""
Tests for static partitioning and configuration coercion.
"""

import pytest

from pool_errors import InvalidConfiguration
from pool_schedule import Layout, Scheduling, check_worker_count, coerce, partition


def test_contiguous_partition_even():
    """Contiguous chunks keep neighbouring indices together."""
    assert partition(8, 4) == [[0, 1], [2, 3], [4, 5], [6, 7]]


def test_contiguous_partition_remainder_goes_to_first_workers():
    """Chunk sizes differ by at most one, earlier workers take the extra task."""
    chunks = partition(10, 4)
    assert [len(c) for c in chunks] == [3, 3, 2, 2]
    assert chunks[0] == [0, 1, 2]
    assert chunks[-1] == [8, 9]


def test_round_robin_partition():
    """Round-robin deals indices out like cards."""
    assert partition(7, 3, "round_robin") == [[0, 3, 6], [1, 4], [2, 5]]
    assert partition(7, 3, Layout.ROUND_ROBIN) == partition(7, 3, "round_robin")


@pytest.mark.parametrize("layout", ["contiguous", "round_robin"])
@pytest.mark.parametrize("n_items,n_workers", [(0, 1), (1, 1), (5, 8), (100, 7), (13, 13)])
def test_partition_covers_every_index_once(layout, n_items, n_workers):
    """Every task lands in exactly one chunk, whatever the shape."""
    chunks = partition(n_items, n_workers, layout)
    assert len(chunks) == n_workers
    flat = sorted(i for chunk in chunks for i in chunk)
    assert flat == list(range(n_items))


def test_more_workers_than_items_leaves_empty_chunks():
    chunks = partition(2, 4)
    assert chunks == [[0], [1], [], []]


@pytest.mark.parametrize("bad", [0, -3, 1.5, "2", True, None])
def test_check_worker_count_rejects(bad):
    with pytest.raises(InvalidConfiguration):
        check_worker_count(bad)


def test_partition_rejects_unknown_layout():
    with pytest.raises(InvalidConfiguration, match="layout"):
        partition(4, 2, "diagonal")


def test_coerce_accepts_members_and_values():
    assert coerce(Scheduling, "dynamic", "scheduling policy") is Scheduling.DYNAMIC
    assert coerce(Scheduling, Scheduling.STATIC, "scheduling policy") is Scheduling.STATIC


def test_invalid_configuration_is_a_value_error():
    """Callers catching ValueError still see configuration mistakes."""
    with pytest.raises(ValueError):
        coerce(Scheduling, "guided", "scheduling policy")
