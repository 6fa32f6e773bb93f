"""
Tests for the sample task functions.
"""

import pickle

import numpy as np
import pytest

from workloads import BootstrapMean, ExitOn, FailOn, percentile_interval, skewed_cost, sqrt, square, synthetic_sample


def test_simple_functions():
    assert square(7) == 49
    assert sqrt(16) == 4.0
    assert skewed_cost(3, unit=0.0) == 3


def test_fail_on_raises_only_for_bad_inputs():
    fn = FailOn({2})
    assert fn(3) == 9
    with pytest.raises(ValueError, match="refusing input 2"):
        fn(2)


def test_exit_on_passes_other_inputs_through():
    fn = ExitOn({5})
    assert fn(3) == 9
    assert pickle.loads(pickle.dumps(fn)).bad == frozenset({5})


def test_bootstrap_replicate_is_deterministic_per_seed():
    replicate = BootstrapMean(synthetic_sample(n=500))
    assert replicate(11) == replicate(11)
    assert replicate(11) != replicate(12)
    assert isinstance(replicate(0), float)


def test_bootstrap_replicate_pickles_with_its_data():
    replicate = BootstrapMean([1.0, 2.0, 3.0])
    clone = pickle.loads(pickle.dumps(replicate))
    assert np.array_equal(clone.data, replicate.data)
    assert clone(5) == replicate(5)


def test_percentile_interval_brackets_sample_mean():
    sample = synthetic_sample(n=2000, seed=1)
    replicate = BootstrapMean(sample)
    means = [replicate(seed) for seed in range(300)]
    low, high = percentile_interval(means)
    assert low < sample.mean() < high
    assert high - low < 2.0
