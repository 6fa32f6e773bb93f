# Author      : Tyson Limato
# Date        : 2025-7-4
# File Name   : workloads.py
# Task functions for the benchmark, the examples and the tests. They live at
# module level so the process and MPI backends can pickle them by reference.
import math
import os
import time

import numpy as np


def square(x):
    return x * x


def sqrt(x):
    return math.sqrt(x)


def skewed_cost(i, unit: float = 0.002):
    """Sleep for ``i * unit`` seconds, so task cost grows with its input."""

    time.sleep(i * unit)
    return i


class FailOn:
    """
    Square its input, except raise ValueError for the inputs in ``bad``.

    Used to exercise fail-fast vs. collect behaviour.
    """

    def __init__(self, bad):
        self.bad = frozenset(bad)

    def __call__(self, x):
        if x in self.bad:
            raise ValueError(f"refusing input {x!r}")
        return x * x


class ExitOn:
    """Square its input, except end the whole process for the inputs in ``bad``."""

    def __init__(self, bad, code: int = 1):
        self.bad = frozenset(bad)
        self.code = code

    def __call__(self, x):
        if x in self.bad:
            # no cleanup, no exception: what a worker killed by the OS looks like
            os._exit(self.code)
        return x * x


# ------------------ Bootstrap ------------------
class BootstrapMean:
    """
    One bootstrap replicate of the sample mean per call.

    Parameters:
    -----------
    data : array-like
        The observed sample. Copied once; workers only read it.

    Calling the object with an integer seed draws ``len(data)`` values with
    replacement and returns their mean as a plain float. Only that float
    leaves the task, the resample itself is released when the call returns.
    """

    def __init__(self, data):
        self.data = np.asarray(data, dtype=float)

    def __call__(self, seed: int) -> float:
        rng = np.random.default_rng(seed)
        resample = self.data[rng.integers(0, len(self.data), size=len(self.data))]
        stat = float(resample.mean())
        del resample
        return stat


def synthetic_sample(n: int = 5000, seed: int = 0):
    """Normal(mean=50, sd=10) sample for bootstrap demos."""

    return np.random.default_rng(seed).normal(50.0, 10.0, size=n)


def percentile_interval(replicates, level: float = 0.95):
    """Percentile bootstrap confidence interval from a list of replicate means."""

    alpha = (1.0 - level) / 2.0
    low, high = np.quantile(np.asarray(replicates, dtype=float), [alpha, 1.0 - alpha])
    return float(low), float(high)
